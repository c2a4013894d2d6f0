"""Conversion between cookie header strings and name/value mappings.

Values are the exact text carried on the wire: nothing is quoted, unquoted or
re-escaped, so ``decode(encode(cookies)) == cookies`` for every cookie mapping.
A cookie mapping has non-empty names without ``=`` and values that a header
can carry: no ``;``, CR, LF or NUL, and no leading or trailing whitespace.
``encode`` refuses anything else with :class:`CookieEncodingError`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from secure_cookie_proxy.utils.errors import CookieEncodingError, MalformedSecretError

_HEADER_BREAKING_CHARS = frozenset(";\r\n\x00")


def _invalid_reason(name: str, value: str) -> str | None:
    if not name or name != name.strip():
        return f"cookie name {name!r} is empty or padded"
    if "=" in name or _HEADER_BREAKING_CHARS.intersection(name):
        return f"cookie name {name!r} contains a separator"
    if value != value.strip():
        return f"value of {name!r} has leading or trailing whitespace"
    if _HEADER_BREAKING_CHARS.intersection(value):
        return f"value of {name!r} contains a separator"
    return None


def _pair(name: str, value: str) -> str:
    name, value = str(name), str(value)
    reason = _invalid_reason(name, value)
    if reason is not None:
        raise CookieEncodingError(reason)
    return f"{name}={value}"


def _token_name(token: str) -> str | None:
    if "=" not in token:
        return None
    return token.split("=", 1)[0].strip() or None


def _split_pair(token: str) -> tuple[str, str] | None:
    name = _token_name(token)
    if name is None:
        return None
    return name, token.split("=", 1)[1].strip()


def encode(cookies: Mapping[str, str]) -> str:
    """Serialize ``cookies`` to the ``Cookie`` request header format."""

    return "; ".join(_pair(name, value) for name, value in cookies.items())


def decode(header: str | None) -> dict[str, str]:
    """Parse a ``Cookie`` header into a mapping.

    Tokens without ``=`` (or with an empty name) are skipped. When a name is
    repeated the last occurrence wins.
    """

    cookies: dict[str, str] = {}
    if not header:
        return cookies
    for token in header.split(";"):
        pair = _split_pair(token.strip())
        if pair is None:
            continue
        name, value = pair
        cookies[name] = value
    return cookies


def decode_strict(header: str | None) -> dict[str, str]:
    """Parse a secret cookie string, rejecting anything that is not ``name=value`` pairs.

    Raises :class:`MalformedSecretError` when a non-empty token cannot be split
    into a name and a value, when a pair could not be sent back in a header, or
    when the string holds no cookies at all.
    """

    cookies: dict[str, str] = {}
    for token in (header or "").split(";"):
        token = token.strip()
        if not token:
            continue
        pair = _split_pair(token)
        if pair is None:
            raise MalformedSecretError("cookie string must be a list of name=value pairs")
        name, value = pair
        reason = _invalid_reason(name, value)
        if reason is not None:
            raise MalformedSecretError(reason)
        cookies[name] = value
    if not cookies:
        raise MalformedSecretError("cookie string is empty")
    return cookies


def overlay(header: str | None, cookies: Mapping[str, str]) -> str:
    """Set ``cookies`` in the ``Cookie`` header ``header``.

    Tokens whose name is not in ``cookies`` keep their original text. A name
    found in both takes its value from ``cookies`` at the position of its first
    occurrence, and later duplicates are dropped. Remaining names are appended.
    """

    pending = dict(cookies)
    parts: list[str] = []
    for token in (header or "").split(";"):
        token = token.strip()
        if not token:
            continue
        name = _token_name(token)
        if name is not None and name in cookies:
            if name in pending:
                parts.append(_pair(name, pending.pop(name)))
            continue
        parts.append(token)
    parts.extend(_pair(name, value) for name, value in pending.items())
    return "; ".join(parts)


def cookie_header_of(headers: Mapping[str, str]) -> str | None:
    """Return the request ``Cookie`` header of ``headers`` as one string.

    HTTP/2 clients may send several ``cookie`` fields; multi-value header
    containers (anything with ``get_all``) are joined with ``; ``.
    """

    get_all = getattr(headers, "get_all", None)
    if get_all is not None:
        values = get_all("cookie")
        return "; ".join(values) if values else None
    return headers.get("cookie")


def decode_set_cookie(entries: Iterable[str] | str | None) -> tuple[list[str], dict[str, str]]:
    """Parse ``Set-Cookie`` header entries.

    Returns the raw entries (as a new list, for pass-through) and a name/value
    view built from the part of each entry before the first ``;``. Cookie
    attributes such as ``Path`` or ``Expires`` are ignored.
    """

    if not entries:
        return [], {}
    raw = [entries] if isinstance(entries, str) else [str(entry) for entry in entries]
    cookies: dict[str, str] = {}
    for entry in raw:
        name, _, value = entry.split(";", 1)[0].partition("=")
        name = name.strip()
        if name:
            cookies[name] = value.strip()
    return raw, cookies


def serialize_set_cookie(name: str, value: str, *, path: str | None = "/") -> str:
    """Build a ``Set-Cookie`` header entry for ``name``."""

    header = _pair(name, value)
    if path:
        header += f"; Path={path}"
    return header


__all__ = [
    "cookie_header_of",
    "decode",
    "decode_set_cookie",
    "decode_strict",
    "encode",
    "overlay",
    "serialize_set_cookie",
]
