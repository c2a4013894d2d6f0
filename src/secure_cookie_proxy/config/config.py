"""Typed options for a secure cookie proxy."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from secure_cookie_proxy.config.env_loader import (
    EnvironmentConfigurationError,
    get_bool,
    get_int,
    get_list,
    get_str,
)
from secure_cookie_proxy.utils.errors import ProxyConfigurationError

CookieRewrite = Callable[[dict[str, str]], Mapping[str, str]]

DEFAULT_UNAUTHORIZED_STATUS_CODES: frozenset[int] = frozenset({401})
DEFAULT_LISTEN_HOST = "127.0.0.1"
DEFAULT_LISTEN_PORT = 8080


def _coerce_status_codes(value: int | str | Iterable[int | str] | None) -> frozenset[int]:
    if value is None:
        return DEFAULT_UNAUTHORIZED_STATUS_CODES
    if isinstance(value, (int, str)):
        value = [value]
    codes: set[int] = set()
    for item in value:
        if isinstance(item, bool):
            raise ProxyConfigurationError(f"Invalid unauthorized status code: {item!r}")
        try:
            code = int(item)
        except (TypeError, ValueError) as exc:
            raise ProxyConfigurationError(f"Invalid unauthorized status code: {item!r}") from exc
        if not 100 <= code <= 599:
            raise ProxyConfigurationError(f"Unauthorized status code out of range: {code}")
        codes.add(code)
    if not codes:
        raise ProxyConfigurationError("At least one unauthorized status code is required")
    return frozenset(codes)


def derive_account(target: str) -> str:
    """Default keychain account for ``target``: the target without its scheme."""

    _, sep, rest = target.partition("://")
    return rest if sep else target


@dataclass
class ProxyOptions:
    """Options recognised by :class:`~secure_cookie_proxy.core.proxy.SecureCookieProxy`.

    ``target`` is the only required option. ``secure``, ``change_origin`` and
    ``ws`` are handed to the proxy transport unchanged.
    """

    target: str
    unauthorized_status_code: frozenset[int] = DEFAULT_UNAUTHORIZED_STATUS_CODES
    keychain_account: str | None = None
    cookie_rewrite: CookieRewrite | None = None
    secure: bool = False
    change_origin: bool = True
    ws: bool | None = None
    listen_host: str = DEFAULT_LISTEN_HOST
    listen_port: int = DEFAULT_LISTEN_PORT
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.target = (self.target or "").strip().rstrip("/")
        if not self.target:
            raise ProxyConfigurationError("Proxy target is required")
        self.unauthorized_status_code = _coerce_status_codes(self.unauthorized_status_code)
        if self.ws is None:
            self.ws = self.target.startswith("ws")
        if self.cookie_rewrite is not None and not callable(self.cookie_rewrite):
            raise ProxyConfigurationError("cookie_rewrite must be callable")

    @property
    def account(self) -> str:
        return self.keychain_account or derive_account(self.target)

    @classmethod
    def from_value(cls, value: str | Mapping[str, Any] | ProxyOptions) -> ProxyOptions:
        """Accept a bare target string, a mapping of options or an instance."""

        if isinstance(value, ProxyOptions):
            return value
        if isinstance(value, str):
            return cls(target=value)
        known = {f.name for f in fields(cls)} - {"extra"}
        options = {key: val for key, val in value.items() if key in known}
        extra = {key: val for key, val in value.items() if key not in known}
        if "target" not in options:
            raise ProxyConfigurationError("Proxy target is required")
        return cls(**options, extra=extra)

    @classmethod
    def from_env(cls, **overrides: Any) -> ProxyOptions:
        """Build options from ``SECURE_COOKIE_*`` variables; ``overrides`` win when not ``None``."""

        try:
            values: dict[str, Any] = {
                "target": get_str("SECURE_COOKIE_TARGET"),
                "keychain_account": get_str("SECURE_COOKIE_ACCOUNT"),
                "unauthorized_status_code": get_list("SECURE_COOKIE_UNAUTHORIZED_CODES"),
                "secure": get_bool("SECURE_COOKIE_SECURE"),
                "listen_host": get_str("SECURE_COOKIE_LISTEN_HOST"),
                "listen_port": get_int("SECURE_COOKIE_LISTEN_PORT"),
            }
        except EnvironmentConfigurationError as exc:
            raise ProxyConfigurationError(str(exc)) from exc
        values.update({key: val for key, val in overrides.items() if val is not None})
        values = {key: val for key, val in values.items() if val is not None}
        if not values.get("target"):
            raise ProxyConfigurationError(
                "Proxy target is required (pass --target or set SECURE_COOKIE_TARGET)"
            )
        return cls(**values)


__all__ = [
    "CookieRewrite",
    "DEFAULT_UNAUTHORIZED_STATUS_CODES",
    "ProxyOptions",
    "derive_account",
]
