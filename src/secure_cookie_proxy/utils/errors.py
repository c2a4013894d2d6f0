"""Error types and failure classification for the secure cookie core."""

from __future__ import annotations

from enum import Enum


class SecureCookieError(Exception):
    """Base class for every error raised by this package."""


class MalformedSecretError(SecureCookieError, ValueError):
    """A stored or operator-supplied cookie string could not be decoded."""


class CookieEncodingError(SecureCookieError, ValueError):
    """A cookie name or value cannot be carried in a cookie header."""


class StoreUnavailableError(SecureCookieError):
    """The secret store backend failed to read or write."""

    def __init__(self, account: str, reason: str) -> None:
        super().__init__(f"Cookie store unavailable for {account!r}: {reason}")
        self.account = account
        self.reason = reason


class ProxyConfigurationError(SecureCookieError, ValueError):
    """Proxy options are missing or invalid."""


class FailureKind(str, Enum):
    """Categorised failures, used to tag log lines."""

    STORE_UNAVAILABLE = "store_unavailable"
    MALFORMED_SECRET = "malformed_secret"
    UPSTREAM_UNAUTHORIZED = "upstream_unauthorized"
    UNKNOWN = "unknown"


def classify_failure(
    failure: BaseException | int,
    unauthorized_codes: frozenset[int] | set[int] = frozenset({401}),
) -> FailureKind:
    """Best-effort mapping from an exception or status code to :class:`FailureKind`."""

    if isinstance(failure, int):
        if failure in unauthorized_codes:
            return FailureKind.UPSTREAM_UNAUTHORIZED
        return FailureKind.UNKNOWN

    if isinstance(failure, MalformedSecretError):
        return FailureKind.MALFORMED_SECRET
    if isinstance(failure, (StoreUnavailableError, OSError)):
        return FailureKind.STORE_UNAVAILABLE
    return FailureKind.UNKNOWN


__all__ = [
    "CookieEncodingError",
    "FailureKind",
    "MalformedSecretError",
    "ProxyConfigurationError",
    "SecureCookieError",
    "StoreUnavailableError",
    "classify_failure",
]
