"""Outbound cookie injection."""

from __future__ import annotations

from collections.abc import Callable, MutableMapping

from secure_cookie_proxy.utils import cookie_codec


class CookieInjector:
    """Merge the secret cookies into the ``Cookie`` header sent upstream.

    Secret cookies win over same-named cookies sent by the client, so the
    proxied identity is always the operator's. Every other client cookie is
    forwarded with its original text.
    """

    def __init__(self, secret_cookies: Callable[[], dict[str, str] | None]) -> None:
        self._secret_cookies = secret_cookies

    def compute_outbound_header(self, request_cookie_header: str | None) -> str:
        return cookie_codec.overlay(request_cookie_header, self._secret_cookies() or {})

    def apply(self, headers: MutableMapping[str, str]) -> None:
        """Set the merged ``cookie`` header on ``headers`` in place."""

        header = self.compute_outbound_header(cookie_codec.cookie_header_of(headers))
        if header:
            headers["cookie"] = header


__all__ = ["CookieInjector"]
