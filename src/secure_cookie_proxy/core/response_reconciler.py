"""Inbound response handling: re-authentication and cookie reconciliation."""

from __future__ import annotations

from collections.abc import Collection, Iterable

from secure_cookie_proxy.config.config import CookieRewrite
from secure_cookie_proxy.core.credential_acquirer import CredentialAcquirer
from secure_cookie_proxy.utils import cookie_codec
from secure_cookie_proxy.utils.errors import CookieEncodingError, FailureKind
from secure_cookie_proxy.utils.logger import proxy_logger as logger

UNAUTHORIZED_PROMPT = """
Authentication failed for {target}{url}

You either haven't provide an auth cookie or it expired.
Please login to {target} and copy the HTTP cookie string here.

It will be securely stored in {storage}:"""


class ResponseReconciler:
    def __init__(
        self,
        acquirer: CredentialAcquirer,
        target: str,
        *,
        unauthorized_codes: Collection[int] = frozenset({401}),
        cookie_rewrite: CookieRewrite | None = None,
        storage_description: str = "system keychain",
    ) -> None:
        self._acquirer = acquirer
        self._target = target
        self._unauthorized_codes = frozenset(unauthorized_codes)
        self._cookie_rewrite = cookie_rewrite
        self._storage_description = storage_description

    def is_unauthorized(self, status_code: int | None) -> bool:
        return status_code is not None and status_code in self._unauthorized_codes

    def unauthorized_message(self, url: str) -> str:
        return UNAUTHORIZED_PROMPT.format(
            target=self._target, url=url, storage=self._storage_description
        )

    def on_response(
        self,
        status_code: int | None,
        request_cookie_header: str | None,
        set_cookie_headers: Iterable[str] | str | None,
        url: str,
    ) -> list[str] | None:
        """Handle one upstream response.

        Schedules an operator prompt when ``status_code`` signals an
        authentication failure; the response itself is never delayed. Returns
        the new ``Set-Cookie`` list when secret cookies had to be added, or
        ``None`` when the response should be relayed unchanged.
        """

        if self.is_unauthorized(status_code):
            logger.info(
                "[COOKIE][PROXY][%s] %s returned %s",
                FailureKind.UPSTREAM_UNAUTHORIZED.value,
                url,
                status_code,
            )
            self._acquirer.trigger_from_operator(self.unauthorized_message(url))

        secret = self._acquirer.secret_cookies
        if secret is None:
            return None
        return self.missing_cookie_headers(secret, request_cookie_header, set_cookie_headers)

    def missing_cookie_headers(
        self,
        secret: dict[str, str],
        request_cookie_header: str | None,
        set_cookie_headers: Iterable[str] | str | None,
    ) -> list[str] | None:
        """Append secret cookies the client has not sent and the server has not set."""

        client_cookies: dict[str, str] = dict(secret)
        if self._cookie_rewrite is not None:
            try:
                client_cookies = dict(self._cookie_rewrite(dict(secret)))
            except Exception as exc:
                logger.warning("[COOKIE][PROXY] cookie_rewrite failed, skipping: %r", exc)
                return None

        request_cookies = cookie_codec.decode(request_cookie_header)
        headers, response_cookies = cookie_codec.decode_set_cookie(set_cookie_headers)

        missing = [
            name
            for name in client_cookies
            if name not in request_cookies and name not in response_cookies
        ]
        added = []
        for name in missing:
            try:
                headers.append(cookie_codec.serialize_set_cookie(name, client_cookies[name], path="/"))
            except CookieEncodingError as exc:
                logger.warning("[COOKIE][PROXY] Skipping cookie that cannot be set: %s", exc)
                continue
            added.append(name)
        if not added:
            return None
        logger.debug("[COOKIE][PROXY] Added Set-Cookie for %s", ", ".join(added))
        return headers


__all__ = ["ResponseReconciler", "UNAUTHORIZED_PROMPT"]
