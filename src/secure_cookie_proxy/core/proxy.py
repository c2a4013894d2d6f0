"""Wiring of the secure cookie core and the hook points used by the transport."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, MutableMapping
from typing import Any

from secure_cookie_proxy.config.config import ProxyOptions
from secure_cookie_proxy.core.cookie_injector import CookieInjector
from secure_cookie_proxy.core.credential_acquirer import CredentialAcquirer
from secure_cookie_proxy.core.prompt import Prompter
from secure_cookie_proxy.core.response_reconciler import ResponseReconciler
from secure_cookie_proxy.utils import cookie_codec
from secure_cookie_proxy.utils.cookie_storage import CookieStorage, get_cookie_storage
from secure_cookie_proxy.utils.logger import proxy_logger as logger


class SecureCookieProxy:
    """One proxy target, one account, one secret cookie mapping.

    The transport calls :meth:`before_forward` for every request (including
    WebSocket upgrades) and :meth:`after_response` for every upstream
    response before relaying it.
    """

    def __init__(
        self,
        options: str | Mapping[str, Any] | ProxyOptions,
        *,
        store: CookieStorage | None = None,
        prompter: Prompter | None = None,
    ) -> None:
        self.options = ProxyOptions.from_value(options)
        self.store = store or get_cookie_storage()
        self.acquirer = CredentialAcquirer(self.store, self.options.account, prompter=prompter)
        self.injector = CookieInjector(lambda: self.acquirer.secret_cookies)
        self.reconciler = ResponseReconciler(
            self.acquirer,
            self.options.target,
            unauthorized_codes=self.options.unauthorized_status_code,
            cookie_rewrite=self.options.cookie_rewrite,
            storage_description=self.store.description,
        )

    @property
    def target(self) -> str:
        return self.options.target

    @property
    def account(self) -> str:
        return self.options.account

    def start(self) -> asyncio.Task:
        """Quietly load the stored cookie; must run inside the event loop."""

        logger.info("[COOKIE][PROXY] Proxying %s (account %s)", self.target, self.account)
        return self.acquirer.start()

    async def aclose(self) -> None:
        await self.acquirer.aclose()

    def before_forward(self, headers: MutableMapping[str, str]) -> None:
        """Pre-forward hook: set the outgoing ``cookie`` header."""

        self.injector.apply(headers)

    def after_response(
        self,
        status_code: int | None,
        request_headers: Mapping[str, str],
        response_headers: MutableMapping[str, str],
        url: str,
    ) -> bool:
        """Post-response hook.

        May trigger a background prompt and may rewrite the response
        ``Set-Cookie`` headers. Returns ``True`` when the headers changed.
        """

        get_all = getattr(response_headers, "get_all", None)
        if get_all is not None:
            set_cookies = get_all("set-cookie")
        else:
            set_cookies = response_headers.get("set-cookie")

        updated = self.reconciler.on_response(
            status_code,
            cookie_codec.cookie_header_of(request_headers),
            set_cookies,
            url,
        )
        if updated is None:
            return False
        set_all = getattr(response_headers, "set_all", None)
        if set_all is not None:
            set_all("set-cookie", updated)
        else:
            # Plain mappings cannot hold repeated fields.
            response_headers["set-cookie"] = updated  # type: ignore[assignment]
        return True


__all__ = ["SecureCookieProxy"]
