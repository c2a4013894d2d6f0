"""mitmproxy addon that plugs :class:`SecureCookieProxy` into a reverse proxy.

Usage::

    SECURE_COOKIE_TARGET=https://staging.example.com \\
        mitmdump --mode reverse:https://staging.example.com -s src/secure_cookie_proxy/apps/addon.py

or simply ``secure-cookie-proxy run --target https://staging.example.com``.
"""

from __future__ import annotations

from mitmproxy import http

from secure_cookie_proxy.core.proxy import SecureCookieProxy
from secure_cookie_proxy.utils.logger import proxy_logger as logger


class SecureCookieAddon:
    """Adapts mitmproxy events to the two secure cookie hook points."""

    def __init__(self, proxy: SecureCookieProxy) -> None:
        self.proxy = proxy

    def running(self) -> None:
        self.proxy.start()

    async def done(self) -> None:
        await self.proxy.aclose()

    def request(self, flow: http.HTTPFlow) -> None:
        self._inject(flow)

    def websocket_handshake(self, flow: http.HTTPFlow) -> None:
        self._inject(flow)

    def response(self, flow: http.HTTPFlow) -> None:
        if flow.response is None:
            return
        try:
            self.proxy.after_response(
                flow.response.status_code,
                flow.request.headers,
                flow.response.headers,
                flow.request.path,
            )
        except Exception:
            logger.exception("[COOKIE][PROXY] Response hook failed for %s", flow.request.path)

    def _inject(self, flow: http.HTTPFlow) -> None:
        # ``request`` and ``websocket_handshake`` both fire for upgrades.
        if flow.metadata.get("secure_cookie_injected"):
            return
        try:
            self.proxy.before_forward(flow.request.headers)
        except Exception:
            logger.exception("[COOKIE][PROXY] Request hook failed for %s", flow.request.path)
            return
        flow.metadata["secure_cookie_injected"] = True


def _addons_from_env() -> list[SecureCookieAddon]:
    from secure_cookie_proxy.config.config import ProxyOptions

    return [SecureCookieAddon(SecureCookieProxy(ProxyOptions.from_env()))]


# Only build from the environment when loaded as a mitmproxy script.
if __name__.startswith("__mitmproxy_script__"):
    addons = _addons_from_env()
