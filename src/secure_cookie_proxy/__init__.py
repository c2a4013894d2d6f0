"""Reverse-proxy add-on that keeps a remote backend's auth cookie attached to every request."""

from secure_cookie_proxy.config.config import ProxyOptions
from secure_cookie_proxy.core.proxy import SecureCookieProxy

__version__ = "0.1.0"

__all__ = ["ProxyOptions", "SecureCookieProxy", "__version__"]
