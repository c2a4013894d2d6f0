"""Centralised logging helpers for the proxy add-on."""

from __future__ import annotations

import logging
import os
from functools import cache
from logging.handlers import RotatingFileHandler

# Make sure ``.env`` settings (log folder, file logging) are visible before we
# read them below.
from secure_cookie_proxy.config import env_loader  # noqa: F401

LOG_FOLDER = (
    os.environ.get("SECURE_COOKIE_LOG_DIR")
    or os.environ.get("LOG_FOLDER")
    or "logs"
)
DEFAULT_MAX_BYTES = 2 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 3
ENABLE_FILE_LOGS = os.environ.get("ENABLE_FILE_LOGS", "0").lower() in {
    "1",
    "true",
    "yes",
    "on",
}

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_CONSOLE_LEVEL = logging.INFO

_CATEGORY_FILE_MAP: dict[str, str] = {
    "core": "secure_cookie.log",
    "store": "cookie_store.log",
    "proxy": "proxy.log",
}


def _build_rotating_handler(filename: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename,
        maxBytes=DEFAULT_MAX_BYTES,
        backupCount=DEFAULT_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    return handler


@cache
def get_logger(category: str = "core") -> logging.Logger:
    """Return a configured logger for ``category``.

    Loggers only write to the console by default. Set ``ENABLE_FILE_LOGS=1`` to
    also write rotating files into ``SECURE_COOKIE_LOG_DIR`` (``logs/`` when
    unset), one file per category. Secret cookie values must never be passed to
    these loggers; log cookie names only.
    """

    category = category or "core"
    logger_name = f"SecureCookieProxy.{category}"
    logger = logging.getLogger(logger_name)
    logger.setLevel(logging.DEBUG)

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(_CONSOLE_LEVEL)
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(console_handler)

    if ENABLE_FILE_LOGS:
        os.makedirs(LOG_FOLDER, exist_ok=True)
        file_name = _CATEGORY_FILE_MAP.get(category, _CATEGORY_FILE_MAP["core"])
        file_path = os.path.join(LOG_FOLDER, file_name)
        logger.addHandler(_build_rotating_handler(file_path))

    return logger


logger = get_logger("core")
store_logger = get_logger("store")
proxy_logger = get_logger("proxy")

__all__ = [
    "get_logger",
    "logger",
    "proxy_logger",
    "store_logger",
]
