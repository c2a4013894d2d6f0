"""Storage backends for persisting secret cookie strings."""

from __future__ import annotations

import asyncio
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import keyring
import keyring.backends.fail
from keyring.errors import KeyringError

from secure_cookie_proxy.config.env_loader import get_str
from secure_cookie_proxy.utils.errors import (
    ProxyConfigurationError,
    StoreUnavailableError,
    classify_failure,
)
from secure_cookie_proxy.utils.logger import store_logger as logger

KEYRING_SERVICE = "HttpProxySecureCookies"
DEFAULT_COOKIE_DIRECTORY = Path.home() / ".proxy-cookies"


class CookieStorage(ABC):
    """Abstract base class for secret cookie storage backends.

    Subclasses implement ``_load``/``_save`` and may raise freely; the public
    ``get``/``set`` never raise.
    """

    description = "cookie storage"

    @abstractmethod
    async def _load(self, account: str) -> str | None:
        """Return the stored secret for ``account`` or ``None``."""

    @abstractmethod
    async def _save(self, account: str, secret: str) -> None:
        """Persist ``secret`` for ``account``, replacing any previous value."""

    async def get(self, account: str) -> str | None:
        try:
            return await self._load(account)
        except Exception as exc:
            logger.warning(
                "[COOKIE][STORE][%s] Read failed for %s: %s",
                classify_failure(exc).value,
                account,
                exc,
            )
            return None

    async def set(self, account: str, secret: str) -> bool:
        try:
            await self._save(account, secret)
        except Exception as exc:
            logger.error(
                "[COOKIE][STORE][%s] Write failed for %s: %s",
                classify_failure(exc).value,
                account,
                exc,
            )
            return False
        logger.debug("[COOKIE][STORE] Saved secret cookie for %s", account)
        return True


class KeyringCookieStorage(CookieStorage):
    """Secrets kept in the operating system credential vault via ``keyring``."""

    description = "system keychain"

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self._service = service

    async def _load(self, account: str) -> str | None:
        try:
            return await asyncio.to_thread(keyring.get_password, self._service, account)
        except KeyringError as exc:
            raise StoreUnavailableError(account, str(exc)) from exc

    async def _save(self, account: str, secret: str) -> None:
        try:
            await asyncio.to_thread(keyring.set_password, self._service, account, secret)
        except KeyringError as exc:
            raise StoreUnavailableError(account, str(exc)) from exc


class FileCookieStorage(CookieStorage):
    """One plain UTF-8 file per account inside ``directory``.

    The directory is created lazily, once, right before the first write.
    Protecting the files is left to filesystem permissions.
    """

    description = "the cookie directory"

    def __init__(self, directory: str | os.PathLike[str] | None = None) -> None:
        self._directory = Path(directory).expanduser() if directory else DEFAULT_COOKIE_DIRECTORY
        self._prepared = False
        self._prepare_lock: asyncio.Lock | None = None

    @property
    def directory(self) -> Path:
        return self._directory

    def set_directory(self, directory: str | os.PathLike[str]) -> None:
        """Point the backend at another base directory."""

        self._directory = Path(directory).expanduser()
        self._prepared = False

    def path_for(self, account: str) -> Path:
        # Account ids are derived from URLs and may carry a path component.
        filename = account.replace("/", "_").replace("\\", "_")
        return self._directory / filename

    async def _prepare_directory(self) -> None:
        if self._prepared:
            return
        if self._prepare_lock is None:
            self._prepare_lock = asyncio.Lock()
        async with self._prepare_lock:
            if self._prepared:
                return
            await asyncio.to_thread(self._directory.mkdir, parents=True, exist_ok=True)
            self._prepared = True

    async def _load(self, account: str) -> str | None:
        path = self.path_for(account)
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def _save(self, account: str, secret: str) -> None:
        await self._prepare_directory()
        async with aiofiles.open(self.path_for(account), "w", encoding="utf-8") as f:
            await f.write(secret)


def keyring_available() -> bool:
    """Return ``True`` when ``keyring`` has a usable (non-null) backend."""

    try:
        backend = keyring.get_keyring()
    except Exception as exc:
        logger.debug("[COOKIE][STORE] keyring backend lookup failed: %s", exc)
        return False
    if isinstance(backend, keyring.backends.fail.Keyring):
        return False
    try:
        return float(backend.priority) > 0
    except Exception:
        return False


def create_cookie_storage(
    backend: str | None = None,
    *,
    directory: str | os.PathLike[str] | None = None,
) -> CookieStorage:
    """Build a storage backend.

    ``backend`` is ``"keyring"``, ``"file"`` or ``"auto"`` (default, from
    ``SECURE_COOKIE_BACKEND``). ``auto`` picks the system keychain when one is
    available and the file backend otherwise.
    """

    choice = (backend or get_str("SECURE_COOKIE_BACKEND") or "auto").lower()
    directory = directory or get_str("SECURE_COOKIE_DIR")

    if choice == "auto":
        choice = "keyring" if keyring_available() else "file"

    if choice == "keyring":
        storage: CookieStorage = KeyringCookieStorage()
    elif choice == "file":
        storage = FileCookieStorage(directory)
    else:
        raise ProxyConfigurationError(f"Unknown cookie storage backend: {choice!r}")

    logger.info("[COOKIE][STORE] Using %s", storage.description)
    return storage


_storage_instance: CookieStorage | None = None
_storage_lock = threading.Lock()


def get_cookie_storage() -> CookieStorage:
    """Return the process-wide storage backend, selecting it on first use."""

    global _storage_instance
    if _storage_instance is not None:
        return _storage_instance

    with _storage_lock:
        if _storage_instance is None:
            _storage_instance = create_cookie_storage()
    return _storage_instance


def set_cookie_directory(directory: str | os.PathLike[str]) -> None:
    """Change where the file backend keeps its cookies.

    Has no effect when the process uses the system keychain.
    """

    storage = get_cookie_storage()
    if isinstance(storage, FileCookieStorage):
        storage.set_directory(directory)


__all__ = [
    "CookieStorage",
    "FileCookieStorage",
    "KeyringCookieStorage",
    "create_cookie_storage",
    "get_cookie_storage",
    "keyring_available",
    "set_cookie_directory",
]
