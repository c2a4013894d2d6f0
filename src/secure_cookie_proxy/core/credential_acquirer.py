"""Acquisition of the secret cookie mapping from the store or the operator."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from secure_cookie_proxy.core.prompt import Prompter, prompt_for_secret
from secure_cookie_proxy.utils import cookie_codec
from secure_cookie_proxy.utils.cookie_storage import CookieStorage
from secure_cookie_proxy.utils.errors import FailureKind, MalformedSecretError
from secure_cookie_proxy.utils.logger import logger

RETRY_PROMPT = "Invalid cookie string, please try again: "
SAVED_NOTICE = "Successfully saved your cookie. Please refresh."


@dataclass
class CookieState:
    """Shared state of one proxy instance.

    ``cookies`` is ``None`` until the first acquisition finishes and is only
    ever replaced as a whole. ``generation`` counts the replacements.
    """

    cookies: dict[str, str] | None = None
    awaiting_input: bool = False
    generation: int = 0


class CredentialAcquirer:
    """Owns the secret cookie mapping and the single-flight prompt guard."""

    def __init__(
        self,
        store: CookieStorage,
        account: str,
        *,
        prompter: Prompter | None = None,
        max_attempts: int | None = None,
        state: CookieState | None = None,
    ) -> None:
        self._store = store
        self._account = account
        self._prompter = prompter or prompt_for_secret
        self._max_attempts = max_attempts
        self._state = state or CookieState()
        self._tasks: set[asyncio.Task] = set()

    @property
    def account(self) -> str:
        return self._account

    @property
    def secret_cookies(self) -> dict[str, str] | None:
        return self._state.cookies

    @property
    def awaiting_input(self) -> bool:
        return self._state.awaiting_input

    def _replace(self, cookies: dict[str, str]) -> None:
        self._state.cookies = cookies
        self._state.generation += 1

    def _superseded(self, generation: int) -> bool:
        return self._state.awaiting_input or self._state.generation != generation

    async def acquire_from_store(self) -> dict[str, str] | None:
        """Load the secret mapping from the store.

        A missing or unreadable secret leaves an empty mapping. Returns
        ``None`` without touching the state while a prompt is pending, or when
        a prompt started or the mapping changed during the read.
        """

        if self._state.awaiting_input:
            return None
        generation = self._state.generation
        raw = await self._store.get(self._account)
        if self._superseded(generation):
            logger.debug("[COOKIE][AUTH] Dropping stale store read for %s", self._account)
            return None
        if not raw:
            logger.info("[COOKIE][AUTH] No stored cookie for %s", self._account)
            self._replace({})
            return {}
        try:
            cookies = cookie_codec.decode_strict(raw)
        except MalformedSecretError as exc:
            logger.warning(
                "[COOKIE][AUTH][%s] Discarding stored cookie for %s: %s",
                FailureKind.MALFORMED_SECRET.value,
                self._account,
                exc,
            )
            cookies = {}
        self._replace(cookies)
        logger.info(
            "[COOKIE][AUTH] Loaded %d stored cookie(s) for %s", len(cookies), self._account
        )
        return cookies

    async def acquire_from_operator(self, message: str) -> dict[str, str] | None:
        """Ask the operator for a cookie string, persist it and swap it in.

        Malformed input is answered with another prompt. Returns ``None`` when
        another prompt is already pending, when the prompter fails, or when
        ``max_attempts`` is exhausted.
        """

        if self._state.awaiting_input:
            return None
        self._state.awaiting_input = True
        try:
            attempt = 0
            while True:
                attempt += 1
                try:
                    raw = await self._prompter(message)
                except Exception as exc:
                    logger.warning("[COOKIE][AUTH] Cookie prompt aborted: %r", exc)
                    return None
                try:
                    cookies = cookie_codec.decode_strict(raw.strip())
                except MalformedSecretError:
                    if self._max_attempts is not None and attempt >= self._max_attempts:
                        logger.warning(
                            "[COOKIE][AUTH] Giving up after %d invalid cookie string(s)",
                            attempt,
                        )
                        return None
                    message = RETRY_PROMPT
                    continue
                break

            if not await self._store.set(self._account, raw.strip()):
                logger.warning(
                    "[COOKIE][AUTH] Cookie for %s is only kept in memory until restart",
                    self._account,
                )
            self._replace(cookies)
            logger.info("[COOKIE][AUTH] %s", SAVED_NOTICE)
            return cookies
        finally:
            self._state.awaiting_input = False

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def start(self) -> asyncio.Task:
        """Schedule the initial, quiet load from the store."""

        return self._spawn(self.acquire_from_store())

    def trigger_from_operator(self, message: str) -> asyncio.Task | None:
        """Start an operator prompt in the background unless one is pending."""

        if self._state.awaiting_input:
            return None
        # Claim the guard now so triggers in the same loop iteration are dropped.
        self._state.awaiting_input = True
        return self._spawn(self._prompt_claimed(message))

    async def _prompt_claimed(self, message: str) -> dict[str, str] | None:
        self._state.awaiting_input = False
        return await self.acquire_from_operator(message)

    async def aclose(self) -> None:
        """Cancel background acquisitions still running."""

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._state.awaiting_input = False


__all__ = ["CookieState", "CredentialAcquirer", "RETRY_PROMPT", "SAVED_NOTICE"]
