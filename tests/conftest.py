import asyncio

import pytest

from secure_cookie_proxy.utils.cookie_storage import CookieStorage, FileCookieStorage


class MemoryCookieStorage(CookieStorage):
    """In-memory backend; ``fail_reads``/``fail_writes`` simulate a broken vault.

    When ``read_gate`` is set, reads take their value first and return it only
    once the gate opens, like a slow keychain.
    """

    description = "memory"

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.secrets: dict[str, str] = dict(initial or {})
        self.fail_reads = False
        self.fail_writes = False
        self.writes: list[tuple[str, str]] = []
        self.read_gate: asyncio.Event | None = None

    async def _load(self, account):
        if self.fail_reads:
            raise OSError("vault locked")
        secret = self.secrets.get(account)
        if self.read_gate is not None:
            await self.read_gate.wait()
        return secret

    async def _save(self, account, secret):
        if self.fail_writes:
            raise OSError("vault locked")
        self.writes.append((account, secret))
        self.secrets[account] = secret


class ScriptedPrompter:
    """Answers prompts from a list; blocks on ``gate`` until released."""

    def __init__(self, answers, *, gated: bool = False) -> None:
        self.answers = list(answers)
        self.messages: list[str] = []
        self.gate = asyncio.Event()
        if not gated:
            self.gate.set()

    @property
    def calls(self) -> int:
        return len(self.messages)

    def release(self) -> None:
        self.gate.set()

    async def __call__(self, message: str) -> str:
        self.messages.append(message)
        await self.gate.wait()
        return self.answers.pop(0)


async def settle(rounds: int = 20) -> None:
    """Let background tasks run to their next real suspension point."""

    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def memory_store():
    return MemoryCookieStorage()


@pytest.fixture
def file_store(tmp_path):
    return FileCookieStorage(tmp_path / "cookies")
