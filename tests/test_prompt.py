import asyncio
import getpass
import threading

import pytest

from secure_cookie_proxy.core.prompt import prompt_for_secret


async def test_prompt_returns_hidden_input(monkeypatch, capsys):
    monkeypatch.setattr(getpass, "getpass", lambda prompt="": "sid=abc")
    assert await prompt_for_secret("log in") == "sid=abc"
    assert "log in" in capsys.readouterr().err


async def test_prompt_propagates_read_errors(monkeypatch):
    def closed_stdin(prompt=""):
        raise EOFError

    monkeypatch.setattr(getpass, "getpass", closed_stdin)
    with pytest.raises(EOFError):
        await prompt_for_secret("log in")


async def test_cancelled_prompt_returns_without_waiting_for_input(monkeypatch):
    typed = threading.Event()

    def wait_for_enter(prompt=""):
        typed.wait(5)
        return "sid=late"

    monkeypatch.setattr(getpass, "getpass", wait_for_enter)
    task = asyncio.create_task(prompt_for_secret("log in"))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    readers = [thread for thread in threading.enumerate() if thread.name == "cookie-prompt"]
    assert readers
    assert all(thread.daemon for thread in readers)

    typed.set()
    for thread in readers:
        thread.join(1)
    await asyncio.sleep(0)
