"""Interactive operator input."""

from __future__ import annotations

import asyncio
import getpass
import sys
import threading
from collections.abc import Awaitable, Callable

try:
    import termios
except ImportError:  # Windows
    termios = None

Prompter = Callable[[str], Awaitable[str]]


def _terminal_state():
    if termios is None:
        return None
    try:
        if not sys.stdin.isatty():
            return None
        return termios.tcgetattr(sys.stdin.fileno())
    except (AttributeError, OSError, ValueError, termios.error):
        return None


def _restore_terminal(state) -> None:
    if state is None:
        return
    try:
        termios.tcsetattr(sys.stdin.fileno(), termios.TCSAFLUSH, state)
    except (OSError, ValueError, termios.error):
        pass


def _resolve(future: asyncio.Future, result: str | None, error: BaseException | None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


async def prompt_for_secret(message: str) -> str:
    """Ask the operator for a cookie string without echoing it.

    ``getpass`` blocks, so it runs on a daemon thread and the event loop keeps
    relaying traffic while the operator types. Cancelling the await returns at
    once and turns echo back on; the abandoned read never holds up shutdown.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()
    state = _terminal_state()

    def read() -> None:
        result, error = None, None
        try:
            result = getpass.getpass("> ")
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(_resolve, future, result, error)
        except RuntimeError:
            # Loop already closed; nobody is waiting for the answer.
            pass

    print(message, file=sys.stderr, flush=True)
    threading.Thread(target=read, name="cookie-prompt", daemon=True).start()
    try:
        return await future
    except asyncio.CancelledError:
        _restore_terminal(state)
        raise


__all__ = ["Prompter", "prompt_for_secret"]
