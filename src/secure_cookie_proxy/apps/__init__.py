"""Entry points: the mitmproxy addon and the command line tool."""

import importlib
from typing import Any

__all__ = [
    "addon",
    "main",
]


def __getattr__(name: str) -> Any:
    if name in __all__:
        return importlib.import_module(f"{__name__}.{name}")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
