"""Utility helpers for loading strongly-typed configuration from environment variables."""
from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from dotenv import find_dotenv, load_dotenv


def _apply_pytest_defaults() -> None:
    """Seed deterministic environment defaults for the test suite."""

    base_dir = Path(tempfile.gettempdir()) / "secure_cookie_proxy_pytest_defaults"
    base_dir.mkdir(parents=True, exist_ok=True)

    # Never touch the developer's real keychain or ~/.proxy-cookies from tests.
    os.environ.setdefault("SECURE_COOKIE_BACKEND", "file")
    os.environ.setdefault("SECURE_COOKIE_DIR", str(base_dir / "cookies"))
    os.environ.setdefault("SECURE_COOKIE_LOG_DIR", str(base_dir / "logs"))
    os.environ.setdefault("ENABLE_FILE_LOGS", "false")


# During pytest runs, prefer `.env.example` so a developer's local `.env`
# (with a real target or backend override) does not leak into the tests.
def _load_dotenv_for_context() -> None:
    is_pytest = (
        "pytest" in sys.modules
        or any(key in os.environ for key in ("PYTEST_CURRENT_TEST", "PYTEST_ADDOPTS", "PYTEST_WORKER"))
    )

    if is_pytest:
        example_env = find_dotenv(".env.example", usecwd=True)
        if example_env:
            load_dotenv(example_env, override=False)
        _apply_pytest_defaults()
        return

    primary_env = find_dotenv(usecwd=True)
    if primary_env:
        load_dotenv(primary_env, override=False)
        return

    example_env = find_dotenv(".env.example", usecwd=True)
    if example_env:  # pragma: no cover
        load_dotenv(example_env, override=False)


_load_dotenv_for_context()

__all__ = [
    "EnvironmentConfigurationError",
    "get_str",
    "get_int",
    "get_bool",
    "get_list",
]


class EnvironmentConfigurationError(RuntimeError):
    """Raised when the application configuration is invalid or incomplete."""


_T = TypeVar("_T")

_TRUE_VALUES = {"1", "true", "t", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "f", "no", "n", "off"}


def _apply_cast(name: str, raw: str, caster: Callable[[str], _T]) -> _T:
    try:
        return caster(raw)
    except Exception as exc:
        raise EnvironmentConfigurationError(
            f"Environment variable {name} has invalid value: {raw!r}"
        ) from exc


def _get_raw(name: str, *, required: bool = False, allow_empty: bool = False) -> str | None:
    """Return the raw environment value while enforcing required/empty rules."""

    value = os.getenv(name)
    if value is None:
        if required:
            raise EnvironmentConfigurationError(
                f"Missing required environment variable: {name}"
            )
        return None

    if not allow_empty:
        value = value.strip()
        if not value:
            if required:
                raise EnvironmentConfigurationError(
                    f"Environment variable {name} must not be empty"
                )
            return None
    return value


def get_str(name: str, *, required: bool = False, allow_empty: bool = False) -> str | None:
    """Return a string environment value or ``None`` when not provided."""

    return _get_raw(name, required=required, allow_empty=allow_empty)


def get_int(name: str, *, required: bool = False) -> int | None:
    """Return an integer parsed from the environment."""

    raw = _get_raw(name, required=required)
    if raw is None:
        return None
    return _apply_cast(name, raw, int)


def get_bool(name: str, *, required: bool = False) -> bool | None:
    """Return a boolean parsed from the environment."""

    raw = _get_raw(name, required=required)
    if raw is None:
        return None

    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise EnvironmentConfigurationError(
        f"Environment variable {name} must be a boolean value (true/false), got {raw!r}"
    )


def get_list(
    name: str,
    *,
    required: bool = False,
    separator: str = ",",
    allow_empty: bool = False,
) -> list[str] | None:
    """Return a list parsed from a separated environment value."""

    raw = _get_raw(name, required=required, allow_empty=allow_empty)
    if raw is None:
        return [] if required and allow_empty else None

    if not raw and not allow_empty:
        return []

    parts = [item.strip() for item in raw.split(separator)]
    return [item for item in parts if item]
