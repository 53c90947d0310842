from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv

# Load .env once on import so every config reader sees the same values.
load_dotenv()


class EnvError(ValueError):
    """Raised when an env var is present but cannot be parsed."""


def _testing() -> bool:
    return (os.getenv("TESTING") or "").strip().lower() in {"y", "yes", "t", "true", "on", "1"}


def _env_raw(name: str) -> Optional[str]:
    """
    Return the stripped value of `name`, or None when unset/blank.

    If TESTING=true, a non-empty `TEST_<NAME>` wins over `<NAME>`.
    """
    if _testing():
        v = (os.getenv(f"TEST_{name}") or "").strip()
        if v:
            return v
    v = (os.getenv(name) or "").strip()
    return v or None


def _env_str(name: str, default: str = "") -> str:
    v = _env_raw(name)
    return default if v is None else v


def _env_bool(name: str, default: bool = False) -> bool:
    v = _env_raw(name)
    if v is None:
        return default
    return v.lower() in {"y", "yes", "t", "true", "on", "1"}


def _env_int(name: str, default: int = 0) -> int:
    v = _env_raw(name)
    if v is None:
        return default
    try:
        return int(v)
    except ValueError:
        raise EnvError(f"{name} must be an integer, got {v!r}") from None


def _env_csv(name: str, default: str = "") -> List[str]:
    """Comma-separated list; blank items are dropped."""
    return [x.strip() for x in _env_str(name, default).split(",") if x.strip()]
