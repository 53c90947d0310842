"""Small shared helpers."""

from __future__ import annotations

import time
from uuid import uuid4


def now_ms() -> int:
    """Server clock in epoch milliseconds (the unit every record timestamp uses)."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid4())
