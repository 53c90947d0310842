from __future__ import annotations

import asyncio
import contextlib
import traceback
from typing import Optional

import bittensor as bt

from fareplay.registry.storage import RegistryStore
from fareplay.utils.misc import now_ms


async def sweep_inactive(store: RegistryStore, timeout_s: int, *, now: Optional[int] = None) -> int:
    """
    Demote every casino whose last heartbeat is older than `timeout_s` to offline.

    Acts on the server clock only, so no signature is involved. Casinos that
    are already offline are not counted. Returns the number transitioned.
    """
    now = now_ms() if now is None else now
    return await store.mark_inactive(cutoff_ms=now - int(timeout_s) * 1000)


class InactivitySweeper:
    """Runs sweep_inactive every `interval_s` seconds between start() and stop()."""

    def __init__(self, store: RegistryStore, *, timeout_s: int = 600, interval_s: float = 60.0) -> None:
        self.store = store
        self.timeout_s = timeout_s
        self.interval_s = interval_s
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        bt.logging.info(f"Inactivity sweeper started (timeout={self.timeout_s}s, every {self.interval_s}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        bt.logging.info("Inactivity sweeper stopped")

    async def run_once(self) -> int:
        count = await sweep_inactive(self.store, self.timeout_s)
        if count > 0:
            bt.logging.info(f"Marked {count} casino(s) as inactive")
        return count

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                await self.run_once()
            except Exception:
                bt.logging.error(f"Failed to mark inactive casinos:\n{traceback.format_exc()}")
