from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import bittensor as bt

from fareplay.registry.errors import CasinoAlreadyExists
from fareplay.registry.schemas import Casino, HeartbeatRecord


class RegistryStore(Protocol):
    """Persistence boundary the protocols and queries run against."""

    async def create_casino(self, casino: Casino) -> Casino:
        """Insert `casino`; raise CasinoAlreadyExists if its public key is taken."""
        ...

    async def get_casino(self, casino_id: str) -> Optional[Casino]:
        ...

    async def get_casino_by_public_key(self, public_key: str) -> Optional[Casino]:
        ...

    async def update_casino(self, casino_id: str, changes: Mapping[str, Any]) -> Optional[Casino]:
        ...

    async def list_casinos(
        self,
        *,
        status: Optional[str] = None,
        games: Optional[Sequence[str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Casino], int]:
        ...

    async def count_casinos(self, *, status: Optional[str] = None) -> int:
        ...

    async def add_heartbeat(self, record: HeartbeatRecord) -> None:
        ...

    async def count_heartbeats(self, *, since_ms: int) -> int:
        ...

    async def mark_inactive(self, *, cutoff_ms: int) -> int:
        """Set every non-offline casino last seen before `cutoff_ms` to offline."""
        ...

    async def ping(self) -> bool:
        ...


# Fields that never change after creation, whatever the caller passes in.
_IMMUTABLE = frozenset({"id", "public_key", "created_at", "version"})


def _sort_key(c: Casino) -> Tuple[int, int, int, str]:
    # Most recently seen first, never-seen last; newest registration breaks ties.
    seen = c.last_heartbeat
    return (1 if seen is None else 0, -(seen or 0), -c.created_at, c.id)


class InMemoryRegistry:
    """Reference RegistryStore: dicts behind one asyncio lock."""

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self._casinos: Dict[str, Casino] = {}
        self._by_key: Dict[str, str] = {}
        self._heartbeats: List[HeartbeatRecord] = []

    async def create_casino(self, casino: Casino) -> Casino:
        async with self.lock:
            # Uniqueness is checked under the same lock as the insert, so two
            # racing registrations for one key cannot both pass.
            if casino.public_key in self._by_key:
                raise CasinoAlreadyExists()
            stored = casino.model_copy(deep=True)
            self._casinos[stored.id] = stored
            self._by_key[stored.public_key] = stored.id
            return stored.model_copy(deep=True)

    async def get_casino(self, casino_id: str) -> Optional[Casino]:
        async with self.lock:
            c = self._casinos.get(casino_id)
            return c.model_copy(deep=True) if c else None

    async def get_casino_by_public_key(self, public_key: str) -> Optional[Casino]:
        async with self.lock:
            cid = self._by_key.get(public_key)
            c = self._casinos.get(cid) if cid else None
            return c.model_copy(deep=True) if c else None

    async def update_casino(self, casino_id: str, changes: Mapping[str, Any]) -> Optional[Casino]:
        update = {k: v for k, v in changes.items() if k not in _IMMUTABLE}
        async with self.lock:
            c = self._casinos.get(casino_id)
            if c is None:
                return None
            updated = Casino.model_validate({**c.model_dump(), **_dump_values(update)})
            self._casinos[casino_id] = updated
            return updated.model_copy(deep=True)

    async def delete_casino(self, casino_id: str) -> bool:
        """Remove a casino and its heartbeat history. No API route calls this."""
        async with self.lock:
            c = self._casinos.pop(casino_id, None)
            if c is None:
                return False
            self._by_key.pop(c.public_key, None)
            self._heartbeats = [h for h in self._heartbeats if h.casino_id != casino_id]
            return True

    async def list_casinos(
        self,
        *,
        status: Optional[str] = None,
        games: Optional[Sequence[str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Casino], int]:
        async with self.lock:
            rows = list(self._casinos.values())
        if status:
            rows = [c for c in rows if c.status == status]
        if games:
            wanted = set(games)
            rows = [c for c in rows if wanted.intersection(c.metadata.games)]
        rows.sort(key=_sort_key)
        total = len(rows)
        page = rows[offset : offset + limit]
        return [c.model_copy(deep=True) for c in page], total

    async def count_casinos(self, *, status: Optional[str] = None) -> int:
        async with self.lock:
            if status is None:
                return len(self._casinos)
            return sum(1 for c in self._casinos.values() if c.status == status)

    async def add_heartbeat(self, record: HeartbeatRecord) -> None:
        async with self.lock:
            self._heartbeats.append(record.model_copy(deep=True))

    async def heartbeats_for(self, casino_id: str) -> List[HeartbeatRecord]:
        async with self.lock:
            return [h.model_copy(deep=True) for h in self._heartbeats if h.casino_id == casino_id]

    async def count_heartbeats(self, *, since_ms: int) -> int:
        async with self.lock:
            return sum(1 for h in self._heartbeats if h.observed_at >= since_ms)

    async def mark_inactive(self, *, cutoff_ms: int) -> int:
        n = 0
        async with self.lock:
            for cid, c in self._casinos.items():
                if c.status == "offline" or c.last_heartbeat is None:
                    continue
                if c.last_heartbeat < cutoff_ms:
                    self._casinos[cid] = c.model_copy(update={"status": "offline"})
                    n += 1
        return n

    async def ping(self) -> bool:
        return True

    async def save(self, path: Path) -> None:
        async with self.lock:
            data = {
                "casinos": [c.model_dump(mode="json", by_alias=True) for c in self._casinos.values()],
                "heartbeats": [h.model_dump(mode="json", by_alias=True) for h in self._heartbeats],
            }
        await asyncio.to_thread(_write_atomic, path, json.dumps(data, indent=2))

    async def load(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            bt.logging.warning(f"Ignoring unreadable registry state file {path}: {e}")
            return
        casinos: Dict[str, Casino] = {}
        by_key: Dict[str, str] = {}
        for item in data.get("casinos", []) or []:
            try:
                c = Casino.model_validate(item)
            except ValueError:
                bt.logging.warning(f"Skipping malformed casino entry in {path}")
                continue
            if c.public_key in by_key:
                continue
            casinos[c.id] = c
            by_key[c.public_key] = c.id
        heartbeats: List[HeartbeatRecord] = []
        for item in data.get("heartbeats", []) or []:
            try:
                h = HeartbeatRecord.model_validate(item)
            except ValueError:
                continue
            if h.casino_id in casinos:
                heartbeats.append(h)
        async with self.lock:
            self._casinos = casinos
            self._by_key = by_key
            self._heartbeats = heartbeats
        bt.logging.info(f"Loaded {len(casinos)} casinos and {len(heartbeats)} heartbeats from {path}")


def _dump_values(update: Mapping[str, Any]) -> Dict[str, Any]:
    # Nested models are dumped so model_validate sees plain data throughout.
    return {k: (v.model_dump() if hasattr(v, "model_dump") else v) for k, v in update.items()}


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(text)
    tmp.replace(path)
