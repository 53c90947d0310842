from __future__ import annotations

from typing import Callable

from fareplay.registry.errors import CasinoNotFound
from fareplay.registry.schemas import Casino, CasinoFilters, CasinoPage, NetworkStats
from fareplay.registry.storage import RegistryStore
from fareplay.utils.misc import now_ms

STATS_WINDOW_MS = 24 * 60 * 60 * 1000


class DiscoveryQuery:
    """Unauthenticated reads over the registry."""

    def __init__(self, store: RegistryStore, *, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self.clock = clock

    async def list_casinos(self, filters: CasinoFilters) -> CasinoPage:
        casinos, total = await self.store.list_casinos(
            status=filters.status,
            games=filters.games,
            limit=filters.limit,
            offset=filters.offset,
        )
        return CasinoPage(casinos=casinos, total=total, limit=filters.limit, offset=filters.offset)

    async def get_casino(self, casino_id: str) -> Casino:
        casino = await self.store.get_casino(casino_id)
        if casino is None:
            raise CasinoNotFound()
        return casino

    async def get_casino_by_public_key(self, public_key: str) -> Casino:
        casino = await self.store.get_casino_by_public_key(public_key)
        if casino is None:
            raise CasinoNotFound()
        return casino

    async def statistics(self) -> NetworkStats:
        # Three independent counts; no snapshot consistency between them.
        total = await self.store.count_casinos()
        online = await self.store.count_casinos(status="online")
        recent = await self.store.count_heartbeats(since_ms=self.clock() - STATS_WINDOW_MS)
        return NetworkStats(total_casinos=total, online_casinos=online, heartbeats_last_24h=recent)
