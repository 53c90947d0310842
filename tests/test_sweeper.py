import asyncio

from fareplay.registry.schemas import Casino, CasinoMetadata
from fareplay.registry.storage import InMemoryRegistry
from fareplay.registry.sweeper import InactivitySweeper, sweep_inactive
from fareplay.utils.misc import now_ms

NOW = 1_700_000_000_000
MINUTE = 60_000


def _casino(cid, *, status="online", last_heartbeat=None):
    return Casino(
        id=cid,
        name=cid,
        url=f"https://{cid}.example",
        public_key=f"key-{cid}",
        status=status,
        metadata=CasinoMetadata(),
        created_at=NOW - 60 * MINUTE,
        updated_at=NOW - 60 * MINUTE,
        last_heartbeat=last_heartbeat,
        version="1.0.0",
    )


def _seed(store, *casinos):
    for c in casinos:
        asyncio.run(store.create_casino(c))


def test_sweep_marks_only_stale_casinos_offline():
    store = InMemoryRegistry()
    _seed(
        store,
        _casino("fresh", last_heartbeat=NOW - 5 * MINUTE),
        _casino("stale", last_heartbeat=NOW - 11 * MINUTE),
        _casino("stale-maint", status="maintenance", last_heartbeat=NOW - 30 * MINUTE),
        _casino("already-off", status="offline", last_heartbeat=NOW - 30 * MINUTE),
        _casino("never-seen"),
    )

    n = asyncio.run(sweep_inactive(store, 600, now=NOW))

    assert n == 2
    status = {cid: asyncio.run(store.get_casino(cid)).status for cid in ("fresh", "stale", "stale-maint", "already-off", "never-seen")}
    assert status == {
        "fresh": "online",
        "stale": "offline",
        "stale-maint": "offline",
        "already-off": "offline",
        "never-seen": "online",
    }

    # Second pass finds nothing new.
    assert asyncio.run(sweep_inactive(store, 600, now=NOW)) == 0


def test_sweep_boundary_is_strict():
    store = InMemoryRegistry()
    _seed(store, _casino("edge", last_heartbeat=NOW - 10 * MINUTE))
    assert asyncio.run(sweep_inactive(store, 600, now=NOW)) == 0
    assert asyncio.run(sweep_inactive(store, 600, now=NOW + 1)) == 1


def test_sweeper_runs_periodically_until_stopped():
    store = InMemoryRegistry()
    _seed(store, _casino("stale", last_heartbeat=now_ms() - 20 * MINUTE))

    async def scenario():
        sweeper = InactivitySweeper(store, timeout_s=600, interval_s=0.01)
        sweeper.start()
        sweeper.start()  # idempotent
        assert sweeper.running
        await asyncio.sleep(0.1)
        await sweeper.stop()
        assert not sweeper.running
        await sweeper.stop()  # no-op when already stopped

    asyncio.run(scenario())
    assert asyncio.run(store.get_casino("stale")).status == "offline"


def test_sweeper_survives_store_errors(monkeypatch):
    store = InMemoryRegistry()
    calls = []

    async def failing(*, cutoff_ms):
        calls.append(cutoff_ms)
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(store, "mark_inactive", failing)

    async def scenario():
        sweeper = InactivitySweeper(store, timeout_s=600, interval_s=0.01)
        sweeper.start()
        await asyncio.sleep(0.1)
        still_running = sweeper.running
        await sweeper.stop()
        return still_running

    assert asyncio.run(scenario()) is True
    assert len(calls) >= 2
