import asyncio

import pytest

from conftest import heartbeat_payload, registration_payload, signed
from fareplay.registry.errors import CasinoNotFound, InvalidRequest, InvalidSignature, Unauthorized
from fareplay.registry.heartbeat import NEXT_HEARTBEAT_IN_S, HeartbeatProtocol
from fareplay.registry.registration import RegistrationProtocol
from fareplay.registry.storage import InMemoryRegistry

NOW = 1_700_000_000_000


def _registered(store, keypair):
    sk, pk = keypair
    return asyncio.run(RegistrationProtocol(store, clock=lambda: NOW - 5_000).register(signed(registration_payload(pk), sk)))


def test_heartbeat_records_ping_and_updates_status(keypair):
    sk, _ = keypair
    store = InMemoryRegistry()
    casino = _registered(store, keypair)
    proto = HeartbeatProtocol(store, clock=lambda: NOW)

    body = signed(heartbeat_payload(casino.id, "maintenance", timestamp=NOW - 1_000), sk)
    ack = asyncio.run(proto.heartbeat(body))

    assert ack.success is True
    assert ack.timestamp == NOW
    assert ack.next_heartbeat_in == NEXT_HEARTBEAT_IN_S == 60

    stored = asyncio.run(store.get_casino(casino.id))
    assert stored.status == "maintenance"
    assert stored.last_heartbeat == NOW
    assert stored.updated_at == NOW

    records = asyncio.run(store.heartbeats_for(casino.id))
    assert len(records) == 1
    rec = records[0]
    assert rec.status == "maintenance"
    assert rec.signature == body["signature"]
    assert rec.observed_at == NOW
    assert rec.client_timestamp == NOW - 1_000
    assert rec.metrics.active_players == 100
    assert rec.metrics.total_bets_24h == 5000


def test_unknown_casino_is_not_found_without_verifying(monkeypatch, keypair):
    import fareplay.registry.heartbeat as mod

    def boom(*args, **kwargs):
        raise AssertionError("signature verification must not run for unknown ids")

    monkeypatch.setattr(mod, "verify_payload", boom)
    sk, _ = keypair

    with pytest.raises(CasinoNotFound):
        asyncio.run(
            HeartbeatProtocol(InMemoryRegistry()).heartbeat(
                signed(heartbeat_payload("00000000-0000-4000-8000-000000000000"), sk)
            )
        )


def test_heartbeat_verifies_against_stored_key(keypair, other_keypair):
    store = InMemoryRegistry()
    casino = _registered(store, keypair)
    intruder_sk, _ = other_keypair

    with pytest.raises(InvalidSignature):
        asyncio.run(HeartbeatProtocol(store, clock=lambda: NOW).heartbeat(signed(heartbeat_payload(casino.id, timestamp=NOW), intruder_sk)))

    assert asyncio.run(store.heartbeats_for(casino.id)) == []
    assert asyncio.run(store.get_casino(casino.id)).last_heartbeat is None


def test_heartbeat_key_order_does_not_matter(keypair):
    sk, _ = keypair
    store = InMemoryRegistry()
    casino = _registered(store, keypair)

    payload = heartbeat_payload(casino.id, timestamp=NOW)
    sig = signed(payload, sk)["signature"]
    reordered = {k: payload[k] for k in reversed(list(payload))}
    reordered["metrics"] = {k: payload["metrics"][k] for k in reversed(list(payload["metrics"]))}
    reordered["signature"] = sig

    asyncio.run(HeartbeatProtocol(store, clock=lambda: NOW).heartbeat(reordered))


def test_stale_client_timestamp_rejected(keypair):
    sk, _ = keypair
    store = InMemoryRegistry()
    casino = _registered(store, keypair)
    proto = HeartbeatProtocol(store, max_skew_s=300, clock=lambda: NOW)

    with pytest.raises(InvalidRequest):
        asyncio.run(proto.heartbeat(signed(heartbeat_payload(casino.id, timestamp=NOW - 301_000), sk)))

    # Disabled window accepts anything.
    lax = HeartbeatProtocol(store, max_skew_s=0, clock=lambda: NOW)
    asyncio.run(lax.heartbeat(signed(heartbeat_payload(casino.id, timestamp=1), sk)))


def test_self_suspend_policy(keypair):
    sk, _ = keypair
    store = InMemoryRegistry()
    casino = _registered(store, keypair)
    body = signed(heartbeat_payload(casino.id, "suspended", timestamp=NOW), sk)

    with pytest.raises(Unauthorized):
        asyncio.run(HeartbeatProtocol(store, allow_self_suspend=False, clock=lambda: NOW).heartbeat(body))

    asyncio.run(HeartbeatProtocol(store, clock=lambda: NOW).heartbeat(body))
    assert asyncio.run(store.get_casino(casino.id)).status == "suspended"


def test_metrics_are_optional(keypair):
    sk, _ = keypair
    store = InMemoryRegistry()
    casino = _registered(store, keypair)
    payload = heartbeat_payload(casino.id, timestamp=NOW)
    del payload["metrics"]

    asyncio.run(HeartbeatProtocol(store, clock=lambda: NOW).heartbeat(signed(payload, sk)))
    assert asyncio.run(store.heartbeats_for(casino.id))[0].metrics is None
