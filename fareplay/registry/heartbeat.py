from __future__ import annotations

from typing import Any, Callable, Mapping

import bittensor as bt

from fareplay.registry.crypto import verify_payload
from fareplay.registry.errors import CasinoNotFound, InvalidRequest, InvalidSignature, Unauthorized
from fareplay.registry.schemas import HeartbeatAck, HeartbeatRecord, HeartbeatRequest
from fareplay.registry.storage import RegistryStore
from fareplay.utils.misc import new_id, now_ms

# Advisory only; nothing enforces it.
NEXT_HEARTBEAT_IN_S = 60


class HeartbeatProtocol:
    def __init__(
        self,
        store: RegistryStore,
        *,
        max_skew_s: int = 300,
        allow_self_suspend: bool = True,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.max_skew_s = max_skew_s
        self.allow_self_suspend = allow_self_suspend
        self.clock = clock

    async def heartbeat(self, payload: Mapping[str, Any]) -> HeartbeatAck:
        req = HeartbeatRequest.model_validate(payload)

        # The id is public, so "not found" is reported before any signature work.
        casino = await self.store.get_casino(req.casino_id)
        if casino is None:
            raise CasinoNotFound()

        # Heartbeats carry no key of their own; they are bound to the key on file.
        if not verify_payload(dict(payload), public_key=casino.public_key, signature=req.signature):
            bt.logging.debug(f"Heartbeat rejected: bad signature for casino {casino.id}")
            raise InvalidSignature()

        now = self.clock()
        if self.max_skew_s > 0 and abs(now - req.timestamp) > self.max_skew_s * 1000:
            raise InvalidRequest("Heartbeat timestamp outside accepted window")

        if req.status == "suspended" and not self.allow_self_suspend:
            raise Unauthorized("Casinos cannot report themselves as suspended")

        await self.store.add_heartbeat(
            HeartbeatRecord(
                id=new_id(),
                casino_id=casino.id,
                status=req.status,
                metrics=req.metrics,
                signature=req.signature,
                client_timestamp=req.timestamp,
                observed_at=now,
            )
        )
        await self.store.update_casino(
            casino.id,
            {"status": req.status, "last_heartbeat": now, "updated_at": now},
        )
        if casino.status != req.status:
            bt.logging.info(f"Casino {casino.id} status {casino.status} -> {req.status} (heartbeat)")
        else:
            bt.logging.trace(f"Heartbeat from casino {casino.id} ({req.status})")

        return HeartbeatAck(success=True, timestamp=now, next_heartbeat_in=NEXT_HEARTBEAT_IN_S)
