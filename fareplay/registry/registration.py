from __future__ import annotations

from typing import Any, Callable, Mapping

import bittensor as bt

from fareplay import PROTOCOL_VERSION
from fareplay.registry.crypto import is_valid_public_key, verify_payload
from fareplay.registry.errors import CasinoAlreadyExists, InvalidRequest, InvalidSignature
from fareplay.registry.schemas import (
    Casino,
    CasinoMetadata,
    RegistrationRequest,
    SocialLinks,
)
from fareplay.registry.storage import RegistryStore
from fareplay.utils.misc import new_id, now_ms


class RegistrationProtocol:
    """
    Admit a new casino on the strength of a self-signed claim.

    The public key in the request is both the identity and the verification
    key: the signature must verify against it before storage is touched, and
    no two casinos may ever share one.
    """

    def __init__(self, store: RegistryStore, *, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self.clock = clock

    async def register(self, payload: Mapping[str, Any]) -> Casino:
        req = RegistrationRequest.model_validate(payload)

        if not is_valid_public_key(req.public_key):
            raise InvalidRequest("Invalid public key format")

        if not verify_payload(dict(payload), public_key=req.public_key, signature=req.signature):
            bt.logging.debug(f"Registration rejected: bad signature for {req.public_key}")
            raise InvalidSignature()

        if await self.store.get_casino_by_public_key(req.public_key) is not None:
            bt.logging.debug(f"Registration rejected: {req.public_key} already registered")
            raise CasinoAlreadyExists()

        meta = req.metadata
        now = self.clock()
        casino = Casino(
            id=new_id(),
            name=req.name,
            url=req.url,
            public_key=req.public_key,
            status="online",
            metadata=CasinoMetadata(
                description=meta.description,
                games=list(meta.games),
                logo=meta.logo,
                banner=meta.banner,
                social_links=meta.social_links or SocialLinks(),
                max_bet_amount=meta.max_bet_amount,
                min_bet_amount=meta.min_bet_amount,
                supported_tokens=list(meta.supported_tokens),
            ),
            created_at=now,
            updated_at=now,
            last_heartbeat=None,
            version=PROTOCOL_VERSION,
        )
        # The store re-checks the key atomically; a concurrent registration
        # that slipped past the lookup above fails here with the same error.
        created = await self.store.create_casino(casino)
        bt.logging.info(f"Registered casino {created.id} ({created.name}) key={created.public_key}")
        return created
