from __future__ import annotations

from typing import Any, Callable, Mapping

import bittensor as bt

from fareplay.registry.crypto import verify_payload
from fareplay.registry.errors import CasinoNotFound, InvalidSignature, Unauthorized
from fareplay.registry.schemas import Casino, CasinoMetadata, CasinoUpdateRequest, MetadataPatch, SocialLinks
from fareplay.registry.storage import RegistryStore
from fareplay.utils.misc import now_ms

_TOP_LEVEL = ("name", "url", "status")


def merge_social_links(current: SocialLinks, patch: SocialLinks) -> SocialLinks:
    changes = {name: getattr(patch, name) for name in patch.model_fields_set}
    return current.model_copy(update=changes)


def merge_metadata(current: CasinoMetadata, patch: MetadataPatch) -> CasinoMetadata:
    """
    One-level-deep merge: a field present in `patch` replaces the stored value
    (an explicit null clears optional fields), an absent field keeps it.
    `socialLinks` is merged link by link.
    """
    changes = {}
    for name in patch.model_fields_set:
        value = getattr(patch, name)
        if name == "social_links":
            value = merge_social_links(current.social_links, value)
        elif isinstance(value, list):
            value = list(value)
        changes[name] = value
    return current.model_copy(update=changes, deep=True)


def merge_casino_update(current: Casino, patch: CasinoUpdateRequest, *, now: int) -> Casino:
    """Apply `patch` to `current`. id, publicKey, createdAt and version are never touched."""
    changes = {name: getattr(patch, name) for name in _TOP_LEVEL if name in patch.model_fields_set}
    if patch.metadata is not None:
        changes["metadata"] = merge_metadata(current.metadata, patch.metadata)
    changes["updated_at"] = now
    return current.model_copy(update=changes, deep=True)


class UpdateProtocol:
    def __init__(
        self,
        store: RegistryStore,
        *,
        allow_self_suspend: bool = True,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.allow_self_suspend = allow_self_suspend
        self.clock = clock

    async def update(self, payload: Mapping[str, Any]) -> Casino:
        req = CasinoUpdateRequest.model_validate(payload)

        casino = await self.store.get_casino(req.casino_id)
        if casino is None:
            raise CasinoNotFound()

        if not verify_payload(dict(payload), public_key=casino.public_key, signature=req.signature):
            bt.logging.debug(f"Update rejected: bad signature for casino {casino.id}")
            raise InvalidSignature()

        if req.status == "suspended" and not self.allow_self_suspend:
            raise Unauthorized("Casinos cannot set themselves to suspended")

        merged = merge_casino_update(casino, req, now=self.clock())
        # Only fields present in the request are written; status may have been
        # changed by a heartbeat or sweep since the lookup.
        changes = {name: getattr(merged, name) for name in _TOP_LEVEL if name in req.model_fields_set}
        if req.metadata is not None:
            changes["metadata"] = merged.metadata
        changes["updated_at"] = merged.updated_at
        updated = await self.store.update_casino(casino.id, changes)
        if updated is None:
            # Gone between lookup and write.
            raise CasinoNotFound()
        bt.logging.info(f"Updated casino {updated.id}: {sorted(req.model_fields_set - {'casino_id', 'signature'})}")
        return updated
