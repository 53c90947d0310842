from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Tuple, Union

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

SIGNATURE_FIELD = "signature"
PUBLIC_KEY_BYTES = 32
SIGNATURE_BYTES = 64


def canonicalize(payload: Dict[str, Any], excluded_fields: Iterable[str] = ()) -> bytes:
    """
    Stable encoding of `payload` for signing/verifying.

    The signature field is always dropped. Keys are sorted at every nesting
    level and separators are compact, so clients that built the payload in a
    different key order still produce the same bytes.
    """
    skip = {SIGNATURE_FIELD, *excluded_fields}
    body = {k: v for k, v in payload.items() if k not in skip}
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _public_key(public_key_b58: str) -> Ed25519PublicKey:
    raw = base58.b58decode(public_key_b58)
    if len(raw) != PUBLIC_KEY_BYTES:
        raise ValueError(f"expected {PUBLIC_KEY_BYTES}-byte key, got {len(raw)}")
    return Ed25519PublicKey.from_public_bytes(raw)


def is_valid_public_key(public_key_b58: str) -> bool:
    if not isinstance(public_key_b58, str) or not public_key_b58:
        return False
    try:
        _public_key(public_key_b58)
    except Exception:
        return False
    return True


def verify(message: Union[bytes, str], signature_b58: str, public_key_b58: str) -> bool:
    """Ed25519 detached-signature check. Never raises."""
    try:
        if isinstance(message, str):
            message = message.encode("utf-8")
        sig = base58.b58decode(signature_b58)
        if len(sig) != SIGNATURE_BYTES:
            return False
        _public_key(public_key_b58).verify(sig, message)
    except Exception:
        return False
    return True


def verify_payload(payload: Dict[str, Any], *, public_key: str, signature: str) -> bool:
    try:
        msg = canonicalize(payload)
    except (TypeError, ValueError):
        return False
    return verify(msg, signature, public_key)


def sign_payload(payload: Dict[str, Any], *, private_key: Ed25519PrivateKey) -> str:
    sig = private_key.sign(canonicalize(payload))
    return base58.b58encode(sig).decode("ascii")


def public_key_b58(key: Union[Ed25519PrivateKey, Ed25519PublicKey]) -> str:
    if isinstance(key, Ed25519PrivateKey):
        key = key.public_key()
    raw = key.public_bytes(encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw)
    return base58.b58encode(raw).decode("ascii")


def generate_keypair() -> Tuple[Ed25519PrivateKey, str]:
    private_key = Ed25519PrivateKey.generate()
    return private_key, public_key_b58(private_key)


def keypair_from_seed(seed: bytes) -> Tuple[Ed25519PrivateKey, str]:
    """Deterministic key pair from a 32-byte seed (Solana secret keys carry the seed first)."""
    private_key = Ed25519PrivateKey.from_private_bytes(seed[:32])
    return private_key, public_key_b58(private_key)
