"""Register a throwaway casino and keep it alive with heartbeats.

Useful against a local registry:

    FAREPLAY_REGISTRY_URL=http://127.0.0.1:3000 python scripts/registry/run_mock_casino.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import random
import time

import bittensor as bt

from fareplay.registry.client import RegistryClient, RegistryClientError
from fareplay.registry.crypto import generate_keypair
from fareplay.utils.env import _env_int, _env_str


def main() -> int:
    registry_url = _env_str("FAREPLAY_REGISTRY_URL", "http://127.0.0.1:3000")
    beats = _env_int("MOCK_CASINO_HEARTBEATS", 3)
    interval_s = _env_int("MOCK_CASINO_INTERVAL_S", 5)

    private_key, public_key = generate_keypair()
    client = RegistryClient(registry_url, private_key)
    try:
        casino = client.register(
            name=f"Mock Casino {public_key[:6]}",
            url="https://mock.casino.local",
            metadata={"games": ["slots", "dice"], "supportedTokens": ["SOL", "USDC"]},
        )
    except RegistryClientError as e:
        bt.logging.error(f"Registration failed: {e}")
        return 2
    bt.logging.info(f"Registered {casino['id']} as {public_key}")

    for i in range(max(0, beats)):
        ack = client.heartbeat(
            casino["id"],
            metrics={"activePlayers": random.randint(0, 50), "uptime": i * interval_s},
        )
        bt.logging.info(f"Heartbeat {i + 1}/{beats} acknowledged, next in {ack['nextHeartbeatIn']}s")
        if i + 1 < beats:
            time.sleep(interval_s)

    bt.logging.info(f"Registry stats: {client.stats()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
