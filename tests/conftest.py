import sys
from pathlib import Path

# Ensure repo root is on sys.path so `import fareplay` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from typing import Any, Callable, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from fareplay.registry.app import create_app  # noqa: E402
from fareplay.registry.config import RegistryConfig  # noqa: E402
from fareplay.registry.crypto import generate_keypair, keypair_from_seed, sign_payload  # noqa: E402
from fareplay.registry.storage import InMemoryRegistry  # noqa: E402
from fareplay.utils.misc import now_ms  # noqa: E402


def signed(payload: Dict[str, Any], private_key) -> Dict[str, Any]:
    return {**payload, "signature": sign_payload(payload, private_key=private_key)}


def registration_payload(public_key: str, **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": "Test Casino",
        "url": "https://testcasino.com",
        "publicKey": public_key,
        "metadata": {
            "description": "A test casino",
            "games": ["slots", "roulette"],
            "logo": "https://testcasino.com/logo.png",
            "banner": "https://testcasino.com/banner.png",
            "socialLinks": {
                "twitter": "https://twitter.com/testcasino",
                "discord": "https://discord.gg/testcasino",
            },
            "minBetAmount": 0.01,
            "maxBetAmount": 100,
            "supportedTokens": ["SOL", "USDC"],
        },
    }
    payload.update(overrides)
    return payload


def heartbeat_payload(casino_id: str, status: str = "online", **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "casinoId": casino_id,
        "status": status,
        "timestamp": now_ms(),
        "metrics": {
            "activePlayers": 100,
            "totalBets24h": 5000,
            "uptime": 3600,
            "responseTime": 50,
        },
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def keypair():
    return generate_keypair()


@pytest.fixture
def other_keypair():
    return keypair_from_seed(bytes.fromhex("01" * 32))


@pytest.fixture
def store() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture
def make_client(store) -> Callable[..., TestClient]:
    def _make(config: Optional[RegistryConfig] = None, **kwargs: Any) -> TestClient:
        cfg = config or RegistryConfig(rate_limit=0)
        return TestClient(create_app(cfg, store=store), **kwargs)

    return _make


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def register(client) -> Callable[..., Dict[str, Any]]:
    """Register a casino over HTTP and return (casino, private_key)."""

    def _register(keypair=None, **overrides: Any):
        sk, pk = keypair or generate_keypair()
        r = client.post("/api/casinos/register", json=signed(registration_payload(pk, **overrides), sk))
        assert r.status_code == 201, r.text
        return r.json()["data"], sk

    return _register
