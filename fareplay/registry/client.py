from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Sequence

import requests
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from fareplay.registry.crypto import public_key_b58, sign_payload


class RegistryClientError(RuntimeError):
    def __init__(self, code: str, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.status_code = status_code


class RegistryClient:
    """
    Casino-side client for the registry.

    Writes are signed with `private_key`; reads are plain GETs. Every call
    unwraps the response envelope and raises RegistryClientError on
    `success: false`.
    """

    def __init__(
        self,
        registry_url: str,
        private_key: Ed25519PrivateKey,
        *,
        timeout_s: float = 5.0,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.private_key = private_key
        self.public_key = public_key_b58(private_key)
        self.timeout_s = timeout_s

    def _signed(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {**payload, "signature": sign_payload(payload, private_key=self.private_key)}

    def _unwrap(self, r: requests.Response) -> Any:
        try:
            body = r.json()
        except ValueError:
            r.raise_for_status()
            raise RegistryClientError("INVALID_RESPONSE", "registry returned non-JSON body", status_code=r.status_code)
        if not body.get("success"):
            err = body.get("error") or {}
            raise RegistryClientError(
                err.get("code", "UNKNOWN"),
                err.get("message", ""),
                status_code=r.status_code,
            )
        return body.get("data")

    def register(
        self,
        *,
        name: str,
        url: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "name": name,
            "url": url,
            "publicKey": self.public_key,
            "metadata": metadata or {},
        }
        r = requests.post(
            f"{self.registry_url}/api/casinos/register",
            json=self._signed(payload),
            timeout=self.timeout_s,
        )
        return self._unwrap(r)

    def heartbeat(
        self,
        casino_id: str,
        *,
        status: str = "online",
        metrics: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "casinoId": casino_id,
            "status": status,
            "timestamp": int(time.time() * 1000),
        }
        if metrics is not None:
            payload["metrics"] = metrics
        r = requests.post(
            f"{self.registry_url}/api/casinos/heartbeat",
            json=self._signed(payload),
            timeout=self.timeout_s,
        )
        return self._unwrap(r)

    def update(self, casino_id: str, **fields: Any) -> Dict[str, Any]:
        """Fields use wire names: name, url, status, metadata."""
        payload = {"casinoId": casino_id, **fields}
        r = requests.patch(
            f"{self.registry_url}/api/casinos",
            json=self._signed(payload),
            timeout=self.timeout_s,
        )
        return self._unwrap(r)

    def list_casinos(
        self,
        *,
        status: Optional[str] = None,
        games: Optional[Sequence[str]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        params: List[tuple] = [("limit", limit), ("offset", offset)]
        if status:
            params.append(("status", status))
        for g in games or ():
            params.append(("games", g))
        r = requests.get(f"{self.registry_url}/api/casinos", params=params, timeout=self.timeout_s)
        return self._unwrap(r)

    def get_casino(self, casino_id: str) -> Dict[str, Any]:
        r = requests.get(f"{self.registry_url}/api/casinos/{casino_id}", timeout=self.timeout_s)
        return self._unwrap(r)

    def get_casino_by_key(self, public_key: str) -> Dict[str, Any]:
        r = requests.get(f"{self.registry_url}/api/casinos/by-key/{public_key}", timeout=self.timeout_s)
        return self._unwrap(r)

    def stats(self) -> Dict[str, Any]:
        r = requests.get(f"{self.registry_url}/api/casinos/stats", timeout=self.timeout_s)
        return self._unwrap(r)
