from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from fareplay.utils.env import EnvError, _env_bool, _env_csv, _env_int, _env_str


LogLevel = Literal["info", "debug", "trace"]


@dataclass(frozen=True)
class RegistryConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: tuple = ("*",)

    # Inactivity sweep.
    heartbeat_timeout_s: int = 600
    sweep_interval_s: int = 60

    # Heartbeat timestamps further than this from the server clock are refused; 0 disables.
    heartbeat_max_skew_s: int = 300
    allow_self_suspend: bool = True

    # Token bucket per client IP; 0 disables.
    rate_limit: int = 100
    rate_limit_window_s: float = 60.0

    state_file: Optional[str] = None
    save_interval_s: int = 10

    log_level: LogLevel = "info"


def _die(msg: str) -> None:
    raise SystemExit(f"[fareplay] {msg}")


def load_registry_env() -> RegistryConfig:
    """
    Load registry configuration from env/.env with strict validation.

    Every knob has a default, so an empty environment yields a working
    in-memory registry on port 3000.
    """
    try:
        port = _env_int("REGISTRY_PORT", 3000)
        timeout_min = _env_int("HEARTBEAT_TIMEOUT_MINUTES", 10)
        sweep_interval_s = _env_int("SWEEP_INTERVAL_SECONDS", 60)
        max_skew_s = _env_int("HEARTBEAT_MAX_SKEW_SECONDS", 300)
        rate_limit = _env_int("API_RATE_LIMIT", 100)
        rate_window_ms = _env_int("API_RATE_LIMIT_WINDOW_MS", 60000)
        save_interval_s = _env_int("STATE_SAVE_INTERVAL_SECONDS", 10)
    except EnvError as e:
        _die(str(e))

    if not 0 < port < 65536:
        _die(f"REGISTRY_PORT out of range: {port}")
    if timeout_min <= 0:
        _die(f"HEARTBEAT_TIMEOUT_MINUTES must be positive. Got: {timeout_min}")
    if sweep_interval_s <= 0:
        _die(f"SWEEP_INTERVAL_SECONDS must be positive. Got: {sweep_interval_s}")
    if max_skew_s < 0:
        _die(f"HEARTBEAT_MAX_SKEW_SECONDS must be >= 0. Got: {max_skew_s}")
    if rate_limit < 0:
        _die(f"API_RATE_LIMIT must be >= 0. Got: {rate_limit}")
    if rate_window_ms <= 0:
        _die(f"API_RATE_LIMIT_WINDOW_MS must be positive. Got: {rate_window_ms}")

    cors: List[str] = _env_csv("REGISTRY_CORS_ORIGINS", "*") or ["*"]
    if "*" in cors:
        cors = ["*"]

    log_level = _env_str("REGISTRY_LOG_LEVEL", "info").lower()
    if log_level not in ("info", "debug", "trace"):
        _die(f"Invalid REGISTRY_LOG_LEVEL={log_level!r} (expected 'info', 'debug' or 'trace').")

    state_file = _env_str("REGISTRY_STATE_FILE", "") or None

    return RegistryConfig(
        host=_env_str("REGISTRY_HOST", "0.0.0.0") or "0.0.0.0",
        port=port,
        cors_origins=tuple(cors),
        heartbeat_timeout_s=timeout_min * 60,
        sweep_interval_s=sweep_interval_s,
        heartbeat_max_skew_s=max_skew_s,
        allow_self_suspend=_env_bool("ALLOW_SELF_SUSPEND", True),
        rate_limit=rate_limit,
        rate_limit_window_s=rate_window_ms / 1000.0,
        state_file=state_file,
        save_interval_s=max(1, save_interval_s),
        log_level=log_level,  # type: ignore[arg-type]
    )
