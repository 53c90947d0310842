from __future__ import annotations

import sys
from pathlib import Path

# Allow running as a script without requiring `PYTHONPATH=.`.
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import bittensor as bt
import uvicorn

from fareplay.registry.app import create_app
from fareplay.registry.config import RegistryConfig, load_registry_env


def _configure_logging(cfg: RegistryConfig) -> None:
    if cfg.log_level == "trace":
        bt.logging.set_trace(True)
    elif cfg.log_level == "debug":
        bt.logging.set_debug(True)


def main() -> int:
    cfg = load_registry_env()
    _configure_logging(cfg)

    app = create_app(cfg)
    bt.logging.info(f"FarePlay registry listening on http://{cfg.host}:{cfg.port}")
    if cfg.state_file:
        bt.logging.info(f"Persisting registry state to {cfg.state_file}")
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
