from __future__ import annotations

import asyncio
import contextlib
import traceback
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import bittensor as bt
from fastapi import APIRouter, Body, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fareplay import PROTOCOL_VERSION, __version__
from fareplay.registry.config import RegistryConfig, load_registry_env
from fareplay.registry.discovery import DiscoveryQuery
from fareplay.registry.errors import ErrorCode, RateLimited, RegistryError
from fareplay.registry.heartbeat import HeartbeatProtocol
from fareplay.registry.ratelimit import RateLimiter
from fareplay.registry.registration import RegistrationProtocol
from fareplay.registry.schemas import CasinoFilters
from fareplay.registry.storage import InMemoryRegistry, RegistryStore
from fareplay.registry.sweeper import InactivitySweeper
from fareplay.registry.update import UpdateProtocol
from fareplay.utils.misc import now_ms


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    return jsonable_encoder(data)


def envelope(data: Any = None, *, status_code: int = 200) -> JSONResponse:
    body: Dict[str, Any] = {"success": True, "timestamp": now_ms()}
    if data is not None:
        body["data"] = _dump(data)
    return JSONResponse(status_code=status_code, content=body)


def error_envelope(
    code: ErrorCode,
    message: str,
    *,
    status_code: int,
    details: Any = None,
    data: Any = None,
) -> JSONResponse:
    err: Dict[str, Any] = {"code": code.value, "message": message}
    if details is not None:
        err["details"] = jsonable_encoder(details)
    body: Dict[str, Any] = {"success": False, "error": err, "timestamp": now_ms()}
    if data is not None:
        body["data"] = _dump(data)
    return JSONResponse(status_code=status_code, content=body)


def _casino_routes(
    registration: RegistrationProtocol,
    heartbeats: HeartbeatProtocol,
    updates: UpdateProtocol,
    discovery: DiscoveryQuery,
) -> APIRouter:
    router = APIRouter(prefix="/api/casinos", tags=["casinos"])

    @router.post("/register", status_code=201)
    async def register(payload: Dict[str, Any] = Body(...)):
        casino = await registration.register(payload)
        return envelope(casino, status_code=201)

    @router.post("/heartbeat")
    async def heartbeat(payload: Dict[str, Any] = Body(...)):
        return envelope(await heartbeats.heartbeat(payload))

    @router.patch("")
    async def update(payload: Dict[str, Any] = Body(...)):
        return envelope(await updates.update(payload))

    @router.get("")
    async def list_casinos(
        status: Optional[str] = None,
        games: Optional[List[str]] = Query(default=None),
        limit: int = 20,
        offset: int = 0,
    ):
        try:
            filters = CasinoFilters(status=status, games=games, limit=limit, offset=offset)
        except ValidationError as e:
            return error_envelope(
                ErrorCode.VALIDATION_ERROR,
                "Invalid query parameters",
                status_code=400,
                details=e.errors(include_url=False, include_context=False),
            )
        return envelope(await discovery.list_casinos(filters))

    @router.get("/stats")
    async def stats():
        return envelope(await discovery.statistics())

    @router.get("/by-key/{public_key}")
    async def casino_by_key(public_key: str):
        return envelope(await discovery.get_casino_by_public_key(public_key))

    @router.get("/{casino_id}")
    async def casino_by_id(casino_id: str):
        return envelope(await discovery.get_casino(casino_id))

    return router


def _health_routes(store: RegistryStore) -> APIRouter:
    router = APIRouter(tags=["health"])

    @router.get("/health")
    async def health():
        return envelope({"status": "ok"})

    @router.get("/health/live")
    async def live():
        return envelope({"status": "alive"})

    @router.get("/health/ready")
    async def ready():
        try:
            ok = await store.ping()
        except Exception as e:
            bt.logging.warning(f"Readiness probe failed: {e}")
            ok = False
        if not ok:
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "data": {"status": "not ready", "database": "disconnected"},
                    "timestamp": now_ms(),
                },
            )
        return envelope({"status": "ready", "database": "connected"})

    return router


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RegistryError)
    async def _registry_error(request: Request, exc: RegistryError):
        return error_envelope(exc.code, exc.message, status_code=exc.status_code, details=exc.details)

    @app.exception_handler(RequestValidationError)
    async def _request_invalid(request: Request, exc: RequestValidationError):
        return error_envelope(
            ErrorCode.VALIDATION_ERROR,
            "Invalid request body",
            status_code=400,
            details=exc.errors(),
        )

    @app.exception_handler(ValidationError)
    async def _model_invalid(request: Request, exc: ValidationError):
        return error_envelope(
            ErrorCode.VALIDATION_ERROR,
            "Invalid request body",
            status_code=400,
            details=exc.errors(include_url=False, include_context=False),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        code = ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.INVALID_REQUEST
        return error_envelope(code, str(exc.detail), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        bt.logging.error(f"Request error {request.method} {request.url.path}:\n{traceback.format_exc()}")
        return error_envelope(ErrorCode.INTERNAL_ERROR, "Internal server error", status_code=500)


def create_app(config: Optional[RegistryConfig] = None, store: Optional[RegistryStore] = None) -> FastAPI:
    """
    Build the registry service.

    `store` defaults to an InMemoryRegistry; pass another RegistryStore to run
    the same protocols against different persistence.
    """
    cfg = config or load_registry_env()
    store = store if store is not None else InMemoryRegistry()
    state_path = Path(cfg.state_file).expanduser() if cfg.state_file else None
    sweeper = InactivitySweeper(store, timeout_s=cfg.heartbeat_timeout_s, interval_s=cfg.sweep_interval_s)

    async def _save_loop() -> None:
        assert state_path is not None
        while True:
            await asyncio.sleep(cfg.save_interval_s)
            try:
                await store.save(state_path)  # type: ignore[attr-defined]
            except Exception:
                bt.logging.error(f"Failed to save registry state to {state_path}:\n{traceback.format_exc()}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        persist = state_path is not None and hasattr(store, "save")
        if persist:
            await store.load(state_path)  # type: ignore[attr-defined]
        sweeper.start()
        save_task = asyncio.create_task(_save_loop()) if persist else None
        try:
            yield
        finally:
            await sweeper.stop()
            if save_task is not None:
                save_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await save_task
            if persist:
                await store.save(state_path)  # type: ignore[attr-defined]
                bt.logging.info(f"Registry state saved to {state_path}")

    app = FastAPI(title="FarePlay Casino Registry", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = RateLimiter(cfg.rate_limit, cfg.rate_limit_window_s) if cfg.rate_limit > 0 else None

    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        if limiter is not None and request.url.path.startswith("/api/"):
            client = request.client.host if request.client else "unknown"
            if not limiter.allow(client):
                exc = RateLimited()
                return error_envelope(exc.code, exc.message, status_code=exc.status_code)
        return await call_next(request)

    _install_error_handlers(app)

    app.state.config = cfg
    app.state.store = store
    app.state.sweeper = sweeper

    app.include_router(_health_routes(store))
    app.include_router(
        _casino_routes(
            RegistrationProtocol(store),
            HeartbeatProtocol(
                store,
                max_skew_s=cfg.heartbeat_max_skew_s,
                allow_self_suspend=cfg.allow_self_suspend,
            ),
            UpdateProtocol(store, allow_self_suspend=cfg.allow_self_suspend),
            DiscoveryQuery(store),
        )
    )

    @app.get("/")
    async def index():
        return envelope(
            {
                "name": "FarePlay Discovery Service",
                "version": __version__,
                "protocolVersion": PROTOCOL_VERSION,
                "description": "Registry and metadata hub for Fare Protocol casinos",
                "endpoints": {
                    "health": "/health",
                    "ready": "/health/ready",
                    "live": "/health/live",
                    "casinos": "GET /api/casinos",
                    "casinoById": "GET /api/casinos/:id",
                    "casinoByKey": "GET /api/casinos/by-key/:publicKey",
                    "register": "POST /api/casinos/register",
                    "heartbeat": "POST /api/casinos/heartbeat",
                    "update": "PATCH /api/casinos",
                    "stats": "GET /api/casinos/stats",
                },
            }
        )

    return app


app = create_app()
