from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


CasinoStatus = Literal["online", "offline", "maintenance", "suspended"]
CASINO_STATUSES = ("online", "offline", "maintenance", "suspended")

# Closed set of game tags. Near-duplicate spellings seen in older SDKs
# (coinFlip, slots_1, cards_1, cryptoLaunch_1) are not accepted.
GameType = Literal[
    "slots",
    "roulette",
    "dice",
    "crash",
    "coinflip",
    "rps",
    "bombs",
    "cards",
    "plinko",
    "cryptoLaunch",
]
GAME_TYPES = (
    "slots",
    "roulette",
    "dice",
    "crash",
    "coinflip",
    "rps",
    "bombs",
    "cards",
    "plinko",
    "cryptoLaunch",
)

DEFAULT_TOKENS = ["SOL"]


def _check_url(v: str) -> str:
    parts = urlparse(v)
    if not parts.scheme or not parts.netloc:
        raise ValueError("must be an absolute URL")
    return v


UrlStr = Annotated[str, AfterValidator(_check_url)]


class _Wire(BaseModel):
    # Wire format is camelCase (matches the JS SDK); attributes stay snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class SocialLinks(_Wire):
    twitter: Optional[UrlStr] = None
    discord: Optional[UrlStr] = None
    telegram: Optional[UrlStr] = None
    website: Optional[UrlStr] = None


class CasinoMetadata(_Wire):
    description: Optional[str] = Field(default=None, max_length=500)
    games: List[GameType] = Field(default_factory=list)
    logo: Optional[UrlStr] = None
    banner: Optional[UrlStr] = None
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    max_bet_amount: Optional[float] = Field(default=None, gt=0)
    min_bet_amount: Optional[float] = Field(default=None, gt=0)
    supported_tokens: List[str] = Field(default_factory=lambda: list(DEFAULT_TOKENS), min_length=1)


class Casino(_Wire):
    id: str
    name: str
    url: str
    public_key: str
    status: CasinoStatus
    metadata: CasinoMetadata
    created_at: int
    updated_at: int
    # Server time (ms) of the last accepted heartbeat; None until the first one.
    last_heartbeat: Optional[int] = None
    version: str


class HeartbeatMetrics(_Wire):
    active_players: Optional[int] = Field(default=None, ge=0)
    total_bets_24h: Optional[float] = Field(default=None, ge=0, alias="totalBets24h")
    uptime: Optional[float] = Field(default=None, ge=0)
    response_time: Optional[float] = Field(default=None, gt=0)


class HeartbeatRecord(_Wire):
    id: str
    casino_id: str
    status: CasinoStatus
    metrics: Optional[HeartbeatMetrics] = None
    signature: str
    client_timestamp: int
    observed_at: int


# ---------------------------------------------------------------------------
# Signed write requests
# ---------------------------------------------------------------------------


def _check_bet_range(min_bet: Optional[float], max_bet: Optional[float]) -> None:
    if min_bet is not None and max_bet is not None and min_bet > max_bet:
        raise ValueError("minBetAmount must not exceed maxBetAmount")


class RegistrationMetadata(_Wire):
    description: Optional[str] = Field(default=None, max_length=500)
    games: List[GameType] = Field(default_factory=list)
    logo: Optional[UrlStr] = None
    banner: Optional[UrlStr] = None
    social_links: Optional[SocialLinks] = None
    max_bet_amount: Optional[float] = Field(default=None, gt=0)
    min_bet_amount: Optional[float] = Field(default=None, gt=0)
    supported_tokens: List[str] = Field(default_factory=lambda: list(DEFAULT_TOKENS), min_length=1)

    @model_validator(mode="after")
    def _bets(self) -> "RegistrationMetadata":
        _check_bet_range(self.min_bet_amount, self.max_bet_amount)
        return self


class RegistrationRequest(_Wire):
    name: str = Field(min_length=1, max_length=100)
    url: UrlStr
    # base58 Ed25519 key, 32 bytes -> 32..44 chars
    public_key: str = Field(min_length=32, max_length=44)
    metadata: RegistrationMetadata = Field(default_factory=RegistrationMetadata)

    # Signature over the canonicalized payload (all fields except signature).
    signature: str = Field(min_length=1)


class HeartbeatRequest(_Wire):
    casino_id: str = Field(min_length=1)
    status: CasinoStatus
    # Client clock, epoch ms.
    timestamp: int = Field(gt=0)
    metrics: Optional[HeartbeatMetrics] = None
    signature: str = Field(min_length=1)


class MetadataPatch(_Wire):
    """Metadata changes; fields left out of the request keep their stored value."""

    description: Optional[str] = Field(default=None, max_length=500)
    games: Optional[List[GameType]] = None
    logo: Optional[UrlStr] = None
    banner: Optional[UrlStr] = None
    social_links: Optional[SocialLinks] = None
    max_bet_amount: Optional[float] = Field(default=None, gt=0)
    min_bet_amount: Optional[float] = Field(default=None, gt=0)
    supported_tokens: Optional[List[str]] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _bets(self) -> "MetadataPatch":
        _check_bet_range(self.min_bet_amount, self.max_bet_amount)
        for name in ("games", "supported_tokens", "social_links"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class CasinoUpdateRequest(_Wire):
    casino_id: str = Field(min_length=1)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    url: Optional[UrlStr] = None
    status: Optional[CasinoStatus] = None
    metadata: Optional[MetadataPatch] = None
    signature: str = Field(min_length=1)

    @model_validator(mode="after")
    def _no_nulls(self) -> "CasinoUpdateRequest":
        for name in ("name", "url", "status", "metadata"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


# ---------------------------------------------------------------------------
# Read-side responses
# ---------------------------------------------------------------------------


class CasinoFilters(_Wire):
    status: Optional[CasinoStatus] = None
    games: Optional[List[GameType]] = None
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @field_validator("games", mode="before")
    @classmethod
    def _split_games(cls, v: Any) -> Any:
        # Accept ?games=slots&games=dice as well as ?games=slots,dice
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list):
            out: List[str] = []
            for item in v:
                if isinstance(item, str):
                    out.extend(x.strip() for x in item.split(",") if x.strip())
                else:
                    out.append(item)
            return out or None
        return v


class CasinoPage(_Wire):
    casinos: List[Casino]
    total: int
    limit: int
    offset: int


class NetworkStats(_Wire):
    total_casinos: int
    online_casinos: int
    heartbeats_last_24h: int = Field(alias="heartbeatsLast24h")


class HeartbeatAck(_Wire):
    success: bool = True
    timestamp: int
    next_heartbeat_in: int


class ApiError(_Wire):
    code: str
    message: str
    details: Optional[Any] = None


class ApiResponse(_Wire):
    success: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None
    timestamp: int
