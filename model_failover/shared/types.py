"""Pydantic models for failover state, metric events, and derived reports.

This is the contract between the selector, the metrics reducer and the
host that drives them. Persisted shapes (``LimitState`` and the metric
events) serialize with camelCase wire aliases; derived reports use plain
field names.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ErrorKind = Literal["rate_limit", "auth", "unavailable", "unknown"]
EventType = Literal["rate_limit", "auth_error", "unavailable", "failover"]

DEFAULT_STATE_FILE = "~/.openclaw/workspace/memory/model-failover-state.json"
DEFAULT_METRICS_FILE = "~/.openclaw/workspace/memory/model-failover-metrics.jsonl"

ERROR_EVENT_TYPES: tuple[str, ...] = ("rate_limit", "auth_error", "unavailable")

# classify_error() category -> metric event type
EVENT_TYPE_FOR_KIND: dict[str, str] = {
    "rate_limit": "rate_limit",
    "auth": "auth_error",
    "unavailable": "unavailable",
}


# === Limit State (persisted JSON) ===


class BlockEntry(BaseModel):
    """A model excluded from selection until ``next_available_at``."""

    model_config = ConfigDict(populate_by_name=True)

    last_hit_at: int = Field(alias="lastHitAt")
    next_available_at: int = Field(alias="nextAvailableAt")
    reason: Optional[str] = None


class LimitState(BaseModel):
    """Map of currently (or formerly) blocked models."""

    limited: dict[str, BlockEntry] = {}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# === Metric Events (append-only JSONL) ===


class _EventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ts: int
    model: str
    provider: str
    reason: Optional[str] = None
    trigger: Optional[str] = None
    session: Optional[str] = None


class _ErrorEventBase(_EventBase):
    cooldown_sec: Optional[int] = Field(default=None, alias="cooldownSec")


class RateLimitEvent(_ErrorEventBase):
    type: Literal["rate_limit"] = "rate_limit"


class AuthErrorEvent(_ErrorEventBase):
    type: Literal["auth_error"] = "auth_error"


class UnavailableEvent(_ErrorEventBase):
    type: Literal["unavailable"] = "unavailable"


class FailoverEvent(_EventBase):
    """The active model was switched from ``model`` to ``to``."""

    type: Literal["failover"] = "failover"
    to: str


ErrorEvent = Union[RateLimitEvent, AuthErrorEvent, UnavailableEvent]

MetricEvent = Annotated[
    Union[RateLimitEvent, AuthErrorEvent, UnavailableEvent, FailoverEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[MetricEvent] = TypeAdapter(MetricEvent)

_ERROR_EVENT_CLASSES: dict[str, type[_ErrorEventBase]] = {
    "rate_limit": RateLimitEvent,
    "auth_error": AuthErrorEvent,
    "unavailable": UnavailableEvent,
}


def parse_event(data: Any) -> MetricEvent:
    """Validate a decoded JSON record into its event variant.

    Raises ``pydantic.ValidationError`` for unknown types or missing fields.
    """
    return _event_adapter.validate_python(data)


def error_event(event_type: str, **fields: Any) -> ErrorEvent:
    """Build the error event variant for ``event_type``."""
    return _ERROR_EVENT_CLASSES[event_type](**fields)


def event_to_wire(event: MetricEvent) -> dict[str, Any]:
    return event.model_dump(mode="json", by_alias=True, exclude_none=True)


# === Derived Reports ===


class CooldownEntry(BaseModel):
    """One cooldown window opened by an error event."""

    started_at: int
    duration_sec: int
    type: str
    model: str
    reason: Optional[str] = None
    trigger: Optional[str] = None
    session: Optional[str] = None


class BreakdownStats(BaseModel):
    """Counters for a single model or provider."""

    rate_limits: int = 0
    auth_errors: int = 0
    unavailable_errors: int = 0
    times_failed_from: int = 0
    times_failed_to: int = 0
    total_cooldown_sec: int = 0
    cooldown_count: int = 0
    avg_cooldown_sec: float = 0.0
    last_hit_at: Optional[int] = None


class MetricsSummary(BaseModel):
    total_events: int = 0
    total_rate_limits: int = 0
    total_auth_errors: int = 0
    total_unavailable: int = 0
    total_failovers: int = 0
    total_cooldown_sec: int = 0
    cooldown_count: int = 0
    avg_cooldown_sec: float = 0.0
    since: Optional[int] = None
    until: Optional[int] = None
    models: dict[str, BreakdownStats] = {}
    providers: dict[str, BreakdownStats] = {}
    recent_cooldowns: list[CooldownEntry] = []


class ModelHistory(BaseModel):
    """Everything the log says about one model."""

    model: str
    events: list[MetricEvent] = []
    cooldowns: list[CooldownEntry] = []
    total_errors: int = 0
    total_cooldown_sec: int = 0
    avg_cooldown_sec: float = 0.0
    max_cooldown_sec: int = 0
    first_seen: Optional[int] = None
    last_seen: Optional[int] = None
    failed_to_models: dict[str, int] = {}
    received_from_models: dict[str, int] = {}


class MetricsQueryResult(BaseModel):
    summary: MetricsSummary
    model_histories: dict[str, ModelHistory] = {}


# === Failover Handling ===


class FailoverConfig(BaseModel):
    """Runtime configuration for the failover handler (parsed from YAML)."""

    model_order: list[str] = []
    cooldown_minutes: int = Field(default=60, ge=0)
    auth_cooldown_minutes: int = Field(default=720, ge=0)
    unavailable_cooldown_minutes: int = Field(default=15, ge=0)
    block_provider_wide: bool = True
    metrics_enabled: bool = True
    state_file: str = DEFAULT_STATE_FILE
    metrics_file: str = DEFAULT_METRICS_FILE


class FailoverDecision(BaseModel):
    """Outcome of handling one failed turn."""

    failed_model: str
    kind: ErrorKind
    cooldown_sec: int
    next_available_at: int
    blocked: list[str] = []
    next_model: Optional[str] = None
    switched: bool = False
