"""model-failover: rate-limit aware model selection and failover telemetry."""

from model_failover.core.classifier import (
    classify_error,
    is_auth_or_scope_like,
    is_rate_limit_like,
    is_temporarily_unavailable_like,
    parse_wait_time,
)
from model_failover.core.cooldown import (
    calculate_cooldown,
    get_next_midnight_pt,
    get_next_midnight_utc,
)
from model_failover.core.failover import (
    FailoverHandler,
    block_provider,
    first_available_model,
)
from model_failover.core.metrics import (
    filter_events,
    get_metrics_summary,
    get_model_history,
    load_events,
    query_metrics,
    record_event,
    record_failover,
    record_rate_limit,
    reset_metrics,
)
from model_failover.core.state import load_state, save_state
from model_failover.shared.types import (
    DEFAULT_METRICS_FILE,
    DEFAULT_STATE_FILE,
    FailoverConfig,
    LimitState,
    MetricEvent,
)
from model_failover.shared.utils import expand_home, now_sec

__all__ = [
    "DEFAULT_METRICS_FILE",
    "DEFAULT_STATE_FILE",
    "FailoverConfig",
    "FailoverHandler",
    "LimitState",
    "MetricEvent",
    "block_provider",
    "calculate_cooldown",
    "classify_error",
    "expand_home",
    "filter_events",
    "first_available_model",
    "get_metrics_summary",
    "get_model_history",
    "get_next_midnight_pt",
    "get_next_midnight_utc",
    "is_auth_or_scope_like",
    "is_rate_limit_like",
    "is_temporarily_unavailable_like",
    "load_events",
    "load_state",
    "now_sec",
    "parse_wait_time",
    "query_metrics",
    "record_event",
    "record_failover",
    "record_rate_limit",
    "reset_metrics",
    "save_state",
]
