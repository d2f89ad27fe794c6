"""Model failover over a persisted block-list.

When the active model is rate-limited, its credentials are rejected, or its
proxy is cooling down, the host hands the failed model id and raw error text
to ``FailoverHandler.handle_error``. The model (and, for quota/auth errors,
every sibling under the same provider) is blocked until its cooldown ends,
and the next model in the configured order becomes the one to use.

State lives in a JSON file shared across host invocations; every call
reloads it. Expired entries are left in place and simply ignored.
"""

from __future__ import annotations

from typing import Optional, Sequence

from model_failover.core.classifier import classify_error
from model_failover.core.cooldown import calculate_cooldown
from model_failover.core.metrics import record_event, record_failover
from model_failover.core.state import load_state, save_state
from model_failover.shared.types import (
    EVENT_TYPE_FOR_KIND,
    BlockEntry,
    FailoverConfig,
    FailoverDecision,
    LimitState,
    error_event,
)
from model_failover.shared.utils import now_sec, provider_of, setup_logging, truncate

logger = setup_logging("failover.selector")

_REASON_MAX_LEN = 200


def is_blocked(model: str, state: LimitState, now: Optional[int] = None) -> bool:
    """A model is blocked while ``now < next_available_at``."""
    entry = state.limited.get(model)
    if entry is None:
        return False
    if now is None:
        now = now_sec()
    return entry.next_available_at > now


def first_available_model(
    order: Sequence[str], state: LimitState, now: Optional[int] = None,
) -> Optional[str]:
    """Return the first model in *order* that is not blocked.

    If ALL models are blocked, return the last one: trying the
    lowest-priority model beats refusing to answer. Empty order -> None.
    """
    if not order:
        return None
    if now is None:
        now = now_sec()
    for model in order:
        if not is_blocked(model, state, now):
            return model
    return order[-1]


def block_model(
    state: LimitState,
    model: str,
    hit_at: int,
    next_available_at: int,
    reason: Optional[str] = None,
) -> None:
    state.limited[model] = BlockEntry(
        last_hit_at=hit_at, next_available_at=next_available_at, reason=reason,
    )


def block_provider(
    state: LimitState,
    order: Sequence[str],
    model: str,
    hit_at: int,
    next_available_at: int,
    reason: Optional[str] = None,
) -> list[str]:
    """Block *model* and every model in *order* sharing its provider prefix.

    Siblings share the same quota, so retrying them would just burn another
    turn on the same error. Returns the blocked ids, failed model first.
    """
    provider = provider_of(model)
    block_model(state, model, hit_at, next_available_at, reason)
    blocked = [model]
    for m in order:
        if m != model and provider_of(m) == provider:
            block_model(state, m, hit_at, next_available_at, f"Provider {provider} exhausted")
            blocked.append(m)
    return blocked


def clear_model(state: LimitState, model: str) -> bool:
    return state.limited.pop(model, None) is not None


def get_status(
    order: Sequence[str], state: LimitState, now: Optional[int] = None,
) -> list[dict]:
    """Per-model availability, in priority order.

    Models that have a block entry but are no longer in *order* are listed
    after the configured ones.
    """
    if now is None:
        now = now_sec()
    models = list(order) + [m for m in state.limited if m not in order]
    rows = []
    for model in models:
        entry = state.limited.get(model)
        available = not is_blocked(model, state, now)
        rows.append({
            "model": model,
            "provider": provider_of(model),
            "configured": model in order,
            "available": available,
            "cooldown_remaining": 0 if available else entry.next_available_at - now,
            "next_available_at": entry.next_available_at if entry else None,
            "last_hit_at": entry.last_hit_at if entry else None,
            "reason": entry.reason if entry else None,
        })
    return rows


class FailoverHandler:
    """Applies classification, cooldown, blocking and selection for one host.

    Each call reloads the state file, so any number of host processes can
    share it; writes are atomic replaces.
    """

    def __init__(self, config: FailoverConfig) -> None:
        self.config = config

    def _cooldown_minutes(self, kind: str) -> int:
        if kind == "auth":
            return self.config.auth_cooldown_minutes
        if kind == "unavailable":
            return self.config.unavailable_cooldown_minutes
        return self.config.cooldown_minutes

    def resolve_model(self, now: Optional[int] = None) -> Optional[str]:
        """Model the host should use for the next call."""
        state = load_state(self.config.state_file)
        return first_available_model(self.config.model_order, state, now)

    def handle_error(
        self,
        model: str,
        error_text: Optional[str],
        trigger: str = "agent_end",
        session: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Optional[FailoverDecision]:
        """Block *model* after a failed turn and pick its replacement.

        Returns None (and changes nothing) when the error is not one that
        failover can help with.
        """
        kind = classify_error(error_text)
        if kind == "unknown":
            return None

        if now is None:
            now = now_sec()
        provider = provider_of(model)
        cooldown = calculate_cooldown(
            provider, error_text, self._cooldown_minutes(kind), now=now,
        )
        next_available_at = now + cooldown
        reason = truncate(error_text or kind, _REASON_MAX_LEN)

        state = load_state(self.config.state_file)
        if self.config.block_provider_wide and kind in ("rate_limit", "auth"):
            blocked = block_provider(
                state, self.config.model_order, model, now, next_available_at, reason,
            )
        else:
            block_model(state, model, now, next_available_at, reason)
            blocked = [model]
        save_state(self.config.state_file, state)

        next_model = first_available_model(self.config.model_order, state, now)
        switched = next_model is not None and next_model != model

        logger.warning(
            f"Model '{model}' hit {kind}, blocked {len(blocked)} model(s) "
            f"for {cooldown}s" + (f", switching to '{next_model}'" if switched else ""),
            extra={"extra_data": {
                "model": model,
                "kind": kind,
                "cooldown": cooldown,
                "blocked": blocked,
                "next_model": next_model,
            }},
        )

        if self.config.metrics_enabled:
            record_event(self.config.metrics_file, error_event(
                EVENT_TYPE_FOR_KIND[kind],
                ts=now,
                model=model,
                provider=provider,
                reason=reason,
                cooldown_sec=cooldown,
                trigger=trigger,
                session=session,
            ))
            if switched:
                record_failover(
                    self.config.metrics_file, model, next_model,
                    reason=kind, trigger=trigger, session=session, ts=now,
                )

        return FailoverDecision(
            failed_model=model,
            kind=kind,
            cooldown_sec=cooldown,
            next_available_at=next_available_at,
            blocked=blocked,
            next_model=next_model,
            switched=switched,
        )
