"""Failover telemetry: append-only JSONL event log and the reports derived from it.

The log is the source of truth. Summaries and per-model histories are
recomputed from it on every query; nothing is cached.

Storage: one JSON object per line. Appends are not locked; a torn or
garbage line only costs that one event, since readers skip any line that
does not parse.
"""

from __future__ import annotations

import json
import os
from collections import deque
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from model_failover.shared.types import (
    DEFAULT_METRICS_FILE,
    ERROR_EVENT_TYPES,
    BreakdownStats,
    CooldownEntry,
    FailoverEvent,
    MetricEvent,
    MetricsQueryResult,
    MetricsSummary,
    ModelHistory,
    RateLimitEvent,
    event_to_wire,
    parse_event,
)
from model_failover.shared.utils import expand_home, now_sec, provider_of, setup_logging

logger = setup_logging("failover.metrics")

_COUNTER_FOR_TYPE = {
    "rate_limit": "rate_limits",
    "auth_error": "auth_errors",
    "unavailable": "unavailable_errors",
}

_SUMMARY_TOTAL_FOR_TYPE = {
    "rate_limit": "total_rate_limits",
    "auth_error": "total_auth_errors",
    "unavailable": "total_unavailable",
    "failover": "total_failovers",
}

PathLike = Union[str, os.PathLike]


def _resolve(path: PathLike) -> Path:
    return Path(expand_home(str(path)))


# ── Recording ────────────────────────────────────────────────


def record_event(path: PathLike, event: Union[MetricEvent, Mapping[str, Any]]) -> None:
    """Append one event as a JSON line, creating parent directories."""
    if isinstance(event, Mapping):
        event = parse_event(dict(event))
    log_path = _resolve(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(event_to_wire(event))
    with log_path.open("a", encoding="utf-8") as f:
        f.write(line + "\n")


def record_rate_limit(
    path: PathLike,
    model: str,
    provider: str,
    cooldown_sec: Optional[int] = None,
    reason: Optional[str] = None,
    trigger: Optional[str] = None,
    session: Optional[str] = None,
    ts: Optional[int] = None,
) -> RateLimitEvent:
    event = RateLimitEvent(
        ts=now_sec() if ts is None else ts,
        model=model,
        provider=provider,
        cooldown_sec=cooldown_sec,
        reason=reason,
        trigger=trigger,
        session=session,
    )
    record_event(path, event)
    return event


def record_failover(
    path: PathLike,
    from_model: str,
    to_model: str,
    reason: Optional[str] = None,
    trigger: Optional[str] = None,
    session: Optional[str] = None,
    ts: Optional[int] = None,
) -> FailoverEvent:
    event = FailoverEvent(
        ts=now_sec() if ts is None else ts,
        model=from_model,
        provider=provider_of(from_model),
        to=to_model,
        reason=reason,
        trigger=trigger,
        session=session,
    )
    record_event(path, event)
    return event


# ── Loading ──────────────────────────────────────────────────


def load_events(path: PathLike = DEFAULT_METRICS_FILE) -> list[MetricEvent]:
    """Read every parseable event in log order. Missing or unreadable file -> []."""
    log_path = _resolve(path)
    events: list[MetricEvent] = []
    skipped = 0
    try:
        with log_path.open(encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(parse_event(json.loads(line)))
                except (json.JSONDecodeError, ValidationError):
                    skipped += 1
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning(f"Failed to read metrics log {log_path}: {e}")
        return []
    if skipped:
        logger.debug(
            f"Skipped {skipped} malformed metrics line(s) in {log_path}",
            extra={"extra_data": {"skipped": skipped, "path": str(log_path)}},
        )
    return events


def reset_metrics(path: PathLike = DEFAULT_METRICS_FILE) -> bool:
    """Delete the metrics log. Returns False if it did not exist."""
    try:
        _resolve(path).unlink()
    except FileNotFoundError:
        return False
    logger.info("Metrics log reset", extra={"extra_data": {"path": str(path)}})
    return True


def filter_events(
    events: Iterable[MetricEvent],
    since: Optional[int] = None,
    until: Optional[int] = None,
) -> list[MetricEvent]:
    """Keep events with ``since <= ts <= until`` (either bound optional)."""
    return [
        e for e in events
        if (since is None or e.ts >= since) and (until is None or e.ts <= until)
    ]


def _avg(total: int, count: int) -> float:
    return total / count if count > 0 else 0.0


def _cooldown_entry(event: MetricEvent) -> CooldownEntry:
    return CooldownEntry(
        started_at=event.ts,
        duration_sec=event.cooldown_sec,
        type=event.type,
        model=event.model,
        reason=event.reason,
        trigger=event.trigger,
        session=event.session,
    )


# ── Summary ──────────────────────────────────────────────────


def _summarize(events: list[MetricEvent], max_recent_cooldowns: int = 50) -> MetricsSummary:
    summary = MetricsSummary()
    recent: deque[CooldownEntry] = deque(maxlen=max(0, max_recent_cooldowns))

    def stats_for(table: dict[str, BreakdownStats], key: str) -> BreakdownStats:
        if key not in table:
            table[key] = BreakdownStats()
        return table[key]

    for event in events:
        summary.total_events += 1
        setattr(
            summary,
            _SUMMARY_TOTAL_FOR_TYPE[event.type],
            getattr(summary, _SUMMARY_TOTAL_FOR_TYPE[event.type]) + 1,
        )
        summary.since = event.ts if summary.since is None else min(summary.since, event.ts)
        summary.until = event.ts if summary.until is None else max(summary.until, event.ts)

        m = stats_for(summary.models, event.model)
        p = stats_for(summary.providers, event.provider)
        for s in (m, p):
            # last event in log order, not the newest ts
            s.last_hit_at = event.ts

        if event.type == "failover":
            m.times_failed_from += 1
            p.times_failed_from += 1
            stats_for(summary.models, event.to).times_failed_to += 1
            stats_for(summary.providers, provider_of(event.to)).times_failed_to += 1
            continue

        counter = _COUNTER_FOR_TYPE[event.type]
        for s in (m, p):
            setattr(s, counter, getattr(s, counter) + 1)

        if event.cooldown_sec is not None:
            for s in (m, p):
                s.total_cooldown_sec += event.cooldown_sec
                s.cooldown_count += 1
            summary.total_cooldown_sec += event.cooldown_sec
            summary.cooldown_count += 1
            recent.append(_cooldown_entry(event))

    for s in (*summary.models.values(), *summary.providers.values()):
        s.avg_cooldown_sec = _avg(s.total_cooldown_sec, s.cooldown_count)
    summary.avg_cooldown_sec = _avg(summary.total_cooldown_sec, summary.cooldown_count)
    summary.recent_cooldowns = list(recent)
    return summary


def get_metrics_summary(
    metrics_path: PathLike = DEFAULT_METRICS_FILE,
    since: Optional[int] = None,
    until: Optional[int] = None,
    max_recent_cooldowns: int = 50,
) -> MetricsSummary:
    """Fold the (time-filtered) log into global, per-model and per-provider counts.

    ``recent_cooldowns`` keeps the newest *max_recent_cooldowns* entries in
    chronological order. ``since``/``until`` on the result echo the earliest
    and latest event actually included, not the filter bounds.
    """
    events = filter_events(load_events(metrics_path), since, until)
    return _summarize(events, max_recent_cooldowns)


# ── Per-model history ────────────────────────────────────────


def _history(model: str, events: list[MetricEvent]) -> ModelHistory:
    history = ModelHistory(model=model)
    seen: list[int] = []

    for event in events:
        if event.model == model:
            history.events.append(event)
            seen.append(event.ts)
            if event.type == "failover":
                history.failed_to_models[event.to] = history.failed_to_models.get(event.to, 0) + 1
            elif event.type in ERROR_EVENT_TYPES:
                history.total_errors += 1
                if event.cooldown_sec is not None:
                    history.cooldowns.append(_cooldown_entry(event))
        elif event.type == "failover" and event.to == model:
            history.received_from_models[event.model] = (
                history.received_from_models.get(event.model, 0) + 1
            )
            seen.append(event.ts)

    durations = [c.duration_sec for c in history.cooldowns]
    history.total_cooldown_sec = sum(durations)
    history.max_cooldown_sec = max(durations, default=0)
    history.avg_cooldown_sec = _avg(history.total_cooldown_sec, len(durations))
    if seen:
        history.first_seen = min(seen)
        history.last_seen = max(seen)
    return history


def get_model_history(
    model: str,
    metrics_path: PathLike = DEFAULT_METRICS_FILE,
    since: Optional[int] = None,
    until: Optional[int] = None,
) -> ModelHistory:
    """Cooldown timeline and failover adjacency for one model.

    A failover that lands on *model* counts toward ``received_from_models``
    and first/last seen, but is not one of the model's own events.
    """
    events = filter_events(load_events(metrics_path), since, until)
    return _history(model, events)


def query_metrics(
    metrics_path: PathLike = DEFAULT_METRICS_FILE,
    since: Optional[int] = None,
    until: Optional[int] = None,
    max_recent_cooldowns: int = 50,
) -> MetricsQueryResult:
    """Summary plus a history for every model named as ``model`` or ``to``."""
    events = filter_events(load_events(metrics_path), since, until)
    models: dict[str, None] = {}
    for event in events:
        models.setdefault(event.model, None)
        if event.type == "failover":
            models.setdefault(event.to, None)
    return MetricsQueryResult(
        summary=_summarize(events, max_recent_cooldowns),
        model_histories={m: _history(m, events) for m in models},
    )
