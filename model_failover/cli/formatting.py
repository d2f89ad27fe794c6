"""Display helpers: plain-text reports for metrics, events, histories and status."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Iterable, Optional

import click

from model_failover.shared.types import MetricEvent, MetricsSummary, ModelHistory
from model_failover.shared.utils import truncate

_REASON_WIDTH = 80


# ── Primitive formatters ────────────────────────────────────


def format_duration(seconds: Optional[float]) -> str:
    """Compact duration: ``45s``, ``30m``, ``1h``, ``1h 30m``, ``2d 3h``."""
    if not seconds or seconds <= 0:
        return "0s"
    total = int(round(seconds))
    parts = []
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60), ("s", 1)):
        if total >= size:
            parts.append(f"{total // size}{unit}")
            total %= size
    return " ".join(parts[:2])


def format_ts(ts: Optional[int]) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts, UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


# ── Metrics summary ─────────────────────────────────────────


def format_metrics(summary: MetricsSummary) -> str:
    lines = ["Model Failover Metrics", "=" * 22]
    if summary.total_events == 0:
        lines.append("No failover events recorded yet.")
        return "\n".join(lines)

    lines += [
        f"Period       : {format_ts(summary.since)} -> {format_ts(summary.until)}",
        f"Total events : {summary.total_events}",
        f"Rate limits  : {summary.total_rate_limits}",
        f"Auth errors  : {summary.total_auth_errors}",
        f"Unavailable  : {summary.total_unavailable}",
        f"Failovers    : {summary.total_failovers}",
        f"Avg cooldown : {format_duration(summary.avg_cooldown_sec)}",
        "",
        "By provider:",
    ]
    for name, s in sorted(summary.providers.items()):
        lines.append(
            f"  {name:<24} rate_limits={s.rate_limits} auth={s.auth_errors} "
            f"unavailable={s.unavailable_errors} avg_cooldown={format_duration(s.avg_cooldown_sec)}"
        )

    lines += ["", "By model:"]
    for name, s in sorted(summary.models.items()):
        lines.append(
            f"  {name:<40} rate_limits={s.rate_limits} auth={s.auth_errors} "
            f"unavailable={s.unavailable_errors} failed_from={s.times_failed_from} "
            f"failed_to={s.times_failed_to} avg_cooldown={format_duration(s.avg_cooldown_sec)}"
        )

    if summary.recent_cooldowns:
        lines += ["", "Recent cooldowns:"]
        for c in summary.recent_cooldowns:
            line = f"  {format_ts(c.started_at)}  {c.type.upper():<12} {c.model}  {format_duration(c.duration_sec)}"
            if c.reason:
                line += f"  {truncate(c.reason, _REASON_WIDTH)}"
            lines.append(line)
    return "\n".join(lines)


# ── Raw events ──────────────────────────────────────────────


def format_event(event: MetricEvent) -> str:
    parts = [format_ts(event.ts), event.type.upper(), event.model]
    if event.type == "failover":
        parts.append(f"-> {event.to}")
    elif event.cooldown_sec is not None:
        parts.append(f"cooldown={event.cooldown_sec}s")
    if event.reason:
        parts.append(truncate(event.reason, _REASON_WIDTH))
    return "  ".join(parts)


def format_events(events: Iterable[MetricEvent]) -> str:
    lines = [format_event(e) for e in events]
    return "\n".join(lines) if lines else "No events."


# ── Model history ───────────────────────────────────────────


def format_model_history(history: ModelHistory) -> str:
    lines = [f"Cooldown History: {history.model}", "=" * (18 + len(history.model))]
    if not history.events and not history.received_from_models:
        lines.append("No events recorded for this model.")
        return "\n".join(lines)

    lines += [
        f"Total errors : {history.total_errors}",
        f"Cooldowns    : {len(history.cooldowns)}",
        f"Total time   : {format_duration(history.total_cooldown_sec)}",
        f"Avg cooldown : {format_duration(history.avg_cooldown_sec)}",
        f"Max cooldown : {format_duration(history.max_cooldown_sec)}",
        f"First seen   : {format_ts(history.first_seen)}",
        f"Last seen    : {format_ts(history.last_seen)}",
    ]

    if history.cooldowns:
        lines += ["", "Cooldown timeline:"]
        for c in history.cooldowns:
            line = f"  {format_ts(c.started_at)}  {c.type.upper():<12} {format_duration(c.duration_sec):>8}"
            if c.reason:
                line += f"  {truncate(c.reason, _REASON_WIDTH)}"
            lines.append(line)

    if history.failed_to_models:
        lines += ["", "Failed over to:"]
        for target, count in sorted(history.failed_to_models.items(), key=lambda kv: -kv[1]):
            lines.append(f"  -> {target} ({count}x)")

    if history.received_from_models:
        lines += ["", "Received failovers from:"]
        for source, count in sorted(history.received_from_models.items(), key=lambda kv: -kv[1]):
            lines.append(f"  <- {source} ({count}x)")

    return "\n".join(lines)


# ── Status ──────────────────────────────────────────────────


def format_status(rows: list[dict], active: Optional[str] = None) -> str:
    """Render ``get_status`` rows as a table; *active* is marked with ``*``."""
    if not rows:
        return "No models configured."
    lines = [f"  {'Model':<44} {'Status':<10} {'Remaining':<10} Reason", "  " + "-" * 80]
    for row in rows:
        marker = "*" if row["model"] == active else " "
        status = "available" if row["available"] else "blocked"
        remaining = "" if row["available"] else format_duration(row["cooldown_remaining"])
        reason = truncate(row["reason"] or "", 40) if not row["available"] else ""
        name = row["model"] if row["configured"] else f"{row['model']} (unlisted)"
        lines.append(f"{marker} {name:<44} {status:<10} {remaining:<10} {reason}".rstrip())
    return "\n".join(lines)


# ── Styled output helpers ───────────────────────────────────


def echo_ok(text: str) -> None:
    """Success status line."""
    click.echo(click.style("  \u2713 ", fg="green") + text)


def echo_warn(text: str) -> None:
    """Warning."""
    click.echo(click.style("  \u26a0 ", fg="yellow") + text)


def echo_dim(text: str) -> None:
    """Dim/secondary info."""
    click.echo(click.style(f"  {text}", fg="bright_black"))
