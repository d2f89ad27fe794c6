"""CLI entry point for model-failover.

Selection:
  status                   Show per-model availability
  select                   Print the model to use right now
  classify <text>          Classify an error string and show its cooldown
  report <model> <error>   Handle a failed turn (block + pick next model)
  clear [model]            Remove one block entry, or all of them
  init                     Write a config file with the model order

Metrics:
  metrics                  Aggregate failover metrics
  history <model>          Cooldown history for one model
  events                   Raw event log
  reset-metrics            Delete the metrics log
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime, timedelta
from pathlib import Path

import click

from model_failover.cli import config as cli_config
from model_failover.cli.config import _load_config, _save_config, _suppress_library_logs
from model_failover.cli.formatting import (
    echo_dim,
    echo_ok,
    echo_warn,
    format_duration,
    format_events,
    format_metrics,
    format_model_history,
    format_status,
)
from model_failover.core.classifier import classify_error, parse_wait_time
from model_failover.core.cooldown import calculate_cooldown
from model_failover.core.failover import (
    FailoverHandler,
    clear_model,
    first_available_model,
    get_status,
)
from model_failover.core.metrics import (
    filter_events,
    get_metrics_summary,
    get_model_history,
    load_events,
    reset_metrics,
)
from model_failover.core.state import load_state, reset_state, save_state
from model_failover.shared.types import FailoverConfig
from model_failover.shared.utils import now_sec, provider_of

_RELATIVE_RE = re.compile(r"^(\d+)\s*([dhm])$", re.IGNORECASE)


def _parse_time_bound(value: str | None) -> int | None:
    """Parse a --since/--until value into epoch seconds.

    Accepts epoch seconds, ISO-8601 dates/datetimes (naive = UTC),
    ``today``, ``week``, ``month``, or a relative ``7d``/``24h``/``30m``.
    """
    if value is None:
        return None
    value = value.strip()
    now = datetime.now(UTC)
    if value.isdigit():
        return int(value)
    if value == "today":
        return int(now.replace(hour=0, minute=0, second=0, microsecond=0).timestamp())
    if value == "week":
        return int((now - timedelta(days=7)).timestamp())
    if value == "month":
        return int(now.replace(day=1, hour=0, minute=0, second=0, microsecond=0).timestamp())
    match = _RELATIVE_RE.match(value)
    if match:
        amount, unit = int(match.group(1)), match.group(2).lower()
        delta = {"d": timedelta(days=amount), "h": timedelta(hours=amount),
                 "m": timedelta(minutes=amount)}[unit]
        return int((now - delta).timestamp())
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise click.BadParameter(
            f"'{value}' is not epoch seconds, an ISO date, today/week/month, or Nd/Nh/Nm",
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


_since_option = click.option("--since", default=None, help="Start of window (epoch, ISO date, today, 7d, ...)")
_until_option = click.option("--until", default=None, help="End of window (inclusive)")
_json_option = click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of text")


# ── Main group ───────────────────────────────────────────────

@click.group()
@click.option("--config", "config_path", default=None, envvar=cli_config.ENV_CONFIG,
              help="Path to the failover YAML config")
@click.pass_context
def cli(ctx, config_path: str | None):
    """Model failover: rate-limit aware model selection and metrics."""
    from dotenv import load_dotenv

    load_dotenv(cli_config.ENV_FILE or Path.cwd() / ".env")
    _suppress_library_logs()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _config(ctx: click.Context) -> FailoverConfig:
    if "config" not in ctx.obj:
        ctx.obj["config"] = _load_config(ctx.obj.get("config_path"))
    return ctx.obj["config"]


# ── Selection ────────────────────────────────────────────────

@cli.command()
@_json_option
@click.pass_context
def status(ctx, as_json: bool):
    """Show per-model availability from the state file."""
    cfg = _config(ctx)
    state = load_state(cfg.state_file)
    now = now_sec()
    rows = get_status(cfg.model_order, state, now)
    active = first_available_model(cfg.model_order, state, now)
    if as_json:
        _echo_json({"active": active, "models": rows})
        return
    click.echo(format_status(rows, active))
    if active is None:
        echo_warn("No model order configured. Run: model-failover init --model <id> ...")
    elif all(not r["available"] for r in rows if r["configured"]):
        echo_warn(f"All models blocked; falling back to {active}")


@cli.command()
@click.pass_context
def select(ctx):
    """Print the model the selector would use right now."""
    cfg = _config(ctx)
    model = FailoverHandler(cfg).resolve_model()
    if model is None:
        raise click.ClickException("No model order configured.")
    click.echo(model)


@cli.command()
@click.argument("text")
@click.option("--provider", default="", help="Provider id (enables calendar-reset rules)")
@click.pass_context
def classify(ctx, text: str, provider: str):
    """Classify an error string and show the cooldown it would get."""
    cfg = _config(ctx)
    kind = classify_error(text)
    minutes = {
        "auth": cfg.auth_cooldown_minutes,
        "unavailable": cfg.unavailable_cooldown_minutes,
    }.get(kind, cfg.cooldown_minutes)
    cooldown = calculate_cooldown(provider, text, minutes)
    wait = parse_wait_time(text)
    click.echo(f"Category : {kind}")
    click.echo(f"Cooldown : {format_duration(cooldown)} ({cooldown}s)")
    if wait is not None:
        echo_dim(f"explicit wait hint: {wait}s")
    if kind == "unknown":
        echo_dim("unknown errors do not trigger failover")


@cli.command()
@click.argument("model")
@click.argument("error_text")
@click.option("--trigger", default="agent_end", help="Lifecycle hook that saw the error")
@click.option("--session", default=None, help="Session key, recorded in metrics")
@_json_option
@click.pass_context
def report(ctx, model: str, error_text: str, trigger: str, session: str | None, as_json: bool):
    """Handle a failed turn: block MODEL and pick the next one.

    \b
    Examples:
      model-failover report openai/gpt-5.2 "429 Too Many Requests"
      model-failover report anthropic/claude-opus-4-6 "daily limit exceeded" --json
    """
    cfg = _config(ctx)
    decision = FailoverHandler(cfg).handle_error(model, error_text, trigger=trigger, session=session)
    if as_json:
        _echo_json(decision.model_dump(mode="json") if decision else None)
        return
    if decision is None:
        click.echo("Error not recognised as rate-limit, auth or unavailable; nothing changed.")
        return
    echo_ok(
        f"{decision.kind}: blocked {', '.join(decision.blocked)} "
        f"for {format_duration(decision.cooldown_sec)}"
    )
    if decision.switched:
        click.echo(f"Switch to: {decision.next_model}")
    else:
        echo_warn(f"No alternative available; staying on {decision.next_model}")


@cli.command()
@click.argument("model", required=False, default=None)
@click.option("--provider", "whole_provider", is_flag=True,
              help="Also clear every model sharing MODEL's provider")
@click.pass_context
def clear(ctx, model: str | None, whole_provider: bool):
    """Remove block entries (one model, its provider, or everything)."""
    cfg = _config(ctx)
    if model is None:
        if reset_state(cfg.state_file):
            echo_ok("Cleared all block entries.")
        else:
            click.echo("No state file; nothing to clear.")
        return

    state = load_state(cfg.state_file)
    targets = [model]
    if whole_provider:
        provider = provider_of(model)
        targets += [m for m in list(state.limited) if m != model and provider_of(m) == provider]
    cleared = [m for m in targets if clear_model(state, m)]
    if not cleared:
        click.echo(f"'{model}' is not blocked.")
        return
    save_state(cfg.state_file, state)
    echo_ok(f"Cleared {', '.join(cleared)}")


@cli.command()
@click.option("--model", "models", multiple=True, required=True,
              help="Model id in priority order (repeatable)")
@click.option("--cooldown-minutes", type=int, default=None)
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def init(ctx, models: tuple[str, ...], cooldown_minutes: int | None, force: bool):
    """Write a config file with the model priority order.

    \b
    Example:
      model-failover init --model openai/gpt-5.2 --model anthropic/claude-opus-4-6
    """
    path = cli_config._config_path(ctx.obj.get("config_path"))
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    cfg = FailoverConfig(model_order=list(models))
    if cooldown_minutes is not None:
        cfg.cooldown_minutes = cooldown_minutes
    written = _save_config(cfg, path)
    echo_ok(f"Wrote {written}")


# ── Metrics ──────────────────────────────────────────────────

@cli.command()
@_since_option
@_until_option
@click.option("--recent", default=50, show_default=True, help="Recent cooldowns to keep")
@_json_option
@click.pass_context
def metrics(ctx, since: str | None, until: str | None, recent: int, as_json: bool):
    """Aggregate failover metrics."""
    cfg = _config(ctx)
    summary = get_metrics_summary(
        cfg.metrics_file,
        since=_parse_time_bound(since),
        until=_parse_time_bound(until),
        max_recent_cooldowns=recent,
    )
    if as_json:
        _echo_json(summary.model_dump(mode="json"))
    else:
        click.echo(format_metrics(summary))


@cli.command()
@click.argument("model")
@_since_option
@_until_option
@_json_option
@click.pass_context
def history(ctx, model: str, since: str | None, until: str | None, as_json: bool):
    """Cooldown history and failover relationships for MODEL."""
    cfg = _config(ctx)
    hist = get_model_history(
        model, cfg.metrics_file,
        since=_parse_time_bound(since),
        until=_parse_time_bound(until),
    )
    if as_json:
        _echo_json(hist.model_dump(mode="json"))
    else:
        click.echo(format_model_history(hist))


@cli.command()
@_since_option
@_until_option
@click.option("--model", default=None, help="Only events for (or failing over to) this model")
@click.option("--limit", default=0, help="Show only the last N events (0 = all)")
@click.pass_context
def events(ctx, since: str | None, until: str | None, model: str | None, limit: int):
    """Raw event log, oldest first."""
    cfg = _config(ctx)
    selected = filter_events(
        load_events(cfg.metrics_file), _parse_time_bound(since), _parse_time_bound(until),
    )
    if model:
        selected = [
            e for e in selected
            if e.model == model or (e.type == "failover" and e.to == model)
        ]
    if limit > 0:
        selected = selected[-limit:]
    click.echo(format_events(selected))


@cli.command("reset-metrics")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def reset_metrics_cmd(ctx, yes: bool):
    """Delete the metrics log."""
    cfg = _config(ctx)
    if not yes:
        click.confirm(f"Delete {cfg.metrics_file}?", abort=True)
    if reset_metrics(cfg.metrics_file):
        echo_ok("Metrics log deleted.")
    else:
        click.echo("No metrics log to delete.")


if __name__ == "__main__":
    cli()
