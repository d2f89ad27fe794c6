"""Cooldown durations, including provider calendar resets.

Some providers reset quotas on a calendar boundary instead of a rolling
window: Gemini daily quotas reset at midnight Pacific time, Anthropic
daily limits at midnight UTC. Midnights are computed with the tz
database so the Pacific boundary is correct on both sides of DST.
"""

from __future__ import annotations

from datetime import UTC, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from model_failover.core.classifier import parse_wait_time
from model_failover.shared.utils import now_sec

PACIFIC_TZ = "America/Los_Angeles"

_GOOGLE_PROVIDER_HINTS = ("google", "gemini")
_GOOGLE_QUOTA_HINTS = ("quota", "resource_exhausted", "resource exhausted")
_ANTHROPIC_PROVIDER_HINTS = ("anthropic", "claude")


def next_midnight(tz_name: str, now: Optional[int] = None) -> int:
    """Epoch seconds of the next 00:00:00 wall-clock time in *tz_name*."""
    if now is None:
        now = now_sec()
    tz = UTC if tz_name == "UTC" else ZoneInfo(tz_name)
    local = datetime.fromtimestamp(now, tz)
    tomorrow = local.date() + timedelta(days=1)
    midnight = datetime.combine(tomorrow, time(0, 0, 0), tzinfo=tz)
    return int(midnight.timestamp())


def get_next_midnight_pt(now: Optional[int] = None) -> int:
    return next_midnight(PACIFIC_TZ, now)


def get_next_midnight_utc(now: Optional[int] = None) -> int:
    return next_midnight("UTC", now)


def calculate_cooldown(
    provider: str,
    error_text: Optional[str] = None,
    default_minutes: int = 60,
    now: Optional[int] = None,
) -> int:
    """Seconds a model should stay blocked after *error_text*.

    Decision order:
      1. explicit wait time in the error text, used verbatim
      2. provider calendar reset (Gemini quota -> PT midnight,
         Anthropic daily limit -> UTC midnight)
      3. ``default_minutes * 60``
    """
    wait = parse_wait_time(error_text)
    if wait is not None:
        return wait

    if error_text:
        if now is None:
            now = now_sec()
        lower = error_text.lower()
        p = provider.lower()
        if any(h in p for h in _GOOGLE_PROVIDER_HINTS) and any(
            h in lower for h in _GOOGLE_QUOTA_HINTS
        ):
            return get_next_midnight_pt(now) - now
        if any(h in p for h in _ANTHROPIC_PROVIDER_HINTS) and "daily" in lower:
            return get_next_midnight_utc(now) - now

    return default_minutes * 60
