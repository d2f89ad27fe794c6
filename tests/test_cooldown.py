"""Tests for cooldown durations and provider calendar resets."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from model_failover.core.cooldown import (
    PACIFIC_TZ,
    calculate_cooldown,
    get_next_midnight_pt,
    get_next_midnight_utc,
)


def _ts(*args) -> int:
    return int(datetime(*args, tzinfo=UTC).timestamp())


class TestNextMidnightUTC:
    def test_next_day(self):
        now = _ts(2024, 1, 15, 13, 30)
        assert get_next_midnight_utc(now) == _ts(2024, 1, 16)

    def test_exactly_midnight_moves_a_full_day(self):
        now = _ts(2024, 1, 16)
        assert get_next_midnight_utc(now) == _ts(2024, 1, 17)

    def test_default_now_is_future(self):
        result = get_next_midnight_utc()
        dt = datetime.fromtimestamp(result, UTC)
        assert (dt.hour, dt.minute, dt.second) == (0, 0, 0)
        assert result > datetime.now(UTC).timestamp()


class TestNextMidnightPT:
    def test_winter_is_utc_minus_8(self):
        # 12:00 PST on Jan 15
        now = _ts(2024, 1, 15, 20, 0)
        assert get_next_midnight_pt(now) == _ts(2024, 1, 16, 8, 0)

    def test_summer_is_utc_minus_7(self):
        # 05:00 PDT on Jul 1
        now = _ts(2024, 7, 1, 12, 0)
        assert get_next_midnight_pt(now) == _ts(2024, 7, 2, 7, 0)

    def test_spring_forward_day(self):
        # Mar 10 2024 is 23 hours long in Los Angeles
        now = _ts(2024, 3, 9, 20, 0)
        assert get_next_midnight_pt(now) == _ts(2024, 3, 10, 8, 0)
        now = _ts(2024, 3, 10, 12, 0)
        assert get_next_midnight_pt(now) == _ts(2024, 3, 11, 7, 0)

    def test_fall_back_day(self):
        # 01:30 PDT on Nov 3, before the clocks go back
        now = _ts(2024, 11, 3, 8, 30)
        assert get_next_midnight_pt(now) == _ts(2024, 11, 4, 8, 0)

    def test_result_is_local_midnight(self):
        result = get_next_midnight_pt()
        local = datetime.fromtimestamp(result, ZoneInfo(PACIFIC_TZ))
        assert (local.hour, local.minute, local.second) == (0, 0, 0)
        assert result > datetime.now(UTC).timestamp()


class TestCalculateCooldown:
    NOW = _ts(2024, 1, 15, 20, 0)

    def test_default_one_hour(self):
        assert calculate_cooldown("openai", "Unknown error") == 3600

    def test_no_error_text(self):
        assert calculate_cooldown("openai") == 3600

    def test_explicit_wait_wins(self):
        assert calculate_cooldown("openai", "Try again in 5m") == 300

    def test_custom_default(self):
        assert calculate_cooldown("openai", None, 120) == 7200
        assert calculate_cooldown("copilot-proxy", "plugin in cooldown", 15) == 900

    def test_zero_minutes(self):
        assert calculate_cooldown("openai", "429", 0) == 0

    def test_google_quota_waits_for_pacific_midnight(self):
        cooldown = calculate_cooldown("google", "Quota exceeded", now=self.NOW)
        assert cooldown == get_next_midnight_pt(self.NOW) - self.NOW
        assert cooldown == 12 * 3600

    def test_gemini_resource_exhausted(self):
        cooldown = calculate_cooldown("gemini", "RESOURCE_EXHAUSTED", now=self.NOW)
        assert cooldown == get_next_midnight_pt(self.NOW) - self.NOW

    def test_google_explicit_wait_beats_calendar(self):
        assert calculate_cooldown("google", "Quota exceeded, retry in 30s", now=self.NOW) == 30

    def test_google_unrelated_error_uses_default(self):
        assert calculate_cooldown("google", "Connection reset", 10, now=self.NOW) == 600

    def test_google_daily_without_quota_uses_default(self):
        cooldown = calculate_cooldown(
            "google-gemini-cli", "service temporarily unavailable: daily maintenance", 15, now=self.NOW,
        )
        assert cooldown == 900

    def test_anthropic_daily_limit_waits_for_utc_midnight(self):
        cooldown = calculate_cooldown("anthropic", "daily limit exceeded", now=self.NOW)
        assert cooldown == get_next_midnight_utc(self.NOW) - self.NOW
        assert cooldown == 4 * 3600

    def test_anthropic_without_daily_uses_default(self):
        assert calculate_cooldown("anthropic", "rate limit exceeded", now=self.NOW) == 3600

    def test_provider_match_is_case_insensitive(self):
        cooldown = calculate_cooldown("Anthropic", "DAILY limit", now=self.NOW)
        assert cooldown == 4 * 3600
