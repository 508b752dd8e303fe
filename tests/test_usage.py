"""
Tests for profile usage caps.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from agentmesh.exceptions import RateLimitedError
from agentmesh.testing import create_mock_profile
from agentmesh.usage import UsageMeter, cost, estimate_tokens

# 2024-01-15T00:00:00Z
MIDNIGHT = 1705276800.0


class FakeClock:
    def __init__(self, now: float = MIDNIGHT + 3600) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@given(words=st.lists(st.text(alphabet="abc", min_size=1, max_size=5), max_size=50))
@settings(max_examples=100)
def test_estimate_is_two_tokens_per_word(words: list[str]) -> None:
    """
    Property 1: Token estimate is two per whitespace-separated word
    """
    assert estimate_tokens("  ".join(words)) == 2 * len(words)


def test_cost_rounds_down() -> None:
    profile = create_mock_profile(price_per_1k_tokens=1500)

    assert cost(profile, 1000) == 1500
    assert cost(profile, 1) == 1
    assert cost(create_mock_profile(price_per_1k_tokens=999), 1) == 0


class TestRequestCap:
    def test_cap_per_minute(self) -> None:
        clock = FakeClock()
        meter = UsageMeter(clock)
        profile = create_mock_profile(max_requests_per_min=2)

        meter.check(profile, "a")
        clock.now += 10
        meter.check(profile, "b")

        with pytest.raises(RateLimitedError) as exc_info:
            meter.check(profile, "c")
        assert exc_info.value.retry_after == 50
        assert exc_info.value.address == profile.address
        assert exc_info.value.to_dict()["retryAfter"] == 50

    def test_window_slides(self) -> None:
        clock = FakeClock()
        meter = UsageMeter(clock)
        profile = create_mock_profile(max_requests_per_min=1)

        meter.check(profile, "a")
        clock.now += 60
        meter.check(profile, "b")

    def test_zero_means_unlimited(self) -> None:
        meter = UsageMeter(FakeClock())
        profile = create_mock_profile(max_requests_per_min=0, max_tokens_per_day=0)

        for _ in range(500):
            meter.check(profile, "word " * 100)

    def test_profiles_are_independent(self) -> None:
        meter = UsageMeter(FakeClock())
        first = create_mock_profile(max_requests_per_min=1)
        second = create_mock_profile(max_requests_per_min=1)

        meter.check(first, "a")
        meter.check(second, "a")


class TestTokenCap:
    def test_daily_cap(self) -> None:
        clock = FakeClock()
        meter = UsageMeter(clock)
        profile = create_mock_profile(max_tokens_per_day=10)

        assert meter.check(profile, "one two") == 4
        meter.record(profile, 8)

        with pytest.raises(RateLimitedError) as exc_info:
            meter.check(profile, "one two")
        assert exc_info.value.retry_after == 86_400 - 3600

    def test_exact_cap_is_allowed(self) -> None:
        meter = UsageMeter(FakeClock())
        profile = create_mock_profile(max_tokens_per_day=10)
        meter.record(profile, 6)

        assert meter.check(profile, "one two") == 4

    def test_resets_at_utc_midnight(self) -> None:
        clock = FakeClock()
        meter = UsageMeter(clock)
        profile = create_mock_profile(max_tokens_per_day=10)
        meter.record(profile, 10)
        assert meter.tokens_today(profile) == 10

        clock.now = MIDNIGHT + 86_400
        assert meter.tokens_today(profile) == 0
        meter.check(profile, "one two")

    def test_previous_days_are_dropped(self) -> None:
        clock = FakeClock()
        meter = UsageMeter(clock)
        first, second = create_mock_profile(), create_mock_profile()
        meter.record(first, 10)
        meter.record(second, 10)

        clock.now = MIDNIGHT + 86_400
        meter.record(first, 3)

        assert meter.tokens_today(first) == 3
        assert len(meter._tokens) == 1
