"""Unit tests for FixedWindowRateLimiter."""

import pytest

from upcore_agent.core.domain.rate_limiter import FixedWindowRateLimiter, RateWindow


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindowRateLimiter:
    def test_allows_up_to_limit_then_rejects(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(3, 60, clock=clock)
        window = limiter.new_window()

        assert [limiter.allow(window) for _ in range(4)] == [True, True, True, False]

    def test_window_resets_after_elapsed(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(2, 60, clock=clock)
        window = limiter.new_window()
        limiter.allow(window)
        limiter.allow(window)
        assert limiter.allow(window) is False

        clock.now += 61

        assert limiter.allow(window) is True
        assert window.count == 1
        assert window.window_start == clock.now

    def test_window_not_reset_at_exact_boundary(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(1, 60, clock=clock)
        window = limiter.new_window()
        limiter.allow(window)

        clock.now += 60

        assert limiter.allow(window) is False

    def test_rejected_attempts_still_count(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(1, 60, clock=clock)
        window = RateWindow(window_start=clock.now)

        for _ in range(5):
            limiter.allow(window)

        assert window.count == 5

    def test_keyed_hits_are_independent(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(5, 900, clock=clock)

        results = [limiter.hit("10.0.0.1") for _ in range(6)]

        assert results == [True] * 5 + [False]
        assert limiter.hit("10.0.0.2") is True

    def test_forget_drops_key(self):
        limiter = FixedWindowRateLimiter(1, 900, clock=FakeClock())
        limiter.hit("a")
        assert limiter.hit("a") is False

        limiter.forget("a")

        assert limiter.hit("a") is True

    def test_expired_keys_are_pruned_on_new_key(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(5, 900, clock=clock)
        limiter.hit("10.0.0.1")
        limiter.hit("10.0.0.2")
        assert len(limiter) == 2

        clock.now += 901
        limiter.hit("10.0.0.3")

        assert len(limiter) == 1

    def test_live_keys_survive_pruning(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(1, 900, clock=clock)
        limiter.hit("a")

        clock.now += 10
        limiter.hit("b")

        assert len(limiter) == 2
        assert limiter.hit("a") is False

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            FixedWindowRateLimiter(0, 60)
