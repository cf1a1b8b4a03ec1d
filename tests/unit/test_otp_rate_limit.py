"""
Tests for the fixed-window OTP rate limiter
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from freezegun import freeze_time

from petbox_auth.core.counter_store import CounterLimit, InMemoryCounterStore, LimitedIncrement
from petbox_auth.core.errors import RequestExceedAllowedError
from petbox_auth.services.rate_limit import WINDOW_DAILY, WINDOW_SHORT, OTPRateLimiter

PHONE = "+84912345678"


@pytest.fixture
def limiter(settings):
    return OTPRateLimiter.from_settings(InMemoryCounterStore(), settings)


class TestAcquireStoreCalls:
    """Counter-store traffic for one request: a single atomic call"""

    def test_both_windows_checked_in_one_call(self, settings):
        store = MagicMock()
        store.incr_within_limits.return_value = LimitedIncrement(allowed=True, counts=(1, 1))

        counter = OTPRateLimiter.from_settings(store, settings).acquire(PHONE)

        assert counter == 1
        store.incr_within_limits.assert_called_once_with(
            [
                CounterLimit(key=f"otp_counter:{PHONE}", max_count=5, ttl_seconds=600),
                CounterLimit(key=f"otp_daily_counter:{PHONE}", max_count=10, ttl_seconds=86400),
            ]
        )
        store.incr.assert_not_called()
        store.get.assert_not_called()

    def test_short_window_exhausted(self, settings):
        store = MagicMock()
        store.incr_within_limits.return_value = LimitedIncrement(allowed=False, blocked_index=0, blocked_count=5)

        with pytest.raises(RequestExceedAllowedError) as exc_info:
            OTPRateLimiter.from_settings(store, settings).acquire(PHONE)

        assert exc_info.value.status_code == 429
        assert exc_info.value.details == {"window": WINDOW_SHORT}

    def test_daily_window_exhausted(self, settings):
        store = MagicMock()
        store.incr_within_limits.return_value = LimitedIncrement(allowed=False, blocked_index=1, blocked_count=10)

        with pytest.raises(RequestExceedAllowedError) as exc_info:
            OTPRateLimiter.from_settings(store, settings).acquire(PHONE)

        assert exc_info.value.details == {"window": WINDOW_DAILY}


class SlowReadStore(InMemoryCounterStore):
    """Widens the gap between reading a counter and writing it back"""

    def _live(self, key):
        time.sleep(0.02)
        return super()._live(key)


class TestConcurrentRequests:
    def test_parallel_requests_never_pass_the_max(self, settings):
        """With 4 of 5 slots used, only one of several racing requests gets in"""
        store = SlowReadStore()
        limiter = OTPRateLimiter.from_settings(store, settings)
        for _ in range(4):
            limiter.acquire(PHONE)

        barrier = threading.Barrier(4)

        def attempt():
            barrier.wait()
            try:
                return limiter.acquire(PHONE)
            except RequestExceedAllowedError:
                return None

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: attempt(), range(4)))

        assert [r for r in results if r is not None] == [5]
        assert limiter.peek(PHONE) == {WINDOW_SHORT: 5, WINDOW_DAILY: 5}

class TestWindows:
    """Window behaviour over time with the in-memory store"""

    def test_sixth_request_in_ten_minutes_is_rejected(self, limiter):
        """Five requests fit; the counter reports 1..5"""
        with freeze_time("2026-03-02 08:00:00"):
            counts = [limiter.acquire(PHONE) for _ in range(5)]
            assert counts == [1, 2, 3, 4, 5]

            with pytest.raises(RequestExceedAllowedError):
                limiter.acquire(PHONE)

    def test_short_window_resets_after_ten_minutes(self, limiter):
        """After the window elapses the counter starts again from 1"""
        with freeze_time("2026-03-02 08:00:00") as frozen:
            for _ in range(5):
                limiter.acquire(PHONE)

            frozen.tick(timedelta(seconds=601))

            assert limiter.acquire(PHONE) == 1

    def test_window_is_fixed_from_first_request(self, limiter):
        """Requests late in the window do not push its end out"""
        with freeze_time("2026-03-02 08:00:00") as frozen:
            limiter.acquire(PHONE)
            frozen.tick(timedelta(seconds=590))
            for _ in range(4):
                limiter.acquire(PHONE)

            frozen.tick(timedelta(seconds=11))

            assert limiter.acquire(PHONE) == 1

    def test_daily_limit_spans_short_windows(self, limiter):
        """Ten requests per day, however they are spread"""
        with freeze_time("2026-03-02 08:00:00") as frozen:
            for _ in range(5):
                limiter.acquire(PHONE)
            frozen.tick(timedelta(seconds=601))
            for _ in range(5):
                limiter.acquire(PHONE)
            frozen.tick(timedelta(seconds=601))

            with pytest.raises(RequestExceedAllowedError) as exc_info:
                limiter.acquire(PHONE)
            assert exc_info.value.details == {"window": WINDOW_DAILY}

            frozen.tick(timedelta(days=1))
            assert limiter.acquire(PHONE) == 1

    def test_phones_are_counted_separately(self, limiter):
        """Another phone is unaffected by an exhausted one"""
        for _ in range(5):
            limiter.acquire(PHONE)

        assert limiter.acquire("+84987654321") == 1


class TestCheckAndPeek:
    def test_check_and_increment_reports_not_allowed_at_max(self, limiter):
        """At the maximum the result is not allowed and the count stays put"""
        for _ in range(5):
            assert limiter.check_and_increment(PHONE, WINDOW_SHORT).allowed

        result = limiter.check_and_increment(PHONE, WINDOW_SHORT)

        assert result.allowed is False
        assert result.current_count == 5

    def test_peek_has_no_side_effects(self, limiter):
        """peek reads both windows without counting"""
        limiter.acquire(PHONE)

        assert limiter.peek(PHONE) == {WINDOW_SHORT: 1, WINDOW_DAILY: 1}
        assert limiter.peek(PHONE) == {WINDOW_SHORT: 1, WINDOW_DAILY: 1}
