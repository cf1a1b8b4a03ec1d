"""
Fixed-window OTP request limiter backed by the shared counter store.

Two windows per phone: a short window (10 minutes by default) and a daily
window. Each key's TTL is armed only on the 0 -> 1 increment, so later
requests never push the window boundary out. The check and the increments
run as one store operation, so concurrent requests cannot overshoot a max.
"""
import logging
from dataclasses import dataclass
from typing import Dict

from ..core.config import Settings
from ..core.counter_store import CounterLimit, CounterStore
from ..core.errors import RequestExceedAllowedError
from ..utils.phone import get_phone_last4

logger = logging.getLogger(__name__)

WINDOW_SHORT = "short"
WINDOW_DAILY = "daily"


@dataclass(frozen=True)
class RateWindow:
    name: str
    key_prefix: str
    max_requests: int
    ttl_seconds: int
    exceeded_message: str

    def key(self, subject: str) -> str:
        return f"{self.key_prefix}:{subject}"

    def limit(self, subject: str) -> CounterLimit:
        return CounterLimit(key=self.key(subject), max_count=self.max_requests, ttl_seconds=self.ttl_seconds)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    current_count: int


class OTPRateLimiter:
    """
    Rate limiter for OTP requests.

    Limits (defaults, see Settings):
    - short: max 5 requests / 10 min per phone
    - daily: max 10 requests / 24 h per phone
    """

    def __init__(self, store: CounterStore, windows: Dict[str, RateWindow]):
        self._store = store
        self._windows = windows

    @classmethod
    def from_settings(cls, store: CounterStore, settings: Settings) -> "OTPRateLimiter":
        windows = {
            WINDOW_SHORT: RateWindow(
                name=WINDOW_SHORT,
                key_prefix="otp_counter",
                max_requests=settings.OTP_MAX_PER_10MIN,
                ttl_seconds=settings.OTP_WINDOW_SHORT_SECONDS,
                exceeded_message="Too many OTP requests in the last 10 minutes. Please try again later.",
            ),
            WINDOW_DAILY: RateWindow(
                name=WINDOW_DAILY,
                key_prefix="otp_daily_counter",
                max_requests=settings.OTP_MAX_PER_DAY,
                ttl_seconds=settings.OTP_WINDOW_DAILY_SECONDS,
                exceeded_message="Too many OTP requests today. Please try again tomorrow.",
            ),
        }
        return cls(store, windows)

    def _current(self, key: str) -> int:
        return int(self._store.get(key) or 0)

    def check_and_increment(self, subject: str, window_name: str) -> RateLimitResult:
        """
        Check one window and count the request if it fits.

        Returns not-allowed without touching the counter when the window
        is already at its maximum.
        """
        outcome = self._store.incr_within_limits([self._windows[window_name].limit(subject)])
        if not outcome.allowed:
            return RateLimitResult(allowed=False, current_count=outcome.blocked_count)
        return RateLimitResult(allowed=True, current_count=outcome.counts[0])

    def acquire(self, phone: str) -> int:
        """
        Admit one OTP request for `phone` against both windows.

        Both windows are checked before either is incremented, so a
        rejection never leaves a partial count behind.

        Returns:
            Post-increment count of the short window

        Raises:
            RequestExceedAllowedError: If either window is exhausted
        """
        windows = (self._windows[WINDOW_SHORT], self._windows[WINDOW_DAILY])
        outcome = self._store.incr_within_limits([window.limit(phone) for window in windows])
        if not outcome.allowed:
            window = windows[outcome.blocked_index]
            logger.warning(
                f"[OTP][RateLimit] {window.name} window exhausted for {get_phone_last4(phone)} "
                f"({outcome.blocked_count}/{window.max_requests})"
            )
            raise RequestExceedAllowedError(window.exceeded_message, details={"window": window.name})
        return outcome.counts[0]

    def peek(self, phone: str) -> Dict[str, int]:
        """Current counts per window, without side effects."""
        return {name: self._current(window.key(phone)) for name, window in self._windows.items()}
