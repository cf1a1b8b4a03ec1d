"""
Counter/cache store used by the OTP rate limiter and the pending social
registration staging area.

Redis in every shared deployment. The in-memory store implements the same
subset of the redis-py client API for local runs and tests, so callers
never branch on which one they hold. Both add incr_within_limits, the
atomic check-and-increment behind the OTP rate limiter.
"""
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Optional, Protocol, Sequence, Tuple

import redis

from .config import Settings

logger = logging.getLogger(__name__)

# KEYS: counters. ARGV: max_count, ttl_seconds per key, in KEYS order.
# Returns {0, index, current} when a counter is at its max (nothing written),
# otherwise {1, count1, count2, ...} after incrementing every key.
INCR_WITHIN_LIMITS_LUA = """
for i, key in ipairs(KEYS) do
    local current = tonumber(redis.call('GET', key) or '0')
    if current >= tonumber(ARGV[2 * i - 1]) then
        return {0, i, current}
    end
end
local result = {1}
for i, key in ipairs(KEYS) do
    local count = redis.call('INCR', key)
    if count == 1 then
        redis.call('EXPIRE', key, tonumber(ARGV[2 * i]))
    end
    table.insert(result, count)
end
return result
"""


@dataclass(frozen=True)
class CounterLimit:
    key: str
    max_count: int
    ttl_seconds: int


@dataclass(frozen=True)
class LimitedIncrement:
    """
    Outcome of incr_within_limits.

    allowed: counts holds the post-increment value of every key.
    rejected: blocked_index names the first limit at its max and
    blocked_count its current value; no key was written.
    """
    allowed: bool
    counts: Tuple[int, ...] = ()
    blocked_index: Optional[int] = None
    blocked_count: int = 0

    @classmethod
    def from_script_result(cls, raw) -> "LimitedIncrement":
        if int(raw[0]) == 1:
            return cls(allowed=True, counts=tuple(int(c) for c in raw[1:]))
        return cls(allowed=False, blocked_index=int(raw[1]) - 1, blocked_count=int(raw[2]))


class CounterStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...
    def incr(self, key: str) -> int: ...
    def expire(self, key: str, seconds: int) -> bool: ...
    def ttl(self, key: str) -> int: ...
    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool: ...
    def getdel(self, key: str) -> Optional[str]: ...
    def delete(self, *keys: str) -> int: ...
    def incr_within_limits(self, limits: Sequence[CounterLimit]) -> LimitedIncrement: ...


class InMemoryCounterStore:
    """
    Process-local store with per-key expiry.

    Expiry is evaluated lazily against time.time(), so freezegun can move
    windows forward in tests. Values are kept as strings, like a redis
    client created with decode_responses=True.
    """

    def __init__(self):
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = Lock()

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= time.time():
            del self._data[key]
            return None
        return entry

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            return entry[0] if entry else None

    def incr(self, key: str) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                value, expires_at = 0, None
            else:
                try:
                    value = int(entry[0])
                except ValueError:
                    raise redis.ResponseError("value is not an integer or out of range")
                expires_at = entry[1]
            value += 1
            self._data[key] = (str(value), expires_at)
            return value

    def expire(self, key: str, seconds: int) -> bool:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return False
            self._data[key] = (entry[0], time.time() + seconds)
            return True

    def ttl(self, key: str) -> int:
        """Redis semantics: -2 missing key, -1 no expiry."""
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return max(0, int(round(entry[1] - time.time())))

    def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        with self._lock:
            expires_at = time.time() + ex if ex else None
            self._data[key] = (str(value), expires_at)
            return True

    def getdel(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            del self._data[key]
            return entry[0]

    def delete(self, *keys: str) -> int:
        with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    del self._data[key]
                    removed += 1
            return removed

    def incr_within_limits(self, limits: Sequence[CounterLimit]) -> LimitedIncrement:
        """Same contract as the redis script, made atomic by the store lock."""
        with self._lock:
            for index, limit in enumerate(limits):
                entry = self._live(limit.key)
                current = int(entry[0]) if entry else 0
                if current >= limit.max_count:
                    return LimitedIncrement(allowed=False, blocked_index=index, blocked_count=current)

            counts = []
            now = time.time()
            for limit in limits:
                entry = self._live(limit.key)
                count = (int(entry[0]) if entry else 0) + 1
                expires_at = now + limit.ttl_seconds if count == 1 else entry[1]
                self._data[limit.key] = (str(count), expires_at)
                counts.append(count)
            return LimitedIncrement(allowed=True, counts=tuple(counts))

    def ping(self) -> bool:
        return True


class RedisCounterStore(redis.Redis):
    """redis-py client with the rate limiter's check-and-increment script."""

    _limit_script = None

    def incr_within_limits(self, limits: Sequence[CounterLimit]) -> LimitedIncrement:
        if self._limit_script is None:
            self._limit_script = self.register_script(INCR_WITHIN_LIMITS_LUA)
        args = []
        for limit in limits:
            args.extend([limit.max_count, limit.ttl_seconds])
        raw = self._limit_script(keys=[limit.key for limit in limits], args=args)
        return LimitedIncrement.from_script_result(raw)


def create_counter_store(settings: Settings) -> CounterStore:
    """
    Build the counter store for the app lifespan.

    Raises redis.ConnectionError if REDIS_URL is set but unreachable. There
    is no fallback to the in-memory store once REDIS_URL is configured.
    """
    if not settings.REDIS_URL:
        logger.warning("REDIS_URL not set, using in-memory counter store (single process only)")
        return InMemoryCounterStore()

    client = RedisCounterStore.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
        socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
    )
    client.ping()
    logger.info("Redis counter store enabled")
    return client
