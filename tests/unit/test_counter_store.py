"""
Tests for the in-memory counter store and the store factory
"""
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
import redis
from freezegun import freeze_time

from petbox_auth.core.counter_store import (
    INCR_WITHIN_LIMITS_LUA,
    CounterLimit,
    InMemoryCounterStore,
    RedisCounterStore,
    create_counter_store,
)


class TestInMemoryCounterStore:
    def test_incr_starts_at_one(self, store):
        assert store.incr("k") == 1
        assert store.incr("k") == 2
        assert store.get("k") == "2"

    def test_expire_and_ttl(self, store):
        """Same ttl codes as redis: -2 missing, -1 no expiry"""
        assert store.ttl("k") == -2
        store.incr("k")
        assert store.ttl("k") == -1

        with freeze_time("2026-03-02 08:00:00") as frozen:
            store.expire("k", 600)
            assert store.ttl("k") == 600

            frozen.tick(timedelta(seconds=600))
            assert store.get("k") is None
            assert store.ttl("k") == -2

    def test_incr_keeps_expiry(self, store):
        with freeze_time("2026-03-02 08:00:00") as frozen:
            store.incr("k")
            store.expire("k", 10)
            frozen.tick(timedelta(seconds=5))
            store.incr("k")

            assert store.ttl("k") == 5

    def test_expire_missing_key(self, store):
        assert store.expire("missing", 10) is False

    def test_incr_non_integer(self, store):
        store.set("k", "hello")

        with pytest.raises(redis.ResponseError):
            store.incr("k")

    def test_getdel(self, store):
        store.set("k", "v", ex=60)

        assert store.getdel("k") == "v"
        assert store.getdel("k") is None

    def test_delete(self, store):
        store.set("a", "1")
        store.set("b", "2")

        assert store.delete("a", "b", "c") == 2
        assert store.get("a") is None


class TestIncrWithinLimits:
    LIMITS = [CounterLimit("short", 2, 600), CounterLimit("daily", 3, 86400)]

    def test_increments_every_key_and_arms_ttl_once(self, store):
        with freeze_time("2026-03-02 08:00:00") as frozen:
            first = store.incr_within_limits(self.LIMITS)
            frozen.tick(timedelta(seconds=100))
            second = store.incr_within_limits(self.LIMITS)

            assert first.allowed and first.counts == (1, 1)
            assert second.counts == (2, 2)
            assert store.ttl("short") == 500
            assert store.ttl("daily") == 86300

    def test_rejection_writes_nothing(self, store):
        store.incr_within_limits(self.LIMITS)
        store.incr_within_limits(self.LIMITS)

        outcome = store.incr_within_limits(self.LIMITS)

        assert outcome.allowed is False
        assert outcome.blocked_index == 0
        assert outcome.blocked_count == 2
        assert store.get("daily") == "2"

    def test_later_limit_blocks(self, store):
        store.set("daily", "3")

        outcome = store.incr_within_limits(self.LIMITS)

        assert outcome.blocked_index == 1
        assert store.get("short") is None


class TestRedisCounterStore:
    def test_runs_registered_script(self):
        """Keys in order, then max and ttl pairs as script args"""
        script = MagicMock(return_value=[1, 3, 7])
        client = RedisCounterStore()
        with patch.object(RedisCounterStore, "register_script", return_value=script) as register:
            outcome = client.incr_within_limits(TestIncrWithinLimits.LIMITS)
            client.incr_within_limits(TestIncrWithinLimits.LIMITS)

        register.assert_called_once_with(INCR_WITHIN_LIMITS_LUA)
        script.assert_called_with(keys=["short", "daily"], args=[2, 600, 3, 86400])
        assert outcome.allowed and outcome.counts == (3, 7)

    def test_script_rejection(self):
        """The script reports 1-based positions"""
        client = RedisCounterStore()
        with patch.object(RedisCounterStore, "register_script", return_value=MagicMock(return_value=[0, 2, 3])):
            outcome = client.incr_within_limits(TestIncrWithinLimits.LIMITS)

        assert outcome.allowed is False
        assert outcome.blocked_index == 1
        assert outcome.blocked_count == 3


class TestCreateCounterStore:
    def test_in_memory_without_redis_url(self, settings):
        assert isinstance(create_counter_store(settings.model_copy(update={"REDIS_URL": ""})), InMemoryCounterStore)

    def test_redis_client_when_configured(self, settings):
        """Client decodes responses to str and is pinged at startup"""
        client = MagicMock()
        with patch("petbox_auth.core.counter_store.RedisCounterStore.from_url", return_value=client) as from_url:
            store = create_counter_store(settings.model_copy(update={"REDIS_URL": "redis://cache:6379/0"}))

        assert store is client
        client.ping.assert_called_once()
        assert from_url.call_args.args == ("redis://cache:6379/0",)
        assert from_url.call_args.kwargs["decode_responses"] is True

    def test_unreachable_redis_fails_startup(self, settings):
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        with patch("petbox_auth.core.counter_store.RedisCounterStore.from_url", return_value=client):
            with pytest.raises(redis.ConnectionError):
                create_counter_store(settings.model_copy(update={"REDIS_URL": "redis://cache:6379/0"}))
