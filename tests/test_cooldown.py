"""Cooldown suppression of repeated composition attempts."""

from datetime import timedelta

from episodic.services.cooldown import CooldownGuard, InMemoryCooldownStore, RedisCooldownStore


class BrokenStore:
    async def was_attempted_since(self, key, since):
        raise ConnectionError("store unavailable")

    async def record_attempt(self, key, at, ttl):
        raise ConnectionError("store unavailable")


async def test_suppresses_within_window(clock):
    guard = CooldownGuard(window=timedelta(minutes=30), clock=clock)
    assert not await guard.should_suppress("owner", "review:r1", "u1", "NEW_REACTION")

    await guard.mark_attempted("owner", "review:r1", "u1", "NEW_REACTION")
    clock.advance(minutes=29)
    assert await guard.should_suppress("owner", "review:r1", "u1", "NEW_REACTION")


async def test_expires_after_window(clock):
    guard = CooldownGuard(window=timedelta(minutes=30), clock=clock)
    await guard.mark_attempted("owner", "review:r1", "u1", "NEW_REACTION")
    clock.advance(minutes=30, seconds=1)
    assert not await guard.should_suppress("owner", "review:r1", "u1", "NEW_REACTION")


async def test_key_includes_every_part(clock):
    guard = CooldownGuard(clock=clock)
    await guard.mark_attempted("owner", "review:r1", "u1", "NEW_REACTION")
    assert not await guard.should_suppress("owner", "review:r1", "u2", "NEW_REACTION")
    assert not await guard.should_suppress("owner", "review:r2", "u1", "NEW_REACTION")
    assert not await guard.should_suppress("other", "review:r1", "u1", "NEW_REACTION")
    assert not await guard.should_suppress("owner", "review:r1", "u1", "NEW_COMMENT")


async def test_only_configured_event_types(clock):
    guard = CooldownGuard(clock=clock, event_types=["NEW_REACTION"])
    await guard.mark_attempted("owner", "review:r1", "u1", "NEW_COMMENT")
    assert not guard.applies_to("NEW_COMMENT")
    assert not await guard.should_suppress("owner", "review:r1", "u1", "NEW_COMMENT")


async def test_store_failure_never_suppresses(clock):
    guard = CooldownGuard(store=BrokenStore(), clock=clock)
    await guard.mark_attempted("owner", "review:r1", "u1", "NEW_REACTION")
    assert not await guard.should_suppress("owner", "review:r1", "u1", "NEW_REACTION")


async def test_memory_store_prunes_expired_entries(clock):
    store = InMemoryCooldownStore(clock=clock, prune_threshold=2)
    ttl = timedelta(minutes=30)
    await store.record_attempt(("a", "-", "-", "T"), clock(), ttl)
    await store.record_attempt(("b", "-", "-", "T"), clock(), ttl)
    clock.advance(minutes=31)
    await store.record_attempt(("c", "-", "-", "T"), clock(), ttl)
    assert len(store) == 1


async def test_absent_and_placeholder_parts_stay_distinct(clock):
    guard = CooldownGuard(clock=clock)
    await guard.mark_attempted("owner", None, "u1", "NEW_FOLLOWER")
    assert await guard.should_suppress("owner", None, "u1", "NEW_FOLLOWER")
    assert not await guard.should_suppress("owner", "-", "u1", "NEW_FOLLOWER")
    assert not await guard.should_suppress("owner", "", "u1", "NEW_FOLLOWER")


class RecordingRedis:
    def __init__(self):
        self.keys = {}

    async def exists(self, key):
        return int(key in self.keys)

    async def set(self, key, value, ex=None):
        self.keys[key] = value


async def test_redis_keys_do_not_collide_on_separators(clock):
    redis = RecordingRedis()
    guard = CooldownGuard(store=RedisCooldownStore(redis), clock=clock)
    await guard.mark_attempted("a|b", None, "u1", "NEW_FOLLOWER")
    assert not await guard.should_suppress("a", "b|-", "u1", "NEW_FOLLOWER")
    assert not await guard.should_suppress("a|b", "-", "u1", "NEW_FOLLOWER")
    assert await guard.should_suppress("a|b", None, "u1", "NEW_FOLLOWER")
    assert len(redis.keys) == 1
