"""Short-lived suppression of redundant notification composition attempts.

The cooldown only reduces noise and store traffic. Duplicate rows are
prevented by the composer's persisted merge window, so losing cooldown state
(process restart, another instance handling the request) is acceptable.
"""

import json
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Protocol

from episodic.db.base import utcnow

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
CooldownKey = tuple[str, str | None, str | None, str]


class CooldownStore(Protocol):
    """Backing store for cooldown entries."""

    async def was_attempted_since(self, key: CooldownKey, since: datetime) -> bool: ...

    async def record_attempt(self, key: CooldownKey, at: datetime, ttl: timedelta) -> None: ...


class InMemoryCooldownStore:
    """Process-local store; expired entries are pruned as the map grows."""

    def __init__(self, clock: Clock = utcnow, prune_threshold: int = 10_000):
        self._entries: dict[CooldownKey, datetime] = {}
        self._expiry: dict[CooldownKey, datetime] = {}
        self._clock = clock
        self._prune_threshold = prune_threshold

    async def was_attempted_since(self, key: CooldownKey, since: datetime) -> bool:
        last = self._entries.get(key)
        return last is not None and last > since

    async def record_attempt(self, key: CooldownKey, at: datetime, ttl: timedelta) -> None:
        self._entries[key] = at
        self._expiry[key] = at + ttl
        if len(self._entries) > self._prune_threshold:
            self.prune()

    def prune(self) -> int:
        now = self._clock()
        expired = [key for key, expires in self._expiry.items() if expires <= now]
        for key in expired:
            self._entries.pop(key, None)
            self._expiry.pop(key, None)
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCooldownStore:
    """Shared store for multi-instance deployments (``SET key EX ttl``)."""

    def __init__(self, redis, prefix: str = "episodic:cooldown"):
        self._redis = redis
        self._prefix = prefix

    def _redis_key(self, key: CooldownKey) -> str:
        # JSON keeps None, "" and separator characters inside ids distinct
        return f"{self._prefix}:" + json.dumps(list(key), separators=(",", ":"))

    async def was_attempted_since(self, key: CooldownKey, since: datetime) -> bool:
        # Redis expires the entry at the end of the window, so presence is enough
        return bool(await self._redis.exists(self._redis_key(key)))

    async def record_attempt(self, key: CooldownKey, at: datetime, ttl: timedelta) -> None:
        await self._redis.set(
            self._redis_key(key), at.isoformat(), ex=max(1, int(ttl.total_seconds()))
        )


class CooldownGuard:
    """Suppress repeat composition attempts for the same actor/entity/recipient."""

    def __init__(
        self,
        store: CooldownStore | None = None,
        window: timedelta = timedelta(minutes=30),
        clock: Clock = utcnow,
        event_types: Iterable[str] | None = None,
    ):
        self._store = store if store is not None else InMemoryCooldownStore(clock=clock)
        self._window = window
        self._clock = clock
        # None means every event type is subject to the cooldown
        self._event_types = {str(t) for t in event_types} if event_types is not None else None

    @staticmethod
    def make_key(
        recipient_id: str,
        related_entity_key: str | None,
        sender_id: str | None,
        event_type: str,
    ) -> CooldownKey:
        return (recipient_id, related_entity_key, sender_id, str(event_type))

    def applies_to(self, event_type: str) -> bool:
        return self._event_types is None or str(event_type) in self._event_types

    async def should_suppress(
        self,
        recipient_id: str,
        related_entity_key: str | None,
        sender_id: str | None,
        event_type: str,
    ) -> bool:
        if not self.applies_to(event_type):
            return False
        key = self.make_key(recipient_id, related_entity_key, sender_id, event_type)
        try:
            return await self._store.was_attempted_since(key, self._clock() - self._window)
        except Exception:
            logger.exception("Cooldown lookup failed for %s; not suppressing", key)
            return False

    async def mark_attempted(
        self,
        recipient_id: str,
        related_entity_key: str | None,
        sender_id: str | None,
        event_type: str,
    ) -> None:
        if not self.applies_to(event_type):
            return
        key = self.make_key(recipient_id, related_entity_key, sender_id, event_type)
        try:
            await self._store.record_attempt(key, self._clock(), self._window)
        except Exception:
            logger.exception("Cooldown record failed for %s", key)
