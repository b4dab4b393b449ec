"""Wiring of the interaction engine and its public operations."""

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from episodic.config import Settings, settings as default_settings
from episodic.db.base import utcnow
from episodic.events.feed import FeedBroker
from episodic.models.enums import NotificationType, ReactionType
from episodic.models.notification import GroupedFeed, Notification
from episodic.models.reaction import ToggleResult
from episodic.services.cleaner import NotificationCleaner
from episodic.services.composer import NotificationComposer
from episodic.services.cooldown import CooldownGuard, CooldownStore, InMemoryCooldownStore, RedisCooldownStore
from episodic.services.messages import DisplayNameResolver, MappingDisplayNameResolver, MessageBuilder
from episodic.services.notifications import NotificationService
from episodic.services.reactions import ReactionStore
from episodic.workers.outbox import OutboxWorker

logger = logging.getLogger(__name__)


@dataclass
class InteractionEngine:
    reactions: ReactionStore
    cooldown: CooldownGuard
    composer: NotificationComposer
    cleaner: NotificationCleaner
    notifications: NotificationService
    outbox: OutboxWorker
    broker: FeedBroker

    async def toggle_reaction(
        self,
        target_key: str,
        user_id: str | None,
        reaction_type: ReactionType | str = ReactionType.LIKE,
        desired: bool | None = None,
    ) -> ToggleResult:
        return await self.reactions.toggle(target_key, user_id, reaction_type, desired)

    async def notify_on_event(
        self,
        recipient_id: str,
        event_type: NotificationType | str,
        sender_id: str | None = None,
        related_entity_key: str | None = None,
        message: str | None = None,
        context: dict[str, Any] | None = None,
        session: AsyncSession | None = None,
    ) -> str | None:
        return await self.notifications.notify_on_event(
            recipient_id, event_type, sender_id, related_entity_key, message, context, session
        )

    def get_notification_feed(self, recipient_id: str) -> AsyncIterator[list[Notification]]:
        return self.notifications.subscribe(recipient_id)

    async def grouped_feed(self, recipient_id: str) -> GroupedFeed:
        return await self.notifications.grouped_feed(recipient_id)

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        await self.notifications.mark_read(notification_id, user_id)

    async def mark_all_read(self, recipient_id: str) -> int:
        return await self.notifications.mark_all_read(recipient_id)

    async def delete_notification(self, notification_id: str, user_id: str) -> None:
        await self.notifications.delete_notification(notification_id, user_id)

    async def cleanup(self, recipient_id: str) -> int:
        return await self.notifications.cleanup(recipient_id)

    async def on_entity_deleted(self, entity_key: str) -> dict[str, int]:
        """Cascade hook for the subsystem that owns reviews and lists."""
        removed_targets = await self.reactions.remove_target(entity_key)
        removed_notifications = await self.notifications.delete_for_entity(entity_key)
        return {"targets": len(removed_targets), "notifications": removed_notifications}

    async def on_user_deleted(self, user_id: str) -> int:
        """Account purge hook: drop everything addressed to the deleted user."""
        return await self.notifications.remove_all_for_user(user_id)


def build_cooldown_store(config: Settings, redis=None, clock: Callable[[], datetime] = utcnow) -> CooldownStore:
    if config.cooldown_backend == "redis" and redis is not None:
        return RedisCooldownStore(redis)
    if config.cooldown_backend == "redis":
        logger.warning("Redis cooldown backend requested but Redis is unavailable; using memory")
    return InMemoryCooldownStore(clock=clock)


def build_engine(
    session_factory: async_sessionmaker[AsyncSession],
    config: Settings | None = None,
    redis=None,
    resolver: DisplayNameResolver | None = None,
    clock: Callable[[], datetime] = utcnow,
    cooldown_store: CooldownStore | None = None,
) -> InteractionEngine:
    config = config or default_settings
    broker = FeedBroker()
    cooldown = CooldownGuard(
        store=cooldown_store or build_cooldown_store(config, redis, clock),
        window=timedelta(minutes=config.cooldown_minutes),
        clock=clock,
        event_types=config.cooldown_event_types,
    )
    composer = NotificationComposer(
        session_factory,
        cooldown,
        broker=broker,
        merge_window=timedelta(hours=config.merge_window_hours),
        clock=clock,
    )
    cleaner = NotificationCleaner(session_factory, broker=broker)
    outbox = OutboxWorker(
        session_factory,
        composer,
        MessageBuilder(resolver or MappingDisplayNameResolver()),
        batch_size=config.outbox_batch_size,
        max_attempts=config.outbox_max_attempts,
        clock=clock,
    )
    notifications = NotificationService(
        session_factory,
        cleaner,
        broker,
        feed_limit=config.feed_limit,
        on_intent_recorded=outbox.wake,
        # Only a real user directory can tell deleted senders apart
        resolver=resolver,
    )
    reactions = ReactionStore(
        session_factory,
        max_retries=config.toggle_max_retries,
        retry_backoff=config.toggle_retry_backoff_seconds,
        on_intent_recorded=outbox.wake,
    )
    return InteractionEngine(
        reactions=reactions,
        cooldown=cooldown,
        composer=composer,
        cleaner=cleaner,
        notifications=notifications,
        outbox=outbox,
        broker=broker,
    )
