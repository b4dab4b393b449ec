"""Create a notification, or refresh a recent one of the same group."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from episodic.db.base import utcnow
from episodic.events.feed import FeedBroker
from episodic.models.enums import NotificationType
from episodic.repositories.notification_repo import NotificationRepository
from episodic.repositories.preference_repo import PreferenceRepository
from episodic.services.cooldown import CooldownGuard
from episodic.services.id_generator import NOTIFICATION_PREFIX, generate_id

logger = logging.getLogger(__name__)


class NotificationComposer:
    """Turns one qualifying event into at most one visible notification card.

    Rules, in order: never notify users about their own actions; respect the
    recipient's per-type opt-out; skip attempts the cooldown suppresses;
    refresh the newest row of the event's group created within the merge
    window, otherwise insert a new row.

    Composition runs after the primary action has committed. Errors are
    logged and reported as ``None``; they never reach the caller.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cooldown: CooldownGuard,
        broker: FeedBroker | None = None,
        merge_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._cooldown = cooldown
        self._broker = broker
        self._merge_window = merge_window
        self._clock = clock

    async def compose_or_merge(
        self,
        recipient_id: str,
        event_type: NotificationType | str,
        sender_id: str | None = None,
        related_entity_key: str | None = None,
        message: str = "",
    ) -> str | None:
        try:
            # Empty keys are treated as absent
            return await self._compose(
                recipient_id,
                NotificationType(event_type),
                sender_id or None,
                related_entity_key or None,
                message,
            )
        except Exception:
            logger.exception(
                "Notification composition failed (recipient=%s, type=%s, entity=%s)",
                recipient_id, event_type, related_entity_key,
            )
            return None

    async def _compose(
        self,
        recipient_id: str,
        event_type: NotificationType,
        sender_id: str | None,
        related_entity_key: str | None,
        message: str,
    ) -> str | None:
        if sender_id is not None and sender_id == recipient_id:
            logger.debug("Skipping self-notification (user=%s, type=%s)", recipient_id, event_type)
            return None

        async with self._session_factory() as session:
            if not await PreferenceRepository(session).is_enabled(recipient_id, event_type.value):
                logger.debug("Recipient %s opted out of %s", recipient_id, event_type)
                return None

            if await self._cooldown.should_suppress(
                recipient_id, related_entity_key, sender_id, event_type
            ):
                logger.debug(
                    "Cooldown suppressed %s for %s (entity=%s, sender=%s)",
                    event_type, recipient_id, related_entity_key, sender_id,
                )
                return None

            now = self._clock()
            repo = NotificationRepository(session)
            existing = await repo.find_latest_in_group(
                recipient_id,
                event_type.value,
                sender_id,
                related_entity_key,
                since=now - self._merge_window,
            )
            if existing is not None:
                await repo.update(
                    existing,
                    message=message,
                    sender_id=sender_id,
                    read=False,
                    created_at=now,
                )
                notification_id = existing.notification_id
                action = "merged"
            else:
                row = await repo.create(
                    notification_id=generate_id(NOTIFICATION_PREFIX),
                    recipient_id=recipient_id,
                    event_type=event_type.value,
                    sender_id=sender_id,
                    related_entity_key=related_entity_key,
                    message=message,
                    read=False,
                    created_at=now,
                )
                notification_id = row.notification_id
                action = "created"
            await session.commit()

        await self._cooldown.mark_attempted(recipient_id, related_entity_key, sender_id, event_type)
        if self._broker is not None:
            self._broker.publish(recipient_id, action)
        logger.info(
            "Notification %s %s (recipient=%s, type=%s)",
            notification_id, action, recipient_id, event_type,
        )
        return notification_id
