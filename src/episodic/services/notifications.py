"""Notification feed, read state, deletion and preference operations."""

import logging
import re
from collections.abc import AsyncIterator, Callable, Collection
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from episodic.db.models.intent import NotificationIntentRow
from episodic.errors.exceptions import NotFoundError, PermissionDeniedError, UnauthorizedError
from episodic.events.feed import FeedBroker
from episodic.models.enums import IntentStatus, NotificationType
from episodic.models.notification import GroupedFeed, Notification
from episodic.repositories.intent_repo import IntentRepository
from episodic.repositories.notification_repo import NotificationRepository
from episodic.repositories.preference_repo import PreferenceRepository
from episodic.services.cleaner import NotificationCleaner
from episodic.services.grouping import count_unread_groups, group_notifications
from episodic.services.id_generator import INTENT_PREFIX, generate_id
from episodic.services.messages import DELETED_USER, DisplayNameResolver

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cleaner: NotificationCleaner,
        broker: FeedBroker,
        feed_limit: int = 50,
        on_intent_recorded: Callable[[], None] | None = None,
        resolver: DisplayNameResolver | None = None,
    ):
        self._session_factory = session_factory
        self._cleaner = cleaner
        self._broker = broker
        self._feed_limit = feed_limit
        self._on_intent_recorded = on_intent_recorded
        self._resolver = resolver

    # -- side-effect hook ------------------------------------------------------

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
        """Record a notification intent for the outbox worker.

        When the writer passes its own ``session`` the intent is added to it
        and commits (or rolls back) with the writer's primary insert. Failures
        are logged and reported as ``None``; the writer's action is never
        failed by this hook.
        """
        sender_id = sender_id or None
        related_entity_key = related_entity_key or None
        if sender_id is not None and sender_id == recipient_id:
            return None
        try:
            intent = NotificationIntentRow(
                intent_id=generate_id(INTENT_PREFIX),
                recipient_id=recipient_id,
                sender_id=sender_id,
                event_type=NotificationType(event_type).value,
                related_entity_key=related_entity_key,
                message=message,
                context=context,
                status=IntentStatus.PENDING.value,
                attempts=0,
            )
            if session is not None:
                session.add(intent)
                return intent.intent_id
            async with self._session_factory() as own_session:
                own_session.add(intent)
                await own_session.commit()
        except Exception:
            logger.exception(
                "Could not record notification intent (recipient=%s, type=%s)",
                recipient_id, event_type,
            )
            return None

        if self._on_intent_recorded is not None:
            self._on_intent_recorded()
        return intent.intent_id

    # -- feed ------------------------------------------------------------------

    async def get_feed(self, recipient_id: str, limit: int | None = None) -> list[Notification]:
        """Raw feed window, newest first, with deleted senders anonymised."""
        async with self._session_factory() as session:
            rows = await NotificationRepository(session).list_for_recipient(
                recipient_id, limit=limit or self._feed_limit
            )
            feed = [Notification.model_validate(row) for row in rows]
        if self._resolver is None:
            return feed
        senders = {n.sender_id for n in feed if n.sender_id and not n.sender_deleted}
        existing = {sender for sender in senders if await self._sender_exists(sender)}
        if existing == senders:
            return feed
        return await self.sanitize_deleted_senders(feed, existing)

    async def _sender_exists(self, sender_id: str) -> bool:
        try:
            return await self._resolver.resolve_display_name(sender_id) is not None
        except Exception:
            # An unreachable directory must not anonymise live accounts
            logger.warning("Sender lookup failed for %s", sender_id, exc_info=True)
            return True

    async def grouped_feed(self, recipient_id: str, limit: int | None = None) -> GroupedFeed:
        raw = await self.get_feed(recipient_id, limit)
        return GroupedFeed(items=group_notifications(raw), unread_count=count_unread_groups(raw))

    async def subscribe(
        self, recipient_id: str, limit: int | None = None
    ) -> AsyncIterator[list[Notification]]:
        """Push subscription: the current window, then one batch per change.

        Closing the iterator releases only this subscription.
        """
        subscription = self._broker.open(recipient_id)
        try:
            yield await self.get_feed(recipient_id, limit)
            async for _ in subscription:
                yield await self.get_feed(recipient_id, limit)
        finally:
            subscription.close()

    # -- read state ------------------------------------------------------------

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        if not user_id:
            raise UnauthorizedError()
        async with self._session_factory() as session:
            repo = NotificationRepository(session)
            row = await repo.get(notification_id)
            if row is None:
                raise NotFoundError("Notification", notification_id)
            if row.recipient_id != user_id:
                raise PermissionDeniedError("Only the recipient can mark a notification as read")
            await repo.mark_read(notification_id)
            await session.commit()
        self._broker.publish(user_id, "read")

    async def mark_all_read(self, recipient_id: str) -> int:
        async with self._session_factory() as session:
            count = await NotificationRepository(session).mark_all_read(recipient_id)
            await session.commit()
        if count:
            self._broker.publish(recipient_id, "read")
        return count

    # -- deletion --------------------------------------------------------------

    async def delete_notification(self, notification_id: str, user_id: str) -> None:
        """Delete one notification; its recipient or its sender may do so."""
        if not user_id:
            raise UnauthorizedError()
        async with self._session_factory() as session:
            repo = NotificationRepository(session)
            row = await repo.get(notification_id)
            if row is None:
                raise NotFoundError("Notification", notification_id)
            if user_id not in (row.recipient_id, row.sender_id):
                raise PermissionDeniedError("Not allowed to delete this notification")
            recipient_id = row.recipient_id
            await repo.delete_by_ids("notification_id", [notification_id])
            await session.commit()
        self._broker.publish(recipient_id, "deleted")

    async def delete_of_type(
        self,
        recipient_id: str,
        event_type: NotificationType | str,
        sender_id: str | None = None,
    ) -> int:
        async with self._session_factory() as session:
            count = await NotificationRepository(session).delete_of_type(
                recipient_id, NotificationType(event_type).value, sender_id
            )
            await session.commit()
        if count:
            self._broker.publish(recipient_id, "deleted")
        return count

    async def delete_for_entity(self, entity_key: str) -> int:
        """Cascade hook: drop notifications about a deleted review/list and its children.

        Unfinished intents about the same keys go too, so the outbox cannot
        recreate a card after the cascade.
        """
        try:
            async with self._session_factory() as session:
                repo = NotificationRepository(session)
                recipients = await repo.list_recipients_for_entity(entity_key)
                count = await repo.delete_for_entity(entity_key)
                await IntentRepository(session).delete_open_for_entity(entity_key)
                await session.commit()
        except Exception:
            logger.exception("Cascade delete of notifications failed (entity=%s)", entity_key)
            return 0
        for recipient_id in recipients:
            self._broker.publish(recipient_id, "deleted")
        logger.info("Cascade removed %d notifications for %s", count, entity_key)
        return count

    async def remove_all_for_user(self, user_id: str) -> int:
        """Account deletion: remove every notification and queued intent addressed to the user."""
        try:
            async with self._session_factory() as session:
                count = await NotificationRepository(session).delete_for_user(user_id)
                await IntentRepository(session).delete_open_for_recipient(user_id)
                await session.commit()
        except Exception:
            logger.exception("Account purge of notifications failed (user=%s)", user_id)
            return 0
        self._broker.publish(user_id, "deleted")
        logger.info("Removed %d notifications addressed to %s", count, user_id)
        return count

    async def cleanup(self, recipient_id: str) -> int:
        return await self._cleaner.cleanup(recipient_id)

    # -- deleted senders -------------------------------------------------------

    async def sanitize_deleted_senders(
        self,
        notifications: list[Notification],
        existing_sender_ids: Collection[str],
    ) -> list[Notification]:
        """Anonymise rows whose sender account no longer exists.

        The returned list always reflects the sanitised view; persisting the
        change is best effort.
        """
        sanitized: list[Notification] = []
        to_persist: dict[str, str] = {}
        for notification in notifications:
            sender = notification.sender_id
            if sender and sender not in existing_sender_ids and not notification.sender_deleted:
                message = _anonymise(notification.message, notification.event_type)
                notification = notification.model_copy(
                    update={"message": message, "sender_deleted": True}
                )
                to_persist[notification.notification_id] = message
            sanitized.append(notification)

        if to_persist:
            try:
                async with self._session_factory() as session:
                    repo = NotificationRepository(session)
                    for notification_id, message in to_persist.items():
                        row = await repo.get(notification_id)
                        if row is not None:
                            await repo.update(row, message=message, sender_deleted=True)
                    await session.commit()
            except Exception:
                logger.exception("Could not persist sanitised notifications")
        return sanitized

    # -- preferences -----------------------------------------------------------

    async def get_preferences(self, user_id: str) -> dict[str, bool]:
        prefs = {t.value: True for t in NotificationType}
        async with self._session_factory() as session:
            for row in await PreferenceRepository(session).list_for_user(user_id):
                prefs[row.event_type] = row.enabled
        return prefs

    async def set_preference(
        self, user_id: str, event_type: NotificationType | str, enabled: bool
    ) -> dict[str, bool]:
        async with self._session_factory() as session:
            await PreferenceRepository(session).upsert(
                user_id, NotificationType(event_type).value, enabled
            )
            await session.commit()
        return await self.get_preferences(user_id)


# Every message template starts with the sender's display name
_ACTION_PREFIX = re.compile(
    r"^.+?(?=\s(?:started following|liked|commented on|reviewed)\b)", re.IGNORECASE
)


def _anonymise(message: str, event_type: NotificationType | str) -> str:
    if str(event_type) == NotificationType.NEW_EPISODE.value:
        return message
    anonymised, replaced = _ACTION_PREFIX.subn(DELETED_USER, message, count=1)
    return anonymised if replaced else message
