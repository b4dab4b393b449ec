"""Remove persisted duplicates, keeping the newest row of each group."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from episodic.events.feed import FeedBroker
from episodic.repositories.notification_repo import NotificationRepository
from episodic.services.grouping import partition, recency

logger = logging.getLogger(__name__)


class NotificationCleaner:
    """Batch compactor for historical duplicates (e.g. pre-merge rows).

    Works on one snapshot read; rows inserted by concurrent writers after the
    read are left alone and picked up by the next run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broker: FeedBroker | None = None,
    ):
        self._session_factory = session_factory
        self._broker = broker

    @staticmethod
    def superseded_ids(notifications) -> list[str]:
        """Ids of every row that is not the newest member of its group."""
        doomed: list[str] = []
        for members in partition(notifications).values():
            if len(members) <= 1:
                continue
            members.sort(key=recency, reverse=True)
            doomed.extend(m.notification_id for m in members[1:])
        return doomed

    async def cleanup(self, recipient_id: str) -> int:
        try:
            async with self._session_factory() as session:
                repo = NotificationRepository(session)
                snapshot = await repo.list_for_recipient(recipient_id)
                doomed = self.superseded_ids(snapshot)
                if not doomed:
                    return 0
                removed = await repo.delete_by_ids("notification_id", doomed)
                await session.commit()
        except Exception:
            logger.exception("Notification cleanup failed (recipient=%s)", recipient_id)
            return 0

        if self._broker is not None:
            self._broker.publish(recipient_id, "cleaned")
        logger.info("Removed %d duplicate notifications (recipient=%s)", removed, recipient_id)
        return removed
