"""Notification repository."""

from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from episodic.db.models.notification import NotificationRow
from episodic.models.target import in_family
from episodic.repositories.base import BaseRepository, escape_like


class NotificationRepository(BaseRepository[NotificationRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, NotificationRow)

    async def get(self, notification_id: str) -> NotificationRow | None:
        return await self.get_by_id("notification_id", notification_id)

    async def list_for_recipient(
        self, recipient_id: str, limit: int | None = None
    ) -> list[NotificationRow]:
        stmt = (
            select(NotificationRow)
            .where(NotificationRow.recipient_id == recipient_id)
            .order_by(NotificationRow.created_at.desc(), NotificationRow.notification_id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_latest_in_group(
        self,
        recipient_id: str,
        event_type: str,
        sender_id: str | None,
        related_entity_key: str | None,
        since: datetime,
    ) -> NotificationRow | None:
        """Most recent row of the event's group created at or after ``since``.

        Entity events group on the entity key; identity events (no entity)
        group on the sender.
        """
        conditions = [
            NotificationRow.recipient_id == recipient_id,
            NotificationRow.event_type == event_type,
            NotificationRow.created_at >= since,
            NotificationRow.sender_deleted.is_(False),
        ]
        if related_entity_key is not None:
            conditions.append(NotificationRow.related_entity_key == related_entity_key)
        else:
            conditions.append(NotificationRow.related_entity_key.is_(None))
            if sender_id is not None:
                conditions.append(NotificationRow.sender_id == sender_id)
            else:
                conditions.append(NotificationRow.sender_id.is_(None))
        stmt = (
            select(NotificationRow)
            .where(*conditions)
            .order_by(NotificationRow.created_at.desc(), NotificationRow.notification_id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_read(self, notification_id: str) -> bool:
        stmt = (
            update(NotificationRow)
            .where(NotificationRow.notification_id == notification_id)
            .values(read=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_all_read(self, recipient_id: str) -> int:
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.recipient_id == recipient_id,
                NotificationRow.read.is_(False),
            )
            .values(read=True)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_of_type(
        self, recipient_id: str, event_type: str, sender_id: str | None = None
    ) -> int:
        conditions = [
            NotificationRow.recipient_id == recipient_id,
            NotificationRow.event_type == event_type,
        ]
        if sender_id is not None:
            conditions.append(NotificationRow.sender_id == sender_id)
        result = await self.session.execute(delete(NotificationRow).where(*conditions))
        return result.rowcount or 0

    async def list_recipients_for_entity(self, entity_key: str) -> list[str]:
        return sorted({recipient for _, recipient in await self._family_rows(entity_key)})

    async def delete_for_entity(self, entity_key: str) -> int:
        ids = [notification_id for notification_id, _ in await self._family_rows(entity_key)]
        return await self.delete_by_ids("notification_id", ids)

    async def delete_for_user(self, user_id: str) -> int:
        result = await self.session.execute(
            delete(NotificationRow).where(NotificationRow.recipient_id == user_id)
        )
        return result.rowcount or 0

    async def _family_rows(self, entity_key: str) -> list[tuple[str, str]]:
        """(id, recipient) of rows about the entity, its sub-keys and its children."""
        stmt = select(
            NotificationRow.notification_id,
            NotificationRow.recipient_id,
            NotificationRow.related_entity_key,
        ).where(NotificationRow.related_entity_key.like(f"%{escape_like(entity_key)}%", escape="\\"))
        result = await self.session.execute(stmt)
        return [
            (notification_id, recipient)
            for notification_id, recipient, key in result.all()
            if in_family(key, entity_key)
        ]
