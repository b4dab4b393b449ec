"""Notification preference repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from episodic.db.models.preference import NotificationPreferenceRow
from episodic.repositories.base import BaseRepository


class PreferenceRepository(BaseRepository[NotificationPreferenceRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, NotificationPreferenceRow)

    async def get(self, user_id: str, event_type: str) -> NotificationPreferenceRow | None:
        stmt = select(NotificationPreferenceRow).where(
            NotificationPreferenceRow.user_id == user_id,
            NotificationPreferenceRow.event_type == event_type,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def is_enabled(self, user_id: str, event_type: str) -> bool:
        row = await self.get(user_id, event_type)
        return True if row is None else row.enabled

    async def upsert(self, user_id: str, event_type: str, enabled: bool) -> NotificationPreferenceRow:
        row = await self.get(user_id, event_type)
        if row is None:
            return await self.create(user_id=user_id, event_type=event_type, enabled=enabled)
        return await self.update(row, enabled=enabled)

    async def list_for_user(self, user_id: str) -> list[NotificationPreferenceRow]:
        return await self.list_by_field("user_id", user_id)
