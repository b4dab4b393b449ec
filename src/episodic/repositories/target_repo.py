"""Reaction target repository."""

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from episodic.db.models.target import TargetRow
from episodic.repositories.base import BaseRepository, escape_like


class TargetRepository(BaseRepository[TargetRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, TargetRow)

    async def get(self, target_key: str) -> TargetRow | None:
        return await self.get_by_id("target_key", target_key)

    async def list_family_keys(self, target_key: str) -> list[str]:
        """Keys of the target, its sub-targets (seasons) and targets parented by either."""
        stmt = select(TargetRow.target_key).where(
            or_(
                TargetRow.target_key == target_key,
                TargetRow.target_key.like(f"{escape_like(target_key)}:%", escape="\\"),
                TargetRow.parent_key == target_key,
                TargetRow.parent_key.like(f"{escape_like(target_key)}:%", escape="\\"),
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_keys(self, target_keys: list[str]) -> int:
        if not target_keys:
            return 0
        result = await self.session.execute(
            delete(TargetRow).where(TargetRow.target_key.in_(target_keys))
        )
        return result.rowcount or 0
