"""Reaction membership repository."""

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from episodic.db.models.reaction import ReactionRow
from episodic.repositories.base import BaseRepository


class ReactionRepository(BaseRepository[ReactionRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ReactionRow)

    async def find(self, target_key: str, user_id: str, reaction_type: str) -> ReactionRow | None:
        stmt = select(ReactionRow).where(
            ReactionRow.target_key == target_key,
            ReactionRow.user_id == user_id,
            ReactionRow.reaction_type == reaction_type,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_for_target(self, target_key: str, reaction_type: str) -> int:
        stmt = select(func.count()).select_from(ReactionRow).where(
            ReactionRow.target_key == target_key,
            ReactionRow.reaction_type == reaction_type,
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def list_users(self, target_key: str, reaction_type: str) -> list[str]:
        stmt = (
            select(ReactionRow.user_id)
            .where(
                ReactionRow.target_key == target_key,
                ReactionRow.reaction_type == reaction_type,
            )
            .order_by(ReactionRow.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def delete_for_targets(self, target_keys: list[str]) -> int:
        if not target_keys:
            return 0
        result = await self.session.execute(
            delete(ReactionRow).where(ReactionRow.target_key.in_(target_keys))
        )
        return result.rowcount or 0
