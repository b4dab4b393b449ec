"""Notification intent (outbox) repository."""

from collections.abc import Collection
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from episodic.db.base import utcnow
from episodic.db.models.intent import NotificationIntentRow
from episodic.models.enums import IntentStatus
from episodic.models.target import in_family
from episodic.repositories.base import BaseRepository, escape_like

# Intents not yet finished; a cascade or account purge drops these
_OPEN = (IntentStatus.PENDING.value, IntentStatus.PROCESSING.value)


class IntentRepository(BaseRepository[NotificationIntentRow]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, NotificationIntentRow)

    async def get(self, intent_id: str) -> NotificationIntentRow | None:
        return await self.get_by_id("intent_id", intent_id)

    async def claim_pending(
        self, limit: int, exclude: Collection[str] = ()
    ) -> list[NotificationIntentRow]:
        """Move up to ``limit`` pending intents to ``processing`` for this caller.

        Candidates are locked with ``SKIP LOCKED`` where the dialect supports
        it; the conditional UPDATE makes the claim exclusive everywhere else,
        so an intent is handed to one worker only. The caller commits.
        """
        stmt = (
            select(NotificationIntentRow.intent_id)
            .where(NotificationIntentRow.status == IntentStatus.PENDING.value)
            .order_by(NotificationIntentRow.created_at, NotificationIntentRow.intent_id)
            .limit(limit + len(exclude))
            .with_for_update(skip_locked=True)
        )
        candidates = [i for i in (await self.session.execute(stmt)).scalars() if i not in exclude]

        claimed: list[str] = []
        for intent_id in candidates[:limit]:
            result = await self.session.execute(
                update(NotificationIntentRow)
                .where(
                    NotificationIntentRow.intent_id == intent_id,
                    NotificationIntentRow.status == IntentStatus.PENDING.value,
                )
                .values(status=IntentStatus.PROCESSING.value, updated_at=utcnow())
            )
            if result.rowcount:
                claimed.append(intent_id)
        if not claimed:
            return []

        rows = await self.session.execute(
            select(NotificationIntentRow)
            .where(NotificationIntentRow.intent_id.in_(claimed))
            .order_by(NotificationIntentRow.created_at, NotificationIntentRow.intent_id)
            .execution_options(populate_existing=True)
        )
        return list(rows.scalars().all())

    async def release_stale(self, cutoff: datetime) -> int:
        """Return intents claimed before ``cutoff`` (crashed worker) to the queue."""
        result = await self.session.execute(
            update(NotificationIntentRow)
            .where(
                NotificationIntentRow.status == IntentStatus.PROCESSING.value,
                NotificationIntentRow.updated_at < cutoff,
            )
            .values(status=IntentStatus.PENDING.value, updated_at=utcnow())
        )
        return result.rowcount or 0

    async def delete_finished_before(self, cutoff: datetime) -> int:
        stmt = delete(NotificationIntentRow).where(
            NotificationIntentRow.status.in_([IntentStatus.DONE.value, IntentStatus.FAILED.value]),
            NotificationIntentRow.updated_at < cutoff,
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_for_entity_keys(self, entity_keys: list[str]) -> int:
        if not entity_keys:
            return 0
        stmt = delete(NotificationIntentRow).where(
            NotificationIntentRow.status.in_(_OPEN),
            NotificationIntentRow.related_entity_key.in_(entity_keys),
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_open_for_recipient(self, recipient_id: str) -> int:
        stmt = delete(NotificationIntentRow).where(
            NotificationIntentRow.status.in_(_OPEN),
            NotificationIntentRow.recipient_id == recipient_id,
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_open_for_entity(self, entity_key: str) -> int:
        """Drop unfinished intents about the entity, its sub-keys and its children."""
        stmt = select(NotificationIntentRow.intent_id, NotificationIntentRow.related_entity_key).where(
            NotificationIntentRow.status.in_(_OPEN),
            NotificationIntentRow.related_entity_key.like(f"%{escape_like(entity_key)}%", escape="\\"),
        )
        result = await self.session.execute(stmt)
        ids = [intent_id for intent_id, key in result.all() if in_family(key, entity_key)]
        return await self.delete_by_ids("intent_id", ids)
