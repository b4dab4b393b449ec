"""Atomic reaction toggles with an exactly-maintained like counter.

``ReactionStore`` is the only code path that writes reaction rows or
``TargetRow.like_count``; both change in the same transaction or not at all.
"""

import asyncio
import logging
from collections.abc import Callable

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from episodic.db.models.intent import NotificationIntentRow
from episodic.db.models.reaction import ReactionRow
from episodic.db.models.target import TargetRow
from episodic.errors.exceptions import (
    InvalidTargetError,
    NotFoundError,
    TransientStoreConflictError,
    UnauthorizedError,
)
from episodic.models.enums import REACTION_NOTIFICATION_TYPES, IntentStatus, ReactionType
from episodic.models.reaction import ToggleResult
from episodic.models.target import TargetKey
from episodic.repositories.intent_repo import IntentRepository
from episodic.repositories.reaction_repo import ReactionRepository
from episodic.repositories.target_repo import TargetRepository
from episodic.services.id_generator import INTENT_PREFIX, REACTION_PREFIX, generate_id

logger = logging.getLogger(__name__)

# Raised when a concurrent transaction touched the same target or membership row
_CONFLICTS = (IntegrityError, StaleDataError, OperationalError)


def _coerce_key(target_key: TargetKey | str) -> TargetKey:
    return target_key if isinstance(target_key, TargetKey) else TargetKey.parse(target_key)


def _coerce_reaction_type(reaction_type: ReactionType | str) -> ReactionType:
    try:
        return ReactionType(reaction_type)
    except ValueError:
        raise InvalidTargetError(
            f"Unsupported reaction type '{reaction_type}'",
            {"allowed": [r.value for r in ReactionType]},
        ) from None


class ReactionStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int = 5,
        retry_backoff: float = 0.02,
        on_intent_recorded: Callable[[], None] | None = None,
    ):
        self._session_factory = session_factory
        self._max_retries = max(1, max_retries)
        self._retry_backoff = retry_backoff
        self._on_intent_recorded = on_intent_recorded

    async def toggle(
        self,
        target_key: TargetKey | str,
        user_id: str | None,
        reaction_type: ReactionType | str = ReactionType.LIKE,
        desired: bool | None = None,
    ) -> ToggleResult:
        """Flip (or force, when ``desired`` is given) the actor's reaction.

        The membership change, the counter change and the notification intent
        commit together. Conflicting concurrent writers roll the whole unit
        back and retry it; after ``max_retries`` attempts the caller gets
        ``TransientStoreConflictError`` and should revert optimistic UI state.
        """
        if not user_id:
            raise UnauthorizedError("A signed-in user is required to react")
        key = _coerce_key(target_key)
        kind = _coerce_reaction_type(reaction_type)

        for attempt in range(1, self._max_retries + 1):
            try:
                result, intent_recorded = await self._toggle_once(key, user_id, kind, desired)
            except _CONFLICTS as exc:
                logger.warning(
                    "Reaction toggle conflict on %s (attempt %d/%d): %s",
                    key, attempt, self._max_retries, exc.__class__.__name__,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._retry_backoff * attempt)
                continue

            logger.info(
                "Reaction %s on %s by %s (count=%d)",
                "added" if result.active else "removed", key, user_id, result.count,
            )
            if intent_recorded and self._on_intent_recorded is not None:
                self._on_intent_recorded()
            return result

        raise TransientStoreConflictError(
            f"Could not toggle reaction on '{key}' due to concurrent updates",
            attempts=self._max_retries,
        )

    async def _toggle_once(
        self,
        key: TargetKey,
        user_id: str,
        kind: ReactionType,
        desired: bool | None,
    ) -> tuple[ToggleResult, bool]:
        canonical = str(key)
        async with self._session_factory() as session:
            async with session.begin():
                target = await TargetRepository(session).get(canonical)
                if target is None:
                    raise NotFoundError("Target", canonical)

                existing = await ReactionRepository(session).find(canonical, user_id, kind.value)
                active = existing is None if desired is None else desired
                intent_recorded = False

                if active and existing is None:
                    session.add(
                        ReactionRow(
                            reaction_id=generate_id(REACTION_PREFIX),
                            target_key=canonical,
                            user_id=user_id,
                            reaction_type=kind.value,
                        )
                    )
                    target.like_count = (target.like_count or 0) + 1
                    if target.owner_id != user_id:
                        session.add(self._intent_for(target, key, user_id))
                        intent_recorded = True
                elif not active and existing is not None:
                    await session.delete(existing)
                    target.like_count = max(0, (target.like_count or 0) - 1)

                await session.flush()
                return ToggleResult(active=active, count=target.like_count), intent_recorded

    @staticmethod
    def _intent_for(target: TargetRow, key: TargetKey, actor_id: str) -> NotificationIntentRow:
        return NotificationIntentRow(
            intent_id=generate_id(INTENT_PREFIX),
            recipient_id=target.owner_id,
            sender_id=actor_id,
            event_type=REACTION_NOTIFICATION_TYPES[key.target_type].value,
            related_entity_key=str(key),
            message=None,
            context={"title": target.title, "thing": key.target_type.value},
            status=IntentStatus.PENDING.value,
            attempts=0,
        )

    # -- reads ---------------------------------------------------------------

    async def get_count(self, target_key: TargetKey | str) -> int:
        canonical = str(_coerce_key(target_key))
        async with self._session_factory() as session:
            target = await TargetRepository(session).get(canonical)
            if target is None:
                raise NotFoundError("Target", canonical)
            return target.like_count

    async def has_reacted(
        self,
        target_key: TargetKey | str,
        user_id: str,
        reaction_type: ReactionType | str = ReactionType.LIKE,
    ) -> bool:
        canonical = str(_coerce_key(target_key))
        kind = _coerce_reaction_type(reaction_type)
        async with self._session_factory() as session:
            return await ReactionRepository(session).find(canonical, user_id, kind.value) is not None

    async def list_reactors(
        self,
        target_key: TargetKey | str,
        reaction_type: ReactionType | str = ReactionType.LIKE,
    ) -> list[str]:
        canonical = str(_coerce_key(target_key))
        kind = _coerce_reaction_type(reaction_type)
        async with self._session_factory() as session:
            return await ReactionRepository(session).list_users(canonical, kind.value)

    # -- target registry -------------------------------------------------------

    async def register_target(
        self,
        target_key: TargetKey | str,
        owner_id: str,
        title: str | None = None,
    ) -> TargetRow:
        """Register (or re-own / re-title) a reactable entity. Idempotent."""
        key = _coerce_key(target_key)
        canonical = str(key)
        async with self._session_factory() as session:
            async with session.begin():
                repo = TargetRepository(session)
                row = await repo.get(canonical)
                if row is None:
                    row = await repo.create(
                        target_key=canonical,
                        target_type=key.target_type.value,
                        target_id=key.target_id,
                        parent_key=key.parent_key,
                        owner_id=owner_id,
                        title=title,
                        like_count=0,
                    )
                else:
                    await repo.update(row, owner_id=owner_id, title=title or row.title)
        return row

    async def remove_target(self, target_key: TargetKey | str) -> list[str]:
        """Delete a target, its sub-targets and child targets with their reactions.

        Pending intents about the removed targets are dropped as well. Returns
        the removed target keys.
        """
        canonical = str(_coerce_key(target_key))
        async with self._session_factory() as session:
            async with session.begin():
                targets = TargetRepository(session)
                family = await targets.list_family_keys(canonical)
                if not family:
                    return []
                await ReactionRepository(session).delete_for_targets(family)
                await IntentRepository(session).delete_for_entity_keys(family)
                await targets.delete_keys(family)
        logger.info("Removed %d reaction targets under %s", len(family), canonical)
        return family
