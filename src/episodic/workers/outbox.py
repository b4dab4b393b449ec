"""Background drain of notification intents recorded by primary writes."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from episodic.db.base import utcnow
from episodic.db.models.intent import NotificationIntentRow
from episodic.models.enums import IntentStatus
from episodic.repositories.intent_repo import IntentRepository
from episodic.repositories.notification_repo import NotificationRepository
from episodic.services.composer import NotificationComposer
from episodic.services.messages import MessageBuilder

logger = logging.getLogger(__name__)


class OutboxWorker:
    """Turns pending intents into notifications, off the caller's critical path.

    Each intent runs through: message rendering (when the writer did not
    supply one), then the composer, which applies self-suppression,
    preferences, the cooldown and the merge window. The composer swallows its
    own errors, so an intent is retried only when rendering or bookkeeping
    fails; after ``max_attempts`` it is marked failed.

    Intents are claimed (pending to processing) before they are processed,
    so concurrent workers never compose the same intent twice. A claim left
    behind by a crashed worker is released after ``claim_timeout``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        composer: NotificationComposer,
        messages: MessageBuilder,
        batch_size: int = 100,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._composer = composer
        self._messages = messages
        self._batch_size = batch_size
        self._max_attempts = max_attempts
        self._clock = clock
        self._wakeup = asyncio.Event()

    def wake(self) -> None:
        """Ask the background loop to drain now instead of at the next poll."""
        self._wakeup.set()

    async def wait_for_work(self, timeout: float) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    async def drain(self, limit: int | None = None) -> int:
        """Claim and process pending intents in creation order; returns how many were handled.

        An intent that fails is left for a later drain, so one call makes at
        most one attempt per intent.
        """
        processed = 0
        attempted: set[str] = set()
        remaining = limit
        while remaining is None or remaining > 0:
            batch_size = self._batch_size if remaining is None else min(self._batch_size, remaining)
            async with self._session_factory() as session:
                batch = await IntentRepository(session).claim_pending(batch_size, exclude=attempted)
                await session.commit()
            if not batch:
                break
            for intent in batch:
                attempted.add(intent.intent_id)
                await self._process(intent)
                processed += 1
            if remaining is not None:
                remaining -= len(batch)
        return processed

    async def _process(self, intent: NotificationIntentRow) -> None:
        if not await self._still_claimed(intent.intent_id):
            logger.debug("Intent %s withdrawn before composition", intent.intent_id)
            return
        try:
            message = intent.message or await self._messages.build(
                intent.event_type, intent.sender_id, intent.context
            )
            notification_id = await self._composer.compose_or_merge(
                recipient_id=intent.recipient_id,
                event_type=intent.event_type,
                sender_id=intent.sender_id,
                related_entity_key=intent.related_entity_key,
                message=message,
            )
        except Exception as exc:
            await self._record_failure(intent.intent_id, exc)
            return

        async with self._session_factory() as session:
            repo = IntentRepository(session)
            row = await repo.get(intent.intent_id)
            if row is not None:
                await repo.update(row, status=IntentStatus.DONE.value, attempts=row.attempts + 1)
            elif notification_id is not None:
                # A cascade removed the intent while it was being composed
                await NotificationRepository(session).delete_by_ids("notification_id", [notification_id])
                logger.info(
                    "Dropped notification %s composed for withdrawn intent %s",
                    notification_id, intent.intent_id,
                )
            await session.commit()
        logger.debug("Intent %s handled (notification=%s)", intent.intent_id, notification_id)

    async def _still_claimed(self, intent_id: str) -> bool:
        async with self._session_factory() as session:
            row = await IntentRepository(session).get(intent_id)
            return row is not None and row.status == IntentStatus.PROCESSING.value

    async def _record_failure(self, intent_id: str, exc: Exception) -> None:
        async with self._session_factory() as session:
            repo = IntentRepository(session)
            row = await repo.get(intent_id)
            if row is None:
                return
            attempts = row.attempts + 1
            status = IntentStatus.FAILED if attempts >= self._max_attempts else IntentStatus.PENDING
            await repo.update(row, attempts=attempts, status=status.value, last_error=str(exc)[:2000])
            await session.commit()
        logger.error(
            "Intent %s failed (attempt %d/%d): %s",
            intent_id, attempts, self._max_attempts, exc, exc_info=exc,
        )

    async def purge_finished(self, older_than: timedelta) -> int:
        async with self._session_factory() as session:
            count = await IntentRepository(session).delete_finished_before(self._clock() - older_than)
            await session.commit()
        if count:
            logger.info("Purged %d finished notification intents", count)
        return count

    async def release_stale_claims(self, claim_timeout: timedelta) -> int:
        async with self._session_factory() as session:
            count = await IntentRepository(session).release_stale(utcnow() - claim_timeout)
            await session.commit()
        if count:
            logger.warning("Released %d notification intents claimed by a stalled worker", count)
        return count


async def run_outbox_worker(
    worker: OutboxWorker,
    poll_interval: float,
    retention: timedelta,
    claim_timeout: timedelta = timedelta(minutes=10),
) -> None:
    """Lifespan task: drain on wake-up or every ``poll_interval`` seconds."""
    logger.info("Outbox worker started (poll_interval=%.1fs)", poll_interval)
    last_purge = utcnow()

    while True:
        try:
            await worker.wait_for_work(poll_interval)
            count = await worker.drain()
            if count:
                logger.info("Outbox worker processed %d intents", count)
            if utcnow() - last_purge >= timedelta(hours=1):
                await worker.purge_finished(retention)
                await worker.release_stale_claims(claim_timeout)
                last_purge = utcnow()
        except asyncio.CancelledError:
            logger.info("Outbox worker stopped")
            break
        except Exception as exc:
            logger.exception("Outbox worker error: %s", exc)
