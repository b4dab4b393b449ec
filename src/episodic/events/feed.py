"""In-process change signals for live notification feeds.

A signal only means "this recipient's feed changed, re-read it". Subscribers
re-query the store on every signal, so a full queue can safely drop signals.
"""

import asyncio
import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class FeedSubscription:
    """One live subscription to a recipient's feed."""

    recipient_id: str
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=16))
    broker: "FeedBroker | None" = None
    closed: bool = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self.closed:
            raise StopAsyncIteration
        signal = await self.queue.get()
        if signal is None:
            raise StopAsyncIteration
        return signal

    def close(self) -> None:
        """Release this subscription only; other subscribers are untouched."""
        if self.closed:
            return
        self.closed = True
        if self.broker is not None:
            self.broker._remove(self)
        try:
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            pass


class FeedBroker:
    """Fan change signals out to the subscribers of each recipient."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, set[FeedSubscription]] = {}

    def open(self, recipient_id: str) -> FeedSubscription:
        subscription = FeedSubscription(recipient_id=recipient_id, broker=self)
        self._subscriptions.setdefault(recipient_id, set()).add(subscription)
        logger.debug("Feed subscriber opened (recipient=%s)", recipient_id)
        return subscription

    def publish(self, recipient_id: str, reason: str = "changed") -> int:
        """Signal every subscriber of ``recipient_id``; returns how many were reached."""
        delivered = 0
        for subscription in list(self._subscriptions.get(recipient_id, ())):
            try:
                subscription.queue.put_nowait(reason)
                delivered += 1
            except asyncio.QueueFull:
                # A re-read is already pending for this subscriber
                pass
        return delivered

    def subscriber_count(self, recipient_id: str | None = None) -> int:
        if recipient_id is not None:
            return len(self._subscriptions.get(recipient_id, ()))
        return sum(len(subs) for subs in self._subscriptions.values())

    def _remove(self, subscription: FeedSubscription) -> None:
        subs = self._subscriptions.get(subscription.recipient_id)
        if not subs:
            return
        subs.discard(subscription)
        if not subs:
            del self._subscriptions[subscription.recipient_id]
        logger.debug("Feed subscriber closed (recipient=%s)", subscription.recipient_id)
