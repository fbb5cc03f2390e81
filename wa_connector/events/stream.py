"""
Subscriber Fan-out

Per-tenant pub/sub for pushing stream frames to open SSE connections.

Design:
- SubscriberSet: every open stream of one tenant
- Subscriber: one open stream, with its own bounded frame queue
- FrameFilter: optional restriction of a stream to some frame types

Fan-out is push-only and best-effort. A subscriber whose queue is full
loses that frame; nobody else notices.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Iterator
from uuid import uuid4

from pydantic import BaseModel

from wa_connector.events.models import StreamEvent, StreamEventType

logger = logging.getLogger(__name__)

# Queued after the last frame of a closed subscriber
_END = None


class FrameFilter(BaseModel):
    """Frame types a subscriber wants; ``types=None`` accepts everything."""
    types: frozenset[StreamEventType] | None = None

    def accepts(self, event: StreamEvent) -> bool:
        return self.types is None or event.event_type in self.types


def parse_frame_filter(raw: str | None) -> FrameFilter | None:
    """
    Parse the ``types`` query parameter (``"status,qr"``).

    Returns None when nothing usable was given.

    Raises:
        ValueError: If a type name is unknown
    """
    names = [part.strip() for part in (raw or "").split(",")]
    names = [name for name in names if name]
    if not names:
        return None
    return FrameFilter(types=frozenset(StreamEventType(name) for name in names))


class Subscriber:
    """
    One open stream of a tenant.

    Frames are buffered in a bounded queue until the stream writer reads
    them. Closing queues an end marker after whatever is still buffered.
    """

    def __init__(
        self,
        tenant_id: str,
        filter: FrameFilter | None = None,
        max_pending: int = 100,
    ):
        self.tenant_id = tenant_id
        self.subscriber_id = f"sub_{uuid4().hex[:12]}"
        self.filter = filter or FrameFilter()
        self.opened_at = datetime.utcnow()

        self._pending: asyncio.Queue[StreamEvent | None] = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self.sent = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def stats(self) -> dict[str, Any]:
        return {
            "id": self.subscriber_id,
            "openedAt": self.opened_at.isoformat(),
            "sent": self.sent,
            "dropped": self.dropped,
            "pending": self._pending.qsize(),
            "closed": self._closed,
        }

    def offer(self, event: StreamEvent) -> bool:
        """
        Queue a frame without waiting.

        Returns:
            False when the subscriber is closed, filters the frame out,
            or has no room left (the frame is dropped)
        """
        if self._closed or not self.filter.accepts(event):
            return False

        try:
            self._pending.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Tenant {self.tenant_id}: {event.event_type.value} frame dropped "
                f"for slow subscriber {self.subscriber_id}"
            )
            return False

        self.sent += 1
        return True

    async def next(self, timeout: float | None = None) -> StreamEvent | None:
        """
        Wait for the next frame.

        Returns None when the subscriber has been closed and drained, or
        when ``timeout`` seconds pass without a frame.
        """
        if self._closed and self._pending.empty():
            return None
        try:
            return await asyncio.wait_for(self._pending.get(), timeout)
        except asyncio.TimeoutError:
            return None

    def poll(self) -> StreamEvent | None:
        """Return a buffered frame, or None if there is none right now."""
        if self._pending.empty():
            return None
        return self._pending.get_nowait()

    async def __aiter__(self) -> AsyncIterator[StreamEvent]:
        while True:
            event = await self.next()
            if event is _END:
                return
            yield event

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._pending.full():
            # Oldest frame gives way to the end marker
            self._pending.get_nowait()
        self._pending.put_nowait(_END)


class SubscriberSet:
    """
    Open streams of one tenant.

    Only the tenant's fan-out worker broadcasts; HTTP handlers add and
    remove subscribers.
    """

    def __init__(self, tenant_id: str, max_pending: int = 100):
        """
        Args:
            tenant_id: Tenant whose streams these are
            max_pending: Queue size given to each new subscriber
        """
        self.tenant_id = tenant_id
        self._max_pending = max_pending
        self._subscribers: dict[str, Subscriber] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(list(self._subscribers.values()))

    def add(self, filter: FrameFilter | None = None) -> Subscriber:
        subscriber = Subscriber(self.tenant_id, filter=filter, max_pending=self._max_pending)
        self._subscribers[subscriber.subscriber_id] = subscriber
        logger.debug(f"Tenant {self.tenant_id}: subscriber {subscriber.subscriber_id} opened")
        return subscriber

    def remove(self, subscriber_id: str) -> bool:
        """Close and forget a subscriber; False if it was already gone."""
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return False
        subscriber.close()
        logger.debug(f"Tenant {self.tenant_id}: subscriber {subscriber_id} closed")
        return True

    def broadcast(self, event: StreamEvent) -> int:
        """
        Offer a frame to every subscriber.

        Returns:
            How many subscribers accepted it
        """
        accepted = 0
        for subscriber in self:
            try:
                accepted += subscriber.offer(event)
            except Exception as e:
                logger.error(f"Tenant {self.tenant_id}: offer to {subscriber.subscriber_id} failed: {e}")
        return accepted

    def close_all(self) -> None:
        subscribers, self._subscribers = self._subscribers, {}
        for subscriber in subscribers.values():
            subscriber.close()
