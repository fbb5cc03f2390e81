"""
Server-Sent Events framing

Turns a tenant stream subscriber into the ``text/event-stream`` body of a
streaming response. Each frame is a single ``data:`` line holding the
JSON payload; idle periods are filled with comment lines so proxies
keep the connection open.
"""

import json
import logging
from typing import Any, AsyncIterator

from fastapi import Request

from wa_connector.events.stream import Subscriber
from wa_connector.session.session import TenantSession

logger = logging.getLogger(__name__)

KEEPALIVE_FRAME = ": keepalive\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


async def event_stream(
    request: Request,
    session: TenantSession,
    subscriber: Subscriber,
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    """
    Yield SSE frames until the client goes away or the session is stopped.

    The subscriber is removed from the session when the generator
    finishes, whichever side closed the stream.
    """
    try:
        while True:
            if await request.is_disconnected():
                break

            event = await subscriber.next(timeout=keepalive_seconds)
            if event is None:
                if subscriber.closed:
                    break
                yield KEEPALIVE_FRAME
                continue

            yield format_sse(event.to_payload())
    finally:
        session.unsubscribe(subscriber.subscriber_id)
        logger.debug(
            f"Stream {subscriber.subscriber_id} closed for tenant {session.tenant_id}"
        )
