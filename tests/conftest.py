"""Shared fixtures: an in-memory engine factory and a registry built on it."""

from typing import Any

import pytest
import pytest_asyncio

from wa_connector.engine import InMemoryEngineFactory
from wa_connector.events.stream import Subscriber
from wa_connector.session import SessionRegistry


def drain(subscriber: Subscriber) -> list[dict[str, Any]]:
    """Return the wire payloads of every frame currently queued on a subscriber."""
    frames = []
    while True:
        event = subscriber.poll()
        if event is None:
            return frames
        frames.append(event.to_payload())


@pytest.fixture
def factory() -> InMemoryEngineFactory:
    return InMemoryEngineFactory()


@pytest_asyncio.fixture
async def registry(factory):
    registry = SessionRegistry(factory)
    yield registry
    await registry.shutdown()
