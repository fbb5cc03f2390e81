"""
Engine Port Interfaces

Abstract contract for the WhatsApp automation engine the connector drives.
The engine itself (a whatsapp-web.js client steering a headless browser)
is opaque; the connector only sees this surface.

These ports follow the hexagonal architecture pattern:
- Session code depends only on EngineClient
- Adapters (in-memory, bridge) implement it
- The adapter is injected through an EngineFactory

Engine objects (chats, contacts, messages) are plain dicts in the JSON
shape whatsapp-web.js serializes them. Identifiers may be strings or
``{"_serialized": "..."}`` objects; use ``serialize_id`` to normalize.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class EngineEvent(str, Enum):
    """Events an engine client emits."""
    QR = "qr"                      # (token,)
    READY = "ready"                # ()
    CHANGE_STATE = "change_state"  # (state,)
    DISCONNECTED = "disconnected"  # (reason,)
    AUTH_FAILURE = "auth_failure"  # (message,)
    MESSAGE = "message"            # (message,)
    MESSAGE_ACK = "message_ack"    # (message, ack)


EventHandler = Callable[..., Awaitable[None] | None]


@dataclass
class MediaPayload:
    """Base64-encoded media as the engine sends and receives it."""
    mimetype: str
    data: str
    filename: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mimetype": self.mimetype,
            "data": self.data,
            "filename": self.filename,
        }


def serialize_id(value: Any) -> Any:
    """Return the serialized form of an engine id (``id._serialized`` or the id itself)."""
    if isinstance(value, dict):
        return value.get("_serialized", value)
    return value


class EngineClient(ABC):
    """
    Abstract interface for a tenant-scoped engine client.

    Handler registration and dispatch are shared by all adapters;
    adapters call ``emit`` when the underlying engine produces an event.
    """

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        self._handlers: dict[EngineEvent, list[EventHandler]] = {}

    def on(self, event: EngineEvent | str, handler: EventHandler) -> None:
        """Register a handler for an engine event."""
        self._handlers.setdefault(EngineEvent(event), []).append(handler)

    async def emit(self, event: EngineEvent | str, *args: Any) -> None:
        """
        Invoke every handler registered for ``event``.

        A failing handler is logged and does not prevent the others
        from running.
        """
        for handler in list(self._handlers.get(EngineEvent(event), [])):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Engine handler for {event} failed (tenant {self.tenant_id}): {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @abstractmethod
    async def initialize(self) -> None:
        """
        Start the engine session.

        Resolves once the engine is running (not necessarily paired).
        Raises EngineError if the engine cannot be started.
        """
        ...

    @abstractmethod
    async def destroy(self) -> None:
        """Tear down the engine session."""
        ...

    # =========================================================================
    # Queries
    # =========================================================================

    @abstractmethod
    async def get_chats(self) -> list[dict[str, Any]]:
        ...

    @abstractmethod
    async def get_chat_by_id(self, chat_id: str) -> dict[str, Any]:
        """Raises EngineNotFoundError for unknown chats."""
        ...

    @abstractmethod
    async def get_contact_by_id(self, contact_id: str) -> dict[str, Any]:
        """Raises EngineNotFoundError for unknown contacts."""
        ...

    @abstractmethod
    async def get_message_by_id(self, message_id: str) -> dict[str, Any] | None:
        ...

    @abstractmethod
    async def fetch_messages(self, chat_id: str, limit: int) -> list[dict[str, Any]]:
        """Return the last ``limit`` messages of a chat, oldest first."""
        ...

    @abstractmethod
    async def get_profile_pic_url(self, chat_id: str) -> str | None:
        ...

    # =========================================================================
    # Actions
    # =========================================================================

    @abstractmethod
    async def send_seen(self, chat_id: str) -> None:
        ...

    @abstractmethod
    async def send_message(
        self,
        to: str,
        content: str | MediaPayload,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send text or media; returns the created message."""
        ...

    @abstractmethod
    async def download_media(self, message_id: str) -> MediaPayload | None:
        ...


EngineFactory = Callable[[str], EngineClient]
