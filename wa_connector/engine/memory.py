"""
In-Memory Engine Implementation

Scriptable engine that keeps chats, contacts and messages in dicts.
Suitable for development, testing, and running the API without a bridge.

Features:
- Seed data (chats, contacts, messages, media, profile pictures)
- Emit any engine event on demand (``emit``)
- Scripted failures for initialize and contact lookups
- Call counters for asserting engine traffic
"""

import logging
import time
from collections import defaultdict
from typing import Any
from uuid import uuid4

from wa_connector.engine.ports import (
    EngineClient,
    EngineEvent,
    MediaPayload,
    serialize_id,
)
from wa_connector.errors import EngineError, EngineNotFoundError

logger = logging.getLogger(__name__)


class InMemoryEngineClient(EngineClient):
    """
    In-memory engine client.

    ``initialize`` succeeds unless an error was queued with
    ``fail_next_initialize``; it can optionally emit a pairing token
    or a ready event, mimicking a fresh or a restored engine session.
    """

    def __init__(
        self,
        tenant_id: str,
        qr_on_initialize: str | None = None,
        ready_on_initialize: bool = False,
    ):
        super().__init__(tenant_id)
        self.qr_on_initialize = qr_on_initialize
        self.ready_on_initialize = ready_on_initialize

        self.chats: dict[str, dict[str, Any]] = {}
        self.contacts: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, dict[str, Any]] = {}
        self.chat_messages: dict[str, list[str]] = defaultdict(list)
        self.media: dict[str, MediaPayload] = {}
        self.profile_pics: dict[str, str] = {}

        # Scripted failures
        self._initialize_errors: list[Exception] = []
        self.failing_contacts: set[str] = set()

        # Recorded traffic
        self.initialize_calls = 0
        self.destroy_calls = 0
        self.contact_lookups: dict[str, int] = defaultdict(int)
        self.sent: list[dict[str, Any]] = []
        self.seen: list[str] = []
        self.initialized = False
        self.destroyed = False

    # =========================================================================
    # Scripting helpers
    # =========================================================================

    def fail_next_initialize(self, error: Exception | None = None) -> None:
        """Make the next ``initialize`` call raise."""
        self._initialize_errors.append(error or EngineError("initialize failed"))

    def add_chat(self, chat: dict[str, Any]) -> dict[str, Any]:
        self.chats[serialize_id(chat["id"])] = chat
        return chat

    def add_contact(self, contact: dict[str, Any]) -> dict[str, Any]:
        self.contacts[serialize_id(contact["id"])] = contact
        return contact

    def add_message(self, message: dict[str, Any], chat_id: str | None = None) -> dict[str, Any]:
        message_id = serialize_id(message["id"])
        self.messages[message_id] = message
        if chat_id is None:
            chat_id = message.get("to") if message.get("fromMe") else message.get("from")
        if chat_id:
            self.chat_messages[chat_id].append(message_id)
        return message

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self._initialize_errors:
            raise self._initialize_errors.pop(0)

        self.initialized = True
        self.destroyed = False
        logger.debug(f"In-memory engine initialized for tenant {self.tenant_id}")

        if self.qr_on_initialize:
            await self.emit(EngineEvent.QR, self.qr_on_initialize)
        if self.ready_on_initialize:
            await self.emit(EngineEvent.READY)

    async def destroy(self) -> None:
        self.destroy_calls += 1
        self.initialized = False
        self.destroyed = True

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_chats(self) -> list[dict[str, Any]]:
        return list(self.chats.values())

    async def get_chat_by_id(self, chat_id: str) -> dict[str, Any]:
        chat = self.chats.get(chat_id)
        if chat is None:
            raise EngineNotFoundError(f"Chat {chat_id} not found")
        return chat

    async def get_contact_by_id(self, contact_id: str) -> dict[str, Any]:
        self.contact_lookups[contact_id] += 1
        if contact_id in self.failing_contacts:
            raise EngineError(f"Contact lookup failed for {contact_id}")
        contact = self.contacts.get(contact_id)
        if contact is None:
            raise EngineNotFoundError(f"Contact {contact_id} not found")
        return contact

    async def get_message_by_id(self, message_id: str) -> dict[str, Any] | None:
        return self.messages.get(message_id)

    async def fetch_messages(self, chat_id: str, limit: int) -> list[dict[str, Any]]:
        await self.get_chat_by_id(chat_id)
        ids = self.chat_messages.get(chat_id, [])[-limit:]
        return [self.messages[message_id] for message_id in ids]

    async def get_profile_pic_url(self, chat_id: str) -> str | None:
        await self.get_chat_by_id(chat_id)
        return self.profile_pics.get(chat_id)

    # =========================================================================
    # Actions
    # =========================================================================

    async def send_seen(self, chat_id: str) -> None:
        chat = await self.get_chat_by_id(chat_id)
        chat["unreadCount"] = 0
        self.seen.append(chat_id)

    async def send_message(
        self,
        to: str,
        content: str | MediaPayload,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        options = options or {}
        message_id = f"true_{to}_{uuid4().hex[:20].upper()}"
        is_media = isinstance(content, MediaPayload)
        message = {
            "id": {"_serialized": message_id, "fromMe": True},
            "from": f"me-{self.tenant_id}@c.us",
            "to": to,
            "fromMe": True,
            "body": options.get("caption", "") if is_media else content,
            "type": "document" if is_media else "chat",
            "hasMedia": is_media,
            "ack": 1,
            "timestamp": int(time.time()),
            "hasQuotedMsg": bool(options.get("quotedMessageId")),
            "_data": {"quotedMsgId": options.get("quotedMessageId")},
        }
        if is_media:
            message["mimetype"] = content.mimetype
            message["filename"] = content.filename
            self.media[message_id] = content

        self.sent.append({"to": to, "content": content, "options": options})
        self.add_message(message, chat_id=to)
        return message

    async def download_media(self, message_id: str) -> MediaPayload | None:
        return self.media.get(message_id)


class InMemoryEngineFactory:
    """
    EngineFactory that builds InMemoryEngineClient instances and keeps
    every client it created, keyed by tenant, for inspection.
    """

    def __init__(self, qr_on_initialize: str | None = None, ready_on_initialize: bool = False):
        self._qr_on_initialize = qr_on_initialize
        self._ready_on_initialize = ready_on_initialize
        self.clients: dict[str, InMemoryEngineClient] = {}
        self.created: list[InMemoryEngineClient] = []

    def __call__(self, tenant_id: str) -> InMemoryEngineClient:
        client = InMemoryEngineClient(
            tenant_id,
            qr_on_initialize=self._qr_on_initialize,
            ready_on_initialize=self._ready_on_initialize,
        )
        self.clients[tenant_id] = client
        self.created.append(client)
        return client
