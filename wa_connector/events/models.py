"""
Event Streaming Models

Defines the frames pushed to tenant event streams and the DTOs that
describe WhatsApp objects to API consumers.

Design Principles:
- DTOs are decoupled from the engine's object shape
- Every stream frame carries a ``type`` discriminator
- ``to_payload`` produces the exact JSON sent on the wire (camelCase keys)
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class StreamEventType(str, Enum):
    """Frame types delivered to stream subscribers."""
    STATUS = "status"    # Connection state changed
    QR = "qr"            # Pairing token issued
    READY = "ready"      # Engine ready
    STATE = "state"      # Raw engine state changed
    MESSAGE = "message"  # Incoming message
    ACK = "ack"          # Delivery acknowledgement changed


# =============================================================================
# DTOs
# =============================================================================

class MessageDTO(BaseModel):
    """A WhatsApp message as exposed to API consumers."""
    id: str | None = None
    chat_id: str | None = None
    from_id: str | None = None
    to_id: str | None = None
    from_me: bool = False
    body: str | None = None
    type: str | None = Field(
        default=None,
        description="Content type: chat, image, audio, ptt, document, ..."
    )
    has_media: bool = False
    mimetype: str | None = None
    filename: str | None = None
    size: int | None = None
    ack: int | None = None
    timestamp: int | None = None
    quoted_msg_id: str | None = None
    author: str | None = Field(
        default=None,
        description="Sender inside a group chat"
    )
    author_name: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "chatId": self.chat_id,
            "from": self.from_id,
            "to": self.to_id,
            "fromMe": self.from_me,
            "body": self.body,
            "type": self.type,
            "hasMedia": self.has_media,
            "mimetype": self.mimetype,
            "filename": self.filename,
            "size": self.size,
            "ack": self.ack,
            "timestamp": self.timestamp,
            "quotedMsgId": self.quoted_msg_id,
            "author": self.author,
            "authorName": self.author_name,
        }


class LastMessageDTO(BaseModel):
    """Summary of a chat's most recent message."""
    id: str | None = None
    body: str | None = None
    from_me: bool = False
    timestamp: int | None = None
    ack: int | None = None
    type: str | None = None
    author: str | None = None
    author_name: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "body": self.body,
            "fromMe": self.from_me,
            "timestamp": self.timestamp,
            "ack": self.ack,
            "type": self.type,
            "author": self.author,
            "authorName": self.author_name,
        }


class ChatDTO(BaseModel):
    """A chat as listed to API consumers."""
    id: str
    name: str
    is_group: bool = False
    unread_count: int = 0
    archived: bool = False
    pinned: bool = False
    timestamp: int | None = None
    last_message: LastMessageDTO | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isGroup": self.is_group,
            "unreadCount": self.unread_count,
            "archived": self.archived,
            "pinned": self.pinned,
            "timestamp": self.timestamp,
            "lastMessage": self.last_message.to_payload() if self.last_message else None,
        }


# =============================================================================
# Stream events
# =============================================================================

class StreamEvent(BaseModel):
    """
    Base class for all stream frames.

    ``tenant_id`` and ``created_at`` are bookkeeping only; they are not part
    of the wire payload.
    """
    event_type: StreamEventType
    tenant_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value}


class StatusEvent(StreamEvent):
    event_type: StreamEventType = StreamEventType.STATUS
    status: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, "status": self.status}


class QrEvent(StreamEvent):
    event_type: StreamEventType = StreamEventType.QR
    qr: str

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, "qr": self.qr}


class ReadyEvent(StreamEvent):
    event_type: StreamEventType = StreamEventType.READY
    ok: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, "ok": self.ok}


class StateEvent(StreamEvent):
    event_type: StreamEventType = StreamEventType.STATE
    state: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, "state": self.state}


class MessageEvent(StreamEvent):
    event_type: StreamEventType = StreamEventType.MESSAGE
    message: MessageDTO

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, "message": self.message.to_payload()}


class AckEvent(StreamEvent):
    event_type: StreamEventType = StreamEventType.ACK
    message_id: str | None = None
    ack: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"type": self.event_type.value, "messageId": self.message_id, "ack": self.ack}


# =============================================================================
# Factory functions
# =============================================================================

def create_status_event(tenant_id: str, status: str) -> StatusEvent:
    return StatusEvent(tenant_id=tenant_id, status=status)


def create_qr_event(tenant_id: str, qr: str) -> QrEvent:
    return QrEvent(tenant_id=tenant_id, qr=qr)


def create_ready_event(tenant_id: str) -> ReadyEvent:
    return ReadyEvent(tenant_id=tenant_id)


def create_state_event(tenant_id: str, state: Any) -> StateEvent:
    return StateEvent(tenant_id=tenant_id, state=None if state is None else str(state))


def create_message_event(tenant_id: str, message: MessageDTO) -> MessageEvent:
    return MessageEvent(tenant_id=tenant_id, message=message)


def create_ack_event(tenant_id: str, message_id: str | None, ack: int | None) -> AckEvent:
    return AckEvent(tenant_id=tenant_id, message_id=message_id, ack=ack)
