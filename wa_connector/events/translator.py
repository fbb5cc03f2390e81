"""
DTO Translator

Converts engine objects (whatsapp-web.js JSON shapes) into the stable DTOs
in ``events.models``. Base DTOs never touch the engine; enriched DTOs add
display names through the session's NameResolver.
"""

import logging
from typing import Any

from wa_connector.contacts.resolver import DEFAULT_CONTACT_NAME, NameResolver
from wa_connector.engine.ports import serialize_id
from wa_connector.events.models import ChatDTO, LastMessageDTO, MessageDTO

logger = logging.getLogger(__name__)


def id_string(value: Any) -> str | None:
    value = serialize_id(value)
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _int_or_none(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def base_message_dto(msg: dict[str, Any]) -> MessageDTO:
    """Build a message DTO without any engine lookups."""
    from_me = bool(msg.get("fromMe"))
    quoted = None
    if msg.get("hasQuotedMsg"):
        quoted = id_string((msg.get("_data") or {}).get("quotedMsgId"))

    return MessageDTO(
        id=id_string(msg.get("id")),
        chat_id=id_string(msg.get("to") if from_me else msg.get("from")),
        from_id=id_string(msg.get("from")),
        to_id=id_string(msg.get("to")),
        from_me=from_me,
        body=msg.get("body"),
        type=msg.get("type"),
        has_media=bool(msg.get("hasMedia")),
        mimetype=msg.get("mimetype"),
        filename=msg.get("filename"),
        size=_int_or_none(msg.get("size")),
        ack=_int_or_none(msg.get("ack")),
        timestamp=_int_or_none(msg.get("timestamp")),
        quoted_msg_id=quoted,
        author=id_string(msg.get("author")),
    )


async def enrich_message_dto(msg: dict[str, Any], resolver: NameResolver) -> MessageDTO:
    """Build a message DTO and resolve the author's display name."""
    dto = base_message_dto(msg)
    if dto.author:
        dto.author_name = await resolver.resolve(dto.author)
    return dto


async def to_chat_dto(chat: dict[str, Any], resolver: NameResolver) -> ChatDTO:
    """Build a chat DTO, resolving the last message author when present."""
    last = chat.get("lastMessage")
    last_dto = None
    if last:
        last_dto = LastMessageDTO(
            id=id_string(last.get("id")),
            body=last.get("body"),
            from_me=bool(last.get("fromMe")),
            timestamp=_int_or_none(last.get("timestamp")),
            ack=_int_or_none(last.get("ack")),
            type=last.get("type"),
            author=id_string(last.get("author")),
        )
        if last_dto.author:
            last_dto.author_name = await resolver.resolve(last_dto.author)

    raw_id = chat.get("id")
    chat_user = raw_id.get("user") if isinstance(raw_id, dict) else None
    timestamp = last_dto.timestamp if last_dto and last_dto.timestamp is not None else None

    return ChatDTO(
        id=id_string(raw_id) or "",
        name=(
            chat.get("name")
            or chat.get("formattedTitle")
            or (chat.get("contact") or {}).get("name")
            or chat_user
            or DEFAULT_CONTACT_NAME
        ),
        is_group=bool(chat.get("isGroup")),
        unread_count=_int_or_none(chat.get("unreadCount")) or 0,
        archived=bool(chat.get("archived")),
        pinned=bool(chat.get("pinned")),
        timestamp=timestamp if timestamp is not None else _int_or_none(chat.get("timestamp")),
        last_message=last_dto,
    )
