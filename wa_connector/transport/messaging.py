"""
FastAPI routes for contacts, chats and messages of an ONLINE tenant.

Every route goes through ``SessionRegistry.require_online``; a tenant
that is not ONLINE answers 400.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from wa_connector.contacts.resolver import parse_number_from_wid
from wa_connector.engine.ports import MediaPayload, serialize_id
from wa_connector.errors import EngineError
from wa_connector.events.models import ChatDTO
from wa_connector.events.translator import enrich_message_dto, id_string, to_chat_dto
from wa_connector.media.fetcher import DEFAULT_FILENAME, MediaFetcher
from wa_connector.session.registry import SessionRegistry
from wa_connector.transport.dependencies import get_media_fetcher, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions/{tenant}", tags=["messaging"])

MAX_PAGE_SIZE = 200
DEFAULT_CHAT_PAGE_SIZE = 30
DEFAULT_MESSAGE_PAGE_SIZE = 50


class SendMessageRequest(BaseModel):
    to: str | None = None
    body: str | None = None
    quotedMsgId: str | None = None


class SendMediaRequest(BaseModel):
    to: str | None = None
    mediaUrl: str | None = None
    base64: str | None = None
    caption: str | None = None
    filename: str | None = None
    mimetype: str | None = None


def normalize_recipient(to: str) -> str:
    """Bare phone numbers are addressed as individual users."""
    return to if "@" in to else f"{to}@c.us"


def clamp_limit(value: int | None, default: int) -> int:
    return max(1, min(value or default, MAX_PAGE_SIZE))


def parse_tristate(value: str | None) -> bool | None:
    """"true"/"false" become booleans; anything else means "don't filter"."""
    if value == "true":
        return True
    if value == "false":
        return False
    return None


def filter_chats(
    chats: list[ChatDTO],
    q: str = "",
    is_group: bool | None = None,
    archived: bool | None = None,
    unread_only: bool = False,
) -> list[ChatDTO]:
    """Apply the listing filters and order newest first."""
    q = q.lower()
    result = []
    for chat in chats:
        if is_group is not None and chat.is_group != is_group:
            continue
        if archived is not None and chat.archived != archived:
            continue
        if unread_only and chat.unread_count <= 0:
            continue
        if q:
            body = chat.last_message.body if chat.last_message else None
            haystacks = [chat.name, chat.id, body]
            if not any(h and q in h.lower() for h in haystacks):
                continue
        result.append(chat)

    result.sort(key=lambda c: c.timestamp or 0, reverse=True)
    return result


def _message_id(message: dict[str, Any]) -> Any:
    return serialize_id(message.get("id"))


# =============================================================================
# Contacts & groups
# =============================================================================

@router.get("/contacts/{wid}")
async def get_contact(tenant: str, wid: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.require_online(tenant)
    name = await session.names.resolve(wid)

    try:
        contact = await session.client.get_contact_by_id(wid)
    except EngineError as e:
        logger.debug(f"Contact {wid} unavailable for tenant {tenant}: {e}")
        contact = None

    raw = None
    if contact:
        raw = {
            "name": contact.get("name"),
            "pushname": contact.get("pushname"),
            "shortName": contact.get("shortName"),
            "verifiedName": contact.get("verifiedName"),
        }

    return {
        "ok": True,
        "id": wid,
        "name": name,
        "number": parse_number_from_wid(wid),
        "raw": raw,
    }


@router.get("/contacts")
async def get_contacts(
    tenant: str,
    ids: str = Query("", description="Comma-separated participant ids"),
    registry: SessionRegistry = Depends(get_registry),
):
    wids = [part.strip() for part in ids.split(",") if part.strip()]
    session = registry.require_online(tenant)
    return {"ok": True, "map": await session.names.resolve_many(wids)}


@router.get("/chats/{chat_id}/participants")
async def get_participants(
    tenant: str, chat_id: str, registry: SessionRegistry = Depends(get_registry)
):
    session = registry.require_online(tenant)
    chat = await session.client.get_chat_by_id(chat_id)
    if not chat.get("isGroup"):
        return {"ok": True, "items": []}

    participants = chat.get("participants") or []
    wids = [id_string(p.get("id")) for p in participants]
    names = await asyncio.gather(*(session.names.resolve(wid) for wid in wids))

    items = [
        {
            "id": wid,
            "name": name,
            "isAdmin": bool(p.get("isAdmin")) or bool(p.get("isSuperAdmin")),
        }
        for p, wid, name in zip(participants, wids, names)
    ]
    return {"ok": True, "items": items}


# =============================================================================
# Chats
# =============================================================================

@router.get("/chats")
async def list_chats(
    tenant: str,
    q: str = "",
    limit: int | None = None,
    offset: int = 0,
    isGroup: str | None = None,
    archived: str | None = None,
    unreadOnly: str | None = None,
    registry: SessionRegistry = Depends(get_registry),
):
    limit = clamp_limit(limit, DEFAULT_CHAT_PAGE_SIZE)
    offset = max(0, offset)

    session = registry.require_online(tenant)
    chats = await session.client.get_chats()
    dtos = await asyncio.gather(*(
        to_chat_dto(chat, session.names)
        for chat in chats
        if not chat.get("isAnnouncement")
    ))

    matched = filter_chats(
        list(dtos),
        q=q,
        is_group=parse_tristate(isGroup),
        archived=parse_tristate(archived),
        unread_only=unreadOnly == "true",
    )
    page = matched[offset:offset + limit]
    return {
        "total": len(matched),
        "offset": offset,
        "limit": limit,
        "items": [dto.to_payload() for dto in page],
    }


@router.get("/chats/{chat_id}/photo")
async def get_chat_photo(tenant: str, chat_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.require_online(tenant)
    url = await session.client.get_profile_pic_url(chat_id)
    return {"ok": True, "chatId": chat_id, "url": url}


@router.get("/chats/{chat_id}/messages")
async def get_chat_messages(
    tenant: str,
    chat_id: str,
    limit: int | None = None,
    registry: SessionRegistry = Depends(get_registry),
):
    limit = clamp_limit(limit, DEFAULT_MESSAGE_PAGE_SIZE)
    session = registry.require_online(tenant)
    messages = await session.client.fetch_messages(chat_id, limit)
    dtos = await asyncio.gather(*(enrich_message_dto(m, session.names) for m in messages))
    return [dto.to_payload() for dto in dtos]


@router.post("/chats/{chat_id}/read")
async def mark_chat_read(tenant: str, chat_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.require_online(tenant)
    await session.client.send_seen(chat_id)
    return {"ok": True}


# =============================================================================
# Messages
# =============================================================================

@router.get("/messages/{message_id}/media")
async def get_message_media(
    tenant: str, message_id: str, registry: SessionRegistry = Depends(get_registry)
):
    session = registry.require_online(tenant)
    message = await session.client.get_message_by_id(message_id)
    if not message or not message.get("hasMedia"):
        raise HTTPException(status_code=404, detail="No media found for this message")

    media = await session.client.download_media(message_id)
    if media is None:
        raise HTTPException(status_code=404, detail="No media found for this message")

    return {
        "ok": True,
        "messageId": message_id,
        "mimetype": media.mimetype,
        "filename": media.filename or DEFAULT_FILENAME,
        "data": media.data,
    }


@router.post("/messages")
async def send_message(
    tenant: str,
    request: SendMessageRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    if not request.to or not request.body:
        raise HTTPException(status_code=400, detail="to and body are required")

    to = normalize_recipient(request.to)
    session = registry.require_online(tenant)
    options = {"quotedMessageId": request.quotedMsgId} if request.quotedMsgId else {}
    message = await session.client.send_message(to, request.body, options)
    logger.info(f"Tenant {tenant} sent a text message to {to}")
    return {"ok": True, "messageId": _message_id(message)}


@router.post("/messages/media")
async def send_media_message(
    tenant: str,
    request: SendMediaRequest,
    registry: SessionRegistry = Depends(get_registry),
    fetcher: MediaFetcher = Depends(get_media_fetcher),
):
    if not request.to:
        raise HTTPException(status_code=400, detail="to is required")
    if not request.mediaUrl and not request.base64:
        raise HTTPException(status_code=400, detail="mediaUrl or base64 is required")

    to = normalize_recipient(request.to)

    if request.mediaUrl:
        media = await fetcher.fetch(
            request.mediaUrl,
            mimetype=request.mimetype,
            filename=request.filename,
        )
    else:
        if not request.mimetype or not request.filename:
            raise HTTPException(
                status_code=400,
                detail="mimetype and filename are required with base64",
            )
        media = MediaPayload(
            mimetype=request.mimetype,
            data=request.base64,
            filename=request.filename,
        )

    session = registry.require_online(tenant)
    options = {"caption": request.caption} if request.caption else {}
    message = await session.client.send_message(to, media, options)
    logger.info(f"Tenant {tenant} sent {media.mimetype} media to {to}")
    return {"ok": True, "messageId": _message_id(message)}
