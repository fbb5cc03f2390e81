"""FastAPI routes for tenant session lifecycle and event streams."""

import time

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from wa_connector.events.stream import parse_frame_filter
from wa_connector.session.registry import SessionRegistry
from wa_connector.session.session import TenantSession
from wa_connector.transport.dependencies import get_registry
from wa_connector.transport.sse import SSE_HEADERS, event_stream

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _uptime(request: Request) -> float:
    return round(time.monotonic() - request.app.state.started_at, 3)


def _existing(registry: SessionRegistry, tenant: str) -> TenantSession:
    session = registry.get(tenant)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@router.get("")
async def list_sessions(registry: SessionRegistry = Depends(get_registry)):
    return [info.to_dict() for info in registry.list()]


@router.get("/status")
async def sessions_status(request: Request, registry: SessionRegistry = Depends(get_registry)):
    return {
        "ok": True,
        "status": "online",
        "uptime": _uptime(request),
        "sessions": [info.to_dict() for info in registry.list()],
    }


@router.post("/{tenant}/start")
async def start_session(
    tenant: str,
    wait: bool = Query(False, description="Wait for initialization to settle before answering"),
    registry: SessionRegistry = Depends(get_registry),
):
    session = registry.start(tenant)
    if wait:
        await session.wait_idle()
    return {"ok": True, "tenant": tenant, "status": session.state.value}


@router.post("/{tenant}/stop")
async def stop_session(tenant: str, registry: SessionRegistry = Depends(get_registry)):
    await registry.stop(tenant)
    return {"ok": True, "tenant": tenant}


@router.get("/{tenant}/status")
async def session_status(tenant: str, registry: SessionRegistry = Depends(get_registry)):
    session = _existing(registry, tenant)
    return {"ok": True, "tenant": tenant, "status": session.state.value}


@router.get("/{tenant}/debug")
async def session_debug(tenant: str, registry: SessionRegistry = Depends(get_registry)):
    session = _existing(registry, tenant)
    return {"ok": True, **session.debug_info()}


@router.get("/{tenant}/stream")
async def session_stream(
    request: Request,
    tenant: str,
    types: str | None = Query(None, description="Comma-separated frame types to receive"),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Server-Sent Events stream of a tenant.

    The first frame is the current status, followed by the pending pairing
    token if any, then live frames.
    """
    try:
        filter = parse_frame_filter(types)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Unknown event type in {types!r}") from exc

    session = registry.get_or_create(tenant)
    subscriber = session.subscribe(filter)
    return StreamingResponse(
        event_stream(
            request,
            session,
            subscriber,
            keepalive_seconds=request.app.state.settings.stream_keepalive_seconds,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
