"""
Bridge Engine Client

Drives a whatsapp-web.js client hosted by a Node.js bridge process.
The bridge owns the headless browser; this adapter only speaks to it.

Architecture:
    Connector <-> BridgeEngineClient <-> Bridge (Node.js) <-> WhatsApp Web

Bridge contract (all paths scoped to one tenant client):
- POST /clients/{tenant}/initialize      body: client options (auth + browser)
- POST /clients/{tenant}/destroy
- GET  /clients/{tenant}/chats           -> [chat]
- GET  /clients/{tenant}/chats/{id}      -> chat (404 if unknown)
- GET  /clients/{tenant}/chats/{id}/messages?limit=N -> [message]
- GET  /clients/{tenant}/chats/{id}/photo            -> {"url": str | null}
- POST /clients/{tenant}/chats/{id}/seen
- GET  /clients/{tenant}/contacts/{id}   -> contact (404 if unknown)
- GET  /clients/{tenant}/messages/{id}   -> message (404 if unknown)
- GET  /clients/{tenant}/messages/{id}/media -> {"mimetype", "data", "filename"}
- POST /clients/{tenant}/messages        body: {"to", "content" | "media", "options"}
- WS   /clients/{tenant}/events          frames: {"event": "<name>", "args": [...]}

REST calls use httpx; the event feed uses websockets. The event socket is
opened before initialization is requested so no pairing token is missed.
An unexpected close of the event socket is reported as a disconnect.
"""

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import httpx
import websockets
from websockets.exceptions import ConnectionClosedError, WebSocketException

from wa_connector.engine.ports import EngineClient, EngineEvent, MediaPayload
from wa_connector.errors import EngineError, EngineNotFoundError

logger = logging.getLogger(__name__)

# Flags that keep Chromium alive inside containers (no sandbox, small /dev/shm)
DEFAULT_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-gpu",
]


class BridgeEngineClient(EngineClient):
    """
    Engine client backed by a whatsapp-web.js bridge.

    Each tenant gets its own bridge-side client whose credentials live in
    ``{auth_data_path}`` under the tenant id, so pairings never mix.
    """

    def __init__(
        self,
        tenant_id: str,
        base_url: str = "http://localhost:3001",
        ws_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        auth_data_path: str = "/data/wwebjs",
        headless: bool = True,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the bridge client.

        Args:
            tenant_id: Tenant this client is scoped to
            base_url: Bridge REST base URL
            ws_url: Bridge WebSocket base URL (derived from base_url if omitted)
            api_key: Optional key sent as x-api-key
            timeout: Per-request timeout in seconds
            auth_data_path: Root directory for persisted engine credentials
            headless: Run the bridge browser headless
            http_client: Optional pre-built httpx client (not closed on destroy)
        """
        super().__init__(tenant_id)
        self.base_url = base_url.rstrip("/")
        self.ws_url = (ws_url or _derive_ws_url(self.base_url)).rstrip("/")
        self.auth_data_path = auth_data_path
        self.headless = headless

        self._headers = {"x-api-key": api_key} if api_key else {}
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            timeout=timeout,
        )

        self._ws: Any = None
        self._listener_task: asyncio.Task | None = None
        self._closing = False

    @property
    def client_path(self) -> str:
        return f"/clients/{quote(self.tenant_id, safe='')}"

    def client_options(self) -> dict[str, Any]:
        """Options the bridge uses to construct the whatsapp-web.js client."""
        return {
            "authStrategy": {
                "type": "local",
                "clientId": self.tenant_id,
                "dataPath": self.auth_data_path,
            },
            "puppeteer": {
                "headless": self.headless,
                "args": DEFAULT_BROWSER_ARGS,
            },
        }

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.client_path}{path}"
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise EngineError(f"Bridge request {method} {url} failed: {e}") from e

        if response.status_code == 404:
            raise EngineNotFoundError(f"Bridge has no resource at {url}")
        if response.is_error:
            raise EngineError(
                f"Bridge request {method} {url} returned HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
        if not response.content:
            return None
        return response.json()

    # =========================================================================
    # Event feed
    # =========================================================================

    async def _open_event_socket(self) -> None:
        if self._listener_task is not None and not self._listener_task.done():
            return

        url = f"{self.ws_url}{self.client_path}/events"
        try:
            self._ws = await websockets.connect(url, additional_headers=self._headers)
        except (OSError, WebSocketException) as e:
            raise EngineError(f"Cannot connect to bridge events at {url}: {e}") from e

        self._listener_task = asyncio.create_task(
            self._listen(self._ws),
            name=f"bridge_events_{self.tenant_id}",
        )
        logger.info(f"Connected to bridge events for tenant {self.tenant_id}")

    async def _listen(self, ws: Any) -> None:
        reason = "bridge event stream closed"
        try:
            async for raw in ws:
                try:
                    frame = json.loads(raw)
                    event = EngineEvent(frame.get("event"))
                except (ValueError, TypeError, AttributeError):
                    logger.warning(f"Ignoring bridge frame for tenant {self.tenant_id}: {raw!r:.200}")
                    continue
                await self.emit(event, *frame.get("args", []))
        except ConnectionClosedError as e:
            reason = f"bridge event stream lost: {e}"
        finally:
            self._ws = None

        if not self._closing:
            logger.warning(f"Bridge events ended for tenant {self.tenant_id}: {reason}")
            await self.emit(EngineEvent.DISCONNECTED, reason)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        self._closing = False
        await self._open_event_socket()
        await self._request("POST", "/initialize", json=self.client_options())

    async def destroy(self) -> None:
        self._closing = True
        try:
            if self._listener_task is not None:
                self._listener_task.cancel()
                try:
                    await self._listener_task
                except asyncio.CancelledError:
                    pass
                self._listener_task = None
            if self._ws is not None:
                await self._ws.close()
            await self._request("POST", "/destroy")
        finally:
            if self._owns_http:
                await self._http.aclose()

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_chats(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/chats") or []

    async def get_chat_by_id(self, chat_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/chats/{quote(chat_id, safe='')}")

    async def get_contact_by_id(self, contact_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/contacts/{quote(contact_id, safe='')}")

    async def get_message_by_id(self, message_id: str) -> dict[str, Any] | None:
        try:
            return await self._request("GET", f"/messages/{quote(message_id, safe='')}")
        except EngineNotFoundError:
            return None

    async def fetch_messages(self, chat_id: str, limit: int) -> list[dict[str, Any]]:
        path = f"/chats/{quote(chat_id, safe='')}/messages"
        return await self._request("GET", path, params={"limit": limit}) or []

    async def get_profile_pic_url(self, chat_id: str) -> str | None:
        data = await self._request("GET", f"/chats/{quote(chat_id, safe='')}/photo")
        return (data or {}).get("url")

    # =========================================================================
    # Actions
    # =========================================================================

    async def send_seen(self, chat_id: str) -> None:
        await self._request("POST", f"/chats/{quote(chat_id, safe='')}/seen")

    async def send_message(
        self,
        to: str,
        content: str | MediaPayload,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"to": to, "options": options or {}}
        if isinstance(content, MediaPayload):
            payload["media"] = content.to_dict()
        else:
            payload["content"] = content
        return await self._request("POST", "/messages", json=payload)

    async def download_media(self, message_id: str) -> MediaPayload | None:
        try:
            data = await self._request("GET", f"/messages/{quote(message_id, safe='')}/media")
        except EngineNotFoundError:
            return None
        if not data:
            return None
        return MediaPayload(
            mimetype=data.get("mimetype", "application/octet-stream"),
            data=data.get("data", ""),
            filename=data.get("filename"),
        )


def _derive_ws_url(base_url: str) -> str:
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):]
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):]
    return base_url
