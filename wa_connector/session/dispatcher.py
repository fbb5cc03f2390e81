"""
Session Dispatcher

Per-tenant engine event inbox with a single fan-out worker.

Design:
- Engine handlers only enqueue (event, args) on a bounded inbox
- One worker drains the inbox, so a tenant's events are applied in order
- The worker runs the state machine, builds DTOs and publishes frames
- Initialization runs in its own task; its failure comes back through
  the inbox as an internal event, so only the worker changes state

Reconnect policy: every disconnect schedules exactly one
re-initialization. A failed attempt moves the session to OFFLINE; a
later disconnect is again eligible for one attempt. A disconnect that
arrives while an attempt is running gets its own attempt once the
running one finishes.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from wa_connector.engine.ports import EngineEvent
from wa_connector.events.models import (
    create_ack_event,
    create_message_event,
    create_qr_event,
    create_ready_event,
    create_state_event,
)
from wa_connector.events.translator import id_string, base_message_dto, enrich_message_dto
from wa_connector.session.state import ConnectionState

if TYPE_CHECKING:
    from wa_connector.session.session import TenantSession

logger = logging.getLogger(__name__)


class InternalEvent(str, Enum):
    """Events the dispatcher feeds itself."""
    INIT_FAILED = "init_failed"            # (reason,)
    RECONNECT_FAILED = "reconnect_failed"  # (reason,)


class SessionDispatcher:
    """Inbox, worker and initialization tasks of one tenant session."""

    def __init__(self, session: TenantSession, inbox_size: int = 256):
        """
        Initialize the dispatcher.

        Args:
            session: Session whose state this dispatcher drives
            inbox_size: Max queued engine events before engine callbacks wait
        """
        self._session = session
        self._inbox: asyncio.Queue[tuple[EngineEvent | InternalEvent, tuple]] = asyncio.Queue(
            maxsize=inbox_size
        )
        self._worker_task: asyncio.Task | None = None
        self._init_task: asyncio.Task | None = None
        self._attached = False
        # Set when a disconnect lands while an attempt is already running
        self._reconnect_owed = False

        self._handlers: dict[EngineEvent | InternalEvent, Callable[..., Awaitable[None]]] = {
            EngineEvent.QR: self._on_qr,
            EngineEvent.READY: self._on_ready,
            EngineEvent.CHANGE_STATE: self._on_change_state,
            EngineEvent.DISCONNECTED: self._on_disconnected,
            EngineEvent.AUTH_FAILURE: self._on_auth_failure,
            EngineEvent.MESSAGE: self._on_message,
            EngineEvent.MESSAGE_ACK: self._on_message_ack,
            InternalEvent.INIT_FAILED: self._on_init_failed,
            InternalEvent.RECONNECT_FAILED: self._on_reconnect_failed,
        }

    @property
    def tenant_id(self) -> str:
        return self._session.tenant_id

    @property
    def initializing(self) -> bool:
        return self._init_task is not None and not self._init_task.done()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Register engine handlers, then start the worker and the first initialization."""
        if not self._attached:
            for event in EngineEvent:
                self._session.client.on(event, partial(self._enqueue, event))
            self._attached = True

        if self._worker_task is None:
            self._worker_task = asyncio.create_task(
                self._drain(),
                name=f"session_worker_{self.tenant_id}",
            )
        self.schedule_initialize(reconnect=False)

    def schedule_initialize(self, reconnect: bool) -> bool:
        """
        Start one initialization attempt unless one is already running.

        Returns:
            True if an attempt was scheduled
        """
        if self.initializing:
            logger.debug(f"Initialization already running for tenant {self.tenant_id}")
            return False

        self._init_task = asyncio.create_task(
            self._initialize(reconnect),
            name=f"session_init_{self.tenant_id}",
        )
        return True

    async def wait_idle(self) -> None:
        """Wait for the running initialization and every queued event."""
        while True:
            if self.initializing:
                await asyncio.wait({self._init_task})
            await self._inbox.join()
            if not self.initializing and self._inbox.empty():
                return

    async def stop(self) -> None:
        """Cancel initialization and the worker."""
        for task in (self._init_task, self._worker_task):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._init_task = None
        self._worker_task = None
        self._reconnect_owed = False

    # =========================================================================
    # Inbox
    # =========================================================================

    async def _enqueue(self, event: EngineEvent | InternalEvent, *args: Any) -> None:
        await self._inbox.put((event, args))

    async def _initialize(self, reconnect: bool) -> None:
        kind = "Re-initialization" if reconnect else "Initialization"
        logger.info(f"{kind} started for tenant {self.tenant_id}")
        try:
            await self._session.client.initialize()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{kind} failed for tenant {self.tenant_id}: {e}")
            if not self._reconnect_owed:
                failed = InternalEvent.RECONNECT_FAILED if reconnect else InternalEvent.INIT_FAILED
                await self._enqueue(failed, str(e))

        if self._reconnect_owed:
            # Disconnected while this attempt ran; run the one attempt that loss is owed
            self._reconnect_owed = False
            self._session.reconnect_attempts += 1
            self._init_task = asyncio.create_task(
                self._initialize(reconnect=True),
                name=f"session_init_{self.tenant_id}",
            )

    async def _drain(self) -> None:
        """Single worker loop applying queued events in order."""
        while True:
            event, args = await self._inbox.get()
            try:
                await self._handlers[event](*args)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Handling {event.value} failed for tenant {self.tenant_id}: {e}")
            finally:
                self._inbox.task_done()

    # =========================================================================
    # Handlers
    # =========================================================================

    async def _on_qr(self, token: str | None = None, *_: Any) -> None:
        session = self._session
        session.qr = token
        if token:
            session.publish(create_qr_event(self.tenant_id, token))
        session.set_state(ConnectionState.RECONNECTING)

    async def _on_ready(self, *_: Any) -> None:
        session = self._session
        session.qr = None
        session.set_state(ConnectionState.ONLINE)
        session.publish(create_ready_event(self.tenant_id))

    async def _on_change_state(self, state: Any = None, *_: Any) -> None:
        self._session.engine_state = None if state is None else str(state)
        self._session.publish(create_state_event(self.tenant_id, state))

    async def _on_disconnected(self, reason: Any = None, *_: Any) -> None:
        session = self._session
        logger.warning(f"Tenant {self.tenant_id} disconnected: {reason}")
        session.set_state(ConnectionState.RECONNECTING)
        if self.schedule_initialize(reconnect=True):
            session.reconnect_attempts += 1
        else:
            self._reconnect_owed = True

    async def _on_auth_failure(self, message: Any = None, *_: Any) -> None:
        logger.warning(f"Authentication failed for tenant {self.tenant_id}: {message}")
        self._session.set_state(ConnectionState.OFFLINE)

    async def _on_message(self, msg: dict[str, Any], *_: Any) -> None:
        try:
            dto = await enrich_message_dto(msg, self._session.names)
        except Exception as e:
            logger.warning(f"Message enrichment failed for tenant {self.tenant_id}: {e}")
            dto = base_message_dto(msg)
        self._session.publish(create_message_event(self.tenant_id, dto))

    async def _on_message_ack(self, msg: dict[str, Any] | None = None, ack: Any = None, *_: Any) -> None:
        message_id = id_string((msg or {}).get("id"))
        self._session.publish(create_ack_event(self.tenant_id, message_id, ack))

    async def _on_init_failed(self, reason: str | None = None, *_: Any) -> None:
        self._session.set_state(ConnectionState.OFFLINE)

    async def _on_reconnect_failed(self, reason: str | None = None, *_: Any) -> None:
        self._session.set_state(ConnectionState.OFFLINE)
