"""
Tenant Session Model

One session per tenant: the engine client, the coarse connection state,
the pending pairing token, the subscriber set and the name cache.

Connection states:
1. OFFLINE - not connected (initial, auth failure, failed (re)initialization)
2. RECONNECTING - pairing token issued or disconnect detected
3. ONLINE - engine ready, data-plane calls allowed

All mutation happens on the event loop; engine events reach the session
through its dispatcher, which applies them one at a time.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from wa_connector.contacts.resolver import NameResolver
from wa_connector.engine.ports import EngineClient
from wa_connector.events.models import StreamEvent, create_qr_event, create_status_event
from wa_connector.events.stream import FrameFilter, Subscriber, SubscriberSet
from wa_connector.session.dispatcher import SessionDispatcher
from wa_connector.session.state import ConnectionState

logger = logging.getLogger(__name__)


class SessionInfo(BaseModel):
    """Snapshot of a session for listings."""
    tenant_id: str
    state: ConnectionState

    def to_dict(self) -> dict[str, Any]:
        return {"tenant": self.tenant_id, "status": self.state.value}


class TenantSession:
    """
    Runtime state of one tenant.

    Created and owned by SessionRegistry; never construct one directly
    outside tests.
    """

    def __init__(
        self,
        tenant_id: str,
        client: EngineClient,
        inbox_size: int = 256,
        subscriber_queue_size: int = 100,
    ):
        """
        Initialize the session.

        Args:
            tenant_id: Tenant key
            client: Engine client scoped to this tenant (not yet initialized)
            inbox_size: Capacity of the engine event inbox
            subscriber_queue_size: Queue size of each stream subscriber
        """
        self.tenant_id = tenant_id
        self.client = client
        self.state = ConnectionState.OFFLINE
        self.qr: str | None = None
        self.engine_state: str | None = None
        self.names = NameResolver(client)
        self.events = SubscriberSet(tenant_id, max_pending=subscriber_queue_size)

        self.created_at = datetime.utcnow()
        self.state_changed_at = self.created_at
        self.reconnect_attempts = 0

        self._dispatcher = SessionDispatcher(self, inbox_size=inbox_size)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_online(self) -> bool:
        return self.state == ConnectionState.ONLINE

    @property
    def is_initializing(self) -> bool:
        return self._dispatcher.initializing

    @property
    def subscriber_count(self) -> int:
        return len(self.events)

    @property
    def cache_size(self) -> int:
        return len(self.names)

    def snapshot(self) -> SessionInfo:
        return SessionInfo(tenant_id=self.tenant_id, state=self.state)

    def debug_info(self) -> dict[str, Any]:
        return {
            "tenant": self.tenant_id,
            "status": self.state.value,
            "hasQR": self.qr is not None,
            "listeners": self.subscriber_count,
            "cacheSize": self.cache_size,
            "engineState": self.engine_state,
            "reconnectAttempts": self.reconnect_attempts,
            "initializing": self.is_initializing,
            "createdAt": self.created_at.isoformat(),
            "stateChangedAt": self.state_changed_at.isoformat(),
        }

    # =========================================================================
    # State & fan-out
    # =========================================================================

    def set_state(self, state: ConnectionState) -> None:
        """Record a state transition and announce it to subscribers."""
        previous = self.state
        self.state = state
        self.state_changed_at = datetime.utcnow()
        if previous != state:
            logger.info(f"Tenant {self.tenant_id}: {previous.value} -> {state.value}")
        self.publish(create_status_event(self.tenant_id, state.value))

    def publish(self, event: StreamEvent) -> int:
        return self.events.broadcast(event)

    def subscribe(self, filter: FrameFilter | None = None) -> Subscriber:
        """
        Open a stream subscriber.

        The new subscriber alone first receives the current status and,
        when a pairing round is pending, the current pairing token.
        """
        subscriber = self.events.add(filter)
        subscriber.offer(create_status_event(self.tenant_id, self.state.value))
        if self.qr:
            subscriber.offer(create_qr_event(self.tenant_id, self.qr))
        return subscriber

    def unsubscribe(self, subscriber_id: str) -> bool:
        return self.events.remove(subscriber_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Wire engine handlers, start the fan-out worker and begin initialization."""
        self._dispatcher.start()

    def restart(self) -> bool:
        """
        Schedule a new initialization attempt.

        Returns:
            False if an initialization is already in flight
        """
        return self._dispatcher.schedule_initialize(reconnect=False)

    async def wait_idle(self) -> None:
        """Wait until no initialization is running and every queued engine event is handled."""
        await self._dispatcher.wait_idle()

    async def close(self) -> None:
        """
        Tear the session down.

        Stops the worker, evicts all subscribers and destroys the engine
        client. Destroy failures are logged and swallowed.
        """
        await self._dispatcher.stop()
        self.events.close_all()
        try:
            await self.client.destroy()
        except Exception as e:
            logger.warning(f"Engine teardown failed for tenant {self.tenant_id}: {e}")
