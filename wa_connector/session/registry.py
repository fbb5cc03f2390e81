"""
Session Registry

Owns the tenant id -> TenantSession map: lazy creation, the ONLINE gate
for data-plane calls, explicit restart and teardown.

Sessions are created on first reference to a tenant. Creation never
awaits, so concurrent callers on the event loop always observe the same
session for a tenant; initialization runs in the background and its
failure only shows up as a transition to OFFLINE.
"""

import logging
from typing import Iterator

from wa_connector.engine.ports import EngineFactory
from wa_connector.errors import SessionNotReadyError
from wa_connector.session.session import SessionInfo, TenantSession
from wa_connector.session.state import ConnectionState

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Manages the lifecycle of tenant sessions.

    Each registry is independent: tests and embedders may run several,
    each with its own engine factory.
    """

    def __init__(
        self,
        engine_factory: EngineFactory,
        inbox_size: int = 256,
        subscriber_queue_size: int = 100,
    ):
        """
        Initialize the registry.

        Args:
            engine_factory: Builds a fresh engine client for a tenant id
            inbox_size: Per-tenant engine event inbox capacity
            subscriber_queue_size: Per-subscriber stream queue capacity
        """
        self._engine_factory = engine_factory
        self._inbox_size = inbox_size
        self._subscriber_queue_size = subscriber_queue_size

        # Primary index: tenant_id -> TenantSession
        self._sessions: dict[str, TenantSession] = {}

    def __contains__(self, tenant_id: str) -> bool:
        return tenant_id in self._sessions

    def __iter__(self) -> Iterator[TenantSession]:
        return iter(list(self._sessions.values()))

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def online_count(self) -> int:
        return sum(1 for s in self._sessions.values() if s.is_online)

    # =========================================================================
    # Lookup & creation
    # =========================================================================

    def get(self, tenant_id: str) -> TenantSession | None:
        """Get a session without creating it."""
        return self._sessions.get(tenant_id)

    def get_or_create(self, tenant_id: str) -> TenantSession:
        """
        Return the tenant's session, creating and starting it if needed.

        A new session starts OFFLINE with engine handlers wired before
        the engine is initialized in the background.
        """
        session = self._sessions.get(tenant_id)
        if session is not None:
            return session

        # No await between the lookup above and the insert below
        session = TenantSession(
            tenant_id=tenant_id,
            client=self._engine_factory(tenant_id),
            inbox_size=self._inbox_size,
            subscriber_queue_size=self._subscriber_queue_size,
        )
        self._sessions[tenant_id] = session
        session.start()

        logger.info(f"Session created for tenant {tenant_id}")
        return session

    def require_online(self, tenant_id: str) -> TenantSession:
        """
        Gate for data-plane operations.

        References the tenant like any other call (creating the session if
        it does not exist yet) and fails unless it is ONLINE.

        Raises:
            SessionNotReadyError: If the session is not ONLINE
        """
        session = self.get_or_create(tenant_id)
        if session.state != ConnectionState.ONLINE:
            raise SessionNotReadyError(tenant_id, session.state.value)
        return session

    def start(self, tenant_id: str) -> TenantSession:
        """
        Explicitly (re)start a tenant.

        Creates the session if needed. An existing OFFLINE session with no
        initialization in flight gets one new initialization attempt.
        """
        session = self._sessions.get(tenant_id)
        if session is None:
            return self.get_or_create(tenant_id)

        if session.state == ConnectionState.OFFLINE and session.restart():
            logger.info(f"Restarting tenant {tenant_id}")
        return session

    # =========================================================================
    # Teardown
    # =========================================================================

    async def stop(self, tenant_id: str) -> bool:
        """
        Stop and forget a tenant's session.

        Returns:
            True if a session was removed, False if the tenant was unknown
        """
        session = self._sessions.pop(tenant_id, None)
        if session is None:
            return False

        await session.close()
        logger.info(f"Session stopped for tenant {tenant_id}")
        return True

    async def shutdown(self) -> None:
        """Stop every session."""
        for tenant_id in list(self._sessions):
            await self.stop(tenant_id)

    # =========================================================================
    # Listing
    # =========================================================================

    def list(self) -> list[SessionInfo]:
        """Snapshot of (tenant, state) for all sessions; may be stale immediately."""
        return [session.snapshot() for session in self._sessions.values()]
