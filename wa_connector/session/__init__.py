# Session Registry
# Per-tenant engine sessions, connection state and event fan-out

from wa_connector.session.state import ConnectionState
from wa_connector.session.session import SessionInfo, TenantSession
from wa_connector.session.dispatcher import InternalEvent, SessionDispatcher
from wa_connector.session.registry import SessionRegistry

__all__ = [
    "ConnectionState",
    "SessionInfo",
    "TenantSession",
    "InternalEvent",
    "SessionDispatcher",
    "SessionRegistry",
]
