# WhatsApp Connector - multi-tenant WhatsApp client over REST + Server-Sent Events
# One engine client per tenant, with connection state tracking and live event fan-out

__version__ = "0.1.0"

# Re-export commonly used components for convenience
from wa_connector.engine import (
    EngineClient,
    EngineEvent,
    InMemoryEngineClient,
    InMemoryEngineFactory,
    BridgeEngineClient,
    create_engine_factory,
)

from wa_connector.session import (
    ConnectionState,
    SessionRegistry,
    TenantSession,
)

__all__ = [
    "__version__",
    # Engine
    "EngineClient",
    "EngineEvent",
    "InMemoryEngineClient",
    "InMemoryEngineFactory",
    "BridgeEngineClient",
    "create_engine_factory",
    # Sessions
    "ConnectionState",
    "SessionRegistry",
    "TenantSession",
]
