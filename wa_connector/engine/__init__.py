# Engine Layer
# Port and adapters for the WhatsApp automation engine (one client per tenant)

from wa_connector.engine.ports import (
    EngineClient,
    EngineEvent,
    EngineFactory,
    EventHandler,
    MediaPayload,
    serialize_id,
)
from wa_connector.engine.memory import InMemoryEngineClient, InMemoryEngineFactory
from wa_connector.engine.bridge import BridgeEngineClient
from wa_connector.engine.factory import (
    EngineBackend,
    EngineSettings,
    create_engine_factory,
    create_engine_factory_from_env,
    settings_from_env,
)

__all__ = [
    # Port interfaces
    "EngineClient",
    "EngineEvent",
    "EngineFactory",
    "EventHandler",
    "MediaPayload",
    "serialize_id",
    # Implementations
    "InMemoryEngineClient",
    "InMemoryEngineFactory",
    "BridgeEngineClient",
    # Factory
    "EngineBackend",
    "EngineSettings",
    "create_engine_factory",
    "create_engine_factory_from_env",
    "settings_from_env",
]
