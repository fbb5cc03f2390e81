"""
Engine Factory

Builds the EngineFactory the session registry uses to allocate one
engine client per tenant, based on configuration or environment variables.

Supported backends:
- bridge: whatsapp-web.js bridge process (production)
- memory: in-process scriptable engine (development/testing)

Environment Variables:
- WAC_ENGINE_BACKEND: "bridge" or "memory"
- WAC_BRIDGE_URL: Bridge REST base URL
- WAC_BRIDGE_WS_URL: Bridge WebSocket base URL (derived from WAC_BRIDGE_URL if unset)
- WAC_BRIDGE_API_KEY: Key sent to the bridge as x-api-key
- WAC_BRIDGE_TIMEOUT: Seconds per bridge request
- WAC_AUTH_DATA_PATH: Root directory for per-tenant engine credentials
- WAC_HEADLESS: "false" to run the bridge browser with a window
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from functools import partial

from wa_connector.engine.bridge import BridgeEngineClient
from wa_connector.engine.memory import InMemoryEngineFactory
from wa_connector.engine.ports import EngineFactory

logger = logging.getLogger(__name__)


class EngineBackend(str, Enum):
    """Supported engine backends."""
    BRIDGE = "bridge"
    MEMORY = "memory"


@dataclass
class EngineSettings:
    """
    Configuration for the engine layer.

    Attributes:
        backend: Engine backend type
        bridge_url: Bridge REST base URL
        bridge_ws_url: Bridge WebSocket base URL (None = derive from bridge_url)
        bridge_api_key: Optional bridge API key
        bridge_timeout: Per-request timeout in seconds
        auth_data_path: Root directory for persisted credentials
        headless: Run the browser headless
    """
    backend: EngineBackend = EngineBackend.BRIDGE
    bridge_url: str = "http://localhost:3001"
    bridge_ws_url: str | None = None
    bridge_api_key: str | None = None
    bridge_timeout: float = 30.0
    auth_data_path: str = "/data/wwebjs"
    headless: bool = True


def settings_from_env() -> EngineSettings:
    """Create EngineSettings from environment variables."""
    backend_str = os.getenv("WAC_ENGINE_BACKEND", "bridge").lower()
    try:
        backend = EngineBackend(backend_str)
    except ValueError:
        raise ValueError(
            f"Unknown engine backend: {backend_str}. "
            f"Valid options: {', '.join(b.value for b in EngineBackend)}"
        )

    return EngineSettings(
        backend=backend,
        bridge_url=os.getenv("WAC_BRIDGE_URL", "http://localhost:3001"),
        bridge_ws_url=os.getenv("WAC_BRIDGE_WS_URL") or None,
        bridge_api_key=os.getenv("WAC_BRIDGE_API_KEY") or None,
        bridge_timeout=float(os.getenv("WAC_BRIDGE_TIMEOUT", "30")),
        auth_data_path=os.getenv("WAC_AUTH_DATA_PATH", "/data/wwebjs"),
        headless=os.getenv("WAC_HEADLESS", "true").lower() != "false",
    )


def create_engine_factory(settings: EngineSettings) -> EngineFactory:
    """
    Create an EngineFactory from settings.

    Returns:
        Callable mapping a tenant id to a fresh, uninitialized engine client
    """
    if settings.backend == EngineBackend.MEMORY:
        logger.info("Using in-memory engine")
        return InMemoryEngineFactory()

    logger.info(f"Using bridge engine (url={settings.bridge_url})")
    return partial(
        BridgeEngineClient,
        base_url=settings.bridge_url,
        ws_url=settings.bridge_ws_url,
        api_key=settings.bridge_api_key,
        timeout=settings.bridge_timeout,
        auth_data_path=settings.auth_data_path,
        headless=settings.headless,
    )


def create_engine_factory_from_env() -> EngineFactory:
    """Convenience function combining settings_from_env() and create_engine_factory()."""
    return create_engine_factory(settings_from_env())
