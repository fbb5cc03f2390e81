"""
Test Engine Factory

Tests for building the per-tenant engine factory from environment variables.
"""

import pytest

from wa_connector.engine import (
    BridgeEngineClient,
    EngineBackend,
    InMemoryEngineFactory,
    create_engine_factory,
    settings_from_env,
)
from wa_connector.engine.factory import EngineSettings


class TestSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("WAC_ENGINE_BACKEND", "WAC_BRIDGE_URL", "WAC_BRIDGE_WS_URL", "WAC_HEADLESS"):
            monkeypatch.delenv(name, raising=False)

        settings = settings_from_env()

        assert settings.backend == EngineBackend.BRIDGE
        assert settings.bridge_url == "http://localhost:3001"
        assert settings.bridge_ws_url is None
        assert settings.headless is True

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("WAC_ENGINE_BACKEND", "MEMORY")
        monkeypatch.setenv("WAC_BRIDGE_TIMEOUT", "5")
        monkeypatch.setenv("WAC_HEADLESS", "false")
        monkeypatch.setenv("WAC_AUTH_DATA_PATH", "/tmp/auth")

        settings = settings_from_env()

        assert settings.backend == EngineBackend.MEMORY
        assert settings.bridge_timeout == 5.0
        assert settings.headless is False
        assert settings.auth_data_path == "/tmp/auth"

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("WAC_ENGINE_BACKEND", "selenium")

        with pytest.raises(ValueError, match="Unknown engine backend"):
            settings_from_env()


class TestCreateEngineFactory:
    def test_memory_backend(self):
        factory = create_engine_factory(EngineSettings(backend=EngineBackend.MEMORY))

        assert isinstance(factory, InMemoryEngineFactory)
        assert factory("acme").tenant_id == "acme"

    def test_bridge_backend_builds_tenant_clients(self):
        factory = create_engine_factory(EngineSettings(
            bridge_url="http://bridge:3001",
            bridge_api_key="secret",
            auth_data_path="/srv/auth",
        ))

        client = factory("acme")

        assert isinstance(client, BridgeEngineClient)
        assert client.tenant_id == "acme"
        assert client.ws_url == "ws://bridge:3001"
        assert client.client_options()["authStrategy"]["dataPath"] == "/srv/auth"
