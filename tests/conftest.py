"""pytest configuration for Device Relay Hub tests."""

import pytest
from fastapi.testclient import TestClient

from relay_hub import config as hub_config
from relay_hub.hub import connections
from relay_hub.main import app
from relay_hub.registry import device_registry


@pytest.fixture(autouse=True)
def _fresh_hub(monkeypatch):
    """Every test starts with an empty registry and no open connections."""
    monkeypatch.setattr(device_registry, "_device_registry", None)
    monkeypatch.setattr(connections, "_connection_manager", None)
    monkeypatch.setattr(hub_config, "_config", hub_config.HubConfig())
    yield


@pytest.fixture
def client(_fresh_hub):
    # Entering the client shares one event loop between all its WebSockets
    with TestClient(app) as test_client:
        yield test_client
