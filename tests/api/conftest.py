"""API test fixtures: TestClient over in-memory ledger services."""

import pytest
from starlette.testclient import TestClient

from api.app import build_services, create_app
from core.config import LedgerConfig


@pytest.fixture
def config():
    return LedgerConfig(store_backend="memory")


@pytest.fixture
def services(config, store, clock):
    return build_services(config, store=store, clock=clock)


@pytest.fixture
def app(config, services):
    """FastAPI app with request IDs, error handlers and ledger routes."""
    return create_app(config, services=services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
