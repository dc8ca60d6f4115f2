"""Shared fixtures: in-memory database, service and API client."""

import pytest
from fastapi.testclient import TestClient

from padelbracket.config_loader import default_config
from padelbracket.service import BracketService
from padelbracket.storage import DatabaseManager
from padelbracket.webapp.app import app, get_service


@pytest.fixture
def db():
    """In-memory database; every session shares one connection."""
    manager = DatabaseManager(":memory:")
    manager.create_tables()
    yield manager
    manager.drop_tables()


@pytest.fixture
def service(db):
    return BracketService(db, default_config())


@pytest.fixture
def client(service):
    """API client bound to the test service."""
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
