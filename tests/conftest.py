"""
Shared fixtures.

The database is mongomock's in-memory client injected into
MongoDatabaseClient, so no test touches the network.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from src.config import MongoSettings
from src.orchestrator import create_app_components
from src.services.storage import MongoDatabaseClient


@pytest.fixture
def mongo_settings():
    return MongoSettings(uri="mongodb://localhost:27017", db_name="finance_test")


@pytest.fixture
def db_client(mongo_settings):
    return MongoDatabaseClient(settings=mongo_settings, client=mongomock.MongoClient())


@pytest.fixture
def components(db_client):
    return create_app_components(db_client)


@pytest.fixture
def api(components):
    with TestClient(create_app(components)) as client:
        yield client
