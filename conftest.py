"""Shared fixtures: an isolated app on a fresh in-memory database per test."""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel
from sqlmodel.pool import StaticPool

from todo_api.broadcaster import ChangeBroadcaster
from todo_api.database import make_engine
from todo_api.main import create_app


@pytest.fixture(name="engine")
def engine_fixture():
    """Create a fresh in-memory database for each test."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="broadcaster")
def broadcaster_fixture():
    return ChangeBroadcaster()


@pytest.fixture(name="app")
def app_fixture(engine, broadcaster):
    return create_app(engine=engine, broadcaster=broadcaster, seed=False, static_dir=None)


@pytest.fixture(name="client")
def client_fixture(app):
    """Create a test client that runs the app lifespan."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def anyio_backend():
    """The client and broadcaster are built on asyncio; run anyio tests there."""
    return "asyncio"
