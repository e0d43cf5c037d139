"""Shared test fixtures for chat store tests."""

import pytest
from fastapi.testclient import TestClient

from chatstore.core.storage import StorageEngine
from chatstore.services.conversation_store import ConversationStore, get_store


@pytest.fixture
def storage():
    """In-memory SQLite engine with a fresh schema for each test."""
    engine = StorageEngine("sqlite://")
    engine.create_schema()
    yield engine
    engine.close()


@pytest.fixture
def store(storage):
    conversation_store = ConversationStore(storage)
    conversation_store.init()
    return conversation_store


@pytest.fixture
def client(store):
    """FastAPI TestClient backed by the in-memory store."""
    from chatstore.main import app

    app.dependency_overrides[get_store] = lambda: store

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
