"""
Global test fixtures for the account gateway.

This module provides shared fixtures for all tests including:
- Mock MongoDB (mongomock-motor) and a UserStore on top of it
- Recording and failing mail transports
- Settings and user document factories
"""

import asyncio
import smtplib
import sys
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from account_gateway.config import EmailSettings, Settings  # noqa: E402
from account_gateway.core.security import hash_password  # noqa: E402
from account_gateway.database.store import UserStore, user_doc_id  # noqa: E402

TEST_PASSWORD = "SecurePassword123!"

# bcrypt is slow; hash the shared test password once
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# =============================================================================
# Mail Transports
# =============================================================================

class RecordingTransport:
    """Mail transport that keeps every message it is handed."""

    def __init__(self):
        self.messages: list[dict[str, Any]] = []

    def send_mail(self, message: dict[str, Any]) -> None:
        self.messages.append(message)


class FailingTransport:
    """Mail transport whose SMTP server always refuses."""

    def send_mail(self, message: dict[str, Any]) -> None:
        raise smtplib.SMTPException("550 mailbox unavailable")


@pytest.fixture
def test_password() -> str:
    return TEST_PASSWORD


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def failing_transport() -> FailingTransport:
    return FailingTransport()


# =============================================================================
# MongoDB Fixtures (mongomock-motor)
# =============================================================================

@pytest.fixture
def mock_async_mongo_client():
    """
    Create an async mock MongoDB client using mongomock-motor.
    """
    try:
        from mongomock_motor import AsyncMongoMockClient
        client = AsyncMongoMockClient()
        yield client
        client.close()
    except ImportError:
        pytest.skip("mongomock-motor not installed")


@pytest.fixture
def users_collection(mock_async_mongo_client):
    """Provide the mock users collection."""
    return mock_async_mongo_client["auth_db"]["users"]


@pytest.fixture
def store(users_collection) -> UserStore:
    """A UserStore over the mock collection (indexes not yet created)."""
    return UserStore(users_collection, secret="test-store-secret")


@pytest_asyncio.fixture
async def indexed_store(store) -> UserStore:
    """A UserStore with its indexes in place, like the running app."""
    await store.ensure_indexes()
    return store


# =============================================================================
# Settings and User Fixtures
# =============================================================================

@pytest.fixture
def make_settings():
    """
    Factory for Settings isolated from the environment and any .env file.

    Usage:
        settings = make_settings(verify=True, admin_roles=["admin"])
    """
    def _make(**overrides) -> Settings:
        values = {
            "session_secret": "test-session-secret",
            "store_secret": "test-store-secret",
            "email": EmailSettings(from_address="noreply@example.com"),
            "app": {"name": "Test App", "url": "http://app.example.com"},
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def make_user_doc():
    """
    Factory for user documents as stored by the gateway.

    Usage:
        doc = make_user_doc("alice", roles=["admin"], enabled=False)
    """
    def _make(name: str, **fields) -> dict[str, Any]:
        doc = {
            "_id": user_doc_id(name),
            "type": "user",
            "name": name,
            "email": f"{name}@example.com",
            "roles": ["user"],
            "password_hash": _TEST_PASSWORD_HASH,
        }
        doc.update(fields)
        return doc
    return _make


@pytest.fixture
def seed_user(store, make_user_doc):
    """
    Insert a user document synchronously, for tests driven by TestClient.

    Returns the stored document (including its revision).
    """
    def _seed(name: str, **fields) -> dict[str, Any]:
        doc = make_user_doc(name, **fields)

        async def _insert():
            await store.insert(doc, doc["_id"])
            return await store.get(name)

        return asyncio.run(_insert())
    return _seed


@pytest.fixture
def load_user(store):
    """Read a raw user document (or None) synchronously."""
    def _load(name: str):
        return asyncio.run(store.collection.find_one({"_id": user_doc_id(name)}))
    return _load
