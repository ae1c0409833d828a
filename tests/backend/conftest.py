"""
Backend-specific test fixtures.

These fixtures build the FastAPI app on the mock MongoDB client and give
tests a TestClient with a cookie jar, so sessions carry across requests.
"""

from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient


# =============================================================================
# FastAPI Test Client Fixtures
# =============================================================================

@pytest.fixture
def make_client(mock_async_mongo_client, make_settings, transport):
    """
    Factory for a started TestClient on a fresh gateway app.

    Usage:
        client = make_client(verify=True)
        client = make_client(transport=failing_transport, hooks=GatewayHooks(...))
    """
    from account_gateway.main import create_app

    clients = []

    def _make(transport=transport, hooks=None, **settings_overrides) -> TestClient:
        settings = make_settings(**settings_overrides)
        app = create_app(
            settings=settings,
            hooks=hooks,
            mongo_client=mock_async_mongo_client,
            transport=transport,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    """A client on a gateway with default settings (no verification, no admin roles)."""
    return make_client()


# =============================================================================
# Request Helpers
# =============================================================================

@pytest.fixture
def signup_payload(test_password):
    """Factory for a complete signup body."""
    def _make(name: str = "alice", **fields) -> dict[str, Any]:
        payload = {
            "name": name,
            "password": test_password,
            "email": f"{name}@example.com",
            "roles": ["user"],
        }
        payload.update(fields)
        return payload
    return _make


@pytest.fixture
def signin(test_password):
    """Sign a client in and assert it worked."""
    def _signin(client: TestClient, name: str, password: Optional[str] = None):
        response = client.post(
            "/api/user/signin",
            json={"name": name, "password": password or test_password},
        )
        assert response.status_code == 200, response.text
        return response
    return _signin


@pytest.fixture
def assert_error_response():
    """Helper to assert the gateway's error body."""
    def _assert(response, status_code: int, message_contains: str = None, code: str = None):
        assert response.status_code == status_code, response.text
        data = response.json()
        assert data["ok"] is False
        assert data["statusCode"] == status_code
        if message_contains:
            assert message_contains.lower() in data["message"].lower()
        if code:
            assert data["code"] == code
    return _assert
