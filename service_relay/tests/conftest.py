"""
Shared fixtures for relay service tests.
"""

import jwt
import pytest
from fastapi.testclient import TestClient

from service_relay.app.main import create_app
from shared.config import RelayConfig

CORE_BASE = "https://api.example.com"


def _encode(**claims) -> str:
    return jwt.encode(claims, "test-signing-key", algorithm="HS256")


@pytest.fixture
def relay_config():
    """Relay configuration pointing at a fake core service."""
    return RelayConfig(
        env="test",
        core_api_url=f"{CORE_BASE}/api",
        web_address="https://shop.example.com",
    )


@pytest.fixture
def client(relay_config):
    """Test client for the relay service."""
    return TestClient(create_app(relay_config))


@pytest.fixture
def make_token():
    """Factory for session tokens carrying the given claims."""
    return _encode


@pytest.fixture
def token(make_token):
    """Session token for customer 42 signed in through the identity provider."""
    return make_token(sub="42", externalId="clerk_abc")


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}
