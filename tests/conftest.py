"""Pytest configuration and fixtures."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

from typing import Any

import pytest

from hf_oauth.config import OAuthClientConfiguration
from hf_oauth.scopes import ScopeSet
from hf_oauth.token_store import MemoryTokenStorage
from tests.helpers import REDIRECT_URL, FakeClock, FakeUserAgent


@pytest.fixture()
def clock() -> FakeClock:
    """A clock frozen at NOW."""
    return FakeClock()


@pytest.fixture()
def configuration() -> OAuthClientConfiguration:
    """Configuration requesting the read-access preset."""
    return OAuthClientConfiguration(
        client_id="test-client",
        redirect_url=REDIRECT_URL,
        scope=ScopeSet.read_access().to_string(),
    )


@pytest.fixture()
def storage() -> MemoryTokenStorage:
    """Empty in-memory storage."""
    return MemoryTokenStorage()


@pytest.fixture()
def user_agent() -> FakeUserAgent:
    """User-agent that approves the request with code ``abc``."""
    return FakeUserAgent()


@pytest.fixture()
def token_payload() -> dict[str, Any]:
    """A successful token endpoint response body."""
    return {
        "access_token": "T1",
        "token_type": "Bearer",
        "expires_in": 3600,
        "refresh_token": "R1",
        "id_token": "I1",
        "scope": "openid profile email read-repos",
    }
