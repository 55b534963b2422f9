"""Test doubles and builders shared across the hf_oauth test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlencode, urlsplit

import httpx

from hf_oauth.types import OAuthToken
from hf_oauth.user_agent import UserAgent


if TYPE_CHECKING:
    from collections.abc import Callable


NOW = 1_700_000_000.0
REDIRECT_URL = "http://127.0.0.1:8765/callback"


class FakeClock:
    """Deterministic clock; assign ``now`` to move time."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeUserAgent(UserAgent):
    """User-agent that answers with a canned redirect.

    By default it echoes the ``state`` from the authorization URL and
    returns ``code``. Set ``state`` to force a mismatch, ``cancel`` to
    return None, or ``extra`` to add query parameters.
    """

    def __init__(
        self,
        code: str | None = "abc",
        state: str | None = None,
        cancel: bool = False,
        extra: dict[str, str] | None = None,
    ) -> None:
        self.code = code
        self.state = state
        self.cancel = cancel
        self.extra = extra or {}
        self.presented: list[str] = []

    async def present(self, authorization_url: str, redirect_url: str) -> str | None:
        self.presented.append(authorization_url)
        if self.cancel:
            return None
        sent_state = parse_qs(urlsplit(authorization_url).query)["state"][0]
        params: dict[str, str] = {"state": self.state if self.state is not None else sent_state}
        if self.code is not None:
            params["code"] = self.code
        params.update(self.extra)
        return f"{redirect_url}?{urlencode(params)}"


def make_token(
    access_token: str = "at_valid",
    expires_in: float = 3600,
    refresh_token: str | None = "rt_valid",
    now: float = NOW,
) -> OAuthToken:
    """Build a token that expires ``expires_in`` seconds after ``now``."""
    return OAuthToken(
        access_token=access_token,
        expires_at=now + expires_in,
        refresh_token=refresh_token,
    )


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build an httpx.Response with a JSON body."""
    return httpx.Response(status_code=status_code, json=data)


def form_body(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """Create an AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
