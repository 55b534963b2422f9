"""Data types shared across the token lifecycle."""

from __future__ import annotations

import time

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class OAuthToken:
    """Token issued by a code or refresh exchange.

    Attributes
    ----------
    access_token : str
        The bearer credential for API requests.
    expires_at : float
        Absolute Unix timestamp after which the access token is invalid.
    token_type : str
        Token type, typically "Bearer".
    refresh_token : str or None
        Optional refresh token for obtaining new access tokens.
    id_token : str or None
        Optional OIDC identity token (JWT).
    scope : str
        Space-separated scopes granted by the server, if reported.
    """

    access_token: str
    expires_at: float
    token_type: str = "Bearer"  # noqa: S105
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str = ""

    def is_expired(self, now: float | None = None) -> bool:
        """Check if the access token has expired."""
        current = time.time() if now is None else now
        return current >= self.expires_at

    def expires_within(self, seconds: float, now: float | None = None) -> bool:
        """Check whether the token expires within ``seconds`` of ``now``.

        A token whose remaining lifetime equals ``seconds`` exactly is
        considered to be within the window.
        """
        current = time.time() if now is None else now
        return self.expires_at - current <= seconds

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OAuthToken:
        """Rebuild a token from :meth:`to_dict` output.

        Raises
        ------
        KeyError
            If ``access_token`` or ``expires_at`` is missing.
        ValueError
            If a field has the wrong type.
        """
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            msg = "access_token must be a non-empty string"
            raise ValueError(msg)
        return cls(
            access_token=access_token,
            expires_at=float(data["expires_at"]),
            token_type=data.get("token_type") or "Bearer",
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            scope=data.get("scope") or "",
        )


class AuthState(str, Enum):
    """Lifecycle state of an authentication manager."""

    SIGNED_OUT = "signed_out"
    AUTHENTICATING = "authenticating"
    SIGNED_IN = "signed_in"
    TOKEN_STALE = "token_stale"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Everything generated for one sign-in attempt.

    Attributes
    ----------
    url : str
        The authorization endpoint URL to present to the user.
    state : str
        Single-use anti-forgery value that must come back on the redirect.
    verifier : str
        The PKCE verifier to send with the code exchange.
    """

    url: str
    state: str
    verifier: str
