"""Configuration for the OAuth client.

``OAuthClientConfiguration`` is the validated, immutable input every
component is built from. ``OAuthSettings`` is an optional pydantic-settings
loader for applications that prefer to configure the client from
environment variables; it is only consulted when instantiated explicitly.

Environment variables use the HF_OAUTH_ prefix.
Example: HF_OAUTH_CLIENT_ID, HF_OAUTH_REDIRECT_URL
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import InvalidConfiguration
from .scopes import ScopeSet


DEFAULT_BASE_URL = "https://huggingface.co"
DEFAULT_KEYRING_SERVICE = "huggingface.co"
DEFAULT_KEYRING_ACCOUNT = "oauth-token"

_LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def is_loopback_host(host: str | None) -> bool:
    """Whether ``host`` names the local machine."""
    return (host or "").lower() in _LOOPBACK_HOSTS


def _check_base_url(value: str) -> str:
    parts = urlsplit(value)
    if not parts.netloc:
        msg = f"Base URL must be absolute: {value!r}"
        raise InvalidConfiguration(msg, field="base_url")
    if parts.scheme == "https" or (parts.scheme == "http" and is_loopback_host(parts.hostname)):
        return value.rstrip("/")
    msg = f"Base URL must use https: {value!r}"
    raise InvalidConfiguration(msg, field="base_url")


def _check_redirect_url(value: str) -> str:
    parts = urlsplit(value)
    if not parts.scheme:
        msg = f"Redirect URL must have a scheme: {value!r}"
        raise InvalidConfiguration(msg, field="redirect_url")
    if parts.scheme == "https":
        if not parts.netloc:
            msg = f"Redirect URL must be absolute: {value!r}"
            raise InvalidConfiguration(msg, field="redirect_url")
        return value
    if parts.scheme == "http":
        if is_loopback_host(parts.hostname):
            return value
        msg = f"Plain http redirect URLs are only allowed on loopback hosts: {value!r}"
        raise InvalidConfiguration(msg, field="redirect_url")
    # App-custom scheme, e.g. myapp://oauth/callback
    return value


@dataclass(frozen=True)
class OAuthClientConfiguration:
    """Immutable configuration for an OAuth client.

    Parameters
    ----------
    client_id : str
        The OAuth application's client identifier.
    redirect_url : str
        Where the authorization server sends the user back. Must be
        ``https``, ``http`` on a loopback host, or an app-custom scheme.
    scope : str
        Space-separated scopes to request.
    base_url : str
        Authorization server root (default ``https://huggingface.co``).

    Raises
    ------
    InvalidConfiguration
        If any field fails validation.
    """

    client_id: str
    redirect_url: str
    scope: str = ""
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self) -> None:
        """Validate and normalize fields."""
        if not self.client_id or not self.client_id.strip():
            msg = "client_id must not be empty"
            raise InvalidConfiguration(msg, field="client_id")
        # frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "base_url", _check_base_url(self.base_url))
        object.__setattr__(self, "redirect_url", _check_redirect_url(self.redirect_url))

    @property
    def authorize_url(self) -> str:
        """The authorization endpoint."""
        return f"{self.base_url}/oauth/authorize"

    @property
    def token_url(self) -> str:
        """The token endpoint."""
        return f"{self.base_url}/oauth/token"

    @property
    def userinfo_url(self) -> str:
        """The OIDC userinfo endpoint."""
        return f"{self.base_url}/oauth/userinfo"


class OAuthSettings(BaseSettings):
    """Environment-driven settings for building an authentication manager.

    Environment prefix: HF_OAUTH_
    Example: HF_OAUTH_CLIENT_ID=your-client-id
    Example: HF_OAUTH_TOKEN_STORE_BACKEND=memory
    """

    model_config = SettingsConfigDict(
        env_prefix="HF_OAUTH_",
        extra="ignore",
    )

    client_id: str = Field(
        default="",
        description="OAuth application client ID",
    )
    redirect_url: str = Field(
        default="http://127.0.0.1:8765/callback",
        description="Redirect URL registered for the OAuth application",
    )
    scopes: str = Field(
        default="openid profile email",
        description="Space-separated OAuth scopes to request",
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Authorization server base URL",
    )

    token_store_backend: Literal["keyring", "memory"] = Field(
        default="keyring",
        description="Token storage backend: keyring or memory",
    )
    keyring_service: str = Field(
        default=DEFAULT_KEYRING_SERVICE,
        description="Keyring service name for the persisted token",
    )
    keyring_account: str = Field(
        default=DEFAULT_KEYRING_ACCOUNT,
        description="Keyring account name for the persisted token",
    )

    refresh_buffer_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Refresh the access token when it expires within this many seconds",
    )
    sign_in_timeout_seconds: float = Field(
        default=300.0,
        ge=10.0,
        description="Maximum seconds to wait for the browser redirect",
    )

    @field_validator("scopes")
    @classmethod
    def validate_scopes(cls, v: str) -> str:
        """Normalize the scope string to its canonical order."""
        try:
            return ScopeSet.parse(v).to_string()
        except InvalidConfiguration as exc:
            raise ValueError(str(exc)) from exc

    def to_configuration(self) -> OAuthClientConfiguration:
        """Build a validated client configuration from these settings."""
        return OAuthClientConfiguration(
            client_id=self.client_id,
            redirect_url=self.redirect_url,
            scope=self.scopes,
            base_url=self.base_url,
        )
