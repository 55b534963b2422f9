"""OAuth 2.0 authorization code + PKCE client for the Hugging Face Hub.

Provides PKCE generation, the scope vocabulary, pluggable token storage,
the token-endpoint client, and an authentication manager that signs the
user in and keeps a valid access token.
"""

from __future__ import annotations

from .client import OAuthClient
from .config import OAuthClientConfiguration, OAuthSettings
from .exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    HFOAuthError,
    InvalidConfiguration,
    InvalidState,
    MissingAuthorizationCode,
    SignInInProgress,
    SignInTimeout,
    StorageFailure,
    TokenExchangeFailed,
    TransportError,
    UserCancelled,
)
from .log import enable_debug, set_level
from .manager import AuthenticationManager
from .pkce import PKCEChallenge
from .scopes import Scope, ScopeSet
from .token_store import (
    CallableTokenStorage,
    KeyringTokenStorage,
    MemoryTokenStorage,
    TokenStorage,
    create_token_storage,
)
from .types import AuthState, OAuthToken
from .user_agent import BrowserUserAgent, UserAgent


__version__ = "0.1.0"

__all__ = [
    "AuthState",
    "AuthenticationManager",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "BrowserUserAgent",
    "CallableTokenStorage",
    "HFOAuthError",
    "InvalidConfiguration",
    "InvalidState",
    "KeyringTokenStorage",
    "MemoryTokenStorage",
    "MissingAuthorizationCode",
    "OAuthClient",
    "OAuthClientConfiguration",
    "OAuthSettings",
    "OAuthToken",
    "PKCEChallenge",
    "Scope",
    "ScopeSet",
    "SignInInProgress",
    "SignInTimeout",
    "StorageFailure",
    "TokenExchangeFailed",
    "TokenStorage",
    "TransportError",
    "UserAgent",
    "UserCancelled",
    "create_token_storage",
    "enable_debug",
    "set_level",
]
