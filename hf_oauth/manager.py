"""Authentication manager: sign-in, token validity and refresh.

Owns the current token. Every mutation of the in-memory token and of the
persisted copy goes through one ``asyncio.Lock``; the refresh path
re-checks expiry after acquiring it, so callers that queue behind an
in-flight refresh reuse its result instead of starting another exchange.

Sign-in holds a separate lock for the whole interactive flow. A second
``sign_in()`` while one is running fails with ``SignInInProgress``.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging
import secrets
import time

from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs, urlsplit

from .client import OAuthClient
from .exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    InvalidState,
    MissingAuthorizationCode,
    SignInInProgress,
    StorageFailure,
    TokenExchangeFailed,
    UserCancelled,
)
from .pkce import PKCEChallenge
from .token_store import KeyringTokenStorage, create_token_storage
from .types import AuthorizationRequest, AuthState
from .user_agent import BrowserUserAgent


if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import OAuthClientConfiguration, OAuthSettings
    from .scopes import ScopeSet
    from .token_store import TokenStorage
    from .types import OAuthToken
    from .user_agent import UserAgent


logger = logging.getLogger("hf_oauth.manager")

DEFAULT_REFRESH_BUFFER = 300.0


class AuthenticationManager:
    """Orchestrates sign-in and keeps a usable access token.

    Parameters
    ----------
    configuration : OAuthClientConfiguration
        The OAuth application configuration.
    storage : TokenStorage, optional
        Where the token is persisted (default: OS keyring).
    user_agent : UserAgent, optional
        Presents the authorization URL (default: system browser with a
        loopback redirect listener).
    client : OAuthClient, optional
        Protocol client (default: one built from ``configuration``).
    refresh_buffer : float
        Refresh the access token once it expires within this many
        seconds (default ``300``).
    clock : callable
        Returns the current Unix time (default ``time.time``).
    """

    def __init__(
        self,
        configuration: OAuthClientConfiguration,
        storage: TokenStorage | None = None,
        user_agent: UserAgent | None = None,
        client: OAuthClient | None = None,
        refresh_buffer: float = DEFAULT_REFRESH_BUFFER,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the authentication manager."""
        self.configuration = configuration
        self.storage = storage if storage is not None else KeyringTokenStorage()
        self.user_agent = user_agent if user_agent is not None else BrowserUserAgent()
        self.client = client if client is not None else OAuthClient(configuration, clock=clock)
        self.refresh_buffer = refresh_buffer
        self._clock = clock

        self._token: OAuthToken | None = None
        self._loaded = False
        self._load_lock = asyncio.Lock()
        self._token_lock = asyncio.Lock()
        self._sign_in_lock = asyncio.Lock()
        self._refreshing = False

    @classmethod
    async def create(
        cls,
        configuration: OAuthClientConfiguration,
        **kwargs: Any,
    ) -> AuthenticationManager:
        """Build a manager and load the persisted token.

        Accepts the same keyword arguments as the constructor.
        """
        manager = cls(configuration, **kwargs)
        await manager.initialize()
        return manager

    @classmethod
    def from_settings(
        cls,
        settings: OAuthSettings,
        **kwargs: Any,
    ) -> AuthenticationManager:
        """Build a manager from :class:`~hf_oauth.config.OAuthSettings`.

        Keyword arguments override the storage, user-agent and client the
        settings would otherwise select.
        """
        kwargs.setdefault(
            "storage",
            create_token_storage(
                settings.token_store_backend,
                service=settings.keyring_service,
                account=settings.keyring_account,
            ),
        )
        kwargs.setdefault("user_agent", BrowserUserAgent(timeout=settings.sign_in_timeout_seconds))
        kwargs.setdefault("refresh_buffer", settings.refresh_buffer_seconds)
        return cls(settings.to_configuration(), **kwargs)

    # ── State ───────────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        """True if a token is held in memory (it may still be expired)."""
        return self._token is not None

    @property
    def current_token(self) -> OAuthToken | None:
        """The token currently held in memory."""
        return self._token

    @property
    def state(self) -> AuthState:
        """Where the manager is in its sign-in / refresh lifecycle."""
        if self._sign_in_lock.locked():
            return AuthState.AUTHENTICATING
        if self._refreshing:
            return AuthState.REFRESHING
        token = self._token
        if token is None:
            return AuthState.SIGNED_OUT
        if token.expires_within(self.refresh_buffer, self._clock()):
            return AuthState.TOKEN_STALE
        return AuthState.SIGNED_IN

    async def initialize(self) -> OAuthToken | None:
        """Load the persisted token once.

        Later calls are no-ops. Called lazily by the other operations.

        Raises
        ------
        StorageFailure
            If the storage cannot be read; the manager stays uninitialized
            so the next call retries.
        """
        if self._loaded:
            return self._token
        async with self._load_lock:
            if not self._loaded:
                token = await self.storage.retrieve()
                async with self._token_lock:
                    if not self._loaded:
                        self._token = token
                        self._loaded = True
                logger.debug("Loaded persisted token: %s", "present" if token else "none")
        return self._token

    # ── Sign-in ─────────────────────────────────────────────────────

    def prepare_authorization(self, scope: ScopeSet | str | None = None) -> AuthorizationRequest:
        """Generate the PKCE pair and state for one sign-in attempt."""
        pkce = PKCEChallenge.generate()
        state = secrets.token_urlsafe(32)
        url = self.client.build_authorization_url(pkce.challenge, state, scope)
        return AuthorizationRequest(url=url, state=state, verifier=pkce.verifier)

    async def sign_in(self, scope: ScopeSet | str | None = None) -> None:
        """Run the interactive sign-in flow.

        The previous token, if any, is kept untouched until the code
        exchange succeeds. Cancelling the awaiting task has the same effect
        as the user cancelling. A stored token that cannot be read is
        ignored and replaced by the new one.

        Parameters
        ----------
        scope : ScopeSet or str, optional
            Scopes to request instead of the configured ones.

        Raises
        ------
        SignInInProgress
            If another ``sign_in()`` on this manager has not finished.
        UserCancelled
            If the user-agent reported cancellation.
        InvalidState
            If the redirect ``state`` does not match this attempt.
        AuthorizationDenied
            If the redirect carried an OAuth ``error``.
        MissingAuthorizationCode
            If the redirect carried no ``code``.
        TokenExchangeFailed
            If the server rejected the authorization code.
        TransportError
            If the token endpoint could not be reached.
        StorageFailure
            If the new token could not be persisted (it is still held in memory).
        """
        if self._sign_in_lock.locked():
            msg = "A sign-in is already in progress"
            raise SignInInProgress(msg)

        async with self._sign_in_lock:
            try:
                await self.initialize()
            except StorageFailure as exc:
                # The new token overwrites the unreadable record on commit
                logger.warning("Ignoring unreadable stored token: %s", exc)
                async with self._token_lock:
                    if not self._loaded:
                        self._token = None
                        self._loaded = True
            request = self.prepare_authorization(scope)

            logger.info("Starting sign-in for client %s", self.configuration.client_id)
            redirect = await self.user_agent.present(request.url, self.configuration.redirect_url)
            if redirect is None:
                msg = "Sign-in was cancelled"
                raise UserCancelled(msg)

            code = self.parse_redirect(redirect, request.state)
            token = await self.client.exchange_code(code, request.verifier)

            async with self._token_lock:
                await self._commit(token)
            logger.info("Sign-in completed")

    @staticmethod
    def parse_redirect(redirect_url: str, expected_state: str) -> str:
        """Validate a redirect URL and return its authorization code.

        Raises
        ------
        InvalidState
            If ``state`` is missing or differs from ``expected_state``.
        AuthorizationDenied
            If the redirect carries an ``error`` parameter.
        MissingAuthorizationCode
            If no ``code`` parameter is present.
        """
        params = parse_qs(urlsplit(redirect_url).query)
        state = params.get("state", [""])[0]
        if not state or not secrets.compare_digest(state, expected_state):
            logger.warning("Rejected sign-in redirect with mismatched state")
            msg = "State parameter mismatch (possible CSRF attack)"
            raise InvalidState(msg)

        error = params.get("error", [None])[0]
        if error:
            description = params.get("error_description", [None])[0]
            msg = f"Authorization server returned an error: {description or error}"
            raise AuthorizationDenied(msg, error=error, error_description=description)

        code = params.get("code", [""])[0]
        if not code:
            msg = "No authorization code in redirect"
            raise MissingAuthorizationCode(msg)
        return code

    # ── Token access ────────────────────────────────────────────────

    async def get_valid_token(self) -> str:
        """Return an access token that is valid for at least the refresh buffer.

        Refreshes through the client when the current token expires within
        the buffer. Concurrent callers share a single refresh exchange.

        Returns
        -------
        str
            The access token.

        Raises
        ------
        AuthenticationRequired
            If there is no token, or it is expired and cannot be refreshed.
            A rejected refresh clears the stored token first. If that delete
            fails, the StorageFailure is carried in ``context["storage_error"]``.
        TransportError
            If the token endpoint could not be reached; the token is kept.
        StorageFailure
            If the storage could not be read, or a refreshed token could not
            be persisted (the refreshed token is still held in memory).
        """
        await self.initialize()

        token = self._token
        if token is None:
            msg = "Not signed in"
            raise AuthenticationRequired(msg)
        if not token.expires_within(self.refresh_buffer, self._clock()):
            return token.access_token

        async with self._token_lock:
            # Another caller may have refreshed or signed out while we waited
            token = self._token
            if token is None:
                msg = "Not signed in"
                raise AuthenticationRequired(msg)
            now = self._clock()
            if not token.expires_within(self.refresh_buffer, now):
                return token.access_token

            if not token.refresh_token:
                if not token.is_expired(now):
                    return token.access_token
                delete_error = await self._discard()
                msg = "Access token expired and no refresh token is available"
                raise AuthenticationRequired(msg, storage_error=delete_error) from delete_error

            self._refreshing = True
            try:
                new_token = await self.client.refresh(token.refresh_token)
            except TokenExchangeFailed as exc:
                logger.warning("Token refresh rejected, clearing stored token: %s", exc)
                delete_error = await self._discard()
                msg = "Refresh token was rejected; sign in again"
                raise AuthenticationRequired(
                    msg, error=exc.error, storage_error=delete_error
                ) from exc
            finally:
                self._refreshing = False

            await self._commit(new_token)
            logger.info("Access token refreshed")
            return new_token.access_token

    async def get_user_info(self) -> dict[str, Any]:
        """Fetch the signed-in user's profile with a valid access token."""
        access_token = await self.get_valid_token()
        return await self.client.fetch_user_info(access_token)

    # ── Sign-out ────────────────────────────────────────────────────

    async def sign_out(self) -> bool:
        """Forget the token in memory and delete the persisted copy.

        Never raises. In-memory state is always cleared.

        Returns
        -------
        bool
            False if the persisted token could not be deleted.
        """
        async with self._token_lock:
            self._token = None
            self._loaded = True
            try:
                await self.storage.delete()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Signed out, but the stored token could not be deleted: %s", exc)
                return False
        logger.info("Signed out")
        return True

    async def aclose(self) -> None:
        """Release the client's HTTP resources."""
        await self.client.aclose()

    # ── Internals (callers hold _token_lock) ────────────────────────

    async def _commit(self, token: OAuthToken) -> None:
        self._token = token
        self._loaded = True
        await self.storage.store(token)

    async def _discard(self) -> StorageFailure | None:
        """Clear the token; return the delete failure instead of raising it."""
        self._token = None
        try:
            await self.storage.delete()
        except StorageFailure as exc:
            logger.error("Could not delete stored token: %s", exc)  # noqa: TRY400
            return exc
        return None
