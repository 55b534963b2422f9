"""OAuth2 authorization code client with PKCE.

Stateless protocol logic: builds the authorization URL, exchanges an
authorization code or refresh token at the token endpoint and parses the
response into an :class:`~hf_oauth.types.OAuthToken`. Nothing here retries;
every failure is raised to the caller.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import time

from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode, urlsplit

import httpx

from .exceptions import InvalidConfiguration, TokenExchangeFailed, TransportError
from .log import redact_sensitive_data
from .scopes import ScopeSet
from .types import OAuthToken


if TYPE_CHECKING:
    from collections.abc import Callable

    from .config import OAuthClientConfiguration


logger = logging.getLogger("hf_oauth.client")


class OAuthClient:
    """Authorization code + PKCE client for a single OAuth application.

    Parameters
    ----------
    configuration : OAuthClientConfiguration
        The validated client configuration.
    http_client : httpx.AsyncClient, optional
        Transport to use. When omitted the client creates its own and
        closes it in :meth:`aclose`.
    clock : callable
        Returns the current Unix time; used to turn ``expires_in`` into
        an absolute expiry (default ``time.time``).
    """

    def __init__(
        self,
        configuration: OAuthClientConfiguration,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the OAuth client."""
        self.configuration = configuration
        self._clock = clock
        self._owns_http_client = http_client is None
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=30.0)
            self._owns_http_client = True
        return self._http_client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if (
            self._owns_http_client
            and self._http_client is not None
            and not self._http_client.is_closed
        ):
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> OAuthClient:
        """Enter the async context."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close owned resources."""
        await self.aclose()

    def build_authorization_url(
        self,
        challenge: str,
        state: str,
        scope: ScopeSet | str | None = None,
    ) -> str:
        """Build the full authorization URL.

        Parameters
        ----------
        challenge : str
            The PKCE S256 code challenge.
        state : str
            Anti-forgery value that must come back on the redirect.
        scope : ScopeSet or str, optional
            Scopes to request; defaults to the configured scope string.

        Returns
        -------
        str
            The authorization endpoint URL with its query string.

        Raises
        ------
        InvalidConfiguration
            If the endpoint URL cannot be composed or a required value is empty.
        """
        if not challenge or not state:
            msg = "Authorization URL requires a code challenge and a state value"
            raise InvalidConfiguration(msg)

        endpoint = self.configuration.authorize_url
        parts = urlsplit(endpoint)
        if not parts.scheme or not parts.netloc or parts.query:
            msg = f"Cannot compose authorization URL from {endpoint!r}"
            raise InvalidConfiguration(msg, field="base_url")

        if scope is None:
            scope_value = self.configuration.scope
        elif isinstance(scope, ScopeSet):
            scope_value = scope.to_string()
        else:
            scope_value = scope

        params: dict[str, str] = {
            "response_type": "code",
            "client_id": self.configuration.client_id,
            "redirect_uri": self.configuration.redirect_url,
            "scope": scope_value,
            "state": state,
            "code_challenge": challenge,
            "code_challenge_method": "S256",
        }
        return f"{endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str, verifier: str) -> OAuthToken:
        """Exchange an authorization code for a token.

        Parameters
        ----------
        code : str
            The authorization code from the redirect.
        verifier : str
            The PKCE verifier whose challenge was sent in the authorization request.

        Returns
        -------
        OAuthToken
            The issued token.

        Raises
        ------
        TokenExchangeFailed
            If the server rejects the code or the response is malformed.
        TransportError
            If the request could not be sent or no response was received.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.configuration.redirect_url,
            "client_id": self.configuration.client_id,
            "code_verifier": verifier,
        }
        return await self._request_token(data, grant="authorization_code")

    async def refresh(self, refresh_token: str) -> OAuthToken:
        """Exchange a refresh token for a new token.

        A response that omits ``refresh_token`` keeps the one that was used.

        Raises
        ------
        TokenExchangeFailed
            If the server rejects the refresh token; the caller must
            re-authenticate.
        TransportError
            If the request could not be sent or no response was received.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.configuration.client_id,
        }
        return await self._request_token(
            data, grant="refresh_token", previous_refresh_token=refresh_token
        )

    async def fetch_user_info(self, access_token: str) -> dict[str, Any]:
        """Fetch the signed-in user's profile from the userinfo endpoint.

        Raises
        ------
        TransportError
            If the request fails or the server answers with an error status.
        """
        client = await self._get_client()
        try:
            resp = await client.get(
                self.configuration.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            return resp.json()  # type: ignore[no-any-return]
        except httpx.HTTPStatusError as exc:
            msg = f"Userinfo request failed: {exc.response.status_code}"
            raise TransportError(msg, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            msg = f"Userinfo request failed: {exc}"
            raise TransportError(msg) from exc
        except ValueError as exc:
            msg = "Userinfo response is not valid JSON"
            raise TransportError(msg) from exc

    async def _request_token(
        self,
        data: dict[str, str],
        grant: str,
        previous_refresh_token: str | None = None,
    ) -> OAuthToken:
        """POST to the token endpoint and parse the response."""
        client = await self._get_client()
        try:
            resp = await client.post(
                self.configuration.token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            msg = f"Token request failed: {exc}"
            raise TransportError(msg, grant=grant) from exc

        received_at = self._clock()

        try:
            raw = resp.json()
        except ValueError:
            raw = None

        if not resp.is_success or not isinstance(raw, dict) or "error" in raw:
            error, description = _error_details(raw)
            logger.warning(
                "Token endpoint rejected %s grant: status=%s error=%s",
                grant,
                resp.status_code,
                error,
            )
            detail = description or error or f"HTTP {resp.status_code}"
            msg = f"Token exchange failed: {detail}"
            raise TokenExchangeFailed(
                msg,
                error=error,
                error_description=description,
                status_code=resp.status_code,
                grant=grant,
            )

        logger.debug("Token endpoint response: %s", redact_sensitive_data(raw))
        return _parse_token(raw, received_at, resp.status_code, grant, previous_refresh_token)


def _error_details(raw: Any) -> tuple[str | None, str | None]:
    if not isinstance(raw, dict):
        return None, None
    error = raw.get("error")
    description = raw.get("error_description")
    return (
        str(error) if error is not None else None,
        str(description) if description is not None else None,
    )


def _parse_token(
    raw: dict[str, Any],
    received_at: float,
    status_code: int,
    grant: str,
    previous_refresh_token: str | None,
) -> OAuthToken:
    access_token = raw.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        msg = "Token response is missing 'access_token'"
        raise TokenExchangeFailed(msg, status_code=status_code, grant=grant)

    expires_in = raw.get("expires_in")
    if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)) or expires_in < 0:
        msg = "Token response has a missing or invalid 'expires_in'"
        raise TokenExchangeFailed(msg, status_code=status_code, grant=grant)

    return OAuthToken(
        access_token=access_token,
        expires_at=received_at + float(expires_in),
        token_type=raw.get("token_type") or "Bearer",
        refresh_token=raw.get("refresh_token") or previous_refresh_token,
        id_token=raw.get("id_token"),
        scope=raw.get("scope") or "",
    )
