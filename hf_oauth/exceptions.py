"""hf-oauth exception hierarchy.

All hf-oauth exceptions inherit from HFOAuthError, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class HFOAuthError(Exception):
    """Base exception for all hf-oauth errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize hf-oauth exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (error code, status, operation, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        context = {k: v for k, v in self.context.items() if v is not None}
        if context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in context.items())
            return f"{self.message} ({ctx})"
        return self.message


class InvalidConfiguration(HFOAuthError):
    """A required construction parameter is missing or malformed.

    Raised at construction time; not retryable.
    """


class AuthenticationRequired(HFOAuthError):
    """No usable token is available.

    The caller must run ``sign_in()`` before retrying.
    """


class TokenExchangeFailed(HFOAuthError):
    """The token endpoint rejected a code or refresh exchange.

    Carries the server-reported OAuth error code and description
    when the response body contained them.
    """

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        """Initialize token exchange error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        error : str, optional
            The OAuth ``error`` code (e.g. ``"invalid_grant"``).
        error_description : str, optional
            The OAuth ``error_description``.
        status_code : int, optional
            The HTTP status code of the token endpoint response.
        **context : Any
            Additional context.
        """
        super().__init__(
            message,
            error=error,
            error_description=error_description,
            status_code=status_code,
            **context,
        )
        self.error = error
        self.error_description = error_description
        self.status_code = status_code


class InvalidState(HFOAuthError):
    """The redirect ``state`` did not match the value sent for this attempt.

    Treated as a security event: the flow is aborted and no token changes.
    """


class UserCancelled(HFOAuthError):
    """The user-agent reported that the user cancelled sign-in."""


class SignInTimeout(UserCancelled):
    """The user-agent gave up waiting for the redirect callback."""

    def __init__(self, message: str, timeout: float, **context: Any) -> None:
        """Initialize timeout error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        timeout : float
            The timeout value in seconds.
        **context : Any
            Additional context.
        """
        super().__init__(message, timeout=timeout, **context)
        self.timeout = timeout


class MissingAuthorizationCode(HFOAuthError):
    """The redirect callback carried no ``code`` parameter."""


class AuthorizationDenied(HFOAuthError):
    """The authorization server redirected back with an ``error`` parameter."""

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize authorization error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        error : str, optional
            The OAuth ``error`` code from the redirect.
        error_description : str, optional
            The OAuth ``error_description`` from the redirect.
        **context : Any
            Additional context.
        """
        super().__init__(message, error=error, error_description=error_description, **context)
        self.error = error
        self.error_description = error_description


class SignInInProgress(HFOAuthError):
    """``sign_in()`` was called while another sign-in was still running."""


class StorageFailure(HFOAuthError):
    """The token storage backend could not store, retrieve or delete a token."""

    def __init__(self, message: str, operation: str | None = None, **context: Any) -> None:
        """Initialize storage error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        operation : str, optional
            The storage operation that failed (``store``, ``retrieve``, ``delete``).
        **context : Any
            Additional context.
        """
        super().__init__(message, operation=operation, **context)
        self.operation = operation


class TransportError(HFOAuthError):
    """The HTTP request to the authorization server could not be completed.

    Raised for network-level failures only; it is never retried and never
    clears the current token.
    """
