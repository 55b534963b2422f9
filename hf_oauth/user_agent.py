"""User-agent collaborators for the interactive sign-in step.

A user-agent presents the authorization URL to the user and reports the
redirect URL the authorization server sent them back to, or that the
user cancelled. The default implementation opens the system browser and
captures the redirect on a loopback HTTP server.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging
import threading
import webbrowser

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from .callback_server import OAuthCallbackServer
from .config import is_loopback_host
from .exceptions import InvalidConfiguration, SignInTimeout, UserCancelled


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger("hf_oauth.user_agent")


class UserAgent(ABC):
    """Presents an authorization URL and waits for the redirect."""

    @abstractmethod
    async def present(self, authorization_url: str, redirect_url: str) -> str | None:
        """Show ``authorization_url`` and wait for the redirect.

        Parameters
        ----------
        authorization_url : str
            The authorization endpoint URL to open.
        redirect_url : str
            The configured redirect URL the server will send the user to.

        Returns
        -------
        str or None
            The full redirect URL including its query string, or None if
            the user cancelled. Implementations may raise ``UserCancelled``
            instead of returning None.
        """


class BrowserUserAgent(UserAgent):
    """Open the system browser and capture the redirect on a loopback server.

    Only loopback ``http`` redirect URLs with an explicit port can be
    captured this way; apps registered with a custom URL scheme must
    supply their own :class:`UserAgent`.

    Parameters
    ----------
    timeout : float
        Seconds to wait for the redirect (default ``300``).
    open_browser : callable, optional
        Function used to open the URL (default ``webbrowser.open``).
    poll_interval : float
        Seconds between checks for the redirect or cancellation.
    """

    def __init__(
        self,
        timeout: float = 300.0,
        open_browser: Callable[[str], object] | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        """Initialize the browser user-agent."""
        self.timeout = timeout
        self._open_browser = open_browser or webbrowser.open
        self._poll_interval = poll_interval
        self._cancellation_event = threading.Event()

    def cancel(self) -> None:
        """Cancel the current presentation.

        The pending :meth:`present` call raises ``UserCancelled``.
        """
        self._cancellation_event.set()

    async def present(self, authorization_url: str, redirect_url: str) -> str | None:
        """Open the browser and wait for the loopback redirect.

        Raises
        ------
        InvalidConfiguration
            If ``redirect_url`` is not a loopback http URL with a port.
        UserCancelled
            If :meth:`cancel` was called while waiting.
        SignInTimeout
            If no redirect arrived within ``timeout`` seconds.
        """
        parts = urlsplit(redirect_url)
        if parts.scheme != "http" or not is_loopback_host(parts.hostname) or not parts.port:
            msg = (
                "BrowserUserAgent needs a loopback http redirect URL with an explicit "
                f"port, got {redirect_url!r}"
            )
            raise InvalidConfiguration(msg, field="redirect_url")

        self._cancellation_event.clear()
        server = OAuthCallbackServer(host=parts.hostname, port=parts.port, path=parts.path or "/")
        server.start()
        try:
            logger.info("Opening browser for sign-in")
            if not self._open_browser(authorization_url):
                logger.warning(
                    "Could not open a browser; visit this URL to sign in: %s", authorization_url
                )
            return await self._wait_for_redirect(server)
        finally:
            server.stop()

    async def _wait_for_redirect(self, server: OAuthCallbackServer) -> str:
        """Wait for the redirect in short slices, checking for cancellation between them."""
        loop = asyncio.get_event_loop()
        elapsed = 0.0
        while elapsed < self.timeout:
            if self._cancellation_event.is_set():
                msg = "Sign-in was cancelled"
                raise UserCancelled(msg)
            redirect = await loop.run_in_executor(
                None, server.wait_for_callback, self._poll_interval
            )
            if redirect is not None:
                return redirect
            elapsed += self._poll_interval

        msg = f"No sign-in redirect received after {self.timeout}s"
        raise SignInTimeout(msg, timeout=self.timeout)
