"""Pluggable token storage backends.

Provides the TokenStorage ABC and concrete implementations for
in-memory, OS keyring, and caller-supplied persistence. A storage holds
at most one token; every failure surfaces as StorageFailure.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import inspect
import json
import logging

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import keyring

from keyring.errors import KeyringError, PasswordDeleteError

from .config import DEFAULT_KEYRING_ACCOUNT, DEFAULT_KEYRING_SERVICE
from .exceptions import StorageFailure
from .types import OAuthToken


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger("hf_oauth.storage")


class TokenStorage(ABC):
    """Abstract base class for token persistence.

    All methods are async so network-backed or thread-offloaded stores fit
    the same contract. Implementations raise ``StorageFailure`` on any
    backend error instead of returning a default.
    """

    @abstractmethod
    async def store(self, token: OAuthToken) -> None:
        """Persist ``token``, replacing any previously stored token."""

    @abstractmethod
    async def retrieve(self) -> OAuthToken | None:
        """Return the last persisted token, or None if nothing is stored."""

    @abstractmethod
    async def delete(self) -> None:
        """Remove the persisted token. Deleting an empty storage is a no-op."""


def serialize_token(token: OAuthToken) -> str:
    """Serialize an OAuthToken to JSON."""
    return json.dumps(token.to_dict())


def deserialize_token(data: str) -> OAuthToken:
    """Deserialize an OAuthToken from JSON.

    Raises
    ------
    StorageFailure
        If the record is not a valid token serialization.
    """
    try:
        obj = json.loads(data)
        if not isinstance(obj, dict):
            msg = "token record is not a JSON object"
            raise ValueError(msg)  # noqa: TRY301
        return OAuthToken.from_dict(obj)
    except (ValueError, KeyError, TypeError) as exc:
        msg = f"Stored token record is corrupt: {exc}"
        raise StorageFailure(msg, operation="retrieve") from exc


class MemoryTokenStorage(TokenStorage):
    """In-memory token storage for tests and short-lived processes.

    Keeps the serialized record so retrieval goes through the same
    decoding path as persistent backends.
    """

    def __init__(self) -> None:
        """Initialize the memory token storage."""
        self._record: str | None = None
        self._lock = asyncio.Lock()

    async def store(self, token: OAuthToken) -> None:
        """Save the token in memory."""
        async with self._lock:
            self._record = serialize_token(token)

    async def retrieve(self) -> OAuthToken | None:
        """Load the token from memory."""
        async with self._lock:
            if self._record is None:
                return None
            return deserialize_token(self._record)

    async def delete(self) -> None:
        """Forget the stored token."""
        async with self._lock:
            self._record = None


class KeyringTokenStorage(TokenStorage):
    """OS keyring-backed token storage.

    The JSON token record is stored as the password of the
    ``(service, account)`` pair. Keyring calls block, so they run in a
    worker thread.

    Parameters
    ----------
    service : str
        Keyring service name (default ``"huggingface.co"``).
    account : str
        Keyring account name (default ``"oauth-token"``).
    """

    def __init__(
        self,
        service: str = DEFAULT_KEYRING_SERVICE,
        account: str = DEFAULT_KEYRING_ACCOUNT,
    ) -> None:
        """Initialize the keyring token storage."""
        self.service = service
        self.account = account

    async def store(self, token: OAuthToken) -> None:
        """Save the token to the OS keyring."""
        data = serialize_token(token)
        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, keyring.set_password, self.service, self.account, data)
        except KeyringError as exc:
            msg = f"Could not write token to keyring: {exc}"
            raise StorageFailure(msg, operation="store", service=self.service) from exc
        logger.debug("Token stored in keyring %s/%s", self.service, self.account)

    async def retrieve(self) -> OAuthToken | None:
        """Load the token from the OS keyring."""
        try:
            loop = asyncio.get_event_loop()
            data = await loop.run_in_executor(
                None, keyring.get_password, self.service, self.account
            )
        except KeyringError as exc:
            msg = f"Could not read token from keyring: {exc}"
            raise StorageFailure(msg, operation="retrieve", service=self.service) from exc
        if data is None:
            return None
        return deserialize_token(data)

    async def delete(self) -> None:
        """Delete the token from the OS keyring."""
        try:
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(None, keyring.delete_password, self.service, self.account)
        except PasswordDeleteError:
            # Nothing stored under this service/account
            return
        except KeyringError as exc:
            msg = f"Could not delete token from keyring: {exc}"
            raise StorageFailure(msg, operation="delete", service=self.service) from exc
        logger.debug("Token deleted from keyring %s/%s", self.service, self.account)


class CallableTokenStorage(TokenStorage):
    """Adapt three caller-supplied callables into a TokenStorage.

    Each callable may be a plain function or a coroutine function.

    Parameters
    ----------
    store : callable
        ``store(token: OAuthToken) -> None``.
    retrieve : callable
        ``retrieve() -> OAuthToken | None``.
    delete : callable
        ``delete() -> None``.
    """

    def __init__(
        self,
        store: Callable[[OAuthToken], Any],
        retrieve: Callable[[], Any],
        delete: Callable[[], Any],
    ) -> None:
        """Initialize the adapter."""
        self._store = store
        self._retrieve = retrieve
        self._delete = delete

    async def store(self, token: OAuthToken) -> None:
        """Forward to the ``store`` callable."""
        await self._call("store", self._store, token)

    async def retrieve(self) -> OAuthToken | None:
        """Forward to the ``retrieve`` callable."""
        result = await self._call("retrieve", self._retrieve)
        if result is not None and not isinstance(result, OAuthToken):
            msg = f"retrieve() returned {type(result).__name__}, expected OAuthToken or None"
            raise StorageFailure(msg, operation="retrieve")
        return result

    async def delete(self) -> None:
        """Forward to the ``delete`` callable."""
        await self._call("delete", self._delete)

    @staticmethod
    async def _call(operation: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            result = func(*args)
            if inspect.isawaitable(result):
                result = await result
        except StorageFailure:
            raise
        except Exception as exc:
            msg = f"Token storage {operation} failed: {exc}"
            raise StorageFailure(msg, operation=operation) from exc
        return result


def create_token_storage(backend: str = "keyring", **kwargs: Any) -> TokenStorage:
    """Factory function for token storage backends.

    Parameters
    ----------
    backend : str
        Storage backend: "keyring" or "memory".
    **kwargs : Any
        ``service`` and ``account`` for the keyring backend.

    Returns
    -------
    TokenStorage
        A configured token storage instance.
    """
    if backend == "memory":
        return MemoryTokenStorage()
    if backend == "keyring":
        return KeyringTokenStorage(
            service=kwargs.get("service", DEFAULT_KEYRING_SERVICE),
            account=kwargs.get("account", DEFAULT_KEYRING_ACCOUNT),
        )
    msg = f"Unknown token storage backend: {backend}"
    raise ValueError(msg)
