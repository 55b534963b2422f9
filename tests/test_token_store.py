"""Unit tests for token storage backends."""

# pylint: disable=redefined-outer-name

from __future__ import annotations

import asyncio
import json

from unittest.mock import MagicMock

import pytest

from keyring.errors import KeyringError, PasswordDeleteError

from hf_oauth.exceptions import StorageFailure
from hf_oauth.token_store import (
    CallableTokenStorage,
    KeyringTokenStorage,
    MemoryTokenStorage,
    create_token_storage,
    deserialize_token,
    serialize_token,
)
from hf_oauth.types import OAuthToken
from tests.helpers import make_token


# ── Fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def sample_token() -> OAuthToken:
    """A token with every optional field set."""
    return OAuthToken(
        access_token="at_test_123",
        expires_at=1_700_003_600.0,
        token_type="Bearer",
        refresh_token="rt_test_456",
        id_token="id_tok",
        scope="openid email",
    )


@pytest.fixture()
def fake_keyring(monkeypatch: pytest.MonkeyPatch) -> dict[tuple[str, str], str]:
    """Replace the keyring backend calls with a dict."""
    vault: dict[tuple[str, str], str] = {}

    def _set(service: str, account: str, value: str) -> None:
        vault[(service, account)] = value

    def _get(service: str, account: str) -> str | None:
        return vault.get((service, account))

    def _delete(service: str, account: str) -> None:
        if (service, account) not in vault:
            raise PasswordDeleteError("not found")
        del vault[(service, account)]

    monkeypatch.setattr("hf_oauth.token_store.keyring.set_password", _set)
    monkeypatch.setattr("hf_oauth.token_store.keyring.get_password", _get)
    monkeypatch.setattr("hf_oauth.token_store.keyring.delete_password", _delete)
    return vault


# ── Serialization ───────────────────────────────────────────────────


class TestSerialization:
    """Tests for token serialization helpers."""

    def test_round_trip(self, sample_token: OAuthToken) -> None:
        """Tokens survive serialize→deserialize unchanged."""
        assert deserialize_token(serialize_token(sample_token)) == sample_token

    def test_serialize_is_json(self, sample_token: OAuthToken) -> None:
        """Serialized output is a JSON object."""
        parsed = json.loads(serialize_token(sample_token))
        assert parsed["access_token"] == "at_test_123"
        assert parsed["expires_at"] == 1_700_003_600.0

    def test_deserialize_missing_optional_fields(self) -> None:
        """Optional fields fall back to defaults."""
        token = deserialize_token(json.dumps({"access_token": "at", "expires_at": 5}))
        assert token.token_type == "Bearer"
        assert token.refresh_token is None
        assert token.expires_at == 5.0

    @pytest.mark.parametrize(
        "record",
        [
            "not json",
            "[]",
            json.dumps({"expires_at": 5}),
            json.dumps({"access_token": "at"}),
            json.dumps({"access_token": "", "expires_at": 5}),
            json.dumps({"access_token": "at", "expires_at": "soon"}),
        ],
    )
    def test_corrupt_record(self, record: str) -> None:
        """Corrupt records raise StorageFailure instead of returning None."""
        with pytest.raises(StorageFailure, match="corrupt") as exc_info:
            deserialize_token(record)
        assert exc_info.value.operation == "retrieve"


# ── MemoryTokenStorage ──────────────────────────────────────────────


class TestMemoryTokenStorage:
    """Tests for MemoryTokenStorage."""

    def test_store_and_retrieve(self, sample_token: OAuthToken) -> None:
        """Retrieve after store returns an equal token."""
        storage = MemoryTokenStorage()
        asyncio.run(storage.store(sample_token))
        assert asyncio.run(storage.retrieve()) == sample_token

    def test_retrieve_empty(self) -> None:
        """An empty storage retrieves None."""
        assert asyncio.run(MemoryTokenStorage().retrieve()) is None

    def test_delete_then_retrieve(self, sample_token: OAuthToken) -> None:
        """Delete followed by retrieve returns None."""
        storage = MemoryTokenStorage()
        asyncio.run(storage.store(sample_token))
        asyncio.run(storage.delete())
        assert asyncio.run(storage.retrieve()) is None

    def test_delete_empty(self) -> None:
        """Deleting an empty storage does not raise."""
        asyncio.run(MemoryTokenStorage().delete())

    def test_overwrite(self, sample_token: OAuthToken) -> None:
        """Storing again replaces the previous token."""
        storage = MemoryTokenStorage()
        asyncio.run(storage.store(sample_token))
        asyncio.run(storage.store(make_token("at_new")))
        loaded = asyncio.run(storage.retrieve())
        assert loaded is not None
        assert loaded.access_token == "at_new"


# ── KeyringTokenStorage ─────────────────────────────────────────────


class TestKeyringTokenStorage:
    """Tests for KeyringTokenStorage with a faked keyring backend."""

    def test_defaults(self) -> None:
        """Service and account default to the Hub entry."""
        storage = KeyringTokenStorage()
        assert storage.service == "huggingface.co"
        assert storage.account == "oauth-token"

    def test_store_and_retrieve(
        self, fake_keyring: dict[tuple[str, str], str], sample_token: OAuthToken
    ) -> None:
        """The token is stored as JSON under (service, account)."""
        storage = KeyringTokenStorage(service="svc", account="acct")
        asyncio.run(storage.store(sample_token))
        assert json.loads(fake_keyring[("svc", "acct")])["access_token"] == "at_test_123"
        assert asyncio.run(storage.retrieve()) == sample_token

    def test_retrieve_missing(self, fake_keyring: dict[tuple[str, str], str]) -> None:
        """No entry retrieves None."""
        assert asyncio.run(KeyringTokenStorage().retrieve()) is None

    def test_delete(
        self, fake_keyring: dict[tuple[str, str], str], sample_token: OAuthToken
    ) -> None:
        """Delete removes the entry."""
        storage = KeyringTokenStorage()
        asyncio.run(storage.store(sample_token))
        asyncio.run(storage.delete())
        assert fake_keyring == {}
        assert asyncio.run(storage.retrieve()) is None

    def test_delete_missing_is_noop(self, fake_keyring: dict[tuple[str, str], str]) -> None:
        """Deleting a missing entry does not raise."""
        asyncio.run(KeyringTokenStorage().delete())

    def test_corrupt_entry(self, fake_keyring: dict[tuple[str, str], str]) -> None:
        """A non-token entry surfaces as StorageFailure."""
        fake_keyring[("huggingface.co", "oauth-token")] = "garbage"
        with pytest.raises(StorageFailure):
            asyncio.run(KeyringTokenStorage().retrieve())

    @pytest.mark.parametrize(
        ("attr", "operation"),
        [
            ("set_password", "store"),
            ("get_password", "retrieve"),
            ("delete_password", "delete"),
        ],
    )
    def test_backend_errors_surface(
        self,
        monkeypatch: pytest.MonkeyPatch,
        sample_token: OAuthToken,
        attr: str,
        operation: str,
    ) -> None:
        """Keyring errors become StorageFailure tagged with the operation."""
        monkeypatch.setattr(
            f"hf_oauth.token_store.keyring.{attr}",
            MagicMock(side_effect=KeyringError("locked")),
        )
        storage = KeyringTokenStorage()
        if operation == "store":
            call = storage.store(sample_token)
        else:
            call = getattr(storage, operation)()
        with pytest.raises(StorageFailure, match="locked") as exc_info:
            asyncio.run(call)
        assert exc_info.value.operation == operation


# ── CallableTokenStorage ────────────────────────────────────────────


class TestCallableTokenStorage:
    """Tests for adapting caller-supplied callables."""

    def test_sync_callables(self, sample_token: OAuthToken) -> None:
        """Plain functions are called directly."""
        box: dict[str, OAuthToken | None] = {"token": None}

        def _store(token: OAuthToken) -> None:
            box["token"] = token

        def _delete() -> None:
            box["token"] = None

        storage = CallableTokenStorage(store=_store, retrieve=lambda: box["token"], delete=_delete)
        asyncio.run(storage.store(sample_token))
        assert asyncio.run(storage.retrieve()) == sample_token
        asyncio.run(storage.delete())
        assert asyncio.run(storage.retrieve()) is None

    def test_async_callables(self, sample_token: OAuthToken) -> None:
        """Coroutine functions are awaited."""
        box: dict[str, OAuthToken | None] = {"token": None}

        async def _store(token: OAuthToken) -> None:
            box["token"] = token

        async def _retrieve() -> OAuthToken | None:
            return box["token"]

        async def _delete() -> None:
            box["token"] = None

        storage = CallableTokenStorage(store=_store, retrieve=_retrieve, delete=_delete)
        asyncio.run(storage.store(sample_token))
        assert asyncio.run(storage.retrieve()) == sample_token

    def test_errors_are_wrapped(self, sample_token: OAuthToken) -> None:
        """Arbitrary exceptions become StorageFailure."""

        def _boom(*_args: object) -> None:
            raise RuntimeError("disk full")

        storage = CallableTokenStorage(store=_boom, retrieve=_boom, delete=_boom)
        with pytest.raises(StorageFailure, match="disk full") as exc_info:
            asyncio.run(storage.store(sample_token))
        assert exc_info.value.operation == "store"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        with pytest.raises(StorageFailure):
            asyncio.run(storage.delete())

    def test_retrieve_wrong_type(self) -> None:
        """retrieve() must produce an OAuthToken or None."""
        storage = CallableTokenStorage(
            store=lambda _t: None, retrieve=lambda: "at_raw", delete=lambda: None
        )
        with pytest.raises(StorageFailure, match="expected OAuthToken"):
            asyncio.run(storage.retrieve())


# ── Factory ─────────────────────────────────────────────────────────


class TestCreateTokenStorage:
    """Tests for create_token_storage()."""

    def test_memory(self) -> None:
        """'memory' builds a MemoryTokenStorage."""
        assert isinstance(create_token_storage("memory"), MemoryTokenStorage)

    def test_keyring(self) -> None:
        """'keyring' forwards service and account."""
        storage = create_token_storage("keyring", service="svc", account="acct")
        assert isinstance(storage, KeyringTokenStorage)
        assert (storage.service, storage.account) == ("svc", "acct")

    def test_unknown(self) -> None:
        """Unknown backends are rejected."""
        with pytest.raises(ValueError, match="Unknown token storage backend"):
            create_token_storage("redis")
