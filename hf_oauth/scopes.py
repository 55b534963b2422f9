"""OAuth scope vocabulary for the Hugging Face Hub.

Scopes form a closed set. ``ScopeSet`` renders them in declaration
order so the wire string is stable regardless of how the set was built.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import Enum

from .exceptions import InvalidConfiguration


class Scope(str, Enum):
    """A permission scope that can be requested during authorization."""

    OPENID = "openid"
    PROFILE = "profile"
    EMAIL = "email"
    READ_BILLING = "read-billing"
    READ_REPOS = "read-repos"
    WRITE_REPOS = "write-repos"
    MANAGE_REPOS = "manage-repos"
    INFERENCE_API = "inference-api"
    WRITE_DISCUSSIONS = "write-discussions"


_DECLARED_ORDER = {scope: index for index, scope in enumerate(Scope)}


class ScopeSet:
    """Immutable set of scopes with a canonical wire representation.

    Parameters
    ----------
    scopes : iterable of Scope or str
        The scopes in the set. Strings are looked up by their wire value.

    Raises
    ------
    InvalidConfiguration
        If a string does not name a known scope.
    """

    __slots__ = ("_scopes",)

    def __init__(self, scopes: Iterable[Scope | str] = ()) -> None:
        """Initialize the scope set."""
        self._scopes = frozenset(_coerce(s) for s in scopes)

    @classmethod
    def parse(cls, text: str) -> ScopeSet:
        """Parse a space-separated scope string."""
        return cls(text.split())

    def to_string(self) -> str:
        """Render the space-joined scope string in declaration order."""
        return " ".join(s.value for s in sorted(self._scopes, key=_DECLARED_ORDER.__getitem__))

    def __str__(self) -> str:
        """Return the wire string."""
        return self.to_string()

    def __repr__(self) -> str:
        """Return a debug representation."""
        return f"ScopeSet({self.to_string()!r})"

    def __iter__(self) -> Iterator[Scope]:
        """Iterate scopes in declaration order."""
        return iter(sorted(self._scopes, key=_DECLARED_ORDER.__getitem__))

    def __len__(self) -> int:
        """Return the number of scopes."""
        return len(self._scopes)

    def __contains__(self, item: object) -> bool:
        """Check membership by enum member or wire value."""
        if isinstance(item, str):
            try:
                item = Scope(item)
            except ValueError:
                return False
        return item in self._scopes

    def __eq__(self, other: object) -> bool:
        """Compare scope sets by membership."""
        if not isinstance(other, ScopeSet):
            return NotImplemented
        return self._scopes == other._scopes

    def __hash__(self) -> int:
        """Hash by membership."""
        return hash(self._scopes)

    def __or__(self, other: ScopeSet | Scope | str | Iterable[Scope | str]) -> ScopeSet:
        """Return the union with another set, an iterable, or a single scope."""
        if isinstance(other, str):
            other = [other]
        return ScopeSet([*self._scopes, *other])

    # Presets

    @classmethod
    def basic(cls) -> ScopeSet:
        """Identity only: openid, profile, email."""
        return cls([Scope.OPENID, Scope.PROFILE, Scope.EMAIL])

    @classmethod
    def read_access(cls) -> ScopeSet:
        """Identity plus read access to repositories."""
        return cls.basic() | [Scope.READ_REPOS]

    @classmethod
    def write_access(cls) -> ScopeSet:
        """Identity plus read and write access to repositories."""
        return cls.read_access() | [Scope.WRITE_REPOS]

    @classmethod
    def full_access(cls) -> ScopeSet:
        """Everything a desktop client usually needs."""
        return cls.write_access() | [
            Scope.MANAGE_REPOS,
            Scope.INFERENCE_API,
            Scope.WRITE_DISCUSSIONS,
        ]

    @classmethod
    def inference_only(cls) -> ScopeSet:
        """Just enough to call the inference API on the user's behalf."""
        return cls([Scope.OPENID, Scope.INFERENCE_API])

    @classmethod
    def discussions(cls) -> ScopeSet:
        """Identity plus the ability to open and comment on discussions."""
        return cls.basic() | [Scope.WRITE_DISCUSSIONS]


def _coerce(value: Scope | str) -> Scope:
    if isinstance(value, Scope):
        return value
    try:
        return Scope(value)
    except ValueError:
        msg = f"Unknown OAuth scope: {value!r}"
        raise InvalidConfiguration(msg, scope=value) from None
