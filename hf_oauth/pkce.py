"""PKCE verifier and S256 challenge generation (RFC 7636).

The verifier is the secret half kept by the client until the code
exchange; the challenge is what travels in the authorization URL.
"""

from __future__ import annotations

import hashlib
import secrets

from base64 import urlsafe_b64encode
from dataclasses import dataclass


# 32 random bytes encode to 43 characters, 96 bytes to 128 (RFC 7636 bounds)
MIN_VERIFIER_BYTES = 32
MAX_VERIFIER_BYTES = 96


def derive_challenge(verifier: str) -> str:
    """Return ``BASE64URL(SHA256(ascii(verifier)))`` without ``=`` padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class PKCEChallenge:
    """A verifier together with its derived challenge.

    Attributes
    ----------
    verifier : str
        URL-safe random string, 43 to 128 characters. Never leaves the
        client except in the token request.
    challenge : str
        S256 derivation of ``verifier`` sent with the authorization request.
    method : str
        Challenge method name; only ``"S256"`` is produced.
    """

    verifier: str
    challenge: str
    method: str = "S256"

    @classmethod
    def generate(cls, length: int = 64) -> PKCEChallenge:
        """Create a fresh pair from the OS secure random source.

        Parameters
        ----------
        length : int
            Random bytes behind the verifier, 32 to 96 (default 64).

        Returns
        -------
        PKCEChallenge

        Raises
        ------
        ValueError
            If ``length`` is out of range.
        """
        if not MIN_VERIFIER_BYTES <= length <= MAX_VERIFIER_BYTES:
            msg = (
                f"PKCE verifier length must be between {MIN_VERIFIER_BYTES} "
                f"and {MAX_VERIFIER_BYTES} bytes, got {length}"
            )
            raise ValueError(msg)
        raw = secrets.token_urlsafe(length)
        return cls(verifier=raw, challenge=derive_challenge(raw))

    def verify(self) -> bool:
        """Check that the challenge is the S256 derivation of the verifier."""
        return secrets.compare_digest(self.challenge, derive_challenge(self.verifier))
