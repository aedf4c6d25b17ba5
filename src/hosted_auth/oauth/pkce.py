"""Random values for one sign-in attempt: the PKCE verifier and the state.

Both are unpadded base64url over CSPRNG bytes. The challenge sent to the
authorize endpoint is always S256 (RFC 7636 section 4.2).
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from hosted_auth.security import generate_secure_token

MIN_ENTROPY_BYTES = 32
MAX_VERIFIER_BYTES = 96  # 128 characters, the RFC 7636 ceiling

DEFAULT_VERIFIER_BYTES = 64  # 86 characters


@dataclass(frozen=True)
class PKCEPair:
    """A verifier kept in session storage and the challenge derived from it."""

    code_verifier: str
    code_challenge: str


def _random_urlsafe(nbytes: int, upper: int | None = None) -> str:
    if nbytes < MIN_ENTROPY_BYTES:
        msg = f"nbytes must be at least {MIN_ENTROPY_BYTES}, got {nbytes}"
        raise ValueError(msg)
    if upper is not None and nbytes > upper:
        msg = f"nbytes must be at most {upper}, got {nbytes}"
        raise ValueError(msg)
    return generate_secure_token(nbytes)


def generate_code_verifier(nbytes: int = DEFAULT_VERIFIER_BYTES) -> str:
    """New code verifier from ``nbytes`` random bytes (32 to 96 inclusive)."""
    return _random_urlsafe(nbytes, MAX_VERIFIER_BYTES)


def generate_state(nbytes: int = MIN_ENTROPY_BYTES) -> str:
    """New anti-CSRF ``state`` value; 32 bytes gives 43 characters."""
    return _random_urlsafe(nbytes)


def generate_code_challenge(verifier: str) -> str:
    """S256 challenge: ``base64url(sha256(verifier))`` with padding removed."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def create_pkce_pair(nbytes: int = DEFAULT_VERIFIER_BYTES) -> PKCEPair:
    verifier = generate_code_verifier(nbytes)
    return PKCEPair(verifier, generate_code_challenge(verifier))
