"""Secret handling helpers and outbound credential strategies.

Nothing here ever logs a token, verifier or code in clear text; callers
pass values through ``redact`` or ``mask_sensitive_data`` first.
"""

from __future__ import annotations

import hmac
import secrets
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from hosted_auth.logging_config import get_logger

if TYPE_CHECKING:
    from hosted_auth.oauth.session import AuthSessionManager

logger = get_logger(__name__)

# Substrings; a key matches when any of these appears in it (case-insensitive).
DEFAULT_SENSITIVE_KEYS = frozenset(
    {
        "id_token",
        "access_token",
        "refresh_token",
        "code_verifier",
        "code",
        "token",
        "secret",
        "password",
        "authorization",
    }
)


class OAuthError(Exception):
    """The token endpoint could not be reached or returned an unusable reply."""


def redact(value: str | None) -> str:
    """Stand-in for a secret in log output: ``***``, or ``<empty>`` when unset."""
    return "***" if value else "<empty>"


def constant_time_equals(a: str | None, b: str | None) -> bool:
    """Compare a returned ``state`` (or any secret) against the stored one.

    Two missing values are equal; one missing value never is. Present
    values go through ``hmac.compare_digest`` so the comparison time does
    not leak how many leading characters matched.
    """
    if a is None or b is None:
        return a is b
    return hmac.compare_digest(a.encode(), b.encode())


def generate_secure_token(nbytes: int = 32) -> str:
    """Unpadded base64url string over ``nbytes`` of CSPRNG output."""
    return secrets.token_urlsafe(nbytes)


class AuthStrategy(ABC):
    """Supplies the credential headers for each outbound API request."""

    @abstractmethod
    async def get_auth_headers(self) -> dict[str, str]:
        """Headers to merge into the request; empty means anonymous."""


class NoAuthStrategy(AuthStrategy):
    """Anonymous requests."""

    async def get_auth_headers(self) -> dict[str, str]:
        return {}


class StoredTokenStrategy(AuthStrategy):
    """Reads the current ID token from the session manager on every call.

    When signed out no header is attached at all; the receiving service
    decides whether anonymous access is allowed.
    """

    def __init__(self, session_manager: AuthSessionManager) -> None:
        self._session_manager = session_manager

    def format_credential(self, token: str) -> str:
        return token

    async def get_auth_headers(self) -> dict[str, str]:
        token = self._session_manager.get_id_token()
        if not token:
            logger.debug("No stored ID token; sending request without credentials")
            return {}
        return {"Authorization": self.format_credential(token)}


class BearerTokenAuthStrategy(StoredTokenStrategy):
    """``Authorization: Bearer <id_token>``."""

    def format_credential(self, token: str) -> str:
        return f"Bearer {token}"


class RawTokenAuthStrategy(StoredTokenStrategy):
    """``Authorization: <id_token>``, for authorizers that read the bare JWT."""


def mask_sensitive_data(
    data: dict[str, Any], sensitive_keys: set[str] | frozenset[str] | None = None
) -> dict[str, Any]:
    """Return a copy of ``data`` safe to log.

    Values under keys containing any of ``sensitive_keys`` become ``***``.
    Nested mappings are masked recursively. The input is not modified.
    """
    keys = DEFAULT_SENSITIVE_KEYS if sensitive_keys is None else sensitive_keys

    def mask(key: str, value: Any) -> Any:
        if isinstance(value, dict):
            return mask_sensitive_data(value, keys)
        if any(fragment in key.lower() for fragment in keys):
            return "***"
        return value

    return {key: mask(key, value) for key, value in data.items()}
