"""Token endpoint responses and ID token claims.

Responses and claims are validated field by field; anything that does not
decode to the expected shape is treated as "no valid identity".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hosted_auth.logging_config import get_logger

logger = get_logger(__name__)

FALLBACK_LABEL = "Signed in"


class TokenResponse(BaseModel):
    """Successful response body of the token endpoint."""

    model_config = ConfigDict(extra="ignore")

    id_token: str = Field(min_length=1)
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str | None = None


class IdTokenClaims(BaseModel):
    """Claims carried by an ID token.

    Only exp is required. Unknown claims are kept and available
    through model_extra.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    exp: int
    sub: str | None = None
    email: str | None = None
    name: str | None = None
    username: str | None = Field(default=None, alias="cognito:username")


@dataclass(frozen=True)
class SignedInIdentity:
    """Identity derived from the current valid ID token."""

    label: str
    claims: IdTokenClaims


def decode_id_token_claims(token: str | None) -> IdTokenClaims | None:
    """Decode an ID token's claims without verifying its signature.

    Signature verification belongs to the services receiving the token;
    this is only a freshness and display check.

    Args:
        token: Encoded JWT

    Returns:
        Parsed claims, or None if the token is empty or malformed
    """
    if not token:
        return None

    try:
        payload: dict[str, Any] = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as e:
        logger.debug("Undecodable ID token: %s", e)
        return None

    try:
        return IdTokenClaims.model_validate(payload)
    except ValidationError as e:
        logger.debug("ID token claims rejected: %d error(s)", e.error_count())
        return None


def identity_from_claims(claims: IdTokenClaims) -> SignedInIdentity:
    """Build the display identity for a set of claims."""
    label = claims.name or claims.email or FALLBACK_LABEL
    return SignedInIdentity(label=label, claims=claims)
