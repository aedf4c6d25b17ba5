"""OAuth 2.0 module for Hosted Auth.

Provides the Authorization Code flow with PKCE against a hosted UI
and the browser-style session manager built on top of it.
"""

from hosted_auth.oauth.flows import HostedUIFlow
from hosted_auth.oauth.pkce import (
    PKCEPair,
    create_pkce_pair,
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)
from hosted_auth.oauth.session import (
    AuthSessionManager,
    CallbackOutcome,
    CallbackResult,
    strip_query,
)
from hosted_auth.oauth.tokens import (
    FALLBACK_LABEL,
    IdTokenClaims,
    SignedInIdentity,
    TokenResponse,
    decode_id_token_claims,
)

__all__ = [
    "FALLBACK_LABEL",
    "AuthSessionManager",
    "CallbackOutcome",
    "CallbackResult",
    "HostedUIFlow",
    "IdTokenClaims",
    "PKCEPair",
    "SignedInIdentity",
    "TokenResponse",
    "create_pkce_pair",
    "decode_id_token_claims",
    "generate_code_challenge",
    "generate_code_verifier",
    "generate_state",
    "strip_query",
]
