"""Hosted Auth.

Browser-style OAuth 2.0 Authorization Code + PKCE session management
against a managed identity provider's hosted UI.
"""

__version__ = "0.1.0"

from hosted_auth.config import Config, ConfigError, load_config
from hosted_auth.oauth.session import AuthSessionManager, CallbackOutcome, CallbackResult
from hosted_auth.server import create_session_manager

__all__ = [
    "AuthSessionManager",
    "CallbackOutcome",
    "CallbackResult",
    "Config",
    "ConfigError",
    "__version__",
    "create_session_manager",
    "load_config",
]
