"""Session manager assembly.

Builds an AuthSessionManager and its stores from configuration. The CLI
and the web shell both start here.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from hosted_auth.logging_config import get_logger
from hosted_auth.oauth.session import AuthSessionManager
from hosted_auth.storage import InMemoryStore, KeyValueStore, create_store

if TYPE_CHECKING:
    from collections.abc import Callable

    from hosted_auth.config import Config

logger = get_logger(__name__)


def create_durable_store(config: Config) -> KeyValueStore:
    """Create the durable token store for a configuration.

    Args:
        config: Application configuration

    Returns:
        Encrypted file store when a path and key are configured,
        in-memory store otherwise
    """
    encryption_key = (
        config.token_encryption_key.get_secret_value()
        if config.token_encryption_key
        else None
    )
    store = create_store(encryption_key=encryption_key, file_path=config.token_store_path)

    if isinstance(store, InMemoryStore):
        logger.warning("No token store path configured; tokens will not outlive this process")

    return store


def create_session_manager(
    config: Config,
    session_store: KeyValueStore | None = None,
    durable_store: KeyValueStore | None = None,
    alert: Callable[[str], None] | None = None,
) -> AuthSessionManager:
    """Create a session manager for the configured hosted UI.

    Args:
        config: Application configuration
        session_store: Store for PKCE material (in-memory by default)
        durable_store: Store for tokens (built from config by default)
        alert: Hook for user-facing configuration alerts

    Returns:
        Configured AuthSessionManager
    """
    logger.info(
        "Creating session manager for '%s' (environment: %s, region: %s)",
        config.app_name,
        config.environment.value,
        config.region,
    )

    return AuthSessionManager(
        config=config,
        session_store=session_store if session_store is not None else InMemoryStore(),
        durable_store=durable_store if durable_store is not None else create_durable_store(config),
        alert=alert,
    )
