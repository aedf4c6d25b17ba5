"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import jwt
import pytest

from hosted_auth.config import ENV_PREFIX, Config, Environment, LogLevel
from hosted_auth.logging_config import reset_logging
from hosted_auth.oauth.session import AuthSessionManager
from hosted_auth.storage import InMemoryStore

# Fixed "now" for deterministic expiry checks
NOW = 1_700_000_000.0

TEST_SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep settings from the developer environment out of tests."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.setattr("hosted_auth.config.load_dotenv", lambda: False)


@pytest.fixture(autouse=True)
def reset_logging_state() -> Iterator[None]:
    """Undo logging setup done by a test."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def now() -> float:
    """Fixed current time used by the session manager clock."""
    return NOW


@pytest.fixture
def default_config() -> Config:
    """Create a default configuration for testing."""
    return Config()


@pytest.fixture
def hosted_config() -> Config:
    """Create a configuration with the hosted UI settings filled in."""
    return Config(
        app_name="Hosted Auth Test",
        log_level=LogLevel.DEBUG,
        environment=Environment.DEV,
        hosted_domain="https://auth.example.com/",
        client_id="test-client-id",
        redirect_uri="http://localhost:5173",
    )


@pytest.fixture
def make_id_token() -> Callable[..., str]:
    """Return a factory for signed test ID tokens."""

    def _make(**claims: Any) -> str:
        claims.setdefault("exp", int(NOW) + 3600)
        return jwt.encode(claims, TEST_SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def session_store() -> InMemoryStore:
    """Session-scoped store."""
    return InMemoryStore()


@pytest.fixture
def durable_store() -> InMemoryStore:
    """Durable token store."""
    return InMemoryStore()


@pytest.fixture
def session_manager(
    hosted_config: Config,
    session_store: InMemoryStore,
    durable_store: InMemoryStore,
) -> AuthSessionManager:
    """Create a session manager with in-memory stores and a fixed clock."""
    return AuthSessionManager(
        hosted_config,
        session_store=session_store,
        durable_store=durable_store,
        clock=lambda: NOW,
    )
