"""Tests for the local web shell."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
import respx
from cryptography.fernet import Fernet
from starlette.testclient import TestClient

from hosted_auth.config import Config
from hosted_auth.oauth.session import AuthSessionManager
from hosted_auth.storage import EncryptedFileStore, InMemoryStore, StorageKeys
from hosted_auth.web import callback_path, create_web_app

if TYPE_CHECKING:
    from pathlib import Path

TOKEN_URL = "https://auth.example.com/oauth2/token"


@pytest.fixture
def client(hosted_config: Config, session_manager: AuthSessionManager) -> TestClient:
    """Test client for the web shell, served from the redirect URI origin."""
    app = create_web_app(hosted_config, session_manager)
    return TestClient(app, base_url="http://localhost:5173", follow_redirects=False)


class TestCallbackPath:
    """Tests for callback_path."""

    def test_root(self, hosted_config: Config) -> None:
        """Test a redirect URI at the site root."""
        assert callback_path(hosted_config) == "/"

    def test_nested(self) -> None:
        """Test a redirect URI with a path."""
        assert callback_path(Config(redirect_uri="https://app.example.com/auth/cb")) == (
            "/auth/cb/"
        )

    def test_unset(self, default_config: Config) -> None:
        """Test the fallback without a redirect URI."""
        assert callback_path(default_config) == "/"


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient) -> None:
        """Test health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "app_name": "Hosted Auth Test",
            "environment": "dev",
        }


class TestAuthRoutes:
    """Tests for login, logout and identity routes."""

    def test_login_redirects_to_hosted_ui(
        self, client: TestClient, session_store: InMemoryStore
    ) -> None:
        """Test that login redirects to the authorization endpoint."""
        response = client.get("/auth/login")

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://auth.example.com/oauth2/authorize?")
        state = parse_qs(urlsplit(location).query)["state"][0]
        assert state == session_store.get_item(StorageKeys.PKCE_STATE)

    def test_logout_redirects_and_clears(
        self, client: TestClient, durable_store: InMemoryStore
    ) -> None:
        """Test that logout clears tokens and redirects to the hosted UI."""
        durable_store.set_item(StorageKeys.ID_TOKEN, "old-id")

        response = client.get("/auth/logout")

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://auth.example.com/logout?")
        assert durable_store.get_item(StorageKeys.ID_TOKEN) is None

    def test_misconfigured_login_is_500(self) -> None:
        """Test that missing hosted UI settings surface as a server error."""
        config = Config()
        manager = AuthSessionManager(config, InMemoryStore(), InMemoryStore())
        client = TestClient(create_web_app(config, manager), follow_redirects=False)

        response = client.get("/auth/login")

        assert response.status_code == 500
        assert "HOSTED_AUTH_HOSTED_DOMAIN" in response.json()["error"]

    def test_me_signed_out(self, client: TestClient) -> None:
        """Test identity endpoint when signed out."""
        assert client.get("/auth/me").json() == {"signed_in": False}

    def test_me_with_unreadable_token_file(self, hosted_config: Config, tmp_path: Path) -> None:
        """Test that a corrupt token file reports signed out instead of failing."""
        path = tmp_path / "tokens.enc"
        path.write_bytes(b"garbage")
        durable = EncryptedFileStore(Fernet.generate_key().decode(), path)
        manager = AuthSessionManager(hosted_config, InMemoryStore(), durable)
        client = TestClient(create_web_app(hosted_config, manager))

        response = client.get("/auth/me")

        assert response.status_code == 200
        assert response.json() == {"signed_in": False}

    def test_me_signed_in(
        self,
        client: TestClient,
        durable_store: InMemoryStore,
        make_id_token: Callable[..., str],
        now: float,
    ) -> None:
        """Test identity endpoint with a valid token."""
        durable_store.set_item(
            StorageKeys.ID_TOKEN,
            make_id_token(sub="u-1", email="a@x.com", exp=int(now) + 3600),
        )

        assert client.get("/auth/me").json() == {
            "signed_in": True,
            "label": "a@x.com",
            "email": "a@x.com",
            "sub": "u-1",
            "expires_at": int(now) + 3600,
        }


class TestCallbackRoute:
    """Tests for the redirect URI route."""

    def test_plain_load(self, client: TestClient) -> None:
        """Test that a load without a code just reports status."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json() == {"signed_in": False}

    @respx.mock
    def test_callback_signs_in_and_cleans_url(
        self,
        client: TestClient,
        durable_store: InMemoryStore,
        make_id_token: Callable[..., str],
    ) -> None:
        """Test the full browser round trip through the web shell."""
        id_token = make_id_token(sub="u-1", name="Ava")
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"id_token": id_token})
        )

        location = client.get("/auth/login").headers["location"]
        state = parse_qs(urlsplit(location).query)["state"][0]

        response = client.get("/", params={"code": "abc", "state": state})

        assert response.status_code == 303
        assert response.headers["location"] == "http://localhost:5173/"
        assert durable_store.get_item(StorageKeys.ID_TOKEN) == id_token
        assert client.get("/auth/me").json()["label"] == "Ava"

    @respx.mock
    def test_forged_callback_redirects_without_exchange(self, client: TestClient) -> None:
        """Test that a bad state is cleaned away without a token request."""
        route = respx.post(TOKEN_URL)
        client.get("/auth/login")

        response = client.get("/", params={"code": "abc", "state": "forged"})

        assert response.status_code == 303
        assert response.headers["location"] == "http://localhost:5173/"
        assert not route.called
