"""Tests for secret handling helpers and credential strategies."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from hosted_auth.oauth.session import AuthSessionManager
from hosted_auth.security import (
    DEFAULT_SENSITIVE_KEYS,
    BearerTokenAuthStrategy,
    NoAuthStrategy,
    RawTokenAuthStrategy,
    StoredTokenStrategy,
    constant_time_equals,
    generate_secure_token,
    mask_sensitive_data,
    redact,
)
from hosted_auth.storage import InMemoryStore, StorageKeys


@pytest.mark.parametrize(
    ("value", "shown"),
    [("eyJhbGciOi.x.y", "***"), ("v", "***"), ("", "<empty>"), (None, "<empty>")],
)
def test_redact(value: str | None, shown: str) -> None:
    """Test that secrets never appear in the redacted form."""
    assert redact(value) == shown


class TestStateComparison:
    """Tests for constant_time_equals as used on the returned state."""

    def test_matching_state(self) -> None:
        """Test that identical states compare equal."""
        state = generate_secure_token()
        assert constant_time_equals(state, state) is True

    @pytest.mark.parametrize(("a", "b"), [("state-a", "state-b"), ("state", "state-longer")])
    def test_different_state(self, a: str, b: str) -> None:
        """Test that differing or prefix-only states do not match."""
        assert constant_time_equals(a, b) is False

    def test_missing_sides(self) -> None:
        """Test that a missing state only matches another missing state."""
        assert constant_time_equals(None, None) is True
        assert constant_time_equals(None, "stored") is False
        assert constant_time_equals("returned", None) is False


def test_secure_token_shape() -> None:
    """Test that tokens are distinct unpadded base64url strings."""
    tokens = {generate_secure_token(32) for _ in range(50)}

    assert len(tokens) == 50
    assert all(len(t) == 43 and "=" not in t for t in tokens)


class TestMaskSensitiveData:
    """Tests for mask_sensitive_data."""

    def test_token_response_masked(self) -> None:
        """Test masking a token endpoint reply before logging it."""
        reply = {
            "id_token": "eyJ.a.b",
            "access_token": "acc",
            "refresh_token": "ref",
            "expires_in": 3600,
            "token_type": "Bearer",
        }

        masked = mask_sensitive_data(reply)

        assert masked["id_token"] == masked["access_token"] == masked["refresh_token"] == "***"
        assert masked["expires_in"] == 3600
        assert reply["id_token"] == "eyJ.a.b"

    def test_substring_and_case_match(self) -> None:
        """Test that keys containing a sensitive fragment are masked."""
        masked = mask_sensitive_data({"Code_Verifier": "v", "X-Password": "p", "fileName": "a"})

        assert masked == {"Code_Verifier": "***", "X-Password": "***", "fileName": "a"}

    def test_nested(self) -> None:
        """Test that nested mappings are masked too."""
        masked = mask_sensitive_data({"upload": {"key": "uploads/u-1/a.txt", "signed_token": "s"}})

        assert masked == {"upload": {"key": "uploads/u-1/a.txt", "signed_token": "***"}}

    def test_custom_keys(self) -> None:
        """Test that a custom key set replaces the defaults."""
        masked = mask_sensitive_data({"id_token": "t", "pin": "1234"}, {"pin"})

        assert masked == {"id_token": "t", "pin": "***"}
        assert "pin" not in DEFAULT_SENSITIVE_KEYS


class TestAuthStrategies:
    """Tests for outbound credential strategies."""

    @pytest.mark.asyncio
    async def test_anonymous(self) -> None:
        """Test that anonymous requests carry no credentials."""
        assert await NoAuthStrategy().get_auth_headers() == {}

    @pytest.mark.asyncio
    async def test_bearer_strategy(
        self,
        session_manager: AuthSessionManager,
        durable_store: InMemoryStore,
        make_id_token: Callable[..., str],
    ) -> None:
        """Test that the ID token is sent with a Bearer prefix."""
        token = make_id_token(sub="u-1")
        durable_store.set_item(StorageKeys.ID_TOKEN, token)

        headers = await BearerTokenAuthStrategy(session_manager).get_auth_headers()

        assert headers == {"Authorization": f"Bearer {token}"}

    @pytest.mark.asyncio
    async def test_raw_strategy(
        self,
        session_manager: AuthSessionManager,
        durable_store: InMemoryStore,
        make_id_token: Callable[..., str],
    ) -> None:
        """Test that the ID token is sent without a prefix."""
        token = make_id_token(sub="u-1")
        durable_store.set_item(StorageKeys.ID_TOKEN, token)

        headers = await RawTokenAuthStrategy(session_manager).get_auth_headers()

        assert headers == {"Authorization": token}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy_cls", [BearerTokenAuthStrategy, RawTokenAuthStrategy])
    async def test_signed_out_sends_nothing(
        self,
        session_manager: AuthSessionManager,
        strategy_cls: type[StoredTokenStrategy],
    ) -> None:
        """Test that no header is sent without a stored token."""
        assert await strategy_cls(session_manager).get_auth_headers() == {}
