"""Authentication session management.

Drives the Authorization Code + PKCE handshake against the hosted UI and
owns the resulting token lifecycle. Navigation is left to the caller:
login() and logout() return the URL to go to, and handle_auth_callback()
returns the cleaned URL to put in place of the callback URL.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit, urlunsplit

from hosted_auth.config import ConfigError
from hosted_auth.logging_config import get_logger
from hosted_auth.oauth.flows import HostedUIFlow
from hosted_auth.oauth.pkce import create_pkce_pair, generate_state
from hosted_auth.oauth.tokens import (
    SignedInIdentity,
    TokenResponse,
    decode_id_token_claims,
    identity_from_claims,
)
from hosted_auth.security import OAuthError, constant_time_equals
from hosted_auth.storage import StorageError, StorageKeys

if TYPE_CHECKING:
    from hosted_auth.config import Config
    from hosted_auth.storage import KeyValueStore

logger = get_logger(__name__)

Clock = Callable[[], float]


class CallbackOutcome(str, Enum):
    """Result of processing a page load that may be an OAuth callback."""

    NOT_A_CALLBACK = "not_a_callback"
    STATE_MISMATCH = "state_mismatch"
    MISSING_VERIFIER = "missing_verifier"
    MISCONFIGURED = "misconfigured"
    EXCHANGE_FAILED = "exchange_failed"
    SIGNED_IN = "signed_in"


@dataclass(frozen=True)
class CallbackResult:
    """Outcome of handle_auth_callback.

    Attributes:
        outcome: What happened
        clean_url: URL to replace the current history entry with, or None
            when the page load was not a callback and nothing changes
    """

    outcome: CallbackOutcome
    clean_url: str | None = None

    @property
    def signed_in(self) -> bool:
        return self.outcome is CallbackOutcome.SIGNED_IN


def strip_query(url: str) -> str:
    """Remove the query string from a URL, keeping path and fragment."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", parts.fragment))


def _first_param(query: dict[str, list[str]], name: str) -> str | None:
    values = query.get(name)
    return values[0] if values else None


class AuthSessionManager:
    """Browser-style authentication session manager.

    PKCE material lives in the session-scoped store until it is exchanged;
    tokens live in the durable store until logout. Nothing here raises
    across the public surface except ConfigError from login() and logout().
    """

    def __init__(
        self,
        config: Config,
        session_store: KeyValueStore,
        durable_store: KeyValueStore,
        flow: HostedUIFlow | None = None,
        clock: Clock = time.time,
        alert: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the session manager.

        Configuration problems are reported here, at startup, rather
        than on first use.

        Args:
            config: Application configuration
            session_store: Store for transient PKCE verifier and state
            durable_store: Store for ID, access and refresh tokens
            flow: Hosted UI flow (built from config when omitted)
            clock: Returns the current time in epoch seconds
            alert: Called with a user-facing message on fatal config errors
        """
        self._config = config
        self._session_store = session_store
        self._durable_store = durable_store
        self._clock = clock
        self._alert = alert
        self._flow = flow or HostedUIFlow(
            base_url=config.hosted_ui_base_url,
            client_id=config.client_id or "",
            redirect_uri=config.redirect_uri or "",
            scope=config.scope,
            logout_uri=config.effective_logout_uri,
        )

        missing = config.missing_hosted_ui_settings()
        if missing:
            logger.error(
                "Hosted UI config missing: %s; login and logout will fail",
                ", ".join(missing),
            )

    @property
    def flow(self) -> HostedUIFlow:
        return self._flow

    def _assert_config(self) -> None:
        """Raise ConfigError (after alerting) if the hosted UI is unconfigured."""
        try:
            self._config.require_hosted_ui()
        except ConfigError as e:
            logger.critical("%s", e)
            if self._alert is not None:
                self._alert(str(e))
            raise

    def login(self) -> str:
        """Start a sign-in attempt.

        Generates a fresh PKCE pair and state, stores them for the
        callback, and returns the hosted UI authorization URL. The caller
        navigates there; any earlier unfinished attempt is superseded.

        Returns:
            Authorization URL

        Raises:
            ConfigError: If the hosted UI settings are incomplete
        """
        self._assert_config()

        pkce = create_pkce_pair()
        state = generate_state()

        self._session_store.set_item(StorageKeys.PKCE_VERIFIER, pkce.code_verifier)
        self._session_store.set_item(StorageKeys.PKCE_STATE, state)

        logger.info("Starting hosted UI sign-in (state %s...)", state[:8])
        return self._flow.create_authorization_url(pkce.code_challenge, state)

    async def handle_auth_callback(self, current_url: str) -> CallbackResult:
        """Complete a sign-in if the current URL is an OAuth callback.

        Safe to call on every page load: without a code parameter it
        does nothing. Never raises; failures leave the user signed out.

        Args:
            current_url: Full URL of the page being loaded

        Returns:
            CallbackResult describing the outcome and the cleaned URL
        """
        query = parse_qs(urlsplit(current_url).query)
        code = _first_param(query, "code")
        returned_state = _first_param(query, "state")

        if not code:
            error = _first_param(query, "error")
            if error:
                logger.warning(
                    "Identity provider returned an error: %s - %s",
                    error,
                    _first_param(query, "error_description") or "no description",
                )
            return CallbackResult(CallbackOutcome.NOT_A_CALLBACK)

        clean_url = strip_query(current_url)

        expected_state = self._session_store.get_item(StorageKeys.PKCE_STATE)
        if not expected_state or not constant_time_equals(expected_state, returned_state):
            logger.error("State mismatch; aborting token exchange")
            return CallbackResult(CallbackOutcome.STATE_MISMATCH, clean_url)

        verifier = self._session_store.get_item(StorageKeys.PKCE_VERIFIER)
        if not verifier:
            logger.error("Missing PKCE verifier; aborting token exchange")
            return CallbackResult(CallbackOutcome.MISSING_VERIFIER, clean_url)

        try:
            missing = self._config.missing_hosted_ui_settings()
            if missing:
                logger.error(
                    "Cannot complete sign-in, hosted UI config missing: %s",
                    ", ".join(missing),
                )
                return CallbackResult(CallbackOutcome.MISCONFIGURED, clean_url)

            try:
                tokens = await self._flow.exchange_code_for_tokens(code, verifier)
            except OAuthError as e:
                logger.error("Sign-in failed: %s", e)
                return CallbackResult(CallbackOutcome.EXCHANGE_FAILED, clean_url)
            except Exception:
                logger.exception("Token exchange error")
                return CallbackResult(CallbackOutcome.EXCHANGE_FAILED, clean_url)

            try:
                self._store_tokens(tokens)
            except Exception:
                logger.exception("Token exchange error: could not store tokens")
                return CallbackResult(CallbackOutcome.EXCHANGE_FAILED, clean_url)

            logger.info("Sign-in complete")
            return CallbackResult(CallbackOutcome.SIGNED_IN, clean_url)
        finally:
            self._session_store.remove_item(StorageKeys.PKCE_VERIFIER)
            self._session_store.remove_item(StorageKeys.PKCE_STATE)

    def _store_tokens(self, tokens: TokenResponse) -> None:
        """Write a token set to the durable store, all or nothing.

        On a failed write the previous values are put back before the
        error is re-raised.
        """
        previous = {key: self._durable_store.get_item(key) for key in StorageKeys.TOKENS}
        try:
            self._durable_store.set_item(StorageKeys.ID_TOKEN, tokens.id_token)
            self._durable_store.set_item(StorageKeys.ACCESS_TOKEN, tokens.access_token or "")
            # Refresh tokens are not always reissued; keep the previous one
            if tokens.refresh_token:
                self._durable_store.set_item(StorageKeys.REFRESH_TOKEN, tokens.refresh_token)
        except Exception:
            self._restore_tokens(previous)
            raise

    def _restore_tokens(self, previous: dict[str, str | None]) -> None:
        for key, value in previous.items():
            try:
                if value is None:
                    self._durable_store.remove_item(key)
                else:
                    self._durable_store.set_item(key, value)
            except Exception:
                logger.exception("Could not restore %s after a failed token write", key)

    def logout(self) -> str:
        """Sign out locally and return the hosted UI logout URL.

        Local tokens are cleared before the URL is built, so the local
        state is clean even if the remote logout never happens.

        Returns:
            Hosted UI logout URL

        Raises:
            ConfigError: If the hosted UI settings are incomplete
        """
        self._assert_config()

        for key in StorageKeys.TOKENS:
            self._durable_store.remove_item(key)

        logger.info("Cleared local tokens; ending hosted UI session")
        return self._flow.create_logout_url()

    def get_id_token(self) -> str | None:
        """Return the stored ID token without any validation.

        An unreadable durable store (corrupt file, rotated key) counts as
        signed out.
        """
        try:
            return self._durable_store.get_item(StorageKeys.ID_TOKEN) or None
        except StorageError as e:
            logger.error("Cannot read stored ID token: %s", e)
            return None

    def get_id_token_valid(self) -> str | None:
        """Return the stored ID token if it has not expired.

        The token counts as valid while now < exp - clock skew. Its
        signature is not checked.
        """
        token = self.get_id_token()
        claims = decode_id_token_claims(token)
        if claims is None:
            return None

        if self._clock() >= claims.exp - self._config.clock_skew_seconds:
            logger.debug("Stored ID token is expired")
            return None

        return token

    def get_signed_in_identity(self) -> SignedInIdentity | None:
        """Describe the signed-in user, or None when signed out.

        Recomputed from the stored token on every call.
        """
        token = self.get_id_token_valid()
        claims = decode_id_token_claims(token)
        if claims is None:
            return None
        return identity_from_claims(claims)

    async def close(self) -> None:
        """Release the flow's HTTP client."""
        await self._flow.close()
