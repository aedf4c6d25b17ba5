"""Hosted UI OAuth 2.0 endpoints.

Builds the authorization and logout URLs and performs the authorization
code exchange against the identity provider's hosted UI.
"""

from __future__ import annotations

from urllib.parse import quote, urlencode

import httpx

from hosted_auth.logging_config import get_logger
from hosted_auth.oauth.tokens import TokenResponse
from hosted_auth.security import OAuthError, redact

logger = get_logger(__name__)

AUTHORIZE_PATH = "/oauth2/authorize"
TOKEN_PATH = "/oauth2/token"
LOGOUT_PATH = "/logout"


class HostedUIFlow:
    """OAuth 2.0 Authorization Code flow with PKCE against a hosted UI.

    The client is public: no client secret is sent. The token exchange
    has no timeout and is never retried.
    """

    def __init__(
        self,
        base_url: str,
        client_id: str,
        redirect_uri: str,
        scope: str,
        logout_uri: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Set up endpoints for one app client.

        ``base_url`` is the hosted UI origin, e.g. https://auth.example.com.
        Without ``logout_uri`` the user returns to ``redirect_uri`` after
        logout. An injected ``http_client`` is used as-is and never closed
        here.
        """
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.logout_uri = logout_uri or redirect_uri
        self._http_client = http_client
        self._close_on_exit = http_client is None

    @property
    def authorization_url(self) -> str:
        return f"{self.base_url}{AUTHORIZE_PATH}"

    @property
    def token_url(self) -> str:
        return f"{self.base_url}{TOKEN_PATH}"

    @property
    def logout_url(self) -> str:
        return f"{self.base_url}{LOGOUT_PATH}"

    @staticmethod
    def _with_query(url: str, params: dict[str, str]) -> str:
        # %20 for spaces in scope, not '+'
        return f"{url}?{urlencode(params, quote_via=quote)}"

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=None)
        return self._http_client

    async def close(self) -> None:
        if self._close_on_exit and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def create_authorization_url(self, code_challenge: str, state: str) -> str:
        """URL that starts a hosted UI sign-in for this attempt's challenge and state."""
        logger.debug("Building authorize URL for client %s", self.client_id)
        return self._with_query(
            self.authorization_url,
            {
                "response_type": "code",
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "scope": self.scope,
                "code_challenge_method": "S256",
                "code_challenge": code_challenge,
                "state": state,
            },
        )

    def create_logout_url(self) -> str:
        return self._with_query(
            self.logout_url, {"client_id": self.client_id, "logout_uri": self.logout_uri}
        )

    async def exchange_code_for_tokens(self, code: str, code_verifier: str) -> TokenResponse:
        """POST the code and verifier to the token endpoint as a form.

        Raises:
            OAuthError: On transport failure, non-2xx status, a non-JSON
                body, or a body without ``id_token``
        """
        form = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": code_verifier,
        }
        logger.debug("Redeeming authorization code %s", redact(code))

        try:
            response = await self._client().post(
                self.token_url, data=form, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            tokens = TokenResponse.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(
                "Token endpoint returned %s %s: %s",
                e.response.status_code,
                e.response.reason_phrase,
                e.response.text,
            )
            raise OAuthError(f"Token exchange failed: {e.response.status_code}") from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            # InvalidURL: a bad hosted domain; ValueError: non-JSON body or ValidationError
            logger.error("Token exchange error: %s", e)
            raise OAuthError(f"Token exchange error: {e}") from e

        logger.info(
            "Authorization code redeemed (refresh token issued: %s)",
            tokens.refresh_token is not None,
        )
        return tokens
