"""Application API client.

Provides an async JSON client that attaches the signed-in user's
credential to every request.
"""

from __future__ import annotations

from typing import Any

import httpx

from hosted_auth.api.exceptions import (
    ApiAuthenticationError,
    ApiError,
    ApiForbiddenError,
    ApiNotFoundError,
    ApiValidationError,
)
from hosted_auth.logging_config import get_logger
from hosted_auth.security import AuthStrategy, NoAuthStrategy, mask_sensitive_data

logger = get_logger(__name__)

# Default timeout for API requests (seconds)
DEFAULT_TIMEOUT = 30.0


class ApiClient:
    """Async client for the application's REST API.

    Example:
        ```python
        client = ApiClient(config.api_base_url, BearerTokenAuthStrategy(manager))
        board = await client.get("/leaderboard", params={"page": 1})
        ```
    """

    def __init__(self, base_url: str, auth_strategy: AuthStrategy | None = None) -> None:
        """Initialize the API client.

        Args:
            base_url: API base URL (e.g., "https://api.example.com/prod")
            auth_strategy: Authentication strategy for API requests
                (unauthenticated when omitted)
        """
        self._base_url = base_url.rstrip("/")
        self._auth_strategy = auth_strategy or NoAuthStrategy()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        Auth headers are fetched per request so a new sign-in is picked up.
        """
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=DEFAULT_TIMEOUT,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _handle_error_response(response: httpx.Response) -> None:
        """Map an error response to an ApiError.

        Raises:
            ApiError: Appropriate exception based on status code
        """
        status = response.status_code

        body: dict | str | None
        try:
            parsed = response.json()
        except ValueError:
            body = response.text or None
            message = response.text or f"HTTP {status}"
        else:
            body = parsed if isinstance(parsed, dict) else str(parsed)
            if isinstance(parsed, dict):
                message = str(parsed.get("message") or parsed.get("error") or parsed)
            else:
                message = str(parsed)

        error_types: dict[int, type[ApiError]] = {
            400: ApiValidationError,
            401: ApiAuthenticationError,
            403: ApiForbiddenError,
            404: ApiNotFoundError,
        }
        error_type = error_types.get(status)
        if error_type is not None:
            raise error_type(message, status, body)
        raise ApiError(message, status, body)

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API request.

        Args:
            method: HTTP method
            path: API path (without base URL)
            params: Query parameters; None and empty values are dropped
            json_data: JSON body

        Returns:
            Parsed JSON response, or None for empty responses

        Raises:
            ApiError: On transport failures and non-2xx responses
        """
        client = await self._get_client()
        url = f"{self._base_url}{path}"

        if params:
            params = {k: v for k, v in params.items() if v is not None and v != ""}

        auth_headers = await self._auth_strategy.get_auth_headers()

        logger.debug("API request: %s %s", method, path)
        if json_data:
            logger.debug("API request body: %s", mask_sensitive_data(json_data))

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=auth_headers,
            )
        except httpx.HTTPError as e:
            logger.error("API request error: %s %s - %s", method, path, e)
            raise ApiError(f"Request failed: {e}") from e

        if not response.is_success:
            self._handle_error_response(response)

        if response.status_code == 204 or not response.content:
            return None

        return response.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request."""
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a POST request."""
        return await self.request("POST", path, params=params, json_data=json_data)
