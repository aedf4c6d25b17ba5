"""Signed-URL uploads.

The uploads service signs an object-storage PUT URL for a key under the
caller's own namespace (uploads/<sub>/...). Its authorizer validates the
raw ID token from the Authorization header, so no bearer prefix is sent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from hosted_auth.api.exceptions import UploadError
from hosted_auth.logging_config import get_logger
from hosted_auth.security import RawTokenAuthStrategy

if TYPE_CHECKING:
    from collections.abc import Callable

    from hosted_auth.oauth.session import AuthSessionManager

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

SIGN_TIMEOUT = 10.0


@dataclass(frozen=True)
class SignedUpload:
    """A presigned PUT target."""

    url: str
    key: str


def build_upload_key(sub: str, file_name: str, now: float) -> str:
    """Build the object key for an upload.

    Args:
        sub: Subject claim of the uploading user
        file_name: Original file name
        now: Current time in epoch seconds

    Returns:
        Key of the form uploads/<sub>/<epoch ms>-<file name>
    """
    return f"uploads/{sub}/{int(now * 1000)}-{file_name}"


class UploadsClient:
    """Client for the signed-URL uploads API."""

    def __init__(
        self,
        base_url: str,
        session_manager: AuthSessionManager,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the uploads client.

        Args:
            base_url: Uploads API base URL; the sign route is {base_url}sign
            session_manager: Source of the caller's ID token
            http_client: Optional custom HTTP client
            clock: Returns the current time in epoch seconds
        """
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._session_manager = session_manager
        self._auth_strategy = RawTokenAuthStrategy(session_manager)
        self._http_client = http_client
        self._owns_client = http_client is None
        self._clock = clock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=SIGN_TIMEOUT)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client if we own it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def sign_upload(
        self, key: str, content_type: str = DEFAULT_CONTENT_TYPE
    ) -> SignedUpload:
        """Ask the uploads API for a presigned PUT URL.

        Args:
            key: Object key to sign
            content_type: Content type the upload will be sent with

        Returns:
            SignedUpload with the URL and the key the service signed

        Raises:
            UploadError: If the request fails or is rejected, or the reply is malformed
        """
        client = await self._get_client()
        headers = await self._auth_strategy.get_auth_headers()

        try:
            response = await client.post(
                f"{self._base_url}sign",
                json={"key": key, "contentType": content_type or DEFAULT_CONTENT_TYPE},
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error("Sign request error: %s", e)
            raise UploadError(f"Sign request error: {e}") from e

        if not response.is_success:
            logger.error("Sign request failed: %s", response.status_code)
            raise UploadError(
                f"Sign failed: {response.status_code}", response.status_code, response.text
            )

        try:
            body = response.json()
            return SignedUpload(url=str(body["url"]), key=str(body.get("key", key)))
        except (ValueError, KeyError, TypeError) as e:
            raise UploadError(f"Malformed sign response: {e}", response.status_code) from e

    async def upload(
        self,
        file_name: str,
        data: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> str:
        """Upload bytes through a presigned URL.

        Args:
            file_name: File name used in the object key
            data: File contents
            content_type: MIME type of the contents

        Returns:
            Object key the file was stored under

        Raises:
            UploadError: If not signed in, or signing or uploading fails
        """
        identity = self._session_manager.get_signed_in_identity()
        if identity is None or not identity.claims.sub:
            raise UploadError("Login first.")

        key = build_upload_key(identity.claims.sub, file_name, self._clock())
        signed = await self.sign_upload(key, content_type)

        client = await self._get_client()
        try:
            response = await client.put(
                signed.url,
                content=data,
                headers={"Content-Type": content_type or DEFAULT_CONTENT_TYPE},
            )
        except httpx.HTTPError as e:
            logger.error("Upload request error: %s", e)
            raise UploadError(f"Upload request error: {e}") from e

        if not response.is_success:
            logger.error("Upload to signed URL failed: %s", response.status_code)
            raise UploadError(
                f"Upload failed: {response.status_code}", response.status_code, response.text
            )

        logger.info("Uploaded %d bytes to %s", len(data), signed.key)
        return signed.key
