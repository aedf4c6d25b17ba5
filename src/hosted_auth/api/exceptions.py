"""Errors raised by the downstream API clients."""

from __future__ import annotations


class ApiError(Exception):
    """A downstream service call failed.

    Subclasses carry the HTTP status they stand for and a fallback
    message used when the service does not say what went wrong.

    Attributes:
        message: What the service (or the client) reported
        status_code: HTTP status, or None for transport failures
        response_body: Parsed JSON object or raw text of the reply
    """

    default_status: int | None = None
    default_message = "API request failed."

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        response_body: dict | str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.status_code = status_code if status_code is not None else self.default_status
        self.response_body = response_body
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.status_code:
            return f"API {self.status_code}: {self.message}"
        return self.message


class ApiValidationError(ApiError):
    """400: the service rejected the request parameters."""

    default_status = 400
    default_message = "Request validation failed."


class ApiAuthenticationError(ApiError):
    """401: the ID token was missing, expired or rejected."""

    default_status = 401
    default_message = "Authentication failed. Sign in again."


class ApiForbiddenError(ApiError):
    """403: signed in, but not allowed."""

    default_status = 403
    default_message = "Access forbidden."


class ApiNotFoundError(ApiError):
    """404."""

    default_status = 404
    default_message = "Resource not found."


class UploadError(ApiError):
    """Signing or uploading a file failed."""

    default_message = "Upload failed."
