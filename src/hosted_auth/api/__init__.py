"""Downstream API clients for Hosted Auth."""

from hosted_auth.api.client import ApiClient
from hosted_auth.api.exceptions import (
    ApiAuthenticationError,
    ApiError,
    ApiForbiddenError,
    ApiNotFoundError,
    ApiValidationError,
    UploadError,
)
from hosted_auth.api.uploads import SignedUpload, UploadsClient, build_upload_key

__all__ = [
    "ApiAuthenticationError",
    "ApiClient",
    "ApiError",
    "ApiForbiddenError",
    "ApiNotFoundError",
    "ApiValidationError",
    "SignedUpload",
    "UploadError",
    "UploadsClient",
    "build_upload_key",
]
