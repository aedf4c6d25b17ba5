"""Settings for the hosted UI client, token storage and downstream services.

Values come from ``HOSTED_AUTH_*`` environment variables (a ``.env`` file is
read first), an optional JSON or YAML file, and CLI overrides.
"""

from __future__ import annotations

import json
import logging
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "HOSTED_AUTH_"

DEFAULT_SCOPE = "openid email profile"


class ConfigError(Exception):
    """Settings are invalid, unreadable or incomplete for the requested action."""


class LogLevel(str, Enum):
    """Accepted values for ``HOSTED_AUTH_LOG_LEVEL``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Where the app is running; reported by the health endpoint."""

    LOCAL = "local"
    DEV = "dev"
    STAGE = "stage"
    PROD = "prod"


class Config(BaseModel):
    """All runtime settings.

    hosted_domain, client_id and redirect_uri may be left unset: the app
    still starts and shows a signed-out state, and sign-in fails loudly
    through require_hosted_ui().
    """

    # General
    app_name: str = Field(default="Hosted Auth", description="Application name")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    environment: Environment = Field(
        default=Environment.LOCAL, description="Deployment environment"
    )

    # Hosted UI
    region: str = Field(default="us-east-1", description="Identity provider region")
    hosted_domain: str | None = Field(
        default=None, description="Hosted UI OAuth domain (scheme and trailing slash stripped)"
    )
    client_id: str | None = Field(default=None, description="OAuth client identifier")
    redirect_uri: str | None = Field(
        default=None, description="OAuth redirect URI (always ends with '/')"
    )
    logout_uri: str | None = Field(
        default=None, description="Post-logout redirect target (defaults to redirect_uri)"
    )
    scope: str = Field(default=DEFAULT_SCOPE, description="OAuth scopes (space-separated)")
    clock_skew_seconds: int = Field(
        default=60, ge=0, description="Tolerance subtracted from token expiry"
    )

    # Tokens at rest
    token_encryption_key: SecretStr | None = Field(
        default=None, description="Fernet encryption key for token storage"
    )
    token_store_path: str | None = Field(
        default=None, description="Path for persistent token storage"
    )

    # Downstream services
    api_base_url: str | None = Field(default=None, description="Application API base URL")
    uploads_api_url: str | None = Field(
        default=None, description="Signed-URL uploads API base URL"
    )

    # Local web shell
    host: str = Field(default="127.0.0.1", description="Web shell bind host")
    port: int = Field(default=5173, ge=1, le=65535, description="Web shell bind port")

    model_config = {
        "extra": "allow",
        "validate_assignment": True,
    }

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        """Accept ``debug`` as well as ``DEBUG``."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def normalize_environment(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("hosted_domain", mode="before")
    @classmethod
    def normalize_hosted_domain(cls, v: Any) -> Any:
        """Strip scheme and trailing slashes from the hosted domain."""
        if isinstance(v, str):
            v = re.sub(r"^https?://", "", v.strip())
            v = v.rstrip("/")
            return v or None
        return v

    @field_validator("redirect_uri", "logout_uri", mode="before")
    @classmethod
    def normalize_redirect_uri(cls, v: Any) -> Any:
        """Ensure redirect targets end with exactly one trailing slash."""
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            return v.rstrip("/") + "/"
        return v

    @model_validator(mode="after")
    def validate_token_store(self) -> Config:
        """A token file is never written unencrypted."""
        if self.token_store_path and not self.token_encryption_key:
            msg = "token_encryption_key is required when token_store_path is set"
            raise ValueError(msg)
        return self

    @property
    def hosted_ui_base_url(self) -> str:
        """Base URL of the hosted UI OAuth endpoints."""
        return f"https://{self.hosted_domain or ''}"

    @property
    def effective_logout_uri(self) -> str:
        """Post-logout redirect target."""
        return self.logout_uri or self.redirect_uri or ""

    def missing_hosted_ui_settings(self) -> list[str]:
        """List required hosted UI settings that are unset.

        Returns:
            Environment variable names of the missing settings
        """
        required = [
            ("HOSTED_DOMAIN", self.hosted_domain),
            ("CLIENT_ID", self.client_id),
            ("REDIRECT_URI", self.redirect_uri),
        ]
        return [f"{ENV_PREFIX}{name}" for name, value in required if not value]

    def require_hosted_ui(self) -> None:
        """Fail loudly if the hosted UI settings are incomplete.

        Raises:
            ConfigError: If any required setting is missing
        """
        missing = self.missing_hosted_ui_settings()
        if missing:
            msg = (
                f"Hosted UI config missing: {', '.join(missing)}. "
                "Set them in the environment or .env and restart."
            )
            raise ConfigError(msg)


def _load_env_config() -> dict[str, Any]:
    """Collect ``HOSTED_AUTH_<FIELD>`` variables for every declared field.

    Values stay strings; the model coerces them.
    """
    found: dict[str, Any] = {}
    for field_name in Config.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value is not None:
            found[field_name] = value
    return found


def _load_file_config(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise ConfigError(msg)

    suffix = path.suffix.lower()
    if suffix == ".json":
        return dict(json.loads(path.read_text()))
    if suffix in (".yaml", ".yml"):
        return dict(yaml.safe_load(path.read_text()) or {})

    msg = f"Unsupported configuration file format: {suffix}"
    raise ConfigError(msg)


def _log_source(source: str, values: dict[str, Any]) -> None:
    for key, value in values.items():
        shown = "***" if key == "token_encryption_key" and value else value
        logger.debug("Config %s from %s: %s", key, source, shown)


def load_config(
    path: str | Path | None = None,
    cli_args: dict[str, Any] | None = None,
) -> Config:
    """Build the validated Config.

    Later sources win: model defaults, then the file at ``path``, then
    the environment (after ``.env`` is loaded), then non-None ``cli_args``.

    Raises:
        ConfigError: If the file is missing or unsupported, or validation fails
    """
    load_dotenv()

    merged: dict[str, Any] = {}
    if path:
        logger.debug("Loading configuration from file: %s", path)
        merged.update(_load_file_config(path))

    env_values = _load_env_config()
    _log_source("environment", env_values)
    merged.update(env_values)

    overrides = {k: v for k, v in (cli_args or {}).items() if v is not None}
    _log_source("CLI", overrides)
    merged.update(overrides)

    try:
        return Config(**merged)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e
