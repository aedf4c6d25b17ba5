"""Logging configuration for Hosted Auth.

All modules log through children of the "hosted_auth" logger. The handler
installed here masks anything shaped like a JWT, so ID and access tokens
never reach the log stream in clear even if a message includes one.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from hosted_auth.config import Config

LOGGER_NAME = "hosted_auth"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# header.payload.signature, each segment base64url; headers always start "eyJ"
JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
JWT_MASK = "eyJ***"

_logging_configured = False


class TokenMaskingFilter(logging.Filter):
    """Replace JWTs in log records with a fixed mask."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "eyJ" in message:
            record.msg = JWT_PATTERN.sub(JWT_MASK, message)
            record.args = None
        return True


def setup_logging(config: Config, stream: IO[str] | None = None) -> None:
    """Attach one token-masking handler to the package logger.

    The level comes from ``config.log_level``; output goes to ``stream``
    or stderr. Repeat calls only change the level.
    """
    global _logging_configured

    log_level = getattr(logging, config.log_level.value)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    if _logging_configured:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return

    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(TokenMaskingFilter())
    logger.addHandler(handler)

    logger.propagate = False
    _logging_configured = True

    logger.debug(
        "Logging configured with level %s (%s)",
        config.log_level.value,
        config.environment.value,
    )


def get_logger(name: str) -> logging.Logger:
    """Logger under "hosted_auth" for ``name`` (usually ``__name__``)."""
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Undo setup_logging so it can run again (tests)."""
    global _logging_configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _logging_configured = False
