"""Key-value storage backends.

Stand-ins for the browser's session-scoped and durable storage. The
session manager keeps transient PKCE material in one store and tokens
in another, both behind the same small interface.
"""

from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from hosted_auth.logging_config import get_logger

logger = get_logger(__name__)


class StorageKeys:
    """Fixed storage keys used by the session manager."""

    # Session-scoped store
    PKCE_VERIFIER = "pkce_verifier"
    PKCE_STATE = "pkce_state"

    # Durable store
    ID_TOKEN = "id_token"
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"

    TOKENS = (ID_TOKEN, ACCESS_TOKEN, REFRESH_TOKEN)


class StorageError(Exception):
    """Error during storage operations."""


class KeyValueStore(ABC):
    """Abstract string key-value store."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the value for key, or None if absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove key. Removing an absent key is a no-op."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""


class InMemoryStore(KeyValueStore):
    """In-memory storage.

    Values live as long as the process. Used for session-scoped data and
    whenever persistence is not configured.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class EncryptedFileStore(KeyValueStore):
    """Encrypted file-based storage.

    Values are kept in a JSON object encrypted with Fernet and written
    atomically on every change.
    """

    def __init__(self, encryption_key: str, file_path: str | Path) -> None:
        """Initialize encrypted file store.

        Args:
            encryption_key: Fernet-compatible encryption key
            file_path: Path to the storage file

        Raises:
            StorageError: If encryption key is invalid
        """
        try:
            self._fernet = Fernet(encryption_key.encode())
        except Exception as e:
            raise StorageError(f"Invalid encryption key: {e}") from e

        self._file_path = Path(file_path)
        self._data: dict[str, str] = {}
        self._loaded = False

    @property
    def file_path(self) -> Path:
        return self._file_path

    def _load(self) -> None:
        """Load and decrypt data from file."""
        if self._loaded:
            return

        if not self._file_path.exists():
            self._data = {}
            self._loaded = True
            return

        try:
            decrypted = self._fernet.decrypt(self._file_path.read_bytes())
            data = json.loads(decrypted.decode())
        except InvalidToken:
            logger.error("Failed to decrypt storage file - wrong key?")
            raise StorageError("Failed to decrypt storage file") from None
        except json.JSONDecodeError as e:
            logger.error("Failed to parse storage file: %s", e)
            raise StorageError(f"Failed to parse storage file: {e}") from e

        if not isinstance(data, dict):
            raise StorageError("Storage file does not contain a JSON object")

        self._data = {str(k): str(v) for k, v in data.items()}
        self._loaded = True
        logger.debug("Loaded %d keys from %s", len(self._data), self._file_path)

    def _save(self) -> None:
        """Encrypt and save data to file atomically."""
        encrypted = self._fernet.encrypt(json.dumps(self._data).encode())

        dir_path = self._file_path.parent
        dir_path.mkdir(parents=True, exist_ok=True)

        fd, temp_path_str = tempfile.mkstemp(dir=dir_path)
        temp_path = Path(temp_path_str)
        try:
            os.write(fd, encrypted)
            os.close(fd)
            temp_path.replace(self._file_path)
            logger.debug("Saved storage to %s", self._file_path)
        except Exception:
            os.close(fd)
            if temp_path.exists():
                temp_path.unlink()
            raise

    def get_item(self, key: str) -> str | None:
        self._load()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._load()
        self._data[key] = value
        self._save()

    def remove_item(self, key: str) -> None:
        self._load()
        if key in self._data:
            del self._data[key]
            self._save()

    def clear(self) -> None:
        self._load()
        self._data = {}
        self._save()


def create_store(
    encryption_key: str | None = None,
    file_path: str | Path | None = None,
) -> KeyValueStore:
    """Create the durable store for the given configuration.

    Args:
        encryption_key: Optional Fernet encryption key
        file_path: Optional path for persistent storage

    Returns:
        EncryptedFileStore when both are set, InMemoryStore otherwise
    """
    if file_path and encryption_key:
        return EncryptedFileStore(encryption_key, file_path)
    return InMemoryStore()
