"""API key storage."""

import os
import json
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
import structlog


logger = structlog.get_logger()


class CredentialStore(ABC):
    """Holds the opaque API key used for the remote model."""

    @abstractmethod
    def get(self) -> Optional[str]:
        """Return the stored key, or None if there is none."""
        pass

    @abstractmethod
    def set(self, api_key: str) -> None:
        """Persist a new key, replacing any previous one."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored key."""
        pass


class MemoryCredentialStore(CredentialStore):
    """Keeps the key in memory for the lifetime of the process."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or None

    def get(self) -> Optional[str]:
        return self._api_key

    def set(self, api_key: str) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("API key must not be empty")
        self._api_key = api_key.strip()

    def clear(self) -> None:
        self._api_key = None


class FileCredentialStore(CredentialStore):
    """
    Stores the key in a small JSON file readable only by the current user.

    When the file holds no key, falls back to an environment variable so a key
    exported in the shell or a .env file works without logging in.
    """

    FIELD = "rugved_api_key"

    def __init__(
        self,
        path: Union[str, Path] = "~/.rugved/credentials.json",
        env_var: Optional[str] = "GOOGLE_API_KEY",
    ):
        self.path = Path(path).expanduser()
        self.env_var = env_var

    def get(self) -> Optional[str]:
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError(f"expected a JSON object, got {type(data).__name__}")
                api_key = data.get(self.FIELD)
                if isinstance(api_key, str) and api_key:
                    return api_key
            except (OSError, ValueError) as e:
                logger.warning(
                    "Failed to read credential file", path=str(self.path), error=str(e)
                )

        if self.env_var:
            return os.getenv(self.env_var) or None
        return None

    def set(self, api_key: str) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("API key must not be empty")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=self.path.parent, delete=False, suffix=".tmp"
        ) as tmp_file:
            json.dump({self.FIELD: api_key.strip()}, tmp_file)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = tmp_file.name

        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)
        logger.info("API key stored", path=str(self.path))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("API key removed", path=str(self.path))
