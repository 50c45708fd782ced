"""
Bearer token storage for backend authentication.

The token is opaque to the client: it is stored, read and deleted,
never inspected.
"""

import json
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger

from .config import get_data_dir


class TokenStore(Protocol):
    """Opaque get/set/delete storage for a bearer token."""

    def get(self) -> Optional[str]: ...

    def set(self, token: str) -> None: ...

    def delete(self) -> None: ...


class FileTokenStore:
    """Token store backed by a JSON file with owner-only permissions."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path or (get_data_dir() / "session_token.json")

    def get(self) -> Optional[str]:
        """Load the session token from file."""
        if not self.path.exists():
            return None

        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f).get("session_token")
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load session token from {self.path}: {e}")
            return None

    def set(self, token: str) -> None:
        """Save the session token with secure permissions."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"session_token": token}, f)

        # Owner read/write only
        self.path.chmod(0o600)
        logger.debug(f"Saved session token to {self.path}")

    def delete(self) -> None:
        """Remove the stored session token."""
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Deleted session token at {self.path}")


class MemoryTokenStore:
    """In-process token store, used when nothing should touch disk."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def delete(self) -> None:
        self._token = None
