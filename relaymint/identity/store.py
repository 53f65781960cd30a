"""
Persistent local signing identity.

Stored as a JSON array of 64 integers at a well-known path (default
.cache/user_auth.json). Created on first use, never rewritten afterwards.
"""

import json
import logging
from pathlib import Path

from ..core.atomic import atomic_write_text
from ..core.errors import StorageFailure
from .keys import Identity

logger = logging.getLogger(__name__)


class IdentityStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load_or_create(self) -> Identity:
        """
        Load the identity, generating and persisting one if absent.

        Same persisted material always yields the same identity.

        Raises:
            StorageFailure: File unreadable, malformed, or not writable
        """
        if self.path.exists():
            return self._load()

        identity = Identity.generate()
        try:
            atomic_write_text(
                self.path,
                json.dumps(list(identity.secret_key_bytes())),
                mode=0o600,
            )
        except OSError as e:
            raise StorageFailure(f"Cannot write identity {self.path}: {e}") from e
        logger.info(f"Generated new signing identity: {identity.address}")
        return identity

    def delete(self) -> bool:
        """Remove the identity file. Returns whether one existed."""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageFailure(f"Cannot delete identity {self.path}: {e}") from e

    def _load(self) -> Identity:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageFailure(f"Cannot read identity {self.path}: {e}") from e
        if not isinstance(data, list) or not all(isinstance(b, int) and 0 <= b < 256 for b in data):
            raise StorageFailure(f"Identity file {self.path} is not a byte array")
        try:
            return Identity.from_secret_key(data)
        except ValueError as e:
            raise StorageFailure(f"Identity file {self.path} is invalid: {e}") from e
