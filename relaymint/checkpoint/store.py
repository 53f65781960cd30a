"""
Checkpoint storage management.

Records are stored as JSON files in a deployments/ directory.
Naming: {deployment_key}.json

Single writer assumed: there is no inter-process lock, callers must not run
two deployments against the same directory at once.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from ..core.atomic import atomic_write_text
from ..core.errors import StorageFailure
from .model import DeploymentRecord

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class CheckpointStore:
    """
    Manage deployment records on disk.

    The store is never authoritative over ledger truth: absence of a record
    means "no step known complete", and every step re-checks live state.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, deployment_key: str) -> Path:
        if not _KEY_RE.match(deployment_key) or deployment_key.startswith("."):
            raise StorageFailure(f"Invalid deployment key: {deployment_key!r}")
        return self.directory / f"{deployment_key}.json"

    def read(self, deployment_key: str) -> Optional[DeploymentRecord]:
        """
        Load a record.

        Returns:
            DeploymentRecord, or None if no record exists

        Raises:
            StorageFailure: Unreadable or corrupt record
        """
        path = self.path_for(deployment_key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageFailure(f"Cannot read checkpoint {path}: {e}") from e

        try:
            return DeploymentRecord.from_json(text)
        except (ValueError, KeyError, TypeError) as e:
            raise StorageFailure(f"Corrupt checkpoint {path}: {e}") from e

    def write(self, record: DeploymentRecord) -> Path:
        """
        Atomically overwrite the record.

        Returns:
            Path to the record file
        """
        path = self.path_for(record.deployment_key)
        record.touch()
        try:
            atomic_write_text(path, record.to_json() + "\n")
        except OSError as e:
            raise StorageFailure(f"Cannot write checkpoint {path}: {e}") from e
        logger.debug(f"Checkpoint written: {path}")
        return path

    def delete(self, deployment_key: str) -> bool:
        """
        Delete the local record.

        Does not and cannot undo anything on-chain.

        Returns:
            True if a record existed
        """
        path = self.path_for(deployment_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageFailure(f"Cannot delete checkpoint {path}: {e}") from e
        logger.info(f"Deleted checkpoint {path}")
        return True
