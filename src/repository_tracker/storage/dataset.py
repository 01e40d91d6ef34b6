"""
Dataset store for the persisted repository JSON document.

The dataset is read once at the start of a run and written once at the
end. Every write first copies the current file to a timestamped backup,
then replaces the target atomically.
"""

import json
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..core.config import ConfigurationError
from ..core.models import Dataset, DatasetMetadata, RepositoryRecord
from ..utils.secure_logging import get_secure_logger

logger = get_secure_logger(__name__)


class DatasetError(ConfigurationError):
    """Raised when the persisted dataset cannot be used as merge input."""


class DatasetStore:
    """
    Reads and writes the dataset file.

    Backups are named ``<stem>.backup.<UTC timestamp>.json`` and live
    beside the dataset.
    """

    def __init__(self, path: str | Path, max_backups: int = 10):
        """
        Initialize dataset store.

        Args:
            path: Dataset file path
            max_backups: Backups to keep (0 keeps all)
        """
        self.path = Path(path)
        self.max_backups = max_backups

    def load(self) -> Dataset:
        """
        Load the persisted dataset.

        Returns:
            Parsed dataset, or an empty one if the file does not exist

        Raises:
            DatasetError: If the file is not a valid dataset document
        """
        if not self.path.exists():
            logger.info("No existing dataset at %s; starting empty", self.path)
            return Dataset()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise DatasetError(f"Invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            raise DatasetError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise DatasetError(f"{self.path}: top-level value must be an object")

        repositories = data.get("repositories", [])
        if not isinstance(repositories, list):
            raise DatasetError(f"{self.path}: 'repositories' must be a list")

        records = []
        for index, item in enumerate(repositories):
            if not isinstance(item, dict):
                raise DatasetError(f"{self.path}: repositories[{index}] is not an object")
            try:
                records.append(RepositoryRecord.from_dict(item))
            except ValueError as e:
                raise DatasetError(f"{self.path}: repositories[{index}]: {e}") from e

        metadata = data.get("metadata")
        return Dataset(
            metadata=DatasetMetadata.from_dict(metadata) if isinstance(metadata, dict) else DatasetMetadata(),
            repositories=records,
        )

    def save(self, dataset: Dataset, now: Optional[datetime] = None) -> Optional[Path]:
        """
        Write the dataset atomically, backing up the previous file first.

        Args:
            dataset: Dataset to persist
            now: Timestamp used for the backup name (default: current UTC)

        Returns:
            Path of the backup taken, or None if there was nothing to back up
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        backup_path = self.backup(now)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(dataset.to_dict(), f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info("Wrote %d repositories to %s", len(dataset.repositories), self.path)
        return backup_path

    def backup(self, now: Optional[datetime] = None) -> Optional[Path]:
        """Copy the current dataset to a timestamped backup and prune old ones."""
        if not self.path.exists():
            return None

        now = now or datetime.now(timezone.utc)
        stamp = now.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        backup_path = self.path.with_name(f"{self.path.stem}.backup.{stamp}.json")
        shutil.copy2(self.path, backup_path)
        logger.info("Backed up previous dataset to %s", backup_path)

        self._prune_backups()
        return backup_path

    def list_backups(self) -> list[Path]:
        """Existing backups, oldest first."""
        return sorted(self.path.parent.glob(f"{self.path.stem}.backup.*.json"))

    def _prune_backups(self) -> None:
        if self.max_backups <= 0:
            return
        backups = self.list_backups()
        for old in backups[:-self.max_backups]:
            old.unlink()
            logger.debug("Removed old backup %s", old)
