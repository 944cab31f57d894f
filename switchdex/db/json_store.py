"""JSON file persistence with backup rotation."""

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Callable, List, Optional

from switchdex.config import settings
from switchdex.errors import PersistenceError
from switchdex.models import utc_now

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%f"


class JsonFileStore:
    """
    One logical JSON file on disk.

    Every save copies the current file into the backup folder under a
    timestamped name, writes the new content to a temp file and swaps it in
    with ``os.replace``, then prunes backups beyond ``keep_backups``.
    Loading a missing, empty or unreadable file returns the default value.
    """

    def __init__(
        self,
        path: str | Path,
        default_factory: Callable[[], Any] = dict,
        backup_dir: Optional[str | Path] = None,
        keep_backups: Optional[int] = None,
    ):
        """
        Args:
            path: File path
            default_factory: Produces the value returned for missing files
            backup_dir: Where backups go (defaults to <parent>/backups)
            keep_backups: Backups retained per file (defaults to config)
        """
        self.path = Path(path)
        self.default_factory = default_factory
        self.backup_dir = Path(backup_dir) if backup_dir else self.path.parent / "backups"
        self.keep_backups = settings.backup_keep if keep_backups is None else keep_backups

    @property
    def name(self) -> str:
        return self.path.name

    def load(self) -> Any:
        """Load file content, or the default value if there is nothing usable."""
        try:
            if not self.path.exists():
                return self.default_factory()
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read {self.path}: {e}")
            return self.default_factory()

        if not raw.strip():
            return self.default_factory()

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt JSON in {self.path}, using default: {e}")
            return self.default_factory()

    def save(self, data: Any) -> None:
        """
        Persist data with backup rotation.

        Raises:
            PersistenceError: If the file could not be written
        """
        try:
            payload = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot serialise data for {self.path}: {e}") from e

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._backup_current()
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                logger.debug(f"Could not remove temp file {tmp_path}")
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e

        self._prune_backups()

    def _backup_current(self) -> Optional[Path]:
        if not self.path.exists() or self.path.stat().st_size == 0:
            return None

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = utc_now().strftime(BACKUP_TIMESTAMP_FORMAT)
        target = self.backup_dir / f"{self.path.stem}.{stamp}{self.path.suffix}"
        counter = 1
        while target.exists():
            target = self.backup_dir / f"{self.path.stem}.{stamp}_{counter}{self.path.suffix}"
            counter += 1

        shutil.copy2(self.path, target)
        return target

    def list_backups(self) -> List[Path]:
        """Backups of this file, oldest first."""
        if not self.backup_dir.exists():
            return []
        return sorted(self.backup_dir.glob(f"{self.path.stem}.*{self.path.suffix}"))

    def _prune_backups(self) -> None:
        backups = self.list_backups()
        excess = len(backups) - self.keep_backups
        for old in backups[:max(excess, 0)]:
            try:
                old.unlink()
            except OSError as e:
                logger.warning(f"Could not delete old backup {old}: {e}")
