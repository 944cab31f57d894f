"""Authoritative last-known version per tracked entity."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

from switchdex.config import settings
from switchdex.db.json_store import JsonFileStore
from switchdex.errors import PersistenceError
from switchdex.models import Category, TrackedEntity, VersionRecord, utc_now
from switchdex import metrics

logger = logging.getLogger(__name__)

# One file per logical category, flat {entity_id: record} mapping
CATEGORY_FILES: Dict[Category, str] = {
    Category.GAME: "game-versions.json",
    Category.APPLICATION: "homebrew-versions.json",
    Category.FIRMWARE: "core-versions.json",
    Category.USER_REPOSITORY: "repo-versions.json",
}


class VersionStore:
    """
    Durable version table.

    Records are cached per category after first load. ``write`` persists
    immediately and surfaces failures; ``mark_checked`` only touches the
    cache and is persisted by ``flush``.
    """

    def __init__(self, data_dir: Optional[str | Path] = None, keep_backups: Optional[int] = None):
        self.data_dir = Path(data_dir or settings.data_dir)
        self._files: Dict[Category, JsonFileStore] = {
            category: JsonFileStore(self.data_dir / filename, keep_backups=keep_backups)
            for category, filename in CATEGORY_FILES.items()
        }
        self._cache: Dict[Category, Dict[str, dict]] = {}
        self._dirty: set[Category] = set()

    def _table(self, category: Category) -> Dict[str, dict]:
        if category not in self._cache:
            data = self._files[category].load()
            if not isinstance(data, dict):
                logger.warning(f"{CATEGORY_FILES[category]} is not a mapping, starting empty")
                data = {}
            self._cache[category] = data
        return self._cache[category]

    def read(self, entity: TrackedEntity) -> VersionRecord:
        """
        Last known record for an entity.

        Returns:
            The stored record, or an empty VersionRecord for unknown entities
        """
        raw = self._table(entity.category).get(entity.id)
        if not isinstance(raw, dict):
            return VersionRecord()
        return VersionRecord.from_dict(raw)

    def write(self, entity: TrackedEntity, record: VersionRecord) -> None:
        """
        Persist a new record for an entity.

        Raises:
            PersistenceError: If the category file could not be written.
                The in-memory table is left unchanged in that case.
        """
        table = self._table(entity.category)
        previous = table.get(entity.id)
        table[entity.id] = record.to_dict()

        try:
            self._files[entity.category].save(table)
        except PersistenceError:
            if previous is None:
                table.pop(entity.id, None)
            else:
                table[entity.id] = previous
            metrics.record_store_write(entity.category.value, False)
            raise

        self._dirty.discard(entity.category)
        metrics.record_store_write(entity.category.value, True)
        logger.info(f"Stored {entity.id} -> {record.version}")

    def mark_checked(self, entity: TrackedEntity, when: Optional[datetime] = None) -> None:
        """Update last-checked metadata in memory; persisted by flush()."""
        table = self._table(entity.category)
        raw = table.get(entity.id)
        record = VersionRecord.from_dict(raw) if isinstance(raw, dict) else VersionRecord()
        record.last_checked = when or utc_now()
        table[entity.id] = record.to_dict()
        self._dirty.add(entity.category)

    def flush(self, category: Optional[Category] = None) -> None:
        """
        Persist pending last-checked updates.

        Raises:
            PersistenceError: If a category file could not be written
        """
        targets = [category] if category else list(self._dirty)
        for cat in targets:
            if cat not in self._dirty:
                continue
            self._files[cat].save(self._table(cat))
            self._dirty.discard(cat)

    def remove(self, entity: TrackedEntity) -> None:
        """Drop an entity's record (used when a user repository is removed)."""
        table = self._table(entity.category)
        if table.pop(entity.id, None) is not None:
            self._files[entity.category].save(table)

    def file_for(self, category: Category) -> JsonFileStore:
        return self._files[category]
