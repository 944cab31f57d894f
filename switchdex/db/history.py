"""Bounded notification history and aggregate statistics."""

import logging
from collections import deque
from pathlib import Path
from typing import Deque, Dict, List, Optional, Any

from switchdex.config import settings
from switchdex.db.json_store import JsonFileStore
from switchdex.models import NotificationEvent

logger = logging.getLogger(__name__)


class HistoryLog:
    """
    Append-only event log capped at ``max_entries``.

    Appending past the cap evicts the oldest entries first. The log is
    loaded once and rewritten on every append.
    """

    def __init__(self, data_dir: Optional[str | Path] = None, max_entries: Optional[int] = None):
        self.max_entries = max_entries or settings.history_max_entries
        self._file = JsonFileStore(
            Path(data_dir or settings.data_dir) / "update-history.json",
            default_factory=list,
        )
        self._events: Deque[NotificationEvent] = deque(maxlen=self.max_entries)
        self._load()

    def _load(self) -> None:
        raw = self._file.load()
        if not isinstance(raw, list):
            logger.warning("update-history.json is not a list, starting empty")
            return
        for item in raw:
            try:
                self._events.append(NotificationEvent.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed history entry: {e}")

    def append(self, event: NotificationEvent) -> None:
        """
        Append an event and persist the log.

        Raises:
            PersistenceError: If the log could not be written
        """
        self._events.append(event)
        self._file.save([e.to_dict() for e in self._events])

    def recent(self, limit: Optional[int] = None) -> List[NotificationEvent]:
        """Newest first."""
        events = list(reversed(self._events))
        return events[:limit] if limit else events

    def __len__(self) -> int:
        return len(self._events)


class UpdateStats:
    """Counts of announcements by category and entity plus delivery tallies."""

    def __init__(self, data_dir: Optional[str | Path] = None):
        self._file = JsonFileStore(Path(data_dir or settings.data_dir) / "update-stats.json")
        raw = self._file.load()
        self._stats: Dict[str, Any] = self._empty()
        if isinstance(raw, dict):
            for key in self._stats:
                if isinstance(raw.get(key), type(self._stats[key])):
                    self._stats[key] = raw[key]

    @staticmethod
    def _empty() -> Dict[str, Any]:
        return {
            "total_updates": 0,
            "by_category": {},
            "by_entity": {},
            "deliveries_succeeded": 0,
            "deliveries_failed": 0,
        }

    def record(self, event: NotificationEvent) -> None:
        """
        Fold one event into the statistics and persist them.

        Raises:
            PersistenceError: If the stats file could not be written
        """
        stats = self._stats
        stats["total_updates"] += 1
        stats["by_category"][event.category] = stats["by_category"].get(event.category, 0) + 1
        stats["by_entity"][event.entity_id] = stats["by_entity"].get(event.entity_id, 0) + 1
        stats["deliveries_succeeded"] += event.delivered
        stats["deliveries_failed"] += event.failed
        self._file.save(stats)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_updates": self._stats["total_updates"],
            "by_category": dict(self._stats["by_category"]),
            "by_entity": dict(self._stats["by_entity"]),
            "deliveries_succeeded": self._stats["deliveries_succeeded"],
            "deliveries_failed": self._stats["deliveries_failed"],
        }
