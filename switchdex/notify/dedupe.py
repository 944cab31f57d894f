"""Deduplication of "new version" events."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from switchdex.config import settings
from switchdex.models import utc_now

logger = logging.getLogger(__name__)

DedupKey = Tuple[str, str]


class DedupeManager:
    """
    Time-windowed suppression of repeat (entity, version) detections.

    A pass may re-detect the same new version when a store write lags or a
    retried pass runs before persistence completes. Within the window, each
    pair triggers at most one notification.
    """

    def __init__(
        self,
        window_minutes: Optional[int] = None,
        retention_multiplier: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            window_minutes: Suppression window (defaults to config)
            retention_multiplier: Entries older than window * multiplier are purged
            clock: Time source, injectable for tests
        """
        window_minutes = settings.dedupe_window_minutes if window_minutes is None else window_minutes
        multiplier = (
            settings.dedupe_retention_multiplier if retention_multiplier is None else retention_multiplier
        )
        self.window = timedelta(minutes=window_minutes)
        self.retention = self.window * multiplier
        self._clock = clock
        self._seen: Dict[DedupKey, datetime] = {}
        self._last_cleanup = clock()

    def should_suppress(self, entity_id: str, version: str) -> bool:
        """
        Check (and record) a detection.

        Args:
            entity_id: Tracked entity identifier
            version: Detected version string

        Returns:
            True if the pair was already seen within the window
        """
        now = self._clock()
        self._maybe_cleanup(now)

        key = (entity_id, version)
        last_seen = self._seen.get(key)
        self._seen[key] = now

        if last_seen is not None and now - last_seen < self.window:
            logger.debug(f"Suppressing duplicate detection {entity_id}@{version}")
            return True
        return False

    def forget(self, entity_id: str, version: str) -> None:
        """Drop a key so the next detection of the pair is not suppressed."""
        self._seen.pop((entity_id, version), None)

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """
        Remove entries older than the retention horizon.

        Returns:
            Number of entries removed
        """
        now = now or self._clock()
        cutoff = now - self.retention
        stale = [key for key, seen in self._seen.items() if seen < cutoff]
        for key in stale:
            del self._seen[key]
        self._last_cleanup = now
        if stale:
            logger.debug(f"Dedupe cleanup removed {len(stale)} entries")
        return len(stale)

    def _maybe_cleanup(self, now: datetime) -> None:
        if now - self._last_cleanup >= self.window:
            self.cleanup(now)

    def __len__(self) -> int:
        return len(self._seen)

    def clear(self) -> None:
        self._seen.clear()
