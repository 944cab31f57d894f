"""Source reliability tracking.

Keeps a rolling window of fetch outcomes per source adapter. The ratio of
successes feeds an optional confidence multiplier in the consensus resolver
and the consecutive-failure count drives operator alerts.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Any

from switchdex.config import settings
from switchdex.models import FetchStatus, utc_now
from switchdex import metrics

logger = logging.getLogger(__name__)

# Outcomes that say nothing about a source's health
NEUTRAL_STATUSES = {FetchStatus.NOT_FOUND, FetchStatus.NOT_APPLICABLE}


@dataclass
class SourceHealthMetrics:
    """Health metrics for a single source."""
    source: str
    total_requests: int = 0
    successful_requests: int = 0
    consecutive_failures: int = 0
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    last_rate_limited_at: Optional[datetime] = None
    avg_response_time_ms: float = 0.0
    recent: deque = field(default_factory=lambda: deque(maxlen=settings.source_health_window))

    @property
    def reliability(self) -> float:
        if not self.recent:
            return 1.0
        return sum(1 for ok in self.recent if ok) / len(self.recent)


class SourceHealthTracker:
    """Tracks per-source success/failure history."""

    def __init__(self, window: Optional[int] = None):
        self.window = window or settings.source_health_window
        self._metrics: Dict[str, SourceHealthMetrics] = {}

    def _get_or_create(self, source: str) -> SourceHealthMetrics:
        if source not in self._metrics:
            self._metrics[source] = SourceHealthMetrics(
                source=source, recent=deque(maxlen=self.window)
            )
        return self._metrics[source]

    def record(self, source: str, status: FetchStatus, duration_ms: float = 0.0) -> None:
        """
        Record one fetch outcome.

        Args:
            source: Source name
            status: Fetch status
            duration_ms: Call duration in milliseconds
        """
        if status in NEUTRAL_STATUSES:
            return

        m = self._get_or_create(source)
        now = utc_now()
        success = status is FetchStatus.OK

        m.total_requests += 1
        m.recent.append(success)
        if success:
            m.successful_requests += 1
            m.consecutive_failures = 0
            m.last_success_at = now
            # Running mean over successful calls
            m.avg_response_time_ms += (duration_ms - m.avg_response_time_ms) / m.successful_requests
        else:
            m.consecutive_failures += 1
            m.last_failure_at = now
            if status is FetchStatus.RATE_LIMITED:
                m.last_rate_limited_at = now

        metrics.update_source_reliability(source, m.reliability)
        logger.debug(
            f"Recorded {status.value} for {source}: reliability={m.reliability:.2%}, "
            f"consecutive_failures={m.consecutive_failures}"
        )

    def reliability(self, source: str) -> float:
        """Rolling success ratio; 1.0 for sources with no history."""
        m = self._metrics.get(source)
        return m.reliability if m else 1.0

    def consecutive_failures(self, source: str) -> int:
        m = self._metrics.get(source)
        return m.consecutive_failures if m else 0

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Current metrics for every known source."""
        return {
            name: {
                "reliability": round(m.reliability, 3),
                "total_requests": m.total_requests,
                "successful_requests": m.successful_requests,
                "consecutive_failures": m.consecutive_failures,
                "avg_response_time_ms": round(m.avg_response_time_ms, 1),
                "last_success_at": m.last_success_at.isoformat() if m.last_success_at else None,
                "last_failure_at": m.last_failure_at.isoformat() if m.last_failure_at else None,
                "last_rate_limited_at": (
                    m.last_rate_limited_at.isoformat() if m.last_rate_limited_at else None
                ),
            }
            for name, m in self._metrics.items()
        }

    def reset(self) -> None:
        self._metrics.clear()
