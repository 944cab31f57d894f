"""Rate-limited operator alerts."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from switchdex.config import settings
from switchdex.models import utc_now
from switchdex.notify.discord import MessageSender
from switchdex.notify.formatters import format_operator_alert
from switchdex import metrics

logger = logging.getLogger(__name__)


class AlertEscalator:
    """
    Sends critical failures to the operator log channel.

    At most one alert per error signature is sent within the cooldown, so a
    source that fails on every entity produces one message, not hundreds.
    """

    def __init__(
        self,
        sender: Optional[MessageSender],
        channel_id: Optional[str] = None,
        cooldown_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sender = sender
        self.channel_id = settings.log_channel_id if channel_id is None else channel_id
        minutes = settings.alert_cooldown_minutes if cooldown_minutes is None else cooldown_minutes
        self.cooldown = timedelta(minutes=minutes)
        self._clock = clock
        self._last_sent: Dict[str, datetime] = {}

    def _throttled(self, signature: str, now: datetime) -> bool:
        last = self._last_sent.get(signature)
        return last is not None and now - last < self.cooldown

    async def escalate(self, signature: str, message: str) -> bool:
        """
        Send an alert unless the signature is cooling down.

        Args:
            signature: Stable identifier of the failure kind (e.g. "persist:game")
            message: Human-readable detail

        Returns:
            True if an alert was delivered
        """
        now = self._clock()
        logger.error(f"[{signature}] {message}")

        if self._throttled(signature, now):
            metrics.record_operator_alert("throttled")
            return False
        self._last_sent[signature] = now

        if self.sender is None or not self.channel_id:
            metrics.record_operator_alert("no_channel")
            return False

        try:
            delivered = await self.sender.send(self.channel_id, format_operator_alert(signature, message))
        except Exception as e:
            logger.error(f"Operator alert delivery failed: {e}")
            delivered = False

        metrics.record_operator_alert("sent" if delivered else "failed")
        return delivered

    def reset(self) -> None:
        self._last_sent.clear()
