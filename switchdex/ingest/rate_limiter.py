"""Per-host pacing for outbound source calls."""

import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from switchdex.config import settings

logger = logging.getLogger(__name__)


class HostPacer:
    """
    Spaces outbound calls so third-party hosts never see bursts.

    Two delays apply before every call:
    - a global inter-call delay between any two consecutive adapter calls
    - a minimum interval between two calls to the same host

    A per-host lock is held for the duration of the call, which caps
    concurrent requests to one host at one even if callers run in parallel.
    """

    def __init__(
        self,
        inter_call_delay: Optional[float] = None,
        host_min_interval: Optional[float] = None,
        rate_limit_cooldown: Optional[float] = None,
    ):
        self.inter_call_delay = (
            settings.inter_call_delay_seconds if inter_call_delay is None else inter_call_delay
        )
        self.host_min_interval = (
            settings.host_min_interval_seconds if host_min_interval is None else host_min_interval
        )
        self.rate_limit_cooldown = (
            settings.rate_limit_cooldown_seconds if rate_limit_cooldown is None else rate_limit_cooldown
        )
        self.locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.last_request: dict[str, float] = {}
        self.host_cooldowns: dict[str, float] = {}  # host -> cooldown until (monotonic)
        self._last_any: float = 0.0

    def set_cooldown(self, host: str, seconds: Optional[float] = None) -> None:
        """
        Block requests to a host for a number of seconds.

        Args:
            host: Host name
            seconds: Cooldown duration in seconds (defaults to the rate-limit cooldown)
        """
        if seconds is None:
            seconds = self.rate_limit_cooldown
        self.host_cooldowns[host] = time.monotonic() + seconds

    def _wait_needed(self, host: str, now: float) -> float:
        wait = 0.0
        if self._last_any:
            wait = max(wait, self.inter_call_delay - (now - self._last_any))
        last = self.last_request.get(host)
        if last is not None:
            wait = max(wait, self.host_min_interval - (now - last))
        cooldown_until = self.host_cooldowns.get(host, 0.0)
        if now < cooldown_until:
            wait = max(wait, cooldown_until - now)
        return wait

    @asynccontextmanager
    async def slot(self, host: str) -> AsyncIterator[float]:
        """
        Wait for the host's turn, then hold it while the caller makes its request.

        Yields:
            Seconds spent waiting
        """
        async with self.locks[host]:
            wait_needed = self._wait_needed(host, time.monotonic())
            if wait_needed > 0:
                logger.debug(f"Pacing {host}: waiting {wait_needed:.2f}s")
                await asyncio.sleep(wait_needed)
            try:
                yield max(wait_needed, 0.0)
            finally:
                now = time.monotonic()
                self.last_request[host] = now
                self._last_any = now

    def reset(self) -> None:
        """Forget all timing state."""
        self.last_request.clear()
        self.host_cooldowns.clear()
        self._last_any = 0.0
