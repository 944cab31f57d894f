"""Scan passes: fetch, resolve, commit and announce for every tracked entity."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from switchdex.config import settings
from switchdex.db.catalog import Catalog
from switchdex.db.version_store import VersionStore
from switchdex.detect.consensus import ConsensusResolver
from switchdex.errors import PersistenceError
from switchdex.ingest.rate_limiter import HostPacer
from switchdex.ingest.registry import SourceRegistry
from switchdex.ingest.source_health import SourceHealthTracker
from switchdex.ingest.version_parser import compare_versions, is_regression
from switchdex.logging_config import get_logger
from switchdex.models import (
    SCAN_ORDER,
    Category,
    FetchStatus,
    PassSummary,
    TrackedEntity,
    VersionCandidate,
    VersionRecord,
    utc_now,
)
from switchdex.notify.alerts import AlertEscalator
from switchdex.notify.dedupe import DedupeManager
from switchdex.notify.formatters import format_pass_summary
from switchdex.notify.router import NotificationRouter
from switchdex import metrics

logger = logging.getLogger(__name__)

FAILURE_STATUSES = {FetchStatus.UNAVAILABLE, FetchStatus.PARSE_FAILED, FetchStatus.RATE_LIMITED}

# Entity outcomes, also used as metric labels
UPDATED = "updated"
INITIAL = "initial"
UNCHANGED = "unchanged"
SUPPRESSED = "suppressed"
REGRESSION = "regression"
NO_DATA = "no_data"
FAILED = "failed"


def _same_version(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return a == b
    return a == b or compare_versions(a, b) == 0


class ScanOrchestrator:
    """
    Runs scan passes over the catalog in fixed category order.

    Passes never overlap. A scheduled trigger that arrives while a pass is
    running is skipped; an on-demand trigger is queued, and any number of
    queued requests collapse into a single follow-up pass.
    """

    def __init__(
        self,
        catalog: Catalog,
        registry: SourceRegistry,
        resolver: ConsensusResolver,
        dedupe: DedupeManager,
        store: VersionStore,
        router: NotificationRouter,
        pacer: Optional[HostPacer] = None,
        health: Optional[SourceHealthTracker] = None,
        alerts: Optional[AlertEscalator] = None,
        clock: Callable[[], datetime] = utc_now,
        announce_initial: Optional[bool] = None,
        ignore_regressions: Optional[bool] = None,
        failure_alert_threshold: Optional[int] = None,
    ):
        self.catalog = catalog
        self.registry = registry
        self.resolver = resolver
        self.dedupe = dedupe
        self.store = store
        self.router = router
        self.pacer = pacer if pacer is not None else HostPacer()
        self.health = health if health is not None else SourceHealthTracker()
        self.alerts = alerts
        self._clock = clock
        self.announce_initial = (
            settings.announce_initial_versions if announce_initial is None else announce_initial
        )
        self.ignore_regressions = (
            settings.ignore_version_regressions if ignore_regressions is None else ignore_regressions
        )
        self.failure_alert_threshold = (
            settings.source_failure_alert_threshold
            if failure_alert_threshold is None
            else failure_alert_threshold
        )

        self._lock = asyncio.Lock()
        self._pending = False
        self._pending_categories: Optional[Set[Category]] = set()
        self.current_category: Optional[Category] = None
        self.last_summary: Optional[PassSummary] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def has_pending(self) -> bool:
        return self._pending

    def _queue_pending(self, categories: Optional[List[Category]]) -> None:
        if categories is None or self._pending_categories is None:
            self._pending_categories = None
        else:
            self._pending_categories.update(categories)
        self._pending = True

    def _take_pending(self) -> Optional[List[Category]]:
        pending = self._pending_categories
        self._pending = False
        self._pending_categories = set()
        if pending is None:
            return None
        return [c for c in SCAN_ORDER if c in pending]

    async def run_pass(
        self,
        trigger: str = "scheduled",
        categories: Optional[Iterable[Category]] = None,
    ) -> Optional[PassSummary]:
        """
        Run one pass, or queue/skip it if a pass is already running.

        Args:
            trigger: "scheduled" or "manual"
            categories: Restrict the pass to these categories (default all)

        Returns:
            Summary of the pass, or None if it was skipped or queued
        """
        requested = None if categories is None else [c for c in SCAN_ORDER if c in set(categories)]

        if self._lock.locked():
            if trigger == "manual":
                self._queue_pending(requested)
                metrics.record_scan_skipped(trigger, "queued")
                logger.info("Scan already running; queued manual run")
            else:
                metrics.record_scan_skipped(trigger, "running")
                logger.info(f"Scan already running; skipping {trigger} run")
            return None

        async with self._lock:
            summary = await self._run(trigger, requested)
            while self._pending:
                follow_up = self._take_pending()
                logger.info("Processing queued scan request")
                await self._run("manual", follow_up)

        return summary

    async def _run(self, trigger: str, categories: Optional[List[Category]]) -> PassSummary:
        ordered = categories if categories is not None else list(SCAN_ORDER)
        summary = PassSummary(
            trigger=trigger,
            categories=[c.value for c in ordered],
            started_at=self._clock(),
        )
        limited: Set[str] = set()
        logger.info(f"Starting {trigger} scan over {', '.join(summary.categories) or 'no categories'}")

        success = True
        for category in ordered:
            self.current_category = category
            try:
                await self._scan_category(category, summary, limited)
            except Exception as e:
                success = False
                summary.errors.append(f"{category.value}: {e}")
                logger.error(f"Category {category.value} failed: {e}", exc_info=True)
                await self._escalate(
                    f"category:{category.value}",
                    f"Scan of {category.value} aborted: {e}",
                )
        self.current_category = None

        summary.finished_at = self._clock()
        self.last_summary = summary
        metrics.record_scan_pass(trigger, success, summary.duration_seconds)

        logger.info(format_pass_summary(summary))
        return summary

    async def _scan_category(
        self,
        category: Category,
        summary: PassSummary,
        limited: Set[str],
    ) -> None:
        entities = self.catalog.entities(category)
        log = get_logger(__name__, category=category.value, trigger=summary.trigger)
        log.info(f"Scanning {len(entities)} {category.value} entities")

        for entity in entities:
            summary.checked += 1
            try:
                outcome = await self._scan_entity(entity, summary, limited)
            except Exception as e:
                outcome = FAILED
                summary.errors.append(f"{entity.id}: {e}")
                log.bind(entity=entity.id).error(f"Scan of {entity.id} failed: {e}", exc_info=True)

            if outcome in (UPDATED, INITIAL):
                summary.updated += 1
            elif outcome == SUPPRESSED:
                summary.suppressed += 1
            elif outcome == FAILED:
                summary.failed += 1
            else:
                summary.unchanged += 1
            metrics.record_entity_outcome(category.value, outcome)

        try:
            self.store.flush(category)
        except PersistenceError as e:
            summary.errors.append(f"{category.value}: {e}")
            log.error(f"Failed to persist last-checked metadata: {e}")
            await self._escalate(f"persist:{category.value}", f"Could not flush {category.value}: {e}")

    async def _collect(
        self,
        entity: TrackedEntity,
        summary: PassSummary,
        limited: Set[str],
    ) -> tuple[List[VersionCandidate], int]:
        """Query every applicable source in priority order; returns (candidates, failures)."""
        candidates: List[VersionCandidate] = []
        failures = 0

        for source in self.registry.sources_for(entity):
            if source.name in limited:
                logger.debug(f"Skipping {source.name} for {entity.id}: rate limited this pass")
                continue

            host = source.host_for(entity)
            async with self.pacer.slot(host):
                result = await source.fetch(entity)

            self.health.record(source.name, result.status, result.duration_ms)

            if result.status is FetchStatus.RATE_LIMITED:
                limited.add(source.name)
                summary.rate_limited_sources.append(source.name)
                self.pacer.set_cooldown(host)
                logger.warning(f"{source.name} rate limited; skipping it for the rest of this pass")

            if result.status in FAILURE_STATUSES:
                failures += 1
                streak = self.health.consecutive_failures(source.name)
                if streak >= self.failure_alert_threshold:
                    await self._escalate(
                        f"source:{source.name}",
                        f"{source.name} failed {streak} times in a row (last: {result.error})",
                    )

            if result.has_vote:
                candidates.append(result.candidate)

        return candidates, failures

    async def _scan_entity(
        self,
        entity: TrackedEntity,
        summary: PassSummary,
        limited: Set[str],
    ) -> str:
        """
        Process one entity.

        Returns:
            Outcome label
        """
        candidates, failures = await self._collect(entity, summary, limited)
        consensus = self.resolver.resolve(candidates)
        now = self._clock()
        stored = self.store.read(entity)

        if consensus is None:
            self.store.mark_checked(entity, now)
            return FAILED if failures else NO_DATA

        if _same_version(consensus.version, stored.version):
            self.store.mark_checked(entity, now)
            return UNCHANGED

        if self.ignore_regressions and is_regression(consensus.version, stored.version):
            logger.info(
                f"Ignoring regression for {entity.id}: {consensus.version} < {stored.version} "
                f"(from {', '.join(consensus.sources)})"
            )
            self.store.mark_checked(entity, now)
            return REGRESSION

        first_sighting = stored.version is None
        if not first_sighting or self.announce_initial:
            if self.dedupe.should_suppress(entity.id, consensus.version):
                metrics.record_suppressed(entity.category.value)
                self.store.mark_checked(entity, now)
                return SUPPRESSED

        best = consensus.best_candidate
        record = VersionRecord(
            version=consensus.version,
            release_date=best.release_date,
            url=best.url,
            last_checked=now,
        )

        try:
            self.store.write(entity, record)
        except PersistenceError as e:
            self.dedupe.forget(entity.id, consensus.version)
            self.store.mark_checked(entity, now)
            summary.errors.append(f"{entity.id}: {e}")
            logger.error(f"Not announcing {entity.id} {consensus.version}: store write failed: {e}")
            await self._escalate(
                f"persist:{entity.category.value}",
                f"Failed to store {entity.id} {consensus.version}: {e}",
            )
            return FAILED

        if first_sighting and not self.announce_initial:
            logger.info(f"Recorded initial version {consensus.version} for {entity.id}")
            return INITIAL

        await self.router.notify(entity, stored.version, consensus.version, consensus)
        return UPDATED

    async def _escalate(self, signature: str, message: str) -> None:
        if self.alerts is None:
            return
        try:
            await self.alerts.escalate(signature, message)
        except Exception as e:
            logger.error(f"Alert escalation failed for {signature}: {e}")
