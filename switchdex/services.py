"""Construction of the long-lived engine components."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx

from switchdex.config import settings
from switchdex.db.catalog import Catalog
from switchdex.db.history import HistoryLog, UpdateStats
from switchdex.db.json_store import JsonFileStore
from switchdex.db.tenants import TenantDirectory
from switchdex.db.version_store import VersionStore
from switchdex.detect.consensus import ConsensusResolver
from switchdex.ingest.rate_limiter import HostPacer
from switchdex.ingest.registry import SourceRegistry
from switchdex.ingest.source_health import SourceHealthTracker
from switchdex.ingest.sources import build_default_sources
from switchdex.models import TrackedEntity
from switchdex.notify.alerts import AlertEscalator
from switchdex.notify.dedupe import DedupeManager
from switchdex.notify.discord import DiscordSender, MessageSender
from switchdex.notify.router import NotificationRouter
from switchdex.worker.orchestrator import ScanOrchestrator
from switchdex.worker.scheduler import ScanScheduler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the API and scheduler need, built once per process."""

    catalog: Catalog
    tenants: TenantDirectory
    store: VersionStore
    history: HistoryLog
    stats: UpdateStats
    registry: SourceRegistry
    health: SourceHealthTracker
    dedupe: DedupeManager
    sender: MessageSender
    alerts: AlertEscalator
    router: NotificationRouter
    orchestrator: ScanOrchestrator
    scheduler: ScanScheduler

    async def close(self):
        """Stop the scheduler and close HTTP clients."""
        self.scheduler.shutdown()
        await self.registry.cleanup()
        close = getattr(self.sender, "close", None)
        if close is not None:
            await close()


def _log_channel_from_config(data_dir: Path) -> str:
    config = JsonFileStore(data_dir / "config.json").load()
    if isinstance(config, dict) and config.get("logChannelId"):
        return str(config["logChannelId"])
    return ""


def build_services(
    data_dir: Optional[str | Path] = None,
    builtin: Optional[List[TrackedEntity]] = None,
    sender: Optional[MessageSender] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    pacer: Optional[HostPacer] = None,
) -> Services:
    """
    Wire up the engine.

    Args:
        data_dir: Directory for persisted JSON files (defaults to settings)
        builtin: Built-in catalog override (defaults to the bundled catalog)
        sender: Delivery capability (defaults to DiscordSender)
        transport: httpx transport for source adapters (tests)
        pacer: Host pacer override (tests pass zero delays)

    Returns:
        Services container
    """
    base = Path(data_dir or settings.data_dir)

    catalog = Catalog(base, builtin=builtin)
    tenants = TenantDirectory(base)
    store = VersionStore(base)
    history = HistoryLog(base)
    stats = UpdateStats(base)
    health = SourceHealthTracker()
    registry = SourceRegistry(build_default_sources(transport=transport))
    resolver = ConsensusResolver(reliability=health if settings.reliability_weighting else None)
    dedupe = DedupeManager()

    sender = sender if sender is not None else DiscordSender()
    alerts = AlertEscalator(
        sender,
        channel_id=settings.log_channel_id or _log_channel_from_config(base),
    )
    router = NotificationRouter(tenants, sender, history=history, stats=stats)

    orchestrator = ScanOrchestrator(
        catalog=catalog,
        registry=registry,
        resolver=resolver,
        dedupe=dedupe,
        store=store,
        router=router,
        pacer=pacer,
        health=health,
        alerts=alerts,
    )
    scheduler = ScanScheduler(orchestrator, data_dir=base)

    logger.info(
        f"Engine ready: {len(catalog.entities())} entities, "
        f"{len(registry.list_sources())} sources, data in {base}"
    )

    return Services(
        catalog=catalog,
        tenants=tenants,
        store=store,
        history=history,
        stats=stats,
        registry=registry,
        health=health,
        dedupe=dedupe,
        sender=sender,
        alerts=alerts,
        router=router,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )
