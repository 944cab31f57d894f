"""Shared fixtures: in-process sources, a recording sender and engine wiring."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from switchdex.db.catalog import Catalog
from switchdex.db.history import HistoryLog, UpdateStats
from switchdex.db.tenants import TenantDirectory
from switchdex.db.version_store import VersionStore
from switchdex.detect.consensus import ConsensusResolver
from switchdex.errors import NotFoundError, SourceError
from switchdex.ingest.base import BaseSource
from switchdex.ingest.rate_limiter import HostPacer
from switchdex.ingest.registry import SourceRegistry
from switchdex.ingest.source_health import SourceHealthTracker
from switchdex.models import Category, SourceCategory, TrackedEntity, VersionCandidate
from switchdex.notify.alerts import AlertEscalator
from switchdex.notify.dedupe import DedupeManager
from switchdex.notify.router import NotificationRouter
from switchdex.worker.orchestrator import ScanOrchestrator


class StaticSource(BaseSource):
    """Source that answers from a dict instead of the network."""

    def __init__(
        self,
        name: str,
        priority: int,
        confidence: float,
        versions: Optional[Dict[str, str]] = None,
        errors: Optional[Dict[str, SourceError]] = None,
        source_category: SourceCategory = SourceCategory.COMMUNITY_WIKI,
    ):
        super().__init__(name, source_category, priority, confidence)
        self.versions = dict(versions or {})
        self.errors = dict(errors or {})
        self.calls: List[str] = []

    def build_url(self, lookup_key: str) -> str:
        return f"https://{self.name}.test/{lookup_key}"

    async def _fetch_candidate(self, entity: TrackedEntity, lookup_key: str) -> VersionCandidate:
        self.calls.append(entity.id)
        if entity.id in self.errors:
            raise self.errors[entity.id]
        if entity.id not in self.versions:
            raise NotFoundError(self.name, f"nothing for {entity.id}", status_code=404)
        return self._candidate(
            version=self.versions.get(entity.id),
            release_date="2024-01-01",
            url=self.build_url(lookup_key),
        )


class RecordingSender:
    """Delivery capability that records messages and can fail per channel."""

    def __init__(self, failing: Tuple[str, ...] = (), raising: Tuple[str, ...] = ()):
        self.sent: List[Tuple[str, str]] = []
        self.failing = set(failing)
        self.raising = set(raising)

    async def send(self, channel_id: str, content: str) -> bool:
        if channel_id in self.raising:
            raise RuntimeError("channel exploded")
        if channel_id in self.failing:
            return False
        self.sent.append((channel_id, content))
        return True

    def channels(self) -> List[str]:
        return [channel for channel, _ in self.sent]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_entity(
    entity_id: str,
    category: Category = Category.APPLICATION,
    owner: Optional[str] = None,
    sources: Optional[List[str]] = None,
) -> TrackedEntity:
    names = sources or ["alpha", "beta", "gamma"]
    return TrackedEntity(
        id=entity_id,
        category=category,
        name=entity_id.title(),
        owner_tenant=owner,
        sources={name: entity_id for name in names},
    )


class Engine:
    """Orchestrator plus every collaborator, for assertions in tests."""

    def __init__(self, data_dir, entities, sources, sender=None, clock=None, pacer=None, **orchestrator_kwargs):
        self.clock = clock or FakeClock()
        self.sender = sender or RecordingSender()
        self.catalog = Catalog(data_dir, builtin=list(entities))
        self.tenants = TenantDirectory(data_dir)
        self.store = VersionStore(data_dir)
        self.history = HistoryLog(data_dir)
        self.stats = UpdateStats(data_dir)
        self.health = SourceHealthTracker()
        self.dedupe = DedupeManager(window_minutes=60, clock=self.clock)
        self.alerts = AlertEscalator(self.sender, channel_id="ops", cooldown_minutes=30, clock=self.clock)
        self.router = NotificationRouter(
            self.tenants, self.sender, history=self.history, stats=self.stats, clock=self.clock
        )
        self.orchestrator = ScanOrchestrator(
            catalog=self.catalog,
            registry=SourceRegistry(sources),
            resolver=ConsensusResolver(),
            dedupe=self.dedupe,
            store=self.store,
            router=self.router,
            pacer=pacer or HostPacer(inter_call_delay=0, host_min_interval=0, rate_limit_cooldown=0),
            health=self.health,
            alerts=self.alerts,
            clock=self.clock,
            **orchestrator_kwargs,
        )


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def static_source():
    return StaticSource


@pytest.fixture
def entity_factory():
    return make_entity


@pytest.fixture
def engine_factory(data_dir):
    def build(entities, sources, **kwargs):
        return Engine(data_dir, entities, sources, **kwargs)
    return build


@pytest.fixture
def sender_factory():
    return RecordingSender
