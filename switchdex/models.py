"""Domain data classes shared across ingest, detection, storage and notification."""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, List, Any


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO timestamp; naive values written by older files are taken as UTC."""
    parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Category(str, Enum):
    """Closed set of tracked-entity categories, in scan order."""

    GAME = "game"
    APPLICATION = "application"
    FIRMWARE = "firmware-component"
    USER_REPOSITORY = "user-repository"


# Fixed per-pass scan order
SCAN_ORDER: List[Category] = [
    Category.GAME,
    Category.APPLICATION,
    Category.FIRMWARE,
    Category.USER_REPOSITORY,
]


class SourceCategory(str, Enum):
    """Kind of upstream a source adapter talks to."""

    OFFICIAL = "official"
    COMMUNITY_WIKI = "community-wiki"
    COMMUNITY_FORUM = "community-forum"
    CODE_HOST = "code-host"


class FetchStatus(str, Enum):
    """Outcome of one adapter invocation."""

    OK = "ok"
    NOT_FOUND = "not_found"
    NOT_APPLICABLE = "not_applicable"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    PARSE_FAILED = "parse_failed"


@dataclass
class TrackedEntity:
    """A monitored artifact."""

    id: str
    category: Category
    name: str
    owner_tenant: Optional[str] = None
    sources: Dict[str, str] = field(default_factory=dict)  # adapter name -> lookup key

    @property
    def is_global(self) -> bool:
        return self.owner_tenant is None

    def lookup_key(self, source_name: str) -> Optional[str]:
        return self.sources.get(source_name)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category.value,
            "name": self.name,
            "owner_tenant": self.owner_tenant,
            "sources": dict(self.sources),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackedEntity":
        return cls(
            id=str(data["id"]),
            category=Category(data["category"]),
            name=data.get("name") or str(data["id"]),
            owner_tenant=data.get("owner_tenant"),
            sources=dict(data.get("sources") or {}),
        )


@dataclass
class VersionCandidate:
    """One source's unverified answer for an entity during one pass."""

    source: str
    source_category: SourceCategory
    priority: int
    confidence: float
    version: Optional[str]
    release_date: Optional[str] = None
    notes: Optional[str] = None
    url: Optional[str] = None


@dataclass
class FetchResult:
    """Result of an adapter call: a candidate, or the reason there is none."""

    source: str
    status: FetchStatus
    candidate: Optional[VersionCandidate] = None
    error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def has_vote(self) -> bool:
        return self.candidate is not None and bool(self.candidate.version)


@dataclass
class ConsensusResult:
    """The resolver's decision for one entity in one pass."""

    version: str
    total_confidence: float
    sources: List[str]
    best_candidate: VersionCandidate


@dataclass
class VersionRecord:
    """Authoritative last-known state of one entity."""

    version: Optional[str] = None
    release_date: Optional[str] = None
    url: Optional[str] = None
    last_checked: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "release_date": self.release_date,
            "url": self.url,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionRecord":
        last_checked = None
        raw = data.get("last_checked")
        if raw:
            try:
                last_checked = parse_timestamp(raw)
            except ValueError:
                last_checked = None
        return cls(
            version=data.get("version"),
            release_date=data.get("release_date"),
            url=data.get("url"),
            last_checked=last_checked,
        )


@dataclass(frozen=True)
class NotificationEvent:
    """Immutable record of a delivered (or attempted) change announcement."""

    entity_id: str
    entity_name: str
    from_version: Optional[str]
    to_version: str
    category: str
    sources: List[str]
    detected_at: datetime
    scope: str  # "global" or tenant id
    delivered: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["detected_at"] = self.detected_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationEvent":
        return cls(
            entity_id=data["entity_id"],
            entity_name=data.get("entity_name") or data["entity_id"],
            from_version=data.get("from_version"),
            to_version=data["to_version"],
            category=data["category"],
            sources=list(data.get("sources") or []),
            detected_at=parse_timestamp(data["detected_at"]),
            scope=data.get("scope", "global"),
            delivered=int(data.get("delivered", 0)),
            failed=int(data.get("failed", 0)),
        )


@dataclass
class RecipientChannel:
    """A delivery target."""

    channel_id: str
    tenant_id: Optional[str] = None  # None for legacy/global entries


@dataclass
class TenantSettings:
    """Per-tenant category subscriptions and mention roles."""

    tenant_id: str
    subscriptions: Optional[List[str]] = None  # None = every category
    mention_roles: Dict[str, str] = field(default_factory=dict)  # category -> role id

    def subscribes_to(self, category: Category) -> bool:
        if self.subscriptions is None:
            return True
        return category.value in self.subscriptions


@dataclass
class PassSummary:
    """Aggregate counters for one scan pass."""

    trigger: str
    categories: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    checked: int = 0
    updated: int = 0
    unchanged: int = 0
    suppressed: int = 0
    failed: int = 0
    rate_limited_sources: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "categories": list(self.categories),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "checked": self.checked,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "suppressed": self.suppressed,
            "failed": self.failed,
            "rate_limited_sources": list(self.rate_limited_sources),
            "errors": list(self.errors[:10]),
        }
