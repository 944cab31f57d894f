"""Base source adapter interface.

A source adapter fetches one external endpoint for one tracked entity and
turns the response into a VersionCandidate. Adapters never raise past
``fetch``: every failure is reported as a FetchStatus so a single broken
upstream cannot abort a scan pass.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlparse

import httpx

from switchdex.config import settings
from switchdex.errors import (
    NotFoundError,
    ParseError,
    RateLimitedError,
    SourceError,
)
from switchdex.models import (
    FetchResult,
    FetchStatus,
    SourceCategory,
    TrackedEntity,
    VersionCandidate,
)
from switchdex import metrics

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("rate limit", "ratelimit", "too many requests", "abuse detection")


def is_rate_limited(response: httpx.Response) -> bool:
    """
    Check whether a response is an upstream rate-limit rejection.

    429 always is. 403 only counts when the upstream signals it, since plain
    403s are also used for permission and anti-bot blocks.
    """
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False

    if response.headers.get("X-RateLimit-Remaining") == "0":
        return True
    if "Retry-After" in response.headers:
        return True
    try:
        body = response.text[:2000].lower()
    except Exception:
        return False
    return any(marker in body for marker in RATE_LIMIT_MARKERS)


class BaseSource(ABC):
    """Abstract base class for source adapters."""

    def __init__(
        self,
        name: str,
        source_category: SourceCategory,
        priority: int,
        confidence: float,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize source adapter.

        Args:
            name: Source identifier, matched against entity source bindings
            source_category: Kind of upstream
            priority: Lower = more authoritative (tie-break in consensus)
            confidence: Source-intrinsic confidence weight (0-1)
            timeout: Per-call timeout in seconds (defaults to config)
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.name = name
        self.source_category = source_category
        self.priority = priority
        self.confidence = confidence
        self.timeout = timeout or settings.request_timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    def _default_headers(self) -> dict:
        return {"User-Agent": settings.user_agent}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @abstractmethod
    def build_url(self, lookup_key: str) -> str:
        """Build the endpoint URL for an entity's lookup key."""

    @abstractmethod
    async def _fetch_candidate(self, entity: TrackedEntity, lookup_key: str) -> VersionCandidate:
        """
        Fetch and parse a candidate.

        Raises:
            SourceError: Or one of its subclasses on failure
        """

    def host_for(self, entity: TrackedEntity) -> str:
        """Host the adapter will contact for this entity (used for pacing)."""
        key = entity.lookup_key(self.name) or ""
        return urlparse(self.build_url(key)).netloc or self.name

    async def _get(self, url: str, **kwargs) -> httpx.Response:
        """
        GET a URL and map HTTP failures onto the source error taxonomy.

        Raises:
            NotFoundError: On 404
            RateLimitedError: On 429 or signalled 403
            SourceError: On any other non-2xx status or transport error
        """
        client = await self._get_client()
        try:
            response = await client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise SourceError(self.name, f"timeout after {self.timeout:.0f}s: {e}") from e
        except httpx.HTTPError as e:
            raise SourceError(self.name, f"request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(self.name, f"not found: {url}", status_code=404)
        if is_rate_limited(response):
            raise RateLimitedError(
                self.name,
                f"rate limited (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise SourceError(
                self.name,
                f"HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def _candidate(
        self,
        version: Optional[str],
        release_date: Optional[str] = None,
        notes: Optional[str] = None,
        url: Optional[str] = None,
    ) -> VersionCandidate:
        return VersionCandidate(
            source=self.name,
            source_category=self.source_category,
            priority=self.priority,
            confidence=self.confidence,
            version=version,
            release_date=release_date,
            notes=notes,
            url=url,
        )

    async def fetch(self, entity: TrackedEntity) -> FetchResult:
        """
        Fetch a version candidate for an entity.

        Args:
            entity: Tracked entity

        Returns:
            FetchResult; never raises
        """
        lookup_key = entity.lookup_key(self.name)
        if lookup_key is None:
            return FetchResult(source=self.name, status=FetchStatus.NOT_APPLICABLE)

        start = time.monotonic()
        candidate: Optional[VersionCandidate] = None
        error: Optional[str] = None

        try:
            candidate = await self._fetch_candidate(entity, lookup_key)
            status = FetchStatus.OK if candidate.version else FetchStatus.PARSE_FAILED
            if status is FetchStatus.PARSE_FAILED:
                candidate = None
        except NotFoundError as e:
            status, error = FetchStatus.NOT_FOUND, str(e)
            logger.debug(f"{self.name}: nothing for {entity.id}")
        except RateLimitedError as e:
            status, error = FetchStatus.RATE_LIMITED, str(e)
            logger.warning(f"{self.name} rate limited while fetching {entity.id}")
        except ParseError as e:
            status, error = FetchStatus.PARSE_FAILED, str(e)
            logger.info(f"{self.name}: no version for {entity.id}: {e}")
        except SourceError as e:
            status, error = FetchStatus.UNAVAILABLE, str(e)
            logger.warning(f"{self.name} unavailable for {entity.id}: {e}")
        except Exception as e:
            status, error = FetchStatus.UNAVAILABLE, f"{type(e).__name__}: {e}"
            logger.warning(f"{self.name} failed for {entity.id}: {error}", exc_info=True)

        duration = time.monotonic() - start
        metrics.record_fetch(self.name, status.value, duration)

        return FetchResult(
            source=self.name,
            status=status,
            candidate=candidate,
            error=error,
            duration_ms=duration * 1000,
        )
