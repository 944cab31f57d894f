"""JSON endpoint fetcher for structured version feeds."""

import logging
from typing import Any, Optional

from switchdex.errors import ParseError
from switchdex.ingest.base import BaseSource
from switchdex.ingest.version_parser import max_version, normalize_version
from switchdex.models import SourceCategory, TrackedEntity, VersionCandidate

logger = logging.getLogger(__name__)


class JSONEndpointSource(BaseSource):
    """Reads a version from a JSON document at a dotted path."""

    def __init__(
        self,
        name: str,
        source_category: SourceCategory,
        priority: int,
        confidence: float,
        endpoint_template: str,
        version_path: str,
        date_path: Optional[str] = None,
        url_path: Optional[str] = None,
        notes_path: Optional[str] = None,
        **kwargs,
    ):
        """
        Initialize JSON endpoint source.

        Args:
            name: Source identifier
            source_category: Kind of upstream
            priority: Lower = more authoritative
            confidence: Source-intrinsic confidence weight
            endpoint_template: URL template with {key} placeholder
            version_path: Dotted path to the version (e.g. "latest.version").
                A list at that path yields its highest version.
            date_path: Optional dotted path to release date text
            url_path: Optional dotted path to a canonical URL
            notes_path: Optional dotted path to release notes
        """
        super().__init__(name, source_category, priority, confidence, **kwargs)
        self.endpoint_template = endpoint_template
        self.version_path = version_path.split(".")
        self.date_path = date_path.split(".") if date_path else None
        self.url_path = url_path.split(".") if url_path else None
        self.notes_path = notes_path.split(".") if notes_path else None

    def _default_headers(self) -> dict:
        headers = super()._default_headers()
        headers["Accept"] = "application/json, text/plain, */*"
        return headers

    def build_url(self, lookup_key: str) -> str:
        return self.endpoint_template.format(key=lookup_key)

    @staticmethod
    def _extract_path(data: Any, path: Optional[list[str]]):
        """Extract value from nested dict using path; missing keys yield None."""
        if not path:
            return None
        current = data
        for key in path:
            if isinstance(current, dict):
                current = current.get(key)
            else:
                return None
        return current

    def _version_from(self, value: Any) -> Optional[str]:
        if isinstance(value, list):
            return normalize_version(max_version(str(v) for v in value if v is not None))
        if isinstance(value, (int, float)):
            return normalize_version(str(value))
        if isinstance(value, str):
            return normalize_version(value)
        return None

    async def _fetch_candidate(self, entity: TrackedEntity, lookup_key: str) -> VersionCandidate:
        url = self.build_url(lookup_key)
        response = await self._get(url)

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(self.name, f"invalid JSON from {url}") from e

        version = self._version_from(self._extract_path(data, self.version_path))
        if not version:
            raise ParseError(self.name, f"no version at {'.'.join(self.version_path)}")

        release_date = self._extract_path(data, self.date_path)
        page_url = self._extract_path(data, self.url_path)
        notes = self._extract_path(data, self.notes_path)

        return self._candidate(
            version=version,
            release_date=str(release_date) if release_date else None,
            notes=str(notes)[:500] if notes else None,
            url=str(page_url) if page_url else url,
        )
