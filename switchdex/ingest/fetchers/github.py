"""GitHub releases fetcher for homebrew and user repositories."""

import logging
from typing import List, Optional, TypedDict

from switchdex.config import settings
from switchdex.errors import NotFoundError, ParseError, SourceError
from switchdex.ingest.base import BaseSource
from switchdex.ingest.version_parser import max_version, normalize_version
from switchdex.models import SourceCategory, TrackedEntity, VersionCandidate

logger = logging.getLogger(__name__)

NOTES_MAX_CHARS = 500


class GitHubRelease(TypedDict, total=False):
    """Fields we read from /releases/latest. Any of them may be missing."""

    tag_name: str
    name: str
    published_at: str
    html_url: str
    body: str
    prerelease: bool
    draft: bool


class GitHubTag(TypedDict, total=False):
    """Fields we read from /tags."""

    name: str


class GitHubReleasesSource(BaseSource):
    """
    Reads the latest published release of a repository.

    Lookup key is "owner/repo". Repositories that publish tags but no
    releases fall back to the highest tag.
    """

    def __init__(
        self,
        name: str = "github",
        source_category: SourceCategory = SourceCategory.CODE_HOST,
        priority: int = 1,
        confidence: float = 0.9,
        api_base: Optional[str] = None,
        token: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(name, source_category, priority, confidence, **kwargs)
        self.api_base = (api_base or settings.github_api_base).rstrip("/")
        self.token = settings.github_token if token is None else token

    def _default_headers(self) -> dict:
        headers = {
            "User-Agent": "switchdex-update-engine",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def build_url(self, lookup_key: str) -> str:
        return f"{self.api_base}/repos/{lookup_key.strip('/')}/releases/latest"

    def _tags_url(self, lookup_key: str) -> str:
        return f"{self.api_base}/repos/{lookup_key.strip('/')}/tags"

    async def _fetch_candidate(self, entity: TrackedEntity, lookup_key: str) -> VersionCandidate:
        try:
            response = await self._get(self.build_url(lookup_key))
        except NotFoundError:
            logger.debug(f"No releases for {lookup_key}, trying tags")
            return await self._fetch_from_tags(lookup_key)

        try:
            release: GitHubRelease = response.json()
        except ValueError as e:
            raise ParseError(self.name, f"invalid JSON for {lookup_key}") from e
        if not isinstance(release, dict):
            raise ParseError(self.name, f"unexpected payload for {lookup_key}")

        raw_version = release.get("tag_name") or release.get("name")
        version = normalize_version(raw_version)
        if not version:
            raise ParseError(self.name, f"release without tag for {lookup_key}")

        published = release.get("published_at")
        body = release.get("body") or None

        return self._candidate(
            version=version,
            release_date=published[:10] if published else None,
            notes=body[:NOTES_MAX_CHARS] if body else None,
            url=release.get("html_url") or f"https://github.com/{lookup_key}/releases",
        )

    async def _fetch_from_tags(self, lookup_key: str) -> VersionCandidate:
        response = await self._get(self._tags_url(lookup_key), params={"per_page": 30})
        try:
            tags: List[GitHubTag] = response.json()
        except ValueError as e:
            raise ParseError(self.name, f"invalid tags JSON for {lookup_key}") from e
        if not isinstance(tags, list):
            raise SourceError(self.name, f"unexpected tags payload for {lookup_key}")

        names = [t.get("name") for t in tags if isinstance(t, dict) and t.get("name")]
        if not names:
            raise NotFoundError(self.name, f"no releases or tags for {lookup_key}", status_code=404)

        return self._candidate(
            version=normalize_version(max_version(names)),
            url=f"https://github.com/{lookup_key}/tags",
        )
