"""HTML page fetcher for official support pages, wikis and forums."""

import logging
from typing import List, Optional, Pattern, Sequence, Tuple, Union

from selectolax.parser import HTMLParser

from switchdex.errors import ParseError
from switchdex.ingest.base import BaseSource
from switchdex.ingest.version_parser import (
    VERSION_PATTERNS,
    extract_date,
    extract_version,
)
from switchdex.models import SourceCategory, TrackedEntity, VersionCandidate

logger = logging.getLogger(__name__)


class HTMLPageSource(BaseSource):
    """
    Scrapes a version from a server-rendered page.

    The lookup key is either a full URL or a value substituted into
    ``url_template``. When selectors are given, only the text of the first
    selector that matches is searched; otherwise the whole body text is.
    """

    def __init__(
        self,
        name: str,
        source_category: SourceCategory,
        priority: int,
        confidence: float,
        url_template: str = "{key}",
        selectors: Union[str, List[str], None] = None,
        version_patterns: Optional[Sequence[Pattern[str]]] = None,
        **kwargs,
    ):
        """
        Initialize HTML page source.

        Args:
            name: Source identifier
            source_category: Kind of upstream
            priority: Lower = more authoritative
            confidence: Source-intrinsic confidence weight
            url_template: URL template with {key} placeholder
            selectors: CSS selector(s) narrowing the searched text, tried in order
            version_patterns: Ordered regex patterns, most specific first
        """
        super().__init__(name, source_category, priority, confidence, **kwargs)
        self.url_template = url_template
        self.selectors = self._parse_selectors(selectors)
        self.version_patterns = list(version_patterns or VERSION_PATTERNS)

    @staticmethod
    def _parse_selectors(selector_input: Union[str, List[str], None]) -> List[str]:
        if selector_input is None:
            return []
        if isinstance(selector_input, list):
            return [s.strip() for s in selector_input if s.strip()]
        return [s.strip() for s in selector_input.split(",") if s.strip()]

    def _default_headers(self) -> dict:
        headers = super()._default_headers()
        headers.update({
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
        })
        return headers

    def build_url(self, lookup_key: str) -> str:
        if lookup_key.startswith("http://") or lookup_key.startswith("https://"):
            return lookup_key
        return self.url_template.format(key=lookup_key)

    def _try_selectors(self, parser: HTMLParser) -> Tuple[Optional[str], Optional[str]]:
        """
        Return (selector, text) for the first selector with non-empty text.
        """
        for selector in self.selectors:
            try:
                nodes = parser.css(selector)
            except Exception as e:
                logger.debug(f"{self.name}: selector {selector!r} error: {e}")
                continue
            text = " ".join(node.text(separator=" ", strip=True) for node in nodes)
            if text.strip():
                return selector, text
        return None, None

    def extract_text(self, html: str) -> str:
        """Visible text of the page, narrowed by selectors when configured."""
        parser = HTMLParser(html)
        parser.strip_tags(["script", "style", "noscript"])

        if self.selectors:
            selector, text = self._try_selectors(parser)
            if text:
                logger.debug(f"{self.name}: matched selector {selector!r}")
                return text

        root = parser.body or parser.root
        if root is None:
            return ""
        return root.text(separator=" ", strip=True)

    async def _fetch_candidate(self, entity: TrackedEntity, lookup_key: str) -> VersionCandidate:
        url = self.build_url(lookup_key)
        response = await self._get(url)

        text = self.extract_text(response.text)
        version = extract_version(text, self.version_patterns)
        if not version:
            raise ParseError(self.name, f"no version found on {url}")

        return self._candidate(
            version=version,
            release_date=extract_date(text),
            url=str(response.url) if response.url else url,
        )
