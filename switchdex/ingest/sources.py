"""Built-in source adapter instances.

Site-specific details live here: each entry is a configured generic
fetcher. Entities bind to these by name in the catalog.
"""

import re
from typing import List, Optional

import httpx

from switchdex.ingest.base import BaseSource
from switchdex.ingest.fetchers.github import GitHubReleasesSource
from switchdex.ingest.fetchers.html_page import HTMLPageSource
from switchdex.ingest.fetchers.json_endpoint import JSONEndpointSource
from switchdex.ingest.version_parser import VERSION_PATTERNS
from switchdex.models import SourceCategory

# Nintendo support pages list every system update; the headline pattern is
# tried before the generic ones.
NINTENDO_PATTERNS = [
    re.compile(r"System\s+Update\s+Version\s+(\d+\.\d+\.\d+)", re.IGNORECASE),
    re.compile(r"Ver\.\s*(\d+\.\d+\.\d+)", re.IGNORECASE),
    re.compile(r"version\s+(\d+\.\d+\.\d+)", re.IGNORECASE),
    re.compile(r"(\d+\.\d+\.\d+).{0,40}?system update", re.IGNORECASE),
    re.compile(r"firmware.{0,40}?(\d+\.\d+\.\d+)", re.IGNORECASE),
]

SWITCHBREW_URL = "https://switchbrew.org/wiki/{key}"
GBATEMP_URL = "https://gbatemp.net/{key}"
TITLEDB_URL = "https://raw.githubusercontent.com/blawar/titledb/master/{key}.json"


def build_default_sources(transport: Optional[httpx.AsyncBaseTransport] = None) -> List[BaseSource]:
    """
    Create the built-in source adapters.

    Args:
        transport: Optional httpx transport shared by all adapters (tests)

    Returns:
        List of source adapters
    """
    return [
        HTMLPageSource(
            name="nintendo-support",
            source_category=SourceCategory.OFFICIAL,
            priority=0,
            confidence=1.0,
            selectors=["h2, h3", "main", "#content"],
            version_patterns=NINTENDO_PATTERNS,
            transport=transport,
        ),
        GitHubReleasesSource(transport=transport),
        HTMLPageSource(
            name="switchbrew",
            source_category=SourceCategory.COMMUNITY_WIKI,
            priority=2,
            confidence=0.6,
            url_template=SWITCHBREW_URL,
            selectors=["table.wikitable", "#mw-content-text"],
            version_patterns=VERSION_PATTERNS,
            transport=transport,
        ),
        JSONEndpointSource(
            name="titledb",
            source_category=SourceCategory.COMMUNITY_WIKI,
            priority=2,
            confidence=0.5,
            endpoint_template=TITLEDB_URL,
            version_path="version",
            date_path="releaseDate",
            transport=transport,
        ),
        HTMLPageSource(
            name="gbatemp",
            source_category=SourceCategory.COMMUNITY_FORUM,
            priority=3,
            confidence=0.3,
            url_template=GBATEMP_URL,
            selectors=[".p-title", ".message-body"],
            transport=transport,
        ),
    ]
