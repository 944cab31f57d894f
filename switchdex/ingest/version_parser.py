"""Version and release-date extraction from free text.

Upstream pages and APIs report versions in many shapes ("v1.2.3",
"Version 18.0.1", "System Update Version 17.0.0", "1.7 (Build 4)").
Extraction runs an ordered list of patterns, most specific first; the first
pattern that matches anything wins, and among its matches the highest version
by dotted-component comparison is returned.
"""

import re
from functools import cmp_to_key
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

VERSION_PATTERNS: List[Pattern[str]] = [
    re.compile(r"System\s+Update\s+Version\s+v?(\d+(?:\.\d+){1,3})", re.IGNORECASE),
    re.compile(r"\bVer(?:sion)?\.?\s*:?\s*v?(\d+(?:\.\d+){1,3})\b", re.IGNORECASE),
    re.compile(r"(?<![\w.])v(\d+(?:\.\d+){1,3})\b", re.IGNORECASE),
    re.compile(r"(?<![\w.])(\d+\.\d+\.\d+(?:\.\d+)?)\b"),
]

DATE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r"(?:January|February|March|April|May|June|July|August|September|"
        r"October|November|December)\s+\d{1,2},\s+\d{4}",
        re.IGNORECASE,
    ),
    re.compile(r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\.?\s+\d{1,2},\s+\d{4}", re.IGNORECASE),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
]

_NUMERIC_PREFIX = re.compile(r"^\s*(?:version|ver\.?|v)?\s*(\d+(?:\.\d+)*)", re.IGNORECASE)


def parse_version(value: Optional[str]) -> Optional[Tuple[int, ...]]:
    """
    Parse the leading dotted-numeric part of a version string.

    Args:
        value: Raw version text (e.g. "v1.2.3-beta")

    Returns:
        Tuple of integer components, or None if there is no numeric part
    """
    if not value:
        return None
    match = _NUMERIC_PREFIX.match(value)
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def normalize_version(value: Optional[str]) -> Optional[str]:
    """Normalise to dotted numeric form when possible, otherwise strip the raw text."""
    if value is None:
        return None
    parts = parse_version(value)
    if parts is not None:
        return ".".join(str(p) for p in parts)
    value = value.strip()
    return value or None


def compare_versions(a: str, b: str) -> int:
    """
    Compare two version strings component by component.

    Missing trailing components count as 0, so "1.2" == "1.2.0".
    Strings without a numeric part sort below any numeric version and
    are otherwise compared as text.

    Returns:
        -1, 0 or 1
    """
    pa, pb = parse_version(a), parse_version(b)
    if pa is None or pb is None:
        if pa is not None:
            return 1
        if pb is not None:
            return -1
        return (a > b) - (a < b)

    width = max(len(pa), len(pb))
    pa = pa + (0,) * (width - len(pa))
    pb = pb + (0,) * (width - len(pb))
    return (pa > pb) - (pa < pb)


version_sort_key = cmp_to_key(compare_versions)


def max_version(values: Iterable[str]) -> Optional[str]:
    """Return the highest version among values, or None when empty."""
    values = [v for v in values if v]
    if not values:
        return None
    return max(values, key=version_sort_key)


def is_regression(new: Optional[str], current: Optional[str]) -> bool:
    """True when both are numeric versions and new is strictly lower than current."""
    if not new or not current:
        return False
    if parse_version(new) is None or parse_version(current) is None:
        return False
    return compare_versions(new, current) < 0


def extract_version(
    text: Optional[str],
    patterns: Sequence[Pattern[str]] = VERSION_PATTERNS,
) -> Optional[str]:
    """
    Extract the best version string from free text.

    Args:
        text: Text to search
        patterns: Ordered patterns, most specific first; group 1 is the version

    Returns:
        Normalised version string, or None
    """
    if not text:
        return None

    for pattern in patterns:
        matches = [m.group(1) for m in pattern.finditer(text) if m.group(1)]
        if matches:
            return normalize_version(max_version(matches))

    return None


def extract_date(text: Optional[str]) -> Optional[str]:
    """Return the first release-date looking substring, trying patterns in order."""
    if not text:
        return None
    for pattern in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None
