"""Weighted-vote consensus over version candidates.

No single source is trusted outright: scraped pages go stale, wikis get
vandalised, APIs lag. Each candidate votes for its version with its
confidence weight; the version with the highest summed weight wins.

Tie-breaks, in order:
1. the group holding the most authoritative candidate (lowest priority value)
2. the higher version, so the outcome never depends on input order

A lone reporting source wins with whatever confidence it has, so an official
API is never blocked for lack of corroboration.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from switchdex.ingest.source_health import SourceHealthTracker
from switchdex.ingest.version_parser import version_sort_key
from switchdex.models import ConsensusResult, VersionCandidate

logger = logging.getLogger(__name__)

# Reliability never scales a vote below this fraction of its confidence
MIN_RELIABILITY_FACTOR = 0.5

# Summed weights are compared at this many decimals so 0.1 + 0.2 ties with 0.3
TOTAL_PRECISION = 9


@dataclass
class _VoteGroup:
    version: str
    weights: List[float] = field(default_factory=list)
    candidates: List[VersionCandidate] = field(default_factory=list)

    @property
    def total(self) -> float:
        return round(math.fsum(self.weights), TOTAL_PRECISION)

    @property
    def best(self) -> VersionCandidate:
        return min(self.candidates, key=lambda c: (c.priority, c.source))


class ConsensusResolver:
    """Combines candidates for one entity into a single accepted result."""

    def __init__(self, reliability: Optional[SourceHealthTracker] = None):
        """
        Args:
            reliability: Optional tracker; when given, each vote is scaled by
                the source's rolling success ratio (floored at 0.5).
        """
        self.reliability = reliability

    def _weight(self, candidate: VersionCandidate) -> float:
        weight = max(0.0, float(candidate.confidence))
        if self.reliability is not None:
            factor = max(MIN_RELIABILITY_FACTOR, self.reliability.reliability(candidate.source))
            weight *= factor
        return weight

    def resolve(self, candidates: Iterable[VersionCandidate]) -> Optional[ConsensusResult]:
        """
        Resolve candidates into a consensus.

        Args:
            candidates: Candidates from all adapters for one entity in one pass

        Returns:
            ConsensusResult, or None if no candidate carries a version
        """
        groups: dict[str, _VoteGroup] = {}
        for candidate in candidates:
            if not candidate.version:
                continue
            group = groups.setdefault(candidate.version, _VoteGroup(version=candidate.version))
            group.weights.append(self._weight(candidate))
            group.candidates.append(candidate)

        if not groups:
            return None

        winner = max(
            groups.values(),
            key=lambda g: (g.total, -g.best.priority, version_sort_key(g.version)),
        )

        if len(groups) > 1:
            logger.debug(
                "Consensus picked %s (%.2f) over %s",
                winner.version,
                winner.total,
                ", ".join(f"{g.version}={g.total:.2f}" for g in groups.values() if g is not winner),
            )

        ordered = sorted(winner.candidates, key=lambda c: (c.priority, c.source))
        return ConsensusResult(
            version=winner.version,
            total_confidence=round(winner.total, 6),
            sources=[c.source for c in ordered],
            best_candidate=winner.best,
        )
