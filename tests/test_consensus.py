"""Tests for the weighted-vote consensus resolver."""

import random

from switchdex.detect.consensus import ConsensusResolver
from switchdex.ingest.source_health import SourceHealthTracker
from switchdex.models import FetchStatus, SourceCategory, VersionCandidate


def candidate(source, version, priority=2, confidence=0.5, **kwargs):
    return VersionCandidate(
        source=source,
        source_category=SourceCategory.COMMUNITY_WIKI,
        priority=priority,
        confidence=confidence,
        version=version,
        **kwargs,
    )


def test_returns_none_without_versions():
    resolver = ConsensusResolver()
    assert resolver.resolve([]) is None
    assert resolver.resolve([candidate("a", None), candidate("b", "")]) is None


def test_result_version_comes_from_candidates():
    resolver = ConsensusResolver()
    rng = random.Random(7)
    for _ in range(50):
        candidates = [
            candidate(
                f"s{i}",
                rng.choice(["1.0.0", "1.1.0", "2.0.0", None]),
                priority=rng.randint(0, 3),
                confidence=rng.random(),
            )
            for i in range(rng.randint(1, 6))
        ]
        versions = {c.version for c in candidates if c.version}
        result = resolver.resolve(candidates)
        if versions:
            assert result.version in versions
        else:
            assert result is None


def test_single_reporting_source_wins_regardless_of_confidence():
    resolver = ConsensusResolver()
    result = resolver.resolve([
        candidate("forum", "3.1.0", priority=3, confidence=0.01),
        candidate("wiki", None, priority=2, confidence=0.9),
    ])
    assert result.version == "3.1.0"
    assert result.sources == ["forum"]


def test_highest_summed_confidence_wins():
    resolver = ConsensusResolver()
    result = resolver.resolve([
        candidate("github", "1.1.0", priority=1, confidence=0.9),
        candidate("switchbrew", "1.1.0", priority=2, confidence=0.6),
        candidate("gbatemp", "1.0.0", priority=3, confidence=0.3),
    ])
    assert result.version == "1.1.0"
    assert result.total_confidence == 1.5
    assert result.sources == ["github", "switchbrew"]


def test_tie_goes_to_most_authoritative_source():
    resolver = ConsensusResolver()
    official = candidate("nintendo-support", "17.0.0", priority=0, confidence=1.0)
    community = [
        candidate("switchbrew", "17.0.1", priority=2, confidence=0.5),
        candidate("titledb", "17.0.1", priority=2, confidence=0.5),
    ]
    assert resolver.resolve([official] + community).version == "17.0.0"
    assert resolver.resolve(community + [official]).version == "17.0.0"


def test_full_tie_prefers_higher_version():
    resolver = ConsensusResolver()
    a = candidate("wiki-a", "2.0.0", priority=2, confidence=0.5)
    b = candidate("wiki-b", "2.1.0", priority=2, confidence=0.5)
    assert resolver.resolve([a, b]).version == "2.1.0"
    assert resolver.resolve([b, a]).version == "2.1.0"


def test_best_candidate_is_lowest_priority_in_winning_group():
    resolver = ConsensusResolver()
    result = resolver.resolve([
        candidate("switchbrew", "18.0.0", priority=2, confidence=0.6, url="https://wiki"),
        candidate(
            "nintendo-support", "18.0.0", priority=0, confidence=1.0,
            url="https://official", release_date="June 4, 2024",
        ),
    ])
    assert result.best_candidate.source == "nintendo-support"
    assert result.best_candidate.release_date == "June 4, 2024"
    assert result.sources[0] == "nintendo-support"


def test_reliability_weighting_scales_votes():
    health = SourceHealthTracker(window=10)
    for _ in range(10):
        health.record("flaky", FetchStatus.UNAVAILABLE)
        health.record("steady", FetchStatus.OK)

    weighted = ConsensusResolver(reliability=health)
    candidates = [
        candidate("flaky", "2.0.0", priority=2, confidence=0.6),
        candidate("steady", "1.9.0", priority=2, confidence=0.4),
    ]
    # flaky is floored at half weight: 0.3 < 0.4
    assert weighted.resolve(candidates).version == "1.9.0"
    assert ConsensusResolver().resolve(candidates).version == "2.0.0"


def test_priority_breaks_tie_when_sums_only_match_after_rounding():
    resolver = ConsensusResolver()
    result = resolver.resolve([
        candidate("switchbrew", "2.0.1", priority=2, confidence=0.1),
        candidate("gbatemp", "2.0.1", priority=3, confidence=0.2),
        candidate("nintendo-support", "2.0.0", priority=0, confidence=0.3),
    ])
    assert result.version == "2.0.0"


def test_rounding_tie_does_not_depend_on_input_order():
    official = candidate("nintendo-support", "2.0.0", priority=0, confidence=0.6)
    community = [
        candidate("switchbrew", "2.0.1", priority=2, confidence=0.1),
        candidate("gbatemp", "2.0.1", priority=3, confidence=0.2),
        candidate("titledb", "2.0.1", priority=2, confidence=0.3),
    ]
    resolver = ConsensusResolver()

    forward = resolver.resolve([official, *community])
    backward = resolver.resolve([*reversed(community), official])

    assert forward.version == backward.version == "2.0.0"
