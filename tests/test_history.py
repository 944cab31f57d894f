"""Tests for the bounded history log and update statistics."""

from datetime import datetime, timedelta, timezone

from switchdex.db.history import HistoryLog, UpdateStats
from switchdex.models import NotificationEvent


def event(n, category="application", delivered=1, failed=0):
    return NotificationEvent(
        entity_id=f"entity-{n}",
        entity_name=f"Entity {n}",
        from_version="1.0.0",
        to_version=f"1.{n}.0",
        category=category,
        sources=["github"],
        detected_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=n),
        scope="global",
        delivered=delivered,
        failed=failed,
    )


def test_history_never_exceeds_capacity(data_dir):
    log = HistoryLog(data_dir, max_entries=10)
    for n in range(25):
        log.append(event(n))
        assert len(log) <= 10
    assert len(log) == 10


def test_oldest_entries_evicted_first(data_dir):
    log = HistoryLog(data_dir, max_entries=3)
    for n in range(5):
        log.append(event(n))

    ids = [e.entity_id for e in log.recent()]
    assert ids == ["entity-4", "entity-3", "entity-2"]


def test_history_survives_reload(data_dir):
    log = HistoryLog(data_dir, max_entries=5)
    for n in range(3):
        log.append(event(n))

    reloaded = HistoryLog(data_dir, max_entries=5)
    assert [e.to_version for e in reloaded.recent(2)] == ["1.2.0", "1.1.0"]


def test_reload_with_smaller_capacity_keeps_newest(data_dir):
    log = HistoryLog(data_dir, max_entries=10)
    for n in range(8):
        log.append(event(n))

    reloaded = HistoryLog(data_dir, max_entries=4)
    assert [e.entity_id for e in reloaded.recent()][-1] == "entity-4"


def test_stats_tally_categories_entities_and_deliveries(data_dir):
    stats = UpdateStats(data_dir)
    stats.record(event(1, "game", delivered=2, failed=1))
    stats.record(event(1, "game", delivered=1))
    stats.record(event(2, "firmware-component", delivered=0, failed=3))

    snap = UpdateStats(data_dir).snapshot()
    assert snap["total_updates"] == 3
    assert snap["by_category"] == {"game": 2, "firmware-component": 1}
    assert snap["by_entity"]["entity-1"] == 2
    assert snap["deliveries_succeeded"] == 3
    assert snap["deliveries_failed"] == 4
