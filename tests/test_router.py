"""Tests for notification audience selection and delivery."""

import pytest

from switchdex.db.history import HistoryLog, UpdateStats
from switchdex.db.tenants import TenantDirectory
from switchdex.models import Category, ConsensusResult, SourceCategory, TrackedEntity, VersionCandidate
from switchdex.notify.router import NotificationRouter


def consensus(version="1.1.0"):
    best = VersionCandidate(
        source="github",
        source_category=SourceCategory.CODE_HOST,
        priority=1,
        confidence=0.9,
        version=version,
        release_date="2024-06-04",
        url="https://github.com/mtheall/ftpd/releases",
    )
    return ConsensusResult(version=version, total_confidence=0.9, sources=["github"], best_candidate=best)


def global_entity(category=Category.APPLICATION):
    return TrackedEntity(id="ftpd", category=category, name="ftpd", sources={"github": "mtheall/ftpd"})


def tenant_entity(tenant="T1"):
    return TrackedEntity(
        id=f"repo:{tenant}:someone/tool",
        category=Category.USER_REPOSITORY,
        name="someone/tool",
        owner_tenant=tenant,
        sources={"github": "someone/tool"},
    )


@pytest.fixture
def tenants(data_dir):
    directory = TenantDirectory(data_dir)
    directory.add_channel("c-t1", "T1")
    directory.add_channel("c-t2", "T2")
    directory.add_channel("c-t3", "T3")
    directory.add_channel("c-legacy", None)
    return directory


@pytest.mark.asyncio
async def test_tenant_entity_reaches_only_owner(tenants, sender):
    tenants.update_settings("T1", subscriptions=["user-repository"])
    tenants.update_settings("T2", subscriptions=["user-repository"])
    router = NotificationRouter(tenants, sender)

    event = await router.notify(tenant_entity("T1"), "1.0.0", "1.1.0", consensus())

    assert sender.channels() == ["c-t1"]
    assert event.scope == "T1"
    assert event.delivered == 1


@pytest.mark.asyncio
async def test_global_entity_reaches_subscribed_tenants_and_legacy(tenants, sender):
    tenants.update_settings("T1", subscriptions=["application", "game"])
    tenants.update_settings("T2", subscriptions=["firmware-component"])
    # T3 has no settings and hears everything
    router = NotificationRouter(tenants, sender)

    event = await router.notify(global_entity(), "1.0.0", "1.1.0", consensus())

    assert sorted(sender.channels()) == ["c-legacy", "c-t1", "c-t3"]
    assert event.scope == "global"
    assert event.delivered == 3


@pytest.mark.asyncio
async def test_mention_role_prefix(tenants, sender):
    tenants.update_settings("T1", mention_roles={"application": "555"})
    router = NotificationRouter(tenants, sender)

    await router.notify(global_entity(), "1.0.0", "1.1.0", consensus())

    messages = dict(sender.sent)
    assert messages["c-t1"].startswith("<@&555>")
    assert "`1.0.0` → `1.1.0`" in messages["c-t1"]
    assert "<@&" not in messages["c-t2"]


@pytest.mark.asyncio
async def test_one_channel_failure_does_not_block_others(tenants, data_dir, sender_factory):
    sender = sender_factory(failing=("c-t1",), raising=("c-t2",))
    history = HistoryLog(data_dir)
    stats = UpdateStats(data_dir)
    router = NotificationRouter(tenants, sender, history=history, stats=stats)

    event = await router.notify(global_entity(), "1.0.0", "1.1.0", consensus())

    assert sorted(sender.channels()) == ["c-legacy", "c-t3"]
    assert event.delivered == 2
    assert event.failed == 2
    assert len(history) == 1
    assert stats.snapshot()["deliveries_failed"] == 2


@pytest.mark.asyncio
async def test_event_recorded_once_per_change(tenants, sender, data_dir):
    history = HistoryLog(data_dir)
    stats = UpdateStats(data_dir)
    router = NotificationRouter(tenants, sender, history=history, stats=stats)

    await router.notify(global_entity(), None, "1.0.0", consensus("1.0.0"))
    await router.notify(global_entity(), "1.0.0", "1.1.0", consensus())

    assert [e.to_version for e in history.recent()] == ["1.1.0", "1.0.0"]
    assert stats.snapshot()["by_entity"] == {"ftpd": 2}
    assert stats.snapshot()["by_category"] == {"application": 2}


def test_update_settings_rejects_unknown_category(tenants):
    with pytest.raises(ValueError):
        tenants.update_settings("T1", subscriptions=["movies"])
