"""Tests for the scan scheduler and interval reconfiguration."""

import json
from datetime import timedelta

import pytest

from switchdex.errors import InvalidIntervalError
from switchdex.worker.scheduler import SCAN_JOB_ID, ScanScheduler, validate_interval


@pytest.mark.parametrize("minutes", [0, -5, 1441, 2.5, "30", True])
def test_validate_interval_rejects_out_of_range(minutes):
    with pytest.raises(InvalidIntervalError):
        validate_interval(minutes)


def test_validate_interval_accepts_bounds():
    validate_interval(1)
    validate_interval(1440)


@pytest.mark.asyncio
async def test_reconfigure_reschedules_and_persists(engine_factory, data_dir):
    engine = engine_factory([], [])
    scheduler = ScanScheduler(engine.orchestrator, data_dir=data_dir)
    scheduler.start()
    try:
        assert scheduler.reconfigure(10) == 10

        job = scheduler.scheduler.get_job(SCAN_JOB_ID)
        assert job.trigger.interval == timedelta(minutes=10)
        config = json.loads((data_dir / "config.json").read_text())
        assert config["checkIntervalMinutes"] == 10

        with pytest.raises(InvalidIntervalError):
            scheduler.reconfigure(0)
        assert scheduler.interval_minutes == 10
        assert scheduler.scheduler.get_job(SCAN_JOB_ID).trigger.interval == timedelta(minutes=10)
    finally:
        scheduler.shutdown()


@pytest.mark.asyncio
async def test_interval_loaded_from_config(engine_factory, data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "config.json").write_text(json.dumps({"checkIntervalMinutes": 45, "logChannelId": "123"}))

    engine = engine_factory([], [])
    scheduler = ScanScheduler(engine.orchestrator, data_dir=data_dir)
    assert scheduler.interval_minutes == 45

    scheduler.reconfigure(15)
    config = json.loads((data_dir / "config.json").read_text())
    assert config == {"checkIntervalMinutes": 15, "logChannelId": "123"}


@pytest.mark.asyncio
async def test_invalid_stored_interval_falls_back(engine_factory, data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "config.json").write_text(json.dumps({"checkIntervalMinutes": 99999}))

    engine = engine_factory([], [])
    scheduler = ScanScheduler(engine.orchestrator, data_dir=data_dir)
    assert scheduler.interval_minutes == 30


@pytest.mark.asyncio
async def test_run_now_and_status(engine_factory, entity_factory, static_source, data_dir):
    appx = entity_factory("appx", sources=["alpha"])
    source = static_source("alpha", priority=1, confidence=0.9, versions={"appx": "1.0.0"})
    engine = engine_factory([appx], [source])
    scheduler = ScanScheduler(engine.orchestrator, data_dir=data_dir)
    scheduler.start()
    try:
        summary = await scheduler.run_now()

        assert summary.trigger == "manual"
        assert engine.store.read(appx).version == "1.0.0"

        status = scheduler.status()
        assert status["running"] is False
        assert status["interval_minutes"] == 30
        assert status["next_run_time"] is not None
        assert status["last_pass"]["checked"] == 1
    finally:
        scheduler.shutdown()
