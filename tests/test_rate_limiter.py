"""Tests for per-host pacing."""

import pytest

from switchdex.ingest.rate_limiter import HostPacer


@pytest.mark.asyncio
async def test_first_call_does_not_wait():
    pacer = HostPacer(inter_call_delay=5, host_min_interval=5)
    async with pacer.slot("api.github.com") as waited:
        assert waited == 0


@pytest.mark.asyncio
async def test_same_host_is_spaced():
    pacer = HostPacer(inter_call_delay=0, host_min_interval=0.05)
    async with pacer.slot("api.github.com"):
        pass
    async with pacer.slot("api.github.com") as waited:
        assert waited > 0


@pytest.mark.asyncio
async def test_cooldown_delays_only_that_host():
    pacer = HostPacer(inter_call_delay=0, host_min_interval=0, rate_limit_cooldown=0.05)
    pacer.set_cooldown("api.github.com")

    async with pacer.slot("switchbrew.org") as waited:
        assert waited == 0
    async with pacer.slot("api.github.com") as waited:
        assert waited > 0

    pacer.reset()
    async with pacer.slot("api.github.com") as waited:
        assert waited == 0


@pytest.mark.asyncio
async def test_inter_call_delay_applies_across_hosts():
    pacer = HostPacer(inter_call_delay=0.05, host_min_interval=0)
    async with pacer.slot("api.github.com"):
        pass
    async with pacer.slot("switchbrew.org") as waited:
        assert waited > 0
