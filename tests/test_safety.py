import asyncio
import logging
import os
import subprocess
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

from benchmark.safety import SafetyGovernor, ScenarioTimeout, compute_memory_threshold_mb
from tests.conftest import FakeReader, make_governor, make_limits


def test_memory_threshold_is_lower_of_percent_and_absolute():
    limits = make_limits(max_memory_threshold_percent=50, max_memory_threshold_mb=4096)

    assert compute_memory_threshold_mb(limits, 16384) == 4096
    assert compute_memory_threshold_mb(limits, 4000) == 2000


def test_clamp_logs_only_when_applied(caplog):
    governor = make_governor(make_limits(max_concurrent_requests=5))

    with caplog.at_level(logging.WARNING, logger="benchmark.safety"):
        assert governor.clamp_concurrency(3) == 3
        assert governor.clamp_concurrency(5) == 5
    assert caplog.records == []

    with caplog.at_level(logging.WARNING, logger="benchmark.safety"):
        assert governor.clamp_concurrency(12) == 5
    assert len(caplog.records) == 1
    assert "from 12 to 5" in caplog.records[0].getMessage()


def test_clamp_names_the_binding_limit(caplog):
    governor = make_governor(make_limits(max_concurrent_requests=50, max_total_requests_per_run=20))

    with caplog.at_level(logging.WARNING, logger="benchmark.safety"):
        assert governor.clamp_concurrency(30) == 20
        assert governor.clamp_concurrency(20) == 20

    assert len(caplog.records) == 1
    assert "from 30 to 20 (max_total_requests_per_run=20)" in caplog.records[0].getMessage()


def test_clamp_is_scenario_local():
    governor = make_governor(make_limits(max_concurrent_requests=10, max_total_requests_per_run=15))

    assert [governor.clamp_concurrency(10) for _ in range(3)] == [10, 10, 10]


def test_check_memory_below_ceiling_does_nothing():
    terminate = Mock()
    governor = make_governor(rss_mb=100, terminate=terminate)

    assert governor.check_memory() is False
    terminate.assert_not_called()
    assert not governor.tripped


def test_check_memory_above_ceiling_terminates(caplog):
    terminate = Mock()
    governor = make_governor(make_limits(max_memory_threshold_mb=1), rss_mb=50, terminate=terminate)

    with caplog.at_level(logging.CRITICAL, logger="benchmark.safety"):
        assert governor.check_memory() is True

    terminate.assert_called_once_with(1)
    assert governor.tripped
    assert "SAFETY ALERT" in caplog.text


@pytest.mark.asyncio
async def test_watchdog_terminates_on_breach():
    terminate = Mock()
    governor = make_governor(
        make_limits(max_memory_threshold_mb=1), rss_mb=50,
        terminate=terminate, check_interval_sec=0.01,
    )

    async with governor:
        await asyncio.sleep(0.05)

    assert terminate.called
    terminate.assert_called_with(1)


@pytest.mark.asyncio
async def test_watchdog_stops_at_run_exit():
    terminate = Mock()
    reader = FakeReader(rss_mb=50)
    governor = SafetyGovernor(
        make_limits(max_memory_threshold_mb=1024), reader=reader,
        system_memory_mb=16384, check_interval_sec=0.01, terminate=terminate,
    )

    governor.start_watchdog()
    await asyncio.sleep(0.03)
    governor.stop_watchdog()
    calls = reader.calls
    await asyncio.sleep(0.03)

    assert calls > 0
    assert reader.calls == calls
    terminate.assert_not_called()
    governor.stop_watchdog()


@pytest.mark.asyncio
async def test_run_with_timeout_keeps_dispatch_order():
    governor = make_governor()

    async def work(value, delay):
        await asyncio.sleep(delay)
        return value

    results = await governor.run_with_timeout([work("a", 0.03), work("b", 0.0), work("c", 0.01)])

    assert results == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_run_with_timeout_abandons_slow_requests():
    governor = make_governor(make_limits(max_time_per_scenario_sec=0.05))
    finished = []

    async def slow():
        await asyncio.sleep(5)
        finished.append(True)

    with pytest.raises(ScenarioTimeout):
        await governor.run_with_timeout([slow(), slow()])

    await asyncio.sleep(0)
    assert finished == []


@pytest.mark.asyncio
async def test_run_with_timeout_empty_batch():
    assert await make_governor().run_with_timeout([]) == []


@pytest.mark.asyncio
async def test_cooldown_waits_configured_delay():
    governor = make_governor(make_limits(min_delay_between_scenarios_sec=0.05))
    loop = asyncio.get_running_loop()

    start = loop.time()
    await governor.cooldown()

    assert loop.time() - start >= 0.04


@pytest.mark.asyncio
async def test_nested_scopes_keep_watchdog_until_outermost_exit():
    governor = make_governor()

    async with governor:
        first = governor._watchdog
        async with governor:
            assert governor._watchdog is first
        assert governor.watching

    assert not governor.watching
    await asyncio.sleep(0)
    assert first.cancelled()


WATCHDOG_SCRIPT = """
import asyncio

from core.config import SafetyLimits
from benchmark.safety import SafetyGovernor


async def main():
    async with SafetyGovernor(SafetyLimits(max_memory_threshold_mb=1), check_interval_sec=0.01):
        await asyncio.sleep(10)
    print("survived the watchdog")


asyncio.run(main())
"""


def test_default_terminate_ends_the_process():
    root = Path(__file__).resolve().parents[1]
    env = dict(os.environ, PYTHONPATH=str(root), PYTHONIOENCODING="utf-8")

    proc = subprocess.run(
        [sys.executable, "-c", WATCHDOG_SCRIPT],
        cwd=root, env=env, capture_output=True, text=True, timeout=60,
    )

    assert proc.returncode == 1
    assert "survived the watchdog" not in proc.stdout
    assert "SAFETY ALERT" in proc.stderr
