"""
Benchmark harness against the real upload service, routed in-process
through httpx.ASGITransport. Uses the full-size payload shape of a
default run, so it is marked slow.
"""

import httpx
import pytest

from api.app import app
from core.config import BenchmarkSettings
from benchmark.driver import LoadDriver, create_test_payload
from benchmark.models import Scenario
from benchmark.runner import ScenarioRunner
from tests.conftest import make_governor, make_limits

URL = "http://testserver/upload"


def _driver(governor) -> LoadDriver:
    return LoadDriver(
        governor,
        BenchmarkSettings(sample_interval_sec=0.5),
        server_url=URL,
        transport=httpx.ASGITransport(app=app),
    )


@pytest.mark.slow
@pytest.mark.asyncio
async def test_single_request_with_eight_large_images(seed_jpeg, no_saving):
    payload = create_test_payload(20, seed_jpeg)
    governor = make_governor(make_limits(max_time_per_scenario_sec=300))

    async with _driver(governor) as driver:
        report = await driver.run_single_request(8, payload)

    assert not report.failed
    assert report.success_count == 1
    assert report.avg_processing_ms > 0

    original = report.original_size_kb
    assert original == pytest.approx(8 * 20 * 1024)
    assert set(report.processed_sizes_kb) == {"low", "medium", "original"}
    for quality, size in report.processed_sizes_kb.items():
        assert 0 < size < original
        assert report.compression_ratios[quality] > 1
    assert report.resource_usage.samples


@pytest.mark.asyncio
async def test_small_run_through_the_service(small_jpeg, no_saving):
    scenarios = [
        Scenario(name="single", concurrency=1, images_per_request=2),
        Scenario(name="pair", concurrency=2, images_per_request=1),
    ]
    governor = make_governor()

    async with _driver(governor) as driver:
        result = await ScenarioRunner(driver, governor, scenarios).run(small_jpeg)

    assert not result.failed
    assert [r.success_count for r in result.reports] == [1, 2]
    assert result.suggestions
