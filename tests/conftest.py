"""
Shared fixtures for the upload service and benchmark harness tests.

Process readings are synthetic (FakeReader) so sampler and governor
behaviour does not depend on the host. HTTP is either faked with
httpx.MockTransport or routed in-process to the FastAPI app.
"""

from typing import List
from unittest.mock import Mock

import cv2
import pytest

from core.config import SafetyLimits, settings
from benchmark.models import ProcessMetrics
from benchmark.safety import SafetyGovernor
from scripts.create_sample_image import make_gradient

MB = 1024 * 1024


class FakeReader:
    """
    Returns scripted ProcessMetrics, one per call; the last one repeats.
    Defaults to a constant 100 MB RSS with no CPU time.
    """

    def __init__(self, readings: List[ProcessMetrics] = None, rss_mb: float = 100.0):
        self.readings = list(readings or [ProcessMetrics(0.0, 0.0, int(rss_mb * MB))])
        self.calls = 0

    def __call__(self) -> ProcessMetrics:
        index = min(self.calls, len(self.readings) - 1)
        self.calls += 1
        return self.readings[index]


def make_limits(**overrides) -> SafetyLimits:
    values = dict(
        max_concurrent_requests=50,
        max_total_requests_per_run=100,
        max_memory_threshold_percent=80,
        max_memory_threshold_mb=4096,
        max_time_per_scenario_sec=5,
        min_delay_between_scenarios_sec=0,
    )
    values.update(overrides)
    return SafetyLimits(**values)


def make_governor(limits: SafetyLimits = None, rss_mb: float = 100.0, **kwargs) -> SafetyGovernor:
    kwargs.setdefault("terminate", Mock())
    return SafetyGovernor(
        limits or make_limits(),
        reader=FakeReader(rss_mb=rss_mb),
        system_memory_mb=16384,
        **kwargs,
    )


def encode_jpeg(width: int = 200, height: int = 200, quality: int = 80) -> bytes:
    ok, buf = cv2.imencode(".jpg", make_gradient(width, height), [cv2.IMWRITE_JPEG_QUALITY, quality])
    assert ok
    return buf.tobytes()


@pytest.fixture(scope="session")
def small_jpeg() -> bytes:
    return encode_jpeg(200, 200)


@pytest.fixture(scope="session")
def seed_jpeg() -> bytes:
    """1000x1000 gradient, the same shape as the benchmark seed image."""
    return encode_jpeg(1000, 1000)


@pytest.fixture
def no_saving(monkeypatch):
    monkeypatch.setattr(settings, "save_outputs", False)
