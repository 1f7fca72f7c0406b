"""
Load driver: builds synthetic upload payloads, fires upload requests and
turns their responses into RequestOutcomes and per-scenario aggregates.

Every request error (transport failure, non-2xx status, undecodable body)
is captured in a failed RequestOutcome; nothing raises past send_request().
"""

import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx

from core.config import BenchmarkSettings, benchmark_settings
from benchmark.models import RequestOutcome, Scenario, ScenarioReport
from benchmark.safety import SafetyGovernor, ScenarioTimeout
from benchmark.sampler import ResourceSampler

logger = logging.getLogger(__name__)

MB = 1024 * 1024
SIZE_TOLERANCE_MB = 0.01


class SeedPayloadMissing(FileNotFoundError):
    """The seed image used to build synthetic payloads is not available."""


# ── Payload ───────────────────────────────────────────────────────────────────

def load_seed_payload(path: str) -> bytes:
    if not os.path.exists(path):
        raise SeedPayloadMissing(
            f"Sample image not found at {path}. "
            "Run scripts/create_sample_image.py or provide a sample image for the benchmark."
        )
    with open(path, "rb") as f:
        return f.read()


def create_test_payload(target_size_mb: float, seed: Optional[bytes]) -> bytes:
    """
    Replicate `seed` until it covers target_size_mb, then cut it to size.
    Zero-pads in the degenerate case where replication falls short.
    """
    if not seed:
        raise SeedPayloadMissing("No seed payload available to build the test payload")

    target_bytes = int(target_size_mb * MB)
    copies = -(-target_bytes // len(seed))  # ceil
    payload = (seed * copies)[:target_bytes]
    if len(payload) < target_bytes:
        payload += bytes(target_bytes - len(payload))

    actual_mb = len(payload) / MB
    if abs(actual_mb - target_size_mb) > SIZE_TOLERANCE_MB:
        logger.warning(f"Requested {target_size_mb}MB but got {actual_mb:.2f}MB")
    return payload


# ── Aggregation ───────────────────────────────────────────────────────────────

def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def compression_ratios(sizes: Optional[Dict[str, Any]]) -> Dict[str, float]:
    """totalOriginalSize / processed size for every numeric quality tier reported."""
    sizes = _as_dict(sizes)
    if not sizes:
        return {}
    original = _as_number(sizes.get("totalOriginalSize")) or 0
    processed = _as_dict(sizes.get("totalProcessedSize")) or {}
    ratios = {}
    for quality, size in processed.items():
        size = _as_number(size)
        if size:
            ratios[quality] = original / size
    return ratios


def summarize_outcomes(report: ScenarioReport, outcomes: List[RequestOutcome]) -> ScenarioReport:
    """
    Fill the success and timing aggregates of `report` from `outcomes`.
    `outcomes` must be in dispatch order; completion order does not matter.
    Malformed or missing server timings and sizes count as absent.
    """
    report.outcomes = list(outcomes)
    successful = [o for o in outcomes if o.success]
    report.success_count = len(successful)
    if not successful:
        return report

    report.avg_duration_ms = sum(o.duration_ms for o in successful) / len(successful)
    report.avg_processing_ms = sum(
        _as_number((_as_dict(o.server_timings) or {}).get("totalProcessingTime")) or 0
        for o in successful
    ) / len(successful)

    sizes = _as_dict(successful[0].server_sizes)
    if sizes:
        report.original_size_kb = _as_number(sizes.get("totalOriginalSize"))
        processed = _as_dict(sizes.get("totalProcessedSize")) or {}
        report.processed_sizes_kb = {
            quality: size for quality, size in processed.items()
            if _as_number(size) is not None
        }
        report.compression_ratios = compression_ratios(sizes)
    return report


# ── Driver ────────────────────────────────────────────────────────────────────

class LoadDriver:
    """
    Sends upload requests against one endpoint through a shared httpx.AsyncClient.

    Usage:
        async with LoadDriver(governor) as driver:
            report = await driver.run_concurrent_requests(10, 8, payload)
    """

    def __init__(
        self,
        governor: SafetyGovernor,
        cfg: BenchmarkSettings = benchmark_settings,
        server_url: str = None,
        transport: httpx.AsyncBaseTransport = None,
        sampler_factory=None,
    ) -> None:
        self.governor = governor
        self.cfg = cfg
        self.server_url = server_url or cfg.server_url
        self._sampler_factory = sampler_factory or (
            lambda: ResourceSampler(interval_sec=cfg.sample_interval_sec)
        )
        limit = governor.limits.max_concurrent_requests
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(cfg.request_timeout_sec),
            limits=httpx.Limits(max_connections=limit, max_keepalive_connections=limit),
        )

    async def __aenter__(self) -> "LoadDriver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send_request(self, num_files: int, payload: bytes) -> RequestOutcome:
        """POST `num_files` copies of `payload` under the `media` field."""
        files = [
            ("media", (f"test_image_{i + 1}.jpg", payload, "image/jpeg"))
            for i in range(num_files)
        ]

        start = time.perf_counter()
        try:
            response = await self._client.post(self.server_url, files=files)
            response.raise_for_status()
            body = response.json()
        except Exception as e:
            duration = (time.perf_counter() - start) * 1000
            logger.debug(f"Upload failed after {duration:.2f}ms: {e}")
            return RequestOutcome(success=False, duration_ms=duration, error=str(e) or type(e).__name__)

        duration = (time.perf_counter() - start) * 1000
        return RequestOutcome(
            success=True,
            duration_ms=duration,
            server_timings=_as_dict(body.get("timings")) if isinstance(body, dict) else None,
            server_sizes=_as_dict(body.get("sizes")) if isinstance(body, dict) else None,
        )

    async def _run(self, scenario: Scenario, effective: int, payload: bytes) -> ScenarioReport:
        report = ScenarioReport(scenario=scenario, effective_concurrency=effective)

        sampler = self._sampler_factory()
        sampler.start()
        start = time.perf_counter()
        try:
            outcomes = await self.governor.run_with_timeout(
                self.send_request(scenario.images_per_request, payload)
                for _ in range(effective)
            )
        except ScenarioTimeout as e:
            report.resource_usage = sampler.stop()
            report.total_duration_ms = (time.perf_counter() - start) * 1000
            report.timed_out = True
            report.error = str(e)
            logger.error(f"⚠️ SAFETY MECHANISM TRIGGERED: {e}")
            return report

        report.total_duration_ms = (time.perf_counter() - start) * 1000
        report.resource_usage = sampler.stop()
        return summarize_outcomes(report, outcomes)

    async def run_concurrent_requests(
        self,
        num_requests: int,
        images_per_request: int,
        payload: bytes,
        name: str = None,
    ) -> ScenarioReport:
        """Fan out up to num_requests uploads (after the safety clamp) and aggregate them."""
        effective = self.governor.clamp_concurrency(num_requests)
        scenario = Scenario(
            name=name or f"{effective} concurrent requests with {images_per_request} images each",
            concurrency=num_requests,
            images_per_request=images_per_request,
        )
        logger.info(f"Running {effective} concurrent requests with {images_per_request} images per request...")
        return await self._run(scenario, effective, payload)

    async def run_single_request(self, images: int, payload: bytes, name: str = None) -> ScenarioReport:
        """One upload without the concurrency clamp. A failed request fails the scenario."""
        scenario = Scenario(
            name=name or f"Single request with {images} images",
            concurrency=1,
            images_per_request=images,
        )
        report = await self._run(scenario, 1, payload)
        if not report.timed_out and report.outcomes and not report.outcomes[0].success:
            report.request_failed = True
            report.error = report.outcomes[0].error
        return report
