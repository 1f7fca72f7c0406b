"""
Data model for the benchmark harness.

Samples and outcomes are frozen — once recorded they are never mutated.
Summaries and reports are derived from them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class MemoryUsage:
    """Memory readings in MB."""
    rss_mb: float = 0.0
    heap_total_mb: float = 0.0
    heap_used_mb: float = 0.0
    external_mb: float = 0.0

    def __add__(self, other: "MemoryUsage") -> "MemoryUsage":
        return MemoryUsage(
            rss_mb=self.rss_mb + other.rss_mb,
            heap_total_mb=self.heap_total_mb + other.heap_total_mb,
            heap_used_mb=self.heap_used_mb + other.heap_used_mb,
            external_mb=self.external_mb + other.external_mb,
        )

    def scaled(self, factor: float) -> "MemoryUsage":
        return MemoryUsage(
            rss_mb=self.rss_mb * factor,
            heap_total_mb=self.heap_total_mb * factor,
            heap_used_mb=self.heap_used_mb * factor,
            external_mb=self.external_mb * factor,
        )

    def max(self, other: "MemoryUsage") -> "MemoryUsage":
        """Component-wise maximum."""
        return MemoryUsage(
            rss_mb=max(self.rss_mb, other.rss_mb),
            heap_total_mb=max(self.heap_total_mb, other.heap_total_mb),
            heap_used_mb=max(self.heap_used_mb, other.heap_used_mb),
            external_mb=max(self.external_mb, other.external_mb),
        )


@dataclass(frozen=True)
class Sample:
    timestamp_ms: float
    cpu_percent: float
    memory: MemoryUsage


@dataclass(frozen=True)
class MetricSet:
    cpu_percent: float = 0.0
    memory: MemoryUsage = field(default_factory=MemoryUsage)


@dataclass(frozen=True)
class ResourceSummary:
    average: MetricSet
    peak: MetricSet
    samples: tuple = ()


@dataclass(frozen=True)
class ProcessMetrics:
    """Raw process counters as read from the OS. CPU times in seconds, memory in bytes."""
    cpu_user_sec: float
    cpu_system_sec: float
    rss_bytes: int
    heap_total_bytes: int = 0
    heap_used_bytes: int = 0
    external_bytes: int = 0


@dataclass(frozen=True)
class RequestOutcome:
    success: bool
    duration_ms: float
    server_timings: Optional[Dict[str, Any]] = None
    server_sizes: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class Scenario:
    name: str
    concurrency: int
    images_per_request: int


@dataclass
class ScenarioReport:
    """Aggregated result of one scenario."""
    scenario: Scenario
    effective_concurrency: int = 0
    outcomes: List[RequestOutcome] = field(default_factory=list)
    resource_usage: Optional[ResourceSummary] = None
    total_duration_ms: float = 0.0
    success_count: int = 0
    avg_duration_ms: Optional[float] = None
    avg_processing_ms: Optional[float] = None
    compression_ratios: Dict[str, float] = field(default_factory=dict)
    original_size_kb: Optional[float] = None
    processed_sizes_kb: Dict[str, float] = field(default_factory=dict)
    timed_out: bool = False
    skipped: bool = False
    request_failed: bool = False
    error: Optional[str] = None

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def success_rate(self) -> float:
        return self.success_count / self.attempted if self.attempted else 0.0

    @property
    def failed(self) -> bool:
        return self.timed_out or self.request_failed


@dataclass
class BenchmarkResult:
    reports: List[ScenarioReport] = field(default_factory=list)
    failed: bool = False
    suggestions: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> List[ScenarioReport]:
        return [r for r in self.reports if r.skipped]
