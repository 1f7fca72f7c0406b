"""
Resource sampler for the benchmark harness.

Samples CPU and memory of the *harness* process on a fixed period while a
scenario runs, then reduces the time series to average and peak values.

Usage:
    sampler = ResourceSampler(interval_sec=1.0)
    sampler.start()          # needs a running event loop
    ... run workload ...
    summary = sampler.stop()

OS access goes through read_process_metrics(); pass a different reader,
clock or core count to drive the sampler with synthetic readings.
"""

import asyncio
import logging
import time
from functools import reduce
from typing import Callable, List, Optional

import psutil

from benchmark.models import (
    MemoryUsage, MetricSet, ProcessMetrics, ResourceSummary, Sample,
)

logger = logging.getLogger(__name__)

MB = 1024 * 1024

_process: Optional[psutil.Process] = None


def _current_process() -> psutil.Process:
    global _process
    if _process is None:
        _process = psutil.Process()
    return _process


def read_process_metrics(process: psutil.Process = None) -> ProcessMetrics:
    """
    Read CPU times and memory of a process (default: this one).

    There is no managed heap to report on, so the memory fields map to:
      heap_total -> virtual memory size
      heap_used  -> unique set size (rss where the platform denies it)
      external   -> shared pages (0 where the platform does not report them)
    """
    proc = process or _current_process()
    cpu = proc.cpu_times()
    mem = proc.memory_info()
    try:
        uss = proc.memory_full_info().uss
    except (psutil.AccessDenied, AttributeError):
        uss = mem.rss
    return ProcessMetrics(
        cpu_user_sec=cpu.user,
        cpu_system_sec=cpu.system,
        rss_bytes=mem.rss,
        heap_total_bytes=mem.vms,
        heap_used_bytes=uss,
        external_bytes=getattr(mem, "shared", 0),
    )


class ResourceSampler:
    """
    Periodic CPU/memory sampler running as an asyncio task.

    The sample list belongs to this instance only: it is appended to while
    active and frozen once stop() has taken the final sample.
    """

    def __init__(
        self,
        interval_sec: float = 1.0,
        reader: Callable[[], ProcessMetrics] = read_process_metrics,
        clock: Callable[[], float] = time.perf_counter,
        cpu_count: int = None,
    ) -> None:
        self.interval_sec = interval_sec
        self._reader = reader
        self._clock = clock
        self._cpu_count = cpu_count or psutil.cpu_count(logical=True) or 1

        self._samples: List[Sample] = []
        self._task: Optional[asyncio.Task] = None
        self._baseline: Optional[ProcessMetrics] = None
        self._start_time: float = 0.0
        self._last_time: float = 0.0
        self._frozen = False

    @property
    def samples(self) -> tuple:
        return tuple(self._samples)

    @property
    def active(self) -> bool:
        return self._task is not None

    def start(self) -> None:
        """Reset counters and samples, then sample every interval_sec until stop()."""
        self._baseline = self._reader()
        self._start_time = self._last_time = self._clock()
        self._samples = []
        self._frozen = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_sec)
            self.sample()

    def sample(self) -> Optional[Sample]:
        """Record one sample. CPU% covers the time since the previous sample."""
        if self._frozen:
            return None

        now = self._clock()
        reading = self._reader()
        if self._baseline is None:
            self._baseline = reading
            self._start_time = self._last_time = now

        elapsed = now - self._last_time
        cpu_delta = (
            (reading.cpu_user_sec - self._baseline.cpu_user_sec)
            + (reading.cpu_system_sec - self._baseline.cpu_system_sec)
        )
        cpu_percent = cpu_delta / elapsed / self._cpu_count * 100 if elapsed > 0 else 0.0

        sample = Sample(
            timestamp_ms=(now - self._start_time) * 1000,
            cpu_percent=cpu_percent,
            memory=MemoryUsage(
                rss_mb=reading.rss_bytes / MB,
                heap_total_mb=reading.heap_total_bytes / MB,
                heap_used_mb=reading.heap_used_bytes / MB,
                external_mb=reading.external_bytes / MB,
            ),
        )
        self._samples.append(sample)

        self._baseline = reading
        self._last_time = now
        return sample

    def stop(self) -> ResourceSummary:
        """Cancel the periodic task, take a last sample and freeze the series."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

        self.sample()
        self._frozen = True
        return self.get_results()

    def get_results(self) -> ResourceSummary:
        """Average and peak over all samples. All zero when nothing was sampled."""
        if not self._samples:
            return ResourceSummary(average=MetricSet(), peak=MetricSet(), samples=())

        count = len(self._samples)
        cpu_total = sum(s.cpu_percent for s in self._samples)
        memory_total = reduce(lambda acc, s: acc + s.memory, self._samples, MemoryUsage())

        peak_memory = reduce(lambda acc, s: acc.max(s.memory), self._samples[1:], self._samples[0].memory)

        return ResourceSummary(
            average=MetricSet(cpu_percent=cpu_total / count, memory=memory_total.scaled(1 / count)),
            peak=MetricSet(
                cpu_percent=max(s.cpu_percent for s in self._samples),
                memory=peak_memory,
            ),
            samples=tuple(self._samples),
        )
