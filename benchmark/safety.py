"""
Safety governor for benchmark runs.

Three guards keep the harness from destabilising the host:
  - concurrency clamp: a scenario never dispatches more requests than allowed
  - scenario timeout: a scenario that outlives its budget is cancelled and fails
  - memory watchdog: RSS above the ceiling terminates the process immediately

The watchdog is an explicit task: start it at run entry and stop it at run
exit (or use the governor as an async context manager).
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, Iterable, List, Optional

from core.config import SafetyLimits, get_system_memory_mb
from benchmark.models import ProcessMetrics
from benchmark.sampler import read_process_metrics

logger = logging.getLogger(__name__)


class ScenarioTimeout(Exception):
    """A scenario did not settle within max_time_per_scenario_sec."""


def _hard_exit(code: int) -> None:
    """Flush log handlers and terminate without unwinding."""
    logging.shutdown()
    os._exit(code)


def compute_memory_threshold_mb(limits: SafetyLimits, system_memory_mb: float) -> float:
    return min(
        system_memory_mb * (limits.max_memory_threshold_percent / 100),
        limits.max_memory_threshold_mb,
    )


class SafetyGovernor:

    def __init__(
        self,
        limits: SafetyLimits,
        reader: Callable[[], ProcessMetrics] = read_process_metrics,
        system_memory_mb: float = None,
        check_interval_sec: float = 1.0,
        terminate: Callable[[int], None] = _hard_exit,
    ) -> None:
        self.limits = limits
        self._reader = reader
        self.system_memory_mb = system_memory_mb if system_memory_mb is not None else get_system_memory_mb()
        self.memory_threshold_mb = compute_memory_threshold_mb(limits, self.system_memory_mb)
        self.check_interval_sec = check_interval_sec
        self._terminate = terminate
        self._watchdog: Optional[asyncio.Task] = None
        self._scopes = 0
        self.tripped = False

    # ── Memory watchdog ───────────────────────────────────────────────────────

    @property
    def watching(self) -> bool:
        return self._watchdog is not None

    def start_watchdog(self) -> None:
        """Start the memory watchdog. No-op while it is already running."""
        if self._watchdog is not None:
            return
        logger.info("==== SAFETY MONITORING ====")
        logger.info(f"System memory: {round(self.system_memory_mb)} MB")
        logger.info(f"Memory threshold: {round(self.memory_threshold_mb)} MB")
        self._watchdog = asyncio.get_running_loop().create_task(self._watch())

    def stop_watchdog(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval_sec)
            self.check_memory()

    def check_memory(self) -> bool:
        """Terminate the process if RSS is above the ceiling. Returns True when tripped."""
        rss_mb = self._reader().rss_bytes / (1024 * 1024)
        if rss_mb <= self.memory_threshold_mb:
            return False

        self.tripped = True
        logger.critical(
            f"⚠️ SAFETY ALERT: Memory usage exceeds threshold "
            f"({round(rss_mb)} MB > {round(self.memory_threshold_mb)} MB)"
        )
        logger.critical("Terminating benchmark to prevent system overload.")
        self._terminate(1)
        return True

    # Scopes nest: the watchdog stops when the outermost one exits.
    async def __aenter__(self) -> "SafetyGovernor":
        self._scopes += 1
        self.start_watchdog()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self._scopes -= 1
        if self._scopes == 0:
            self.stop_watchdog()

    # ── Request limits ────────────────────────────────────────────────────────

    def clamp_concurrency(self, requested: int) -> int:
        """
        Scenario-local ceiling on how many requests may be dispatched at once.
        Bounded by max_concurrent_requests and by max_total_requests_per_run,
        which caps the requests any one scenario may dispatch. Nothing is
        carried over between scenarios.
        """
        limits = {
            "max_concurrent_requests": self.limits.max_concurrent_requests,
            "max_total_requests_per_run": self.limits.max_total_requests_per_run,
        }
        binding = min(limits, key=limits.get)
        allowed = min(requested, limits[binding])
        if allowed < requested:
            logger.warning(
                f"⚠️ SAFETY LIMIT APPLIED: Reduced concurrent requests from {requested} to {allowed} "
                f"({binding}={limits[binding]})"
            )
        return allowed

    async def run_with_timeout(self, coros: Iterable[Awaitable]) -> List:
        """
        Dispatch every coroutine, then wait for all of them or the scenario
        deadline, whichever comes first. Results keep dispatch order.

        On timeout the unfinished requests are cancelled, their results are
        discarded and ScenarioTimeout is raised.
        """
        tasks = [asyncio.ensure_future(c) for c in coros]
        if not tasks:
            return []

        done, pending = await asyncio.wait(tasks, timeout=self.limits.max_time_per_scenario_sec)
        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise ScenarioTimeout(
                f"Timeout: Scenario took longer than {self.limits.max_time_per_scenario_sec} seconds"
            )
        return [task.result() for task in tasks]

    async def cooldown(self) -> None:
        delay = self.limits.min_delay_between_scenarios_sec
        logger.info(f"Cooling down for {delay} seconds before next scenario...")
        await asyncio.sleep(delay)
