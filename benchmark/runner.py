"""
Scenario runner: executes the load scenarios in order under one safety
governor and stops at the first failure.
"""

import logging
from typing import Iterable, List

from benchmark.driver import LoadDriver
from benchmark.models import BenchmarkResult, Scenario, ScenarioReport
from benchmark.report import (
    OPTIMIZATION_SUGGESTIONS, print_scenario_report, print_suggestions, section,
)
from benchmark.safety import SafetyGovernor

logger = logging.getLogger(__name__)

DEFAULT_SCENARIOS = (
    Scenario(name="Single request with 8 images", concurrency=1, images_per_request=8),
    Scenario(name="10 concurrent requests with 8 images each", concurrency=10, images_per_request=8),
    Scenario(name="50 concurrent requests with 8 images each", concurrency=50, images_per_request=8),
)


class ScenarioRunner:

    def __init__(
        self,
        driver: LoadDriver,
        governor: SafetyGovernor,
        scenarios: Iterable[Scenario] = DEFAULT_SCENARIOS,
    ) -> None:
        self.driver = driver
        self.governor = governor
        self.scenarios: List[Scenario] = list(scenarios)

    async def run_scenario(self, scenario: Scenario, payload: bytes) -> ScenarioReport:
        section(f"SCENARIO: {scenario.name}")
        logger.info(f"Starting scenario: {scenario.name}")
        if scenario.concurrency == 1:
            report = await self.driver.run_single_request(
                scenario.images_per_request, payload, name=scenario.name
            )
        else:
            report = await self.driver.run_concurrent_requests(
                scenario.concurrency, scenario.images_per_request, payload, name=scenario.name
            )
        print_scenario_report(report)
        return report

    async def run(self, payload: bytes) -> BenchmarkResult:
        """
        Run every scenario in order. The memory watchdog lives for the whole run.
        Once a scenario fails, the rest are recorded as skipped.
        """
        result = BenchmarkResult()
        async with self.governor:
            for index, scenario in enumerate(self.scenarios):
                if result.failed:
                    skipped = ScenarioReport(scenario=scenario, skipped=True)
                    print_scenario_report(skipped)
                    result.reports.append(skipped)
                    continue

                report = await self.run_scenario(scenario, payload)
                result.reports.append(report)
                if report.failed:
                    result.failed = True
                    continue

                if index < len(self.scenarios) - 1:
                    await self.governor.cooldown()

        if not result.failed:
            result.suggestions = list(OPTIMIZATION_SUGGESTIONS)
            print_suggestions(result)
        return result
