"""
Console output for benchmark runs.
"""

from typing import Dict, Optional

from benchmark.models import BenchmarkResult, ResourceSummary, ScenarioReport

# ── Output helpers ────────────────────────────────────────────────────────────

RESET  = "\033[0m"
GREEN  = "\033[32m"
RED    = "\033[31m"
YELLOW = "\033[33m"
CYAN   = "\033[36m"
BOLD   = "\033[1m"
DIM    = "\033[2m"

def section(title):
    print(f"\n{'=' * 10} {title} {'=' * 10}")

def ok(msg):    print(f"  {GREEN}✓{RESET}  {msg}")
def fail(msg):  print(f"  {RED}✗{RESET}  {msg}")
def warn(msg):  print(f"  {YELLOW}⚠{RESET}  {msg}")
def info(msg):  print(f"  {CYAN}ℹ{RESET}  {msg}")


OPTIMIZATION_SUGGESTIONS = [
    "Release codec buffers between variants to reduce peak memory",
    "Process files of one upload in parallel across the codec thread pool",
    "Add a request throttling middleware to prevent server overload",
    "Stream large uploads to disk instead of holding them in memory",
    "Add timeout limits for image processing operations",
    "Cache processed variants to avoid re-processing identical uploads",
]


# ── Formatting ────────────────────────────────────────────────────────────────

def format_ms(ms: float) -> str:
    return f"{ms:.2f}ms ({ms / 1000:.2f} seconds)"


def format_success_rate(successes: int, attempted: int) -> str:
    rate = successes / attempted * 100 if attempted else 0.0
    return f"{successes}/{attempted} ({rate:.2f}%)"


def format_ratio(ratio: float) -> str:
    return f"{ratio:.2f}x"


# ── Printing ──────────────────────────────────────────────────────────────────

def print_resource_usage(label: str, usage: Optional[ResourceSummary]) -> None:
    if usage is None:
        return
    print(f"\n==== {label} Resource Usage ====")
    print(f"Average CPU Usage: {usage.average.cpu_percent:.2f}%")
    print(f"Peak CPU Usage: {usage.peak.cpu_percent:.2f}%")
    print(f"Average Memory (RSS): {usage.average.memory.rss_mb:.2f}MB")
    print(f"Peak Memory (RSS): {usage.peak.memory.rss_mb:.2f}MB")
    print(f"Average Heap Used: {usage.average.memory.heap_used_mb:.2f}MB")
    print(f"Peak Heap Used: {usage.peak.memory.heap_used_mb:.2f}MB")


def print_compression(original_kb: Optional[float], processed_kb: Dict[str, float],
                      ratios: Dict[str, float], images: int) -> None:
    if original_kb is None:
        return
    print("\nCompression Results:")
    print(f"Original Size (per file): {original_kb / 1024 / images:.2f}MB")
    print(f"Total Original Size: {original_kb / 1024:.2f}MB")
    for quality, size in processed_kb.items():
        ratio = ratios.get(quality)
        suffix = f" ({format_ratio(ratio)} smaller)" if ratio is not None else ""
        print(f"{quality.capitalize()} Quality: {size / 1024:.2f}MB{suffix}")


def print_scenario_report(report: ScenarioReport) -> None:
    scenario = report.scenario
    if report.skipped:
        warn(f'Skipping scenario "{scenario.name}" due to previous failure')
        return

    if scenario.concurrency == 1:
        print_resource_usage(f"Single Request ({scenario.images_per_request} images)", report.resource_usage)
    else:
        print_resource_usage(f"{report.effective_concurrency} Concurrent Requests", report.resource_usage)

    if report.timed_out:
        fail(f"SAFETY MECHANISM TRIGGERED: {report.error}")
        return

    if scenario.concurrency == 1:
        outcome = report.outcomes[0] if report.outcomes else None
        if outcome is None or not outcome.success:
            duration = outcome.duration_ms if outcome else 0.0
            fail(f"Request failed after {duration:.2f}ms: {report.error}")
            return
        ok(f"Request completed successfully in {format_ms(outcome.duration_ms)}")
        if report.avg_processing_ms is not None:
            print(f"Processing time: {format_ms(report.avg_processing_ms)}")
    else:
        print(f"\nResults for {report.effective_concurrency} concurrent requests:")
        print(f"Total time: {format_ms(report.total_duration_ms)}")
        print(f"Success rate: {format_success_rate(report.success_count, report.attempted)}")
        if report.avg_duration_ms is not None:
            print(f"Average request duration: {format_ms(report.avg_duration_ms)}")
        if report.avg_processing_ms is not None:
            print(f"Average processing time: {format_ms(report.avg_processing_ms)}")

    print_compression(
        report.original_size_kb,
        report.processed_sizes_kb,
        report.compression_ratios,
        scenario.images_per_request,
    )


def print_suggestions(result: BenchmarkResult) -> None:
    if not result.suggestions:
        return
    section("OPTIMIZATION SUGGESTIONS")
    print("✅ General optimization suggestions for the upload service:")
    for i, suggestion in enumerate(result.suggestions, start=1):
        print(f"{i}. {suggestion}")


def print_summary(result: BenchmarkResult) -> None:
    print(f"\n{'═' * 60}")
    print(f"  {BOLD}RESULTS{RESET}")
    print(f"{'═' * 60}")
    for r in result.reports:
        if r.skipped:
            print(f"  {YELLOW}-{RESET} {r.scenario.name}  {DIM}(skipped){RESET}")
        elif r.failed:
            print(f"  {RED}✗{RESET} {r.scenario.name}  {DIM}({r.error}){RESET}")
        else:
            note = format_success_rate(r.success_count, r.attempted)
            print(f"  {GREEN}✓{RESET} {r.scenario.name}  {DIM}({note}){RESET}")
