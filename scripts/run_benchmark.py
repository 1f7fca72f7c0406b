#!/usr/bin/env python3
"""
Image Variant Service — Benchmark

Drives the upload endpoint through a fixed list of load scenarios while
watching this process's CPU and memory.

Usage:
    python -m scripts.run_benchmark
    python -m scripts.run_benchmark --api http://localhost:3000/upload
    python -m scripts.run_benchmark --sample data/samples/sample.jpg --size-mb 5
    python -m scripts.run_benchmark --scenario "Single request with 8 images"
    python -m scripts.run_benchmark --list

Safety limits come from BENCH_SAFETY__* environment variables (see core/config.py).
Requires a seed image; create one with scripts/create_sample_image.py.
"""

import argparse
import asyncio
import logging
import sys

from core.config import benchmark_settings
from benchmark.driver import LoadDriver, SeedPayloadMissing, create_test_payload, load_seed_payload
from benchmark.report import fail, print_summary
from benchmark.runner import DEFAULT_SCENARIOS, ScenarioRunner
from benchmark.safety import SafetyGovernor

logger = logging.getLogger("benchmark")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Image variant service benchmark")
    parser.add_argument("--api",      default=benchmark_settings.server_url, help="Upload endpoint URL")
    parser.add_argument("--sample",   default=benchmark_settings.sample_image_path, help="Seed image path")
    parser.add_argument("--size-mb",  type=float, default=benchmark_settings.target_size_mb,
                        help="Size of each synthetic upload in MB")
    parser.add_argument("--scenario", default=None, help="Run a single scenario by name")
    parser.add_argument("--list",     action="store_true")
    return parser.parse_args(argv)


async def run_benchmarks(args) -> int:
    scenarios = DEFAULT_SCENARIOS
    if args.scenario:
        scenarios = [s for s in DEFAULT_SCENARIOS if s.name == args.scenario]

    governor = SafetyGovernor(benchmark_settings.safety)

    # Watchdog covers the whole run, payload construction included
    async with governor:
        logger.info("Creating test image buffer...")
        try:
            payload = create_test_payload(args.size_mb, load_seed_payload(args.sample))
        except SeedPayloadMissing as e:
            fail(str(e))
            logger.error(str(e))
            return 1
        logger.info(f"Created test image buffer of {len(payload) / (1024 * 1024):.2f}MB")

        async with LoadDriver(governor, benchmark_settings, server_url=args.api) as driver:
            result = await ScenarioRunner(driver, governor, scenarios).run(payload)

    print_summary(result)
    return 1 if result.failed else 0


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=benchmark_settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.list:
        print("\nAvailable scenarios:\n")
        for s in DEFAULT_SCENARIOS:
            print(f"  {s.name:<45} concurrency={s.concurrency} images={s.images_per_request}")
        print()
        return 0

    if args.scenario and args.scenario not in {s.name for s in DEFAULT_SCENARIOS}:
        print(f"\nUnknown scenario: {args.scenario}")
        print(f"Available: {', '.join(s.name for s in DEFAULT_SCENARIOS)}")
        return 1

    try:
        code = asyncio.run(run_benchmarks(args))
    except KeyboardInterrupt:
        print("\n  Interrupted")
        return 130

    print("\nBenchmarking complete!")
    return code


if __name__ == "__main__":
    sys.exit(main())
