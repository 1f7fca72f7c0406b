"""
Application configuration management using Pydantic Settings.
Loads from environment variables (defined in .env) and provides validation.
Single source of truth for all tunable parameters, for both the upload
service and the benchmark harness.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal
import os
import logging

import psutil

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Upload service settings loaded from environment variables.
    """

    # ============= Pydantic config =============
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============= API SETTINGS =============
    api_host: str = Field("0.0.0.0", description="Host to bind the API server to")
    api_port: int = Field(3000, description="Port to bind the API server to", ge=1, le=65535)
    workers: int = Field(1, description="Number of worker processes", ge=1, le=8)
    reload: bool = Field(False, description="Auto-reload on code changes (dev only!)")

    # ============= PROCESSING SETTINGS =============
    num_workers: int = Field(2, description="Threads used for decode/resize/encode", ge=1, le=32)
    max_image_size_mb: int = Field(
        100,
        description="Maximum size of a single uploaded file in MB",
        ge=1,
        le=1024,
    )
    low_resize_width: int = Field(
        1000,
        description="Target width for the low quality variant of large uploads",
        ge=16,
        le=8192,
    )
    low_resize_threshold_kb: int = Field(
        1024,
        description="Uploads larger than this (KB) are downscaled for the low variant",
        ge=1,
    )

    # ============= LOGGING & MONITORING =============
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Logging level")

    # ============= STORAGE SETTINGS =============
    output_dir: str = Field(
        "output",
        description="Root directory for processed variants (one sub-directory per quality)"
    )
    save_outputs: bool = Field(
        True,
        description="Write processed variants to output_dir after responding"
    )

    # ============= ALLOWED FILE TYPES =============
    allowed_image_types: list = Field(
        default=["image/jpeg", "image/png", "image/bmp", "image/webp"],
        description="Allowed image MIME types. Must be decodable by OpenCV."
    )


class SafetyLimits(BaseModel):
    """
    Hard ceilings for one benchmark run. Every limit is enforced, none are advisory.
    """

    model_config = ConfigDict(frozen=True)

    max_concurrent_requests: int = Field(50, description="Maximum concurrent requests per scenario", ge=1)
    max_total_requests_per_run: int = Field(
        100,
        description="Ceiling on the requests any one scenario dispatches; not a budget shared across scenarios",
        ge=1,
    )
    max_memory_threshold_percent: float = Field(
        80,
        description="Abort when RSS exceeds this percentage of system memory",
        gt=0,
        le=100,
    )
    max_memory_threshold_mb: float = Field(4096, description="Abort when RSS exceeds this many MB", gt=0)
    max_time_per_scenario_sec: float = Field(300, description="Wall-clock budget per scenario", gt=0)
    min_delay_between_scenarios_sec: float = Field(5, description="Cooldown between scenarios", ge=0)


class BenchmarkSettings(BaseSettings):
    """
    Benchmark harness settings. Environment variables use the BENCH_ prefix;
    nested safety limits use a double underscore, e.g.
    BENCH_SAFETY__MAX_CONCURRENT_REQUESTS=10.
    """

    model_config = SettingsConfigDict(
        env_prefix="BENCH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    server_url: str = Field("http://localhost:3000/upload", description="Upload endpoint under test")
    sample_image_path: str = Field(
        os.path.join("data", "samples", "sample.jpg"),
        description="Seed image replicated into the synthetic payload"
    )
    target_size_mb: float = Field(20, description="Size of each synthetic upload in MB", gt=0)
    sample_interval_sec: float = Field(1.0, description="Resource sampler period", gt=0)
    request_timeout_sec: float | None = Field(
        None,
        description="Per-request HTTP timeout. None leaves requests bounded only by the scenario timeout."
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field("INFO", description="Logging level")

    safety: SafetyLimits = Field(default_factory=SafetyLimits)


# Create global settings instances
settings = Settings()
benchmark_settings = BenchmarkSettings()


# ============= HELPER FUNCTIONS =============
def get_system_memory_mb() -> float:
    """Total physical memory of the host in MB."""
    return psutil.virtual_memory().total / (1024 * 1024)


def get_settings_summary(s: Settings = None) -> dict:
    """Get a summary of settings for logging/debugging."""
    if s is None:
        s = settings

    return {
        "api": f"{s.api_host}:{s.api_port}",
        "processing": {
            "threads": s.num_workers,
            "low_resize_width": s.low_resize_width,
            "low_resize_threshold_kb": s.low_resize_threshold_kb,
        },
        "storage": {
            "output_dir": s.output_dir,
            "save_outputs": s.save_outputs,
        },
        "limits": {
            "max_image_size_mb": s.max_image_size_mb,
        },
    }
