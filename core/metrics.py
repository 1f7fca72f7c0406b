"""
Prometheus metrics definitions.
All metrics exposed by the upload service are centralized here.
"""
from prometheus_client import Counter, Histogram, Gauge
import logging

logger = logging.getLogger(__name__)

# ── Quality constants — use these everywhere, never raw strings ───────────────
QUALITY_LOW      = "low"
QUALITY_MEDIUM   = "medium"
QUALITY_ORIGINAL = "original"
QUALITIES        = (QUALITY_LOW, QUALITY_MEDIUM, QUALITY_ORIGINAL)

# ── Transform metrics ─────────────────────────────────────────────────────────
VARIANT_LATENCY = Histogram(
    "img_variant_latency_seconds",
    "Decode + resize + encode time for one quality variant",
    ["quality"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

FILE_PROCESSING_LATENCY = Histogram(
    "img_file_processing_latency_seconds",
    "Time to produce all quality variants for one uploaded file",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

VARIANTS_PRODUCED = Counter(
    "img_variants_produced_total",
    "Total quality variants produced",
    ["quality"],
)

VARIANT_SIZE_BYTES = Histogram(
    "img_variant_size_bytes",
    "Encoded size of produced variants",
    ["quality"],
    buckets=[10_000, 50_000, 100_000, 500_000, 1_000_000, 5_000_000, 25_000_000],
)

FILES_FAILED = Counter(
    "img_files_failed_total",
    "Uploaded files that could not be processed",
    ["reason"],
)

# ── HTTP metrics ──────────────────────────────────────────────────────────────
HTTP_REQUEST_LATENCY = Histogram(
    "img_http_request_latency_seconds",
    "HTTP request latency by endpoint",
    ["method", "endpoint", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

HTTP_REQUESTS_TOTAL = Counter(
    "img_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

UPLOAD_SIZE_BYTES = Histogram(
    "img_upload_size_bytes",
    "Size of uploaded files in bytes",
    buckets=[
        100_000, 1_000_000, 5_000_000, 10_000_000,
        25_000_000, 50_000_000, 100_000_000,
    ],
)

FILES_PER_UPLOAD = Histogram(
    "img_files_per_upload",
    "Number of files carried by one upload request",
    buckets=[1, 2, 4, 8, 16, 32, 64],
)

# ── System metrics ────────────────────────────────────────────────────────────
CPU_USAGE_PERCENT = Gauge(
    "img_cpu_usage_percent",
    "CPU usage percentage of the API process",
)

MEMORY_USAGE_MB = Gauge(
    "img_memory_usage_mb",
    "Memory usage of the API process in MB",
)
