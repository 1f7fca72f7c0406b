"""
FastAPI application server for the image variant service.
Accepts multipart uploads, produces low/medium/original variants of every
file, reports timing and size metrics, and exposes Prometheus metrics.
"""

from fastapi import FastAPI, File, UploadFile, Request, BackgroundTasks
from fastapi.responses import PlainTextResponse, Response
from contextlib import asynccontextmanager
import logging
import time
import asyncio
import psutil
from typing import Dict, Optional, List, Any
from core.config import settings, get_settings_summary
from core.metrics import (
    QUALITIES,
    HTTP_REQUEST_LATENCY, HTTP_REQUESTS_TOTAL,
    UPLOAD_SIZE_BYTES, FILES_PER_UPLOAD, FILES_FAILED,
    CPU_USAGE_PERCENT, MEMORY_USAGE_MB,
)
from pipeline.transform import ImageVariantPipeline
from pipeline.storage import save_processed_images
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============= LIFECYCLE =============

@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ───────────────────────────────────────────────────────────
    global _api_process, pipeline
    logger.info("Starting up image variant service...")
    logger.info(f"⚙️ Settings: {get_settings_summary()}")
    logger.info("✅ Pipeline will load on first request (lazy loading)")

    _api_process = psutil.Process()
    _api_process.cpu_percent()  # prime — first call always returns 0.0
    logger.info("✅ Process metrics initialized")

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("🛑 Shutting down image variant service...")
    if pipeline is not None:
        pipeline.shutdown()
        pipeline = None


app = FastAPI(
    title="Image Variant Service",
    description="Produces low, medium and original quality variants of uploaded images",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# ============= GLOBALS =============
pipeline: ImageVariantPipeline = None
_pipeline_lock = asyncio.Lock()
_api_process: psutil.Process = None


# ============= PIPELINE DEPENDENCY =============

async def get_pipeline() -> ImageVariantPipeline:
    """
    Lazy-load the variant pipeline with a double-checked async lock.
    Prevents concurrent initialization under parallel requests.
    """
    global pipeline
    if pipeline is not None:
        return pipeline  # Fast path — no lock needed once initialized
    async with _pipeline_lock:
        if pipeline is None:
            logger.info("🔄 Creating variant pipeline (first request)...")
            pipeline = ImageVariantPipeline(settings)
    return pipeline


# ============= HEALTH =============

@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Simple health check for orchestration.
    """
    return {"status": "healthy", "timestamp": time.time()}


@app.get("/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness probe - always returns ok if process is running.
    """
    return {"status": "alive"}


# ============= METRICS =============

@app.get("/metrics", include_in_schema=False)
async def prometheus_metrics():
    """Prometheus scrape endpoint — updates process-level gauges on each scrape."""
    try:
        if _api_process is not None:
            CPU_USAGE_PERCENT.set(_api_process.cpu_percent())
            MEMORY_USAGE_MB.set(_api_process.memory_info().rss / (1024 * 1024))
    except psutil.Error as e:
        logger.debug(f"Failed to get CPU/memory metrics: {e}")

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ============= MIDDLEWARE =============

@app.middleware("http")
async def track_requests(request: Request, call_next) -> Response:
    """
    Middleware to track HTTP request metrics and log slow requests.
    """
    start_time = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start_time

    path = request.url.path
    if path != "/metrics":
        HTTP_REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=path,
            status=str(response.status_code)
        ).observe(duration)
        HTTP_REQUESTS_TOTAL.labels(
            method=request.method,
            endpoint=path,
            status=str(response.status_code)
        ).inc()

    if duration > 5.0:
        logger.warning(
            f"Slow request: {request.method} {path} took {duration * 1000:.2f}ms"
        )

    logger.info(
        f"Request completed: {request.method} {path} "
        f"status={response.status_code} duration_ms={round(duration * 1000, 2)}"
    )
    response.headers["X-Process-Time-MS"] = str(round(duration * 1000, 2))
    return response


# ============= UPLOAD =============

def _log_size_summary(sizes: Dict[str, Any]) -> None:
    total_original = sizes["totalOriginalSize"]
    logger.info("====== SIZE SUMMARY ======")
    logger.info(f"Total original size: {total_original:.2f}KB")
    for quality, size in sizes["totalProcessedSize"].items():
        ratio = total_original / size if size else 0.0
        logger.info(f"Total {quality} quality size: {size:.2f}KB ({ratio:.2f}x smaller)")


@app.post("/upload")
async def upload(
    background_tasks: BackgroundTasks,
    media: Optional[List[UploadFile]] = File(None),
):
    """
    Produce quality variants for every uploaded `media` file.

    Files are processed one after another. The first file that fails aborts
    the whole batch with a 500 naming that file.
    """
    total_start = time.perf_counter()

    if not media:
        return PlainTextResponse("No files were uploaded.", status_code=400)

    FILES_PER_UPLOAD.observe(len(media))
    pipe = await get_pipeline()
    max_bytes = settings.max_image_size_mb * 1024 * 1024

    processed_images = {quality: [] for quality in QUALITIES}
    timings = {"totalProcessingTime": 0, "files": []}
    sizes = {
        "totalOriginalSize": 0,
        "totalProcessedSize": {quality: 0 for quality in QUALITIES},
        "files": [],
    }

    for file in media:
        contents = await file.read()
        UPLOAD_SIZE_BYTES.observe(len(contents))

        if len(contents) > max_bytes:
            FILES_FAILED.labels(reason="too_large").inc()
            return PlainTextResponse(
                f"File too large: {file.filename}. Max size: {settings.max_image_size_mb}MB",
                status_code=413,
            )

        try:
            result = await pipe.process(contents, file.filename)
        except Exception as e:
            logger.error(f"Error processing file {file.filename}: {e}")
            return PlainTextResponse(f"Error processing file: {file.filename}", status_code=500)

        sizes["totalOriginalSize"] += len(contents) / 1024
        file_timings = {"fileName": file.filename, "qualities": {}, "totalTime": result["totalTime"]}
        file_sizes = {"fileName": file.filename, "qualities": {}}

        for quality, variant in result["variants"].items():
            processed_images[quality].append((file.filename, variant.buffer))
            file_timings["qualities"][quality] = variant.process_time_ms
            file_sizes["qualities"][quality] = {
                "size": variant.result_size_kb,
                "ratio": variant.compression_ratio,
            }
            sizes["totalProcessedSize"][quality] += variant.result_size_kb

        timings["files"].append(file_timings)
        sizes["files"].append(file_sizes)

    if settings.save_outputs:
        background_tasks.add_task(save_processed_images, processed_images, settings.output_dir)

    timings["totalProcessingTime"] = (time.perf_counter() - total_start) * 1000
    _log_size_summary(sizes)

    return {
        "message": "Files uploaded and processed successfully",
        "timings": timings,
        "sizes": sizes,
    }
