"""
Quality variant generation for uploaded images.

Every upload is turned into three variants, each one a full
decode -> (resize) -> encode pass through OpenCV:
  low      — JPEG, quality scaled down with the input size, large inputs
             downscaled to a fixed width (never enlarged)
  medium   — JPEG at a size-derived quality
  original — re-encoded in the source format at codec defaults

Each pass is timed and sized independently so callers can report
per-variant cost and compression.
"""

import cv2
import numpy as np
import math
import time
import logging
from dataclasses import dataclass
from typing import Any, Dict

from core.config import Settings, settings as default_settings
from core.file_validation import validate_image_bytes, extension_for
from core.metrics import (
    QUALITY_LOW, QUALITY_MEDIUM, QUALITY_ORIGINAL, QUALITIES,
    VARIANT_LATENCY, FILE_PROCESSING_LATENCY, VARIANTS_PRODUCED,
    VARIANT_SIZE_BYTES, FILES_FAILED,
)
from pipeline.base import ProcessingPipeline

logger = logging.getLogger(__name__)


@dataclass
class VariantResult:
    quality: str
    buffer: bytes
    process_time_ms: float
    original_size_kb: float
    result_size_kb: float
    compression_ratio: float


# ============= QUALITY TARGETS =============

def low_quality_target(original_size_kb: float) -> int:
    """JPEG quality for the low variant, clamped to [10, 30]."""
    return max(10, min(30, math.floor(50 / original_size_kb * 100)))


def medium_quality_target(original_size_kb: float) -> int:
    """
    JPEG quality for the medium variant.

    The bounds are applied in the opposite order to low_quality_target, so the
    result is always 10 regardless of input size. Kept as-is; see DESIGN.md.
    """
    return min(10, max(30, math.floor(60 / original_size_kb * 100)))


# ============= CODEC =============

def _decode(image_bytes: bytes, flags: int = cv2.IMREAD_COLOR) -> np.ndarray:
    nparr = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(nparr, flags)
    if img is None:
        raise ValueError(
            "Image file header is valid but could not be decoded by OpenCV. "
            "The file may be corrupted or truncated."
        )
    return img


def _encode(img: np.ndarray, ext: str, params: list) -> bytes:
    ok, buf = cv2.imencode(ext, img, params)
    if not ok:
        raise ValueError(f"OpenCV failed to encode {ext} output")
    return buf.tobytes()


def _fit_width(img: np.ndarray, width: int) -> np.ndarray:
    """Scale down to `width`, preserving aspect ratio. Never enlarges."""
    h, w = img.shape[:2]
    if w <= width:
        return img
    height = max(1, round(h * width / w))
    return cv2.resize(img, (width, height), interpolation=cv2.INTER_AREA)


def transform(image_bytes: bytes, quality: str, mime_type: str,
              cfg: Settings = default_settings) -> bytes:
    """Produce one quality variant of an encoded image."""
    original_size_kb = len(image_bytes) / 1024

    if quality == QUALITY_LOW:
        img = _decode(image_bytes)
        if original_size_kb > cfg.low_resize_threshold_kb:
            img = _fit_width(img, cfg.low_resize_width)
        return _encode(img, ".jpg", [
            cv2.IMWRITE_JPEG_QUALITY, low_quality_target(original_size_kb),
            cv2.IMWRITE_JPEG_PROGRESSIVE, 1,
            cv2.IMWRITE_JPEG_OPTIMIZE, 1,
            cv2.IMWRITE_JPEG_SAMPLING_FACTOR, cv2.IMWRITE_JPEG_SAMPLING_FACTOR_420,
        ])

    if quality == QUALITY_MEDIUM:
        img = _decode(image_bytes)
        return _encode(img, ".jpg", [
            cv2.IMWRITE_JPEG_QUALITY, medium_quality_target(original_size_kb),
            cv2.IMWRITE_JPEG_PROGRESSIVE, 1,
            cv2.IMWRITE_JPEG_OPTIMIZE, 1,
        ])

    if quality == QUALITY_ORIGINAL:
        img = _decode(image_bytes, cv2.IMREAD_UNCHANGED)
        return _encode(img, extension_for(mime_type), [])

    raise ValueError(f"Unknown quality tier: {quality}")


# ============= PIPELINE =============

class ImageVariantPipeline(ProcessingPipeline):

    def __init__(self, cfg: Settings = default_settings) -> None:
        super().__init__(max_workers=cfg.num_workers)
        self.cfg = cfg
        logger.info(f"ImageVariantPipeline ready ({cfg.num_workers} codec threads)")

    def _process_variant(self, image_bytes: bytes, quality: str, mime_type: str) -> VariantResult:
        start = time.perf_counter()
        result = transform(image_bytes, quality, mime_type, self.cfg)
        elapsed = time.perf_counter() - start

        original_size_kb = len(image_bytes) / 1024
        result_size_kb = len(result) / 1024
        ratio = original_size_kb / result_size_kb if result_size_kb else 0.0

        VARIANT_LATENCY.labels(quality=quality).observe(elapsed)
        VARIANTS_PRODUCED.labels(quality=quality).inc()
        VARIANT_SIZE_BYTES.labels(quality=quality).observe(len(result))

        logger.info(
            f"Processing {quality} quality: {elapsed * 1000:.2f}ms | "
            f"Original: {original_size_kb:.2f}KB | Result: {result_size_kb:.2f}KB | "
            f"Ratio: {ratio:.2f}x"
        )
        return VariantResult(
            quality=quality,
            buffer=result,
            process_time_ms=elapsed * 1000,
            original_size_kb=original_size_kb,
            result_size_kb=result_size_kb,
            compression_ratio=ratio,
        )

    async def process(self, input_data: Any, filename: str) -> Dict[str, Any]:
        """
        Produce all quality variants for one file, one after another.

        Returns {"fileName", "totalTime", "variants": {quality: VariantResult}}.
        Raises ValueError for data that is not a decodable, allowed image.
        """
        if not isinstance(input_data, bytes):
            raise ValueError(f"Unsupported input type: {type(input_data)}")

        file_start = time.perf_counter()
        try:
            mime_type = validate_image_bytes(input_data, self.cfg.allowed_image_types)
        except ValueError:
            FILES_FAILED.labels(reason="unsupported_format").inc()
            raise

        variants = {}
        for quality in QUALITIES:
            try:
                variants[quality] = await self._offload(
                    self._process_variant, input_data, quality, mime_type
                )
            except Exception:
                FILES_FAILED.labels(reason="codec_error").inc()
                raise

        total_time = time.perf_counter() - file_start
        FILE_PROCESSING_LATENCY.observe(total_time)
        logger.debug(f"{filename}: {len(variants)} variants in {total_time * 1000:.2f}ms")

        return {
            "fileName": filename,
            "totalTime": total_time * 1000,
            "variants": variants,
        }
