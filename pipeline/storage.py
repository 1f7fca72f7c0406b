"""
Persistence of processed variants.

Runs after the upload response has been sent. Failures are logged and never
reach the client.
"""

import logging
import time
from pathlib import Path
from typing import Dict, List, Tuple

from core.metrics import QUALITIES

logger = logging.getLogger(__name__)


def variant_path(output_dir: str, quality: str, filename: str) -> Path:
    """output/<quality>/<quality>_<filename>; directory parts of filename are dropped."""
    return Path(output_dir) / quality / f"{quality}_{Path(filename).name}"


def save_image_to_disk(buffer: bytes, path: Path) -> float:
    """Write one buffer, creating parent directories. Returns elapsed ms."""
    start = time.perf_counter()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(buffer)
    return (time.perf_counter() - start) * 1000


def save_processed_images(processed: Dict[str, List[Tuple[str, bytes]]], output_dir: str) -> Dict[str, float]:
    """
    Save every processed variant under output_dir.
    `processed` maps quality -> [(original filename, encoded bytes), ...].
    Returns total saving time per quality in ms.
    """
    saving_times = {quality: 0.0 for quality in QUALITIES}
    try:
        for quality in QUALITIES:
            for filename, buffer in processed.get(quality, []):
                saving_times[quality] += save_image_to_disk(
                    buffer, variant_path(output_dir, quality, filename)
                )
    except OSError as e:
        logger.error(f"Error saving processed images: {e}")
        return saving_times

    logger.info(
        "Saving times (ms): "
        + ", ".join(f"{q.capitalize()}: {t:.2f}" for q, t in saving_times.items())
    )
    return saving_times
