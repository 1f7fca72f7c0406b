"""
Development entrypoint for running the image variant service with uvicorn.
Use scripts/run_benchmark.py to drive load against it.
"""
import logging

import uvicorn
from core.config import settings, get_settings_summary

logger = logging.getLogger(__name__)


def run() -> None:
    logging.basicConfig(level=settings.log_level)
    logger.info(f"Serving upload endpoint on http://{settings.api_host}:{settings.api_port}/upload")
    logger.info(f"Settings: {get_settings_summary()}")
    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.reload,  # Use True in development, False in production
        log_level=settings.log_level.lower(),
        workers=settings.workers,
    )


if __name__ == "__main__":
    run()
