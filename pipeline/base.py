from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict
import asyncio


class ProcessingPipeline(ABC):
    """
    Abstract base class for all processing pipelines.
    Codec work is CPU-bound, so subclasses push it onto a shared thread pool
    and keep the event loop free for other uploads.
    Timing and metrics are handled at the subclass level using Prometheus histograms,
    not stored in instance state.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self.thread_pool = ThreadPoolExecutor(max_workers=max_workers)

    async def _offload(self, fn: Callable, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.thread_pool, fn, *args)

    def shutdown(self) -> None:
        self.thread_pool.shutdown(wait=False)

    @abstractmethod
    async def process(self, input_data: Any, filename: str) -> Dict:
        """Main processing method — must be implemented by subclasses."""
        pass
