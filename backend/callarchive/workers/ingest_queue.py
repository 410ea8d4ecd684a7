"""Bounded worker pool feeding capture paths to the ingestion pipeline."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Set

from fastapi.concurrency import run_in_threadpool

from ..services.pipeline import IngestionPipeline

logger = logging.getLogger(__name__)


class IngestQueue:
    """asyncio queue drained by ``workers`` tasks.

    Each worker runs :meth:`IngestionPipeline.process` in the thread pool, so
    at most ``workers`` captures touch the filesystem and database at once.
    A path that is already queued or in flight is not queued again.
    """

    def __init__(self, pipeline: IngestionPipeline, workers: int = 4) -> None:
        self.pipeline = pipeline
        self.worker_count = max(1, workers)
        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._workers: List[asyncio.Task] = []
        self._pending: Set[Path] = set()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(), name=f"ingest-worker-{n}")
            for n in range(self.worker_count)
        ]
        logger.info("Started %d ingest workers", self.worker_count)

    def submit(self, path: Path) -> bool:
        """Queue ``path`` for ingestion. Must be called on the event loop.

        Returns ``False`` when the path was already pending.
        """
        if self._queue is None:
            raise RuntimeError("IngestQueue has not been started")
        path = Path(path)
        if path in self._pending:
            return False
        self._pending.add(path)
        self._queue.put_nowait(path)
        return True

    def submit_threadsafe(self, path: Path) -> None:
        """Queue ``path`` from a thread other than the event loop's."""
        if self._loop is None:
            raise RuntimeError("IngestQueue has not been started")
        self._loop.call_soon_threadsafe(self.submit, path)

    async def join(self) -> None:
        """Wait until every queued path has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Ingest workers stopped")

    async def _worker(self) -> None:
        assert self._queue is not None
        while True:
            path = await self._queue.get()
            try:
                await run_in_threadpool(self.pipeline.process, path)
            except Exception:
                logger.exception("Ingestion of %s failed", path)
            finally:
                self._pending.discard(path)
                self._queue.task_done()
