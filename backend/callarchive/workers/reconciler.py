"""Periodic catch-up scan of the watch directory and first-run index rebuild."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool

from ..services.errors import IndexWriteFailure
from ..services.pipeline import IngestionPipeline
from ..utils.storage import iter_visible_files
from .ingest_queue import IngestQueue

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 20.0
DEFAULT_QUIET_PERIOD = 1.0


class Reconciler:
    """Re-submits whatever sits in the watch directory.

    Watch events can be missed (process down, overflowing inotify queue), so
    every ``interval`` seconds the directory listing is pushed through the
    ingest queue again.  Files modified within the last ``quiet_period``
    seconds are still being written and wait for a later pass.  Ingestion is
    idempotent, so files the watcher already handled are harmless.
    """

    def __init__(
        self,
        watch_dir: Path,
        archive_dir: Path,
        pipeline: IngestionPipeline,
        queue: IngestQueue,
        interval: float = DEFAULT_INTERVAL,
        quiet_period: float = DEFAULT_QUIET_PERIOD,
    ) -> None:
        self.watch_dir = Path(watch_dir)
        self.archive_dir = Path(archive_dir)
        self.pipeline = pipeline
        self.queue = queue
        self.interval = interval
        self.quiet_period = quiet_period
        self._task: Optional[asyncio.Task] = None

    def list_captures(self) -> List[Path]:
        """Captures in the watch directory that have not been written to for ``quiet_period`` seconds."""
        cutoff = time.time() - self.quiet_period
        captures = []
        for path in iter_visible_files(self.watch_dir):
            try:
                modified = path.stat().st_mtime
            except FileNotFoundError:
                continue
            if modified <= cutoff:
                captures.append(path)
        return captures

    def list_archived(self) -> List[Path]:
        return list(iter_visible_files(self.archive_dir, recursive=True))

    async def rescan(self) -> int:
        """Queue every settled capture in the watch directory. Returns how many were queued."""
        captures = await run_in_threadpool(self.list_captures)
        queued = sum(1 for path in captures if self.queue.submit(path))
        if captures:
            logger.info("Rescan of %s found %d files, queued %d", self.watch_dir, len(captures), queued)
        return queued

    async def rebuild_index(self) -> int:
        """Index every file already in the archive.

        Used until the index records a completed rebuild.  Files already sit
        at their target path, so only the upsert happens; rejected files are
        left in place.  A file that raises is logged and skipped, and the
        rebuild is then not marked complete so the next start walks the
        archive again.
        """
        archived = await run_in_threadpool(self.list_archived)
        logger.info("Rebuilding index from %d archived files under %s", len(archived), self.archive_dir)
        indexed = 0
        errors = 0
        for path in archived:
            try:
                if await run_in_threadpool(self.pipeline.process, path, False):
                    indexed += 1
            except Exception:
                errors += 1
                logger.exception("Could not index archived file %s", path)
        if errors:
            logger.error("Index rebuild incomplete: %d of %d files failed, retrying on next start", errors, len(archived))
        else:
            try:
                await run_in_threadpool(self.pipeline.index.mark_rebuilt)
            except IndexWriteFailure as exc:
                logger.error("Index rebuild done but not recorded, repeating on next start: %s", exc)
        logger.info("Index rebuild finished: %d of %d files indexed", indexed, len(archived))
        return indexed

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="reconciler")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.rescan()
            except Exception:
                logger.exception("Rescan of %s failed", self.watch_dir)
            await asyncio.sleep(self.interval)
