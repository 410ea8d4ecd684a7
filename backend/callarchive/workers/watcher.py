"""Directory watcher for the capture drop folder.

The scanner writes captures in place, so a file is only handed to the ingest
queue once its size has stopped changing for ``stability_threshold`` seconds.
watchdog delivers events on its observer thread; they are marshalled onto the
event loop and every stabilization check runs there.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional

from fastapi.concurrency import run_in_threadpool
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..utils.storage import ensure_dir_exists, is_hidden
from .ingest_queue import IngestQueue

logger = logging.getLogger(__name__)


class CaptureEventHandler(FileSystemEventHandler):
    """Forwards new and moved-in files to a :class:`CaptureWatcher`."""

    def __init__(self, watcher: "CaptureWatcher") -> None:
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.watcher.notify(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.watcher.notify(event.dest_path)


class CaptureWatcher:
    def __init__(
        self,
        watch_dir: Path,
        queue: IngestQueue,
        stability_threshold: float = 1.0,
        poll_interval: float = 0.2,
    ) -> None:
        self.watch_dir = Path(watch_dir)
        self.queue = queue
        self.stability_threshold = stability_threshold
        self.poll_interval = poll_interval
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._observer: Optional[Observer] = None
        self._stabilizing: Dict[Path, asyncio.Task] = {}

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        ensure_dir_exists(self.watch_dir)
        observer = Observer()
        observer.schedule(CaptureEventHandler(self), str(self.watch_dir), recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %s for new captures", self.watch_dir)

    async def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            await run_in_threadpool(self._observer.join)
            self._observer = None
        tasks = list(self._stabilizing.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._stabilizing.clear()
        logger.info("Stopped watching %s", self.watch_dir)

    def notify(self, raw_path: str) -> None:
        """Entry point for the observer thread."""
        path = Path(raw_path)
        if is_hidden(path) or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self.track, path)
        except RuntimeError:
            # Loop already closed during shutdown
            logger.debug("Dropping event for %s: event loop closed", path)

    def track(self, path: Path) -> None:
        """Start waiting for ``path`` to stabilize. Must be called on the event loop."""
        if path in self._stabilizing:
            return
        task = asyncio.create_task(self._await_stable(path))
        self._stabilizing[path] = task
        task.add_done_callback(lambda t: self._finished(path, t))

    def _finished(self, path: Path, task: asyncio.Task) -> None:
        self._stabilizing.pop(path, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Stabilization of %s failed: %s", path, exc, exc_info=exc)

    async def _await_stable(self, path: Path) -> None:
        loop = asyncio.get_running_loop()
        last_size = None
        stable_since = loop.time()
        while True:
            try:
                size = (await run_in_threadpool(path.stat)).st_size
            except FileNotFoundError:
                logger.debug("%s disappeared before it stabilized", path)
                return
            now = loop.time()
            if size != last_size:
                last_size = size
                stable_since = now
            elif now - stable_since >= self.stability_threshold:
                break
            await asyncio.sleep(self.poll_interval)

        logger.info("File %s has been added", path)
        self.queue.submit(path)
