"""Time-bounded cache of the archive filesystem's free space."""

from __future__ import annotations

import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60 * 60


class CapacityCache:
    """Free bytes on the filesystem holding ``path``.

    The figure is recomputed lazily on the first :meth:`get` after the TTL
    expires or after :meth:`invalidate`.
    """

    def __init__(self, path: Path, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self.path = Path(path)
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._free: Optional[int] = None
        self._expires_at = 0.0

    def get(self) -> int:
        with self._lock:
            now = self._clock()
            if self._free is None or now >= self._expires_at:
                self._free = shutil.disk_usage(self.path).free
                self._expires_at = now + self.ttl
                logger.debug("Free space on %s: %d bytes", self.path, self._free)
            return self._free

    def invalidate(self) -> None:
        with self._lock:
            self._free = None
