"""Single-capture ingestion: validate, place, index.

:meth:`IngestionPipeline.process` is a pure function of the path on disk, so
the watcher and the reconciler can both call it for the same file without
coordinating.  It never raises for the expected failure modes; it logs and
returns ``None`` so the caller (a queue worker) can move on.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .archive_placer import place_capture
from .call_index import CallIndex
from .capture_validator import DEFAULT_MIN_DURATION, Rejection, RejectReason, validate_capture
from .errors import IndexWriteFailure, PlacementFailure

logger = logging.getLogger(__name__)


class IngestionPipeline:
    def __init__(self, index: CallIndex, archive_root: Path, min_duration: float = DEFAULT_MIN_DURATION) -> None:
        self.index = index
        self.archive_root = Path(archive_root)
        self.min_duration = min_duration

    def process(self, path: Path, discard_rejected: bool = True) -> Optional[str]:
        """Ingest one capture.

        Args:
            path: The capture on disk, either in the watch directory or
                already in the archive.
            discard_rejected: Delete the file when validation rejects it.
                Index rebuilds over the archive pass ``False``.

        Returns:
            The archive-relative path of the indexed call, or ``None`` when
            the capture was rejected or could not be placed/indexed.
        """
        path = Path(path)
        result = validate_capture(path, self.min_duration)

        if isinstance(result, Rejection):
            self._reject(result, discard_rejected)
            return None

        try:
            relative_path = place_capture(result, self.archive_root)
        except PlacementFailure as exc:
            logger.error("Placement failed, leaving %s for a later rescan: %s", path, exc)
            return None

        try:
            self.index.upsert(
                freq=result.freq,
                time=result.time,
                duration=result.duration,
                size=result.size,
                relative_path=relative_path,
            )
        except IndexWriteFailure as exc:
            # The file stays archived; the next index rebuild picks it up.
            logger.error("Archived %s but could not index it: %s", relative_path, exc)
            return None

        logger.info("Indexed %s (freq=%s, %.2fs, %d bytes)", relative_path, result.freq, result.duration, result.size)
        return relative_path

    def _reject(self, rejection: Rejection, discard: bool) -> None:
        if rejection.reason is RejectReason.MISSING:
            # Already moved or removed by a concurrent run
            logger.debug("Skipping %s: no longer present", rejection.path)
            return

        logger.warning("Rejected %s (%s) %s", rejection.path, rejection.reason.value, rejection.detail)
        if not discard:
            return
        try:
            rejection.path.unlink()
            logger.info("Deleted rejected capture %s", rejection.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.error("Could not delete rejected capture %s: %s", rejection.path, exc)
