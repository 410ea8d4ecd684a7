"""Query and deletion operations behind the HTTP surface.

The index is the authority over what may be deleted: a path without a row is
never removed from disk, and a row is only removed once its file is gone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models.call import Call
from ..utils.storage import resolve_under
from .call_index import CallIndex
from .capacity import CapacityCache

logger = logging.getLogger(__name__)


@dataclass
class CallListing:
    calls: List[Call]
    total_archive_size: int
    free_space: int


@dataclass
class DeleteReport:
    """Per-item outcome of a deletion request."""

    deleted: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class CallService:
    def __init__(self, index: CallIndex, archive_root: Path, capacity: CapacityCache) -> None:
        self.index = index
        self.archive_root = Path(archive_root)
        self.capacity = capacity

    def list_calls(
        self,
        freq: Optional[str] = None,
        after_time: Optional[int] = None,
        before_time: Optional[int] = None,
    ) -> CallListing:
        calls = self.index.query(freq=freq, after_time=after_time, before_time=before_time)
        return CallListing(
            calls=calls,
            total_archive_size=self.index.total_size(),
            free_space=self.capacity.get(),
        )

    def delete_calls(self, relative_paths: Iterable[str]) -> DeleteReport:
        """Delete the archived file and index row of every indexed path."""
        report = DeleteReport()
        removed_any = False

        # dict.fromkeys keeps request order while dropping repeats
        for relative_path in dict.fromkeys(relative_paths):
            call_id = self.index.find_id_by_path(relative_path)
            if call_id is None:
                logger.warning("Not deleting %s: no indexed call at that path", relative_path)
                report.missing.append(relative_path)
                continue

            file_path = resolve_under(self.archive_root, relative_path)
            if file_path is None:
                logger.warning("Not deleting %s: path escapes the archive root", relative_path)
                report.failed.append(relative_path)
                continue

            try:
                file_path.unlink()
                removed_any = True
            except FileNotFoundError:
                logger.warning("File for %s was already gone; dropping its index row", relative_path)
            except OSError as exc:
                logger.error("Error deleting file %s, keeping its index row: %s", file_path, exc)
                report.failed.append(relative_path)
                continue

            try:
                self.index.delete_by_id(call_id)
            except SQLAlchemyError as exc:
                logger.error("Deleted %s but could not remove index row %s: %s", file_path, call_id, exc)
                report.failed.append(relative_path)
                continue

            logger.info("Deleted %s", relative_path)
            report.deleted.append(relative_path)

        if removed_any:
            self.capacity.invalidate()
        return report

    def delete_before(self, cutoff: int) -> DeleteReport:
        """Delete every call with ``time < cutoff``."""
        paths = [call.relative_path for call in self.index.query(before_time=cutoff)]
        logger.info("Deleting %d calls older than %s", len(paths), cutoff)
        return self.delete_calls(paths)
