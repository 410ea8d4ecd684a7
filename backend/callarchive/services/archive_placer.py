"""Placement of validated captures into the date-partitioned archive.

Layout: ``<archive_root>/<YYYY>/<MM>/<DD>/<original filename>`` where the date
is the capture's epoch timestamp interpreted in UTC.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from ..utils.storage import ensure_dir_exists
from .capture_validator import Capture
from .errors import PlacementFailure

logger = logging.getLogger(__name__)


def archive_subdir(epoch_seconds: int) -> str:
    """Return the ``YYYY/MM/DD`` partition for ``epoch_seconds`` (UTC)."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).strftime("%Y/%m/%d")


def relative_archive_path(capture: Capture) -> str:
    return str(PurePosixPath(archive_subdir(capture.time)) / capture.filename)


def place_capture(capture: Capture, archive_root: Path) -> str:
    """Move ``capture`` to its archive location and return its relative path.

    When the capture already sits at its target (index rebuild from the
    archive), the move is skipped.

    Raises:
        PlacementFailure: If the capture time has no calendar date, or the
            partition cannot be created, or the move fails.
    """
    try:
        relative_path = relative_archive_path(capture)
    except (ValueError, OverflowError, OSError) as exc:
        raise PlacementFailure(f"no archive date for {capture.filename}: {exc}") from exc
    target_path = archive_root / relative_path

    try:
        ensure_dir_exists(target_path.parent)
    except OSError as exc:
        raise PlacementFailure(f"cannot create {target_path.parent}: {exc}") from exc

    if capture.path.resolve() == target_path.resolve():
        logger.debug("%s already archived at %s", capture.filename, relative_path)
        return relative_path

    try:
        shutil.move(str(capture.path), str(target_path))
    except (OSError, shutil.Error) as exc:
        raise PlacementFailure(f"cannot move {capture.path} to {target_path}: {exc}") from exc

    logger.info("Moved %s to %s", capture.path, target_path)
    return relative_path
