"""Validation of raw captures dropped into the watch directory.

A capture is named ``<freq>_<epochSeconds>.<ext>``.  Malformed names and
unreadable or too-short audio are expected in normal operation (the scanner
writes partial files when it is interrupted), so validation returns a typed
:class:`Rejection` instead of raising.
"""

from __future__ import annotations

import logging
import wave
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import ffmpeg

from .errors import CallArchiveError, UnreadableHeader

logger = logging.getLogger(__name__)

DEFAULT_MIN_DURATION = 3.5
NAME_DELIMITER = "_"


class RejectReason(str, Enum):
    """Why a capture could not become a call."""

    MISSING = "missing"
    MALFORMED_NAME = "malformed_name"
    UNREADABLE_HEADER = "unreadable_header"
    TOO_SHORT = "too_short"


@dataclass(frozen=True)
class Capture:
    """A capture that passed validation and may be archived."""

    path: Path
    freq: str
    time: int
    duration: float
    size: int

    @property
    def filename(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Rejection:
    path: Path
    reason: RejectReason
    detail: str = ""


def parse_capture_name(name: str) -> Optional[tuple[str, int]]:
    """Split ``<freq>_<epochSeconds>.<ext>`` into ``(freq, time)``.

    Returns ``None`` when the stem does not split into exactly two non-empty
    parts, or the timestamp is not an integer that maps to a calendar date.
    """
    stem = Path(name).stem
    parts = stem.split(NAME_DELIMITER)
    if len(parts) != 2:
        return None
    freq, raw_time = parts
    if not freq or not raw_time:
        return None
    try:
        time = int(raw_time)
        # The archive partition is derived from this date
        datetime.fromtimestamp(time, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return None
    return freq, time


def _wav_byte_rate(path: Path) -> int:
    try:
        with wave.open(str(path), "rb") as wav_file:
            return wav_file.getframerate() * wav_file.getsampwidth() * wav_file.getnchannels()
    except (wave.Error, EOFError) as exc:
        raise UnreadableHeader(f"{path.name}: {exc}") from exc


def _probe_byte_rate(path: Path) -> int:
    try:
        info = ffmpeg.probe(str(path))
    except FileNotFoundError as exc:
        # ffprobe itself is missing; not a property of the capture
        raise CallArchiveError("ffprobe executable not found") from exc
    except ffmpeg.Error as exc:
        error_details = exc.stderr.decode("utf8", "replace") if exc.stderr else "no stderr"
        raise UnreadableHeader(f"{path.name}: ffprobe failed: {error_details}") from exc
    bit_rate = (info.get("format") or {}).get("bit_rate")
    try:
        return int(bit_rate) // 8
    except (TypeError, ValueError) as exc:
        raise UnreadableHeader(f"{path.name}: no bit rate reported") from exc


def read_byte_rate(path: Path) -> int:
    """Return the audio byte rate (bytes per second) of ``path``.

    WAV headers are read with :mod:`wave`.  Other containers are probed with ffmpeg.

    Raises:
        UnreadableHeader: If no positive byte rate can be obtained.
    """
    if path.suffix.lower() == ".wav":
        byte_rate = _wav_byte_rate(path)
    else:
        byte_rate = _probe_byte_rate(path)
    if byte_rate <= 0:
        raise UnreadableHeader(f"{path.name}: byte rate {byte_rate}")
    return byte_rate


def validate_capture(path: Path, min_duration: float = DEFAULT_MIN_DURATION) -> Union[Capture, Rejection]:
    """Classify ``path`` as a valid :class:`Capture` or a :class:`Rejection`."""
    path = Path(path)
    parsed = parse_capture_name(path.name)
    if parsed is None:
        return Rejection(path, RejectReason.MALFORMED_NAME, f"expected <freq>{NAME_DELIMITER}<epochSeconds>.<ext>")
    freq, time = parsed

    if not path.is_file():
        return Rejection(path, RejectReason.MISSING)

    try:
        size = path.stat().st_size
        byte_rate = read_byte_rate(path)
    except FileNotFoundError:
        return Rejection(path, RejectReason.MISSING)
    except (UnreadableHeader, OSError) as exc:
        return Rejection(path, RejectReason.UNREADABLE_HEADER, str(exc))

    duration = size / byte_rate
    if duration < min_duration:
        return Rejection(path, RejectReason.TOO_SHORT, f"{duration:.2f}s < {min_duration}s")

    return Capture(path=path, freq=freq, time=time, duration=duration, size=size)
