"""Filesystem helpers shared by ingestion and the query surface."""

from pathlib import Path
from typing import Iterator, Optional


def ensure_dir_exists(path: Path) -> Path:
    """Ensure that the given directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def resolve_under(root: Path, relative_path: str) -> Optional[Path]:
    """Resolve ``relative_path`` inside ``root``.

    Returns ``None`` when the result would escape ``root`` (absolute paths,
    ``..`` segments, symlinks pointing elsewhere).
    """
    if not relative_path or relative_path.startswith(("/", "\\")):
        return None
    base = root.resolve()
    candidate = (base / relative_path).resolve()
    try:
        candidate.relative_to(base)
    except ValueError:
        return None
    if candidate == base:
        return None
    return candidate


def iter_visible_files(root: Path, recursive: bool = False) -> Iterator[Path]:
    """Yield regular, non-hidden files under ``root``.

    Hidden directories are skipped when walking recursively.
    """
    if not root.is_dir():
        return
    for entry in sorted(root.iterdir()):
        if is_hidden(entry):
            continue
        if entry.is_dir():
            if recursive:
                yield from iter_visible_files(entry, recursive=True)
        elif entry.is_file():
            yield entry
