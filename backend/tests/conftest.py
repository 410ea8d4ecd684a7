import struct
from pathlib import Path

import pytest

from callarchive.db.database import make_engine
from callarchive.services.call_index import CallIndex
from callarchive.services.pipeline import IngestionPipeline

WAV_HEADER_SIZE = 44


def write_wav(path: Path, byte_rate: int = 32000, size: int = 160000) -> Path:
    """Write a PCM WAV file of exactly ``size`` bytes advertising ``byte_rate``."""
    data_size = size - WAV_HEADER_SIZE
    header = b"".join([
        struct.pack("<4sI4s", b"RIFF", size - 8, b"WAVE"),
        struct.pack("<4sIHHIIHH", b"fmt ", 16, 1, 1, byte_rate // 2, byte_rate, 2, 16),
        struct.pack("<4sI", b"data", data_size),
    ])
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(header + b"\x00" * data_size)
    return path


@pytest.fixture
def make_wav():
    return write_wav


@pytest.fixture
def watch_dir(tmp_path: Path) -> Path:
    path = tmp_path / "incoming"
    path.mkdir()
    return path


@pytest.fixture
def archive_dir(tmp_path: Path) -> Path:
    path = tmp_path / "archive"
    path.mkdir()
    return path


@pytest.fixture
def index(tmp_path: Path):
    engine = make_engine(f"sqlite:///{tmp_path / 'index.sqlite'}")
    call_index = CallIndex(engine)
    call_index.create_schema()
    yield call_index
    engine.dispose()


@pytest.fixture
def pipeline(index: CallIndex, archive_dir: Path) -> IngestionPipeline:
    return IngestionPipeline(index, archive_dir, min_duration=3.5)
