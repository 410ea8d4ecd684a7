from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from callarchive.services.call_index import CallIndex
from callarchive.services.calls import CallService
from callarchive.services.capacity import CapacityCache
from callarchive.services.pipeline import IngestionPipeline

T1, T2, T3 = 1700000000, 1700000600, 1700086400


@pytest.fixture
def capacity():
    mock_capacity = MagicMock(spec=CapacityCache)
    mock_capacity.get.return_value = 5_000_000_000
    return mock_capacity


@pytest.fixture
def service(index: CallIndex, archive_dir: Path, capacity) -> CallService:
    return CallService(index, archive_dir, capacity)


@pytest.fixture
def archived(pipeline: IngestionPipeline, watch_dir: Path, make_wav):
    """Three archived calls keyed by time."""
    paths = {}
    for freq, t, size in (("146550000", T1, 160000), ("460125000", T2, 192000), ("146550000", T3, 224000)):
        paths[t] = pipeline.process(make_wav(watch_dir / f"{freq}_{t}.wav", size=size))
    return paths


def test_list_calls(service: CallService, archived, capacity):
    listing = service.list_calls(after_time=T1 - 1, before_time=T3)

    assert [c.time for c in listing.calls] == [T1, T2]
    assert listing.total_archive_size == 160000 + 192000 + 224000
    assert listing.free_space == 5_000_000_000
    capacity.get.assert_called_once()


def test_list_calls_by_freq(service: CallService, archived):
    listing = service.list_calls(freq="146550000")

    assert [c.time for c in listing.calls] == [T1, T3]
    # aggregate size ignores the filter
    assert listing.total_archive_size == 576000


def test_delete_calls(service: CallService, archived, archive_dir: Path, capacity):
    target = archived[T2]

    report = service.delete_calls({target})

    assert report.deleted == [target]
    assert report.missing == [] and report.failed == []
    assert not (archive_dir / target).exists()
    assert service.index.find_id_by_path(target) is None
    assert len(service.index.query()) == 2
    capacity.invalidate.assert_called_once()


def test_unindexed_path_is_not_deleted(service: CallService, archive_dir: Path, make_wav, capacity):
    stray = make_wav(archive_dir / "2023" / "11" / "14" / "146550000_1700000000.wav")

    report = service.delete_calls(["2023/11/14/146550000_1700000000.wav"])

    assert report.missing == ["2023/11/14/146550000_1700000000.wav"]
    assert report.deleted == []
    assert stray.is_file()
    capacity.invalidate.assert_not_called()


def test_file_delete_failure_keeps_row(service: CallService, archived, archive_dir: Path):
    target = archived[T1]

    with patch.object(Path, "unlink", side_effect=PermissionError("read-only filesystem")):
        report = service.delete_calls([target])

    assert report.failed == [target]
    assert (archive_dir / target).is_file()
    assert service.index.find_id_by_path(target) is not None


def test_already_missing_file_drops_row(service: CallService, archived, archive_dir: Path):
    target = archived[T1]
    (archive_dir / target).unlink()

    report = service.delete_calls([target])

    assert report.deleted == [target]
    assert service.index.find_id_by_path(target) is None


def test_path_outside_archive_is_refused(service: CallService, index: CallIndex, tmp_path: Path):
    outside = tmp_path / "precious.wav"
    outside.write_bytes(b"keep me")
    index.upsert("146550000", T1, 5.0, 7, "../precious.wav")

    report = service.delete_calls(["../precious.wav"])

    assert report.failed == ["../precious.wav"]
    assert outside.is_file()


def test_duplicate_paths_are_handled_once(service: CallService, archived):
    target = archived[T1]

    report = service.delete_calls([target, target])

    assert report.deleted == [target]
    assert report.missing == []


def test_delete_before(service: CallService, archived, archive_dir: Path):
    report = service.delete_before(T3)

    assert sorted(report.deleted) == sorted([archived[T1], archived[T2]])
    remaining = service.index.query()
    assert [c.time for c in remaining] == [T3]
    assert all(c.time >= T3 for c in remaining)
    assert not (archive_dir / archived[T1]).exists()
    assert (archive_dir / archived[T3]).is_file()


def test_delete_before_with_nothing_to_delete(service: CallService, archived, capacity):
    report = service.delete_before(T1)

    assert report.deleted == []
    assert len(service.index.query()) == 3
    capacity.invalidate.assert_not_called()
