from pathlib import Path
from unittest.mock import patch

import pytest

from callarchive.services.archive_placer import archive_subdir, place_capture
from callarchive.services.capture_validator import Capture
from callarchive.services.errors import PlacementFailure


def _capture(path: Path, time: int = 1700000000) -> Capture:
    return Capture(path=path, freq="146550000", time=time, duration=5.0, size=160000)


@pytest.mark.parametrize(
    "epoch, expected",
    [
        (1700000000, "2023/11/14"),
        (0, "1970/01/01"),
        # 23:59:59 UTC must not roll into the next day
        (1704067199, "2023/12/31"),
        (1704067200, "2024/01/01"),
    ],
)
def test_archive_subdir_is_utc(epoch, expected):
    assert archive_subdir(epoch) == expected


def test_place_moves_capture(watch_dir: Path, archive_dir: Path, make_wav):
    source = make_wav(watch_dir / "146550000_1700000000.wav")

    relative_path = place_capture(_capture(source), archive_dir)

    assert relative_path == "2023/11/14/146550000_1700000000.wav"
    assert not source.exists()
    assert (archive_dir / relative_path).is_file()
    assert (archive_dir / relative_path).stat().st_size == 160000


def test_place_is_noop_when_already_archived(archive_dir: Path, make_wav):
    archived = make_wav(archive_dir / "2023" / "11" / "14" / "146550000_1700000000.wav")

    with patch("callarchive.services.archive_placer.shutil.move") as mock_move:
        relative_path = place_capture(_capture(archived), archive_dir)

    mock_move.assert_not_called()
    assert relative_path == "2023/11/14/146550000_1700000000.wav"
    assert archived.is_file()


def test_existing_partition_is_reused(watch_dir: Path, archive_dir: Path, make_wav):
    (archive_dir / "2023" / "11" / "14").mkdir(parents=True)
    source = make_wav(watch_dir / "146550000_1700000000.wav")

    place_capture(_capture(source), archive_dir)

    assert (archive_dir / "2023" / "11" / "14" / "146550000_1700000000.wav").is_file()


def test_move_failure_leaves_capture(watch_dir: Path, archive_dir: Path, make_wav):
    source = make_wav(watch_dir / "146550000_1700000000.wav")

    with patch("callarchive.services.archive_placer.shutil.move", side_effect=OSError("Invalid cross-device link")):
        with pytest.raises(PlacementFailure):
            place_capture(_capture(source), archive_dir)

    assert source.is_file()


def test_unusable_archive_root(tmp_path: Path, watch_dir: Path, make_wav):
    archive_root = tmp_path / "not-a-dir"
    archive_root.write_text("occupied")
    source = make_wav(watch_dir / "146550000_1700000000.wav")

    with pytest.raises(PlacementFailure):
        place_capture(_capture(source), archive_root)

    assert source.is_file()


def test_timestamp_without_date_is_placement_failure(watch_dir: Path, archive_dir: Path, make_wav):
    source = make_wav(watch_dir / "146550000_1700000000.wav")

    with pytest.raises(PlacementFailure):
        place_capture(_capture(source, time=99999999999999), archive_dir)

    assert source.is_file()
