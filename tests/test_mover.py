import os
import threading

import pytest

from plot_mover.errors import CopyCancelled, CopyError, VerificationMismatchError
from plot_mover.mover import (
    TransferOutcome,
    copy_file_chunked,
    generate_temp_filename,
    transfer_plot,
    verify_copy,
)

from conftest import fixed_space


class TripAfter(threading.Event):
    """Stop event that reports set after a number of checks."""

    def __init__(self, checks):
        super().__init__()
        self.remaining = checks

    def is_set(self):
        self.remaining -= 1
        return self.remaining < 0 or super().is_set()


def reserve(registry, source):
    return registry.reserve(str(source), source.name, source.stat().st_size, fixed_space({}))


def leftover_files(directory):
    return sorted(os.listdir(directory))


def test_generate_temp_filename_is_hidden_sibling():
    temp = generate_temp_filename("/mnt/hdd1/a.plot")
    assert os.path.dirname(temp) == "/mnt/hdd1"
    assert os.path.basename(temp).startswith(".a.plot.plotmv-")
    assert len(os.path.basename(temp)) == len(".a.plot.plotmv-") + 6


def test_copy_file_chunked_copies_all_chunks(tmp_path, make_plot):
    src = make_plot(tmp_path, size=1000)
    dest = tmp_path / "copy.plot"

    copy_file_chunked(str(src), str(dest), threading.Event(), chunk_size=64)

    assert dest.read_bytes() == src.read_bytes()


def test_copy_file_chunked_stops_between_chunks(tmp_path, make_plot):
    src = make_plot(tmp_path, size=1000)
    dest = tmp_path / "copy.plot"

    with pytest.raises(CopyCancelled):
        copy_file_chunked(str(src), str(dest), TripAfter(3), chunk_size=64)

    assert dest.stat().st_size == 3 * 64


def test_copy_file_chunked_rejects_non_regular_source(tmp_path):
    with pytest.raises(CopyError):
        copy_file_chunked(str(tmp_path), str(tmp_path / "out"), None)


def test_copy_file_chunked_wraps_os_errors(tmp_path, make_plot):
    src = make_plot(tmp_path)
    with pytest.raises(CopyError):
        copy_file_chunked(str(src), str(tmp_path / "missing" / "out.plot"), None)


def test_verify_copy_detects_difference(tmp_path, make_plot):
    src = make_plot(tmp_path, size=128)
    same = tmp_path / "same"
    same.write_bytes(src.read_bytes())
    other = tmp_path / "other"
    other.write_bytes(b"x" * 128)

    verify_copy(str(src), str(same))
    with pytest.raises(VerificationMismatchError):
        verify_copy(str(src), str(other))
    with pytest.raises(VerificationMismatchError):
        verify_copy(str(src), str(tmp_path / "absent"))


def test_transfer_moves_plot_and_releases(staging, volumes, registry, make_plot):
    src = make_plot(staging, size=10_000)
    original = src.read_bytes()
    reservation = reserve(registry, src)

    outcome, moved, _ = transfer_plot(reservation, threading.Event(), chunk_size=256)

    dest = volumes[0] / src.name
    assert outcome is TransferOutcome.MOVED
    assert moved == len(original)
    assert not src.exists()
    assert dest.read_bytes() == original
    assert leftover_files(volumes[0]) == [src.name]
    assert registry.volumes.busy_count() == 0
    assert not registry.is_in_flight(src.name)


def test_transfer_keeps_source_mode(staging, volumes, registry, make_plot):
    src = make_plot(staging)
    os.chmod(src, 0o640)

    transfer_plot(reserve(registry, src), threading.Event())

    assert (os.stat(volumes[0] / src.name).st_mode & 0o777) == 0o640


def test_copy_failure_removes_partial_and_keeps_source(staging, volumes, registry, make_plot):
    src = make_plot(staging)
    original = src.read_bytes()

    def failing_copy(source, dest, stop_event, chunk_size):
        with open(dest, "wb") as fh:
            fh.write(b"partial")
        raise CopyError("No space left on device")

    outcome, moved, _ = transfer_plot(reserve(registry, src), threading.Event(), copy_func=failing_copy)

    assert outcome is TransferOutcome.COPY_FAILED
    assert moved == 0
    assert src.read_bytes() == original
    assert leftover_files(volumes[0]) == []
    assert registry.volumes.busy_count() == 0
    assert not registry.is_in_flight(src.name)


def test_mismatch_removes_copy_and_keeps_source(staging, volumes, registry, make_plot):
    src = make_plot(staging)

    def mismatch(source, dest):
        raise VerificationMismatchError(source, dest)

    outcome, _, _ = transfer_plot(reserve(registry, src), threading.Event(), compare_func=mismatch)

    assert outcome is TransferOutcome.MISMATCH
    assert src.exists()
    assert leftover_files(volumes[0]) == []
    assert registry.volumes.busy_count() == 0


def test_corrupted_copy_is_detected(staging, volumes, registry, make_plot):
    src = make_plot(staging, size=512)

    def corrupting_copy(source, dest, stop_event, chunk_size):
        copy_file_chunked(source, dest, stop_event, chunk_size)
        with open(dest, "r+b") as fh:
            fh.write(b"\xff")

    outcome, _, _ = transfer_plot(reserve(registry, src), threading.Event(), copy_func=corrupting_copy)

    assert outcome is TransferOutcome.MISMATCH
    assert src.exists()
    assert leftover_files(volumes[0]) == []


def test_cancelled_copy_cleans_up(staging, volumes, registry, make_plot):
    src = make_plot(staging, size=4096)

    outcome, _, _ = transfer_plot(reserve(registry, src), TripAfter(2), chunk_size=128)

    assert outcome is TransferOutcome.CANCELLED
    assert src.exists()
    assert leftover_files(volumes[0]) == []
    assert registry.volumes.busy_count() == 0
    assert not registry.is_in_flight(src.name)


def test_failed_source_removal_rolls_back_destination(staging, volumes, registry, make_plot, monkeypatch):
    src = make_plot(staging)
    real_remove = os.remove

    def remove(path):
        if path == str(src):
            raise PermissionError("read-only staging")
        real_remove(path)

    monkeypatch.setattr(os, "remove", remove)
    outcome, _, _ = transfer_plot(reserve(registry, src), threading.Event())

    assert outcome is TransferOutcome.COPY_FAILED
    assert src.exists()
    assert leftover_files(volumes[0]) == []
    assert registry.volumes.busy_count() == 0


def test_successful_move_is_logged_with_paths(staging, volumes, registry, make_plot, caplog):
    src = make_plot(staging)

    transfer_plot(reserve(registry, src), threading.Event())

    records = [r for r in caplog.records if getattr(r, "plot_transfer", False)]
    assert len(records) == 1
    assert records[0].src == str(src)
    assert records[0].dest == str(volumes[0] / src.name)
