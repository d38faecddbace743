from pathlib import Path

import pytest

from imgstamp.modules.exporter import Exporter, ExportItem, ExportState
from imgstamp.modules.typography import CaptionMetadata
from imgstamp.utils.exceptions import DecodeError, UnknownTargetSizeError
from tests.conftest import decode


def _items():
    return [
        ExportItem("landscape.jpg", "landscape_s", CaptionMetadata(date="2024-05-01", location="Paris")),
        ExportItem("trip/portrait.png", "portrait_s", CaptionMetadata(description="海边")),
        ExportItem("broken.jpg", "broken_s", CaptionMetadata()),
    ]


@pytest.fixture
def exporter(renderer):
    return Exporter(renderer, max_workers=1, dir_prefix="stamped")


def test_batch_counts_and_progress(exporter, photo_dir, tmp_path):
    events = []

    result = exporter.export_batch(
        _items(), "6", tmp_path / "out", photo_dir,
        on_progress=lambda current, total, name: events.append((current, total, name)),
    )

    assert (result.exported_count, result.failed_count, result.total_count) == (2, 1, 3)
    assert events == [(1, 3, "landscape.jpg"), (2, 3, "portrait.png"), (3, 3, "broken.jpg")]
    assert result.output_dir == tmp_path / "out" / "stamped_6"


def test_outputs_keep_sub_directory_and_kind(exporter, photo_dir, tmp_path):
    result = exporter.export_batch(_items(), "6", tmp_path / "out", photo_dir)

    landscape = result.output_dir / "landscape_s.jpg"
    portrait = result.output_dir / "trip" / "portrait_s.png"
    assert decode(landscape.read_bytes()).shape == (1200, 1800, 3)
    assert portrait.read_bytes()[:4] == b"\x89PNG"
    assert decode(portrait.read_bytes()).shape == (1800, 1200, 3)
    assert not list(result.output_dir.glob("broken_s*"))


def test_output_dir_never_reused(exporter, photo_dir, tmp_path):
    first = exporter.export_batch(_items()[:1], "6L", tmp_path / "out", photo_dir)
    second = exporter.export_batch(_items()[:1], "6L", tmp_path / "out", photo_dir)
    third = exporter.export_batch(_items()[:1], "6L", tmp_path / "out", photo_dir)

    assert [r.output_dir.name for r in (first, second, third)] == ["stamped_6L", "stamped_6L_2", "stamped_6L_3"]


def test_empty_batch_still_creates_directory(exporter, photo_dir, tmp_path):
    result = exporter.export_batch([], "5", tmp_path / "out", photo_dir)

    assert (result.exported_count, result.failed_count, result.total_count) == (0, 0, 0)
    assert result.output_dir.is_dir()


def test_state_transitions(exporter, photo_dir, tmp_path):
    seen = []
    assert exporter.state == ExportState.IDLE

    exporter.export_batch(
        _items()[:1], "6", tmp_path / "out", photo_dir,
        on_progress=lambda *args: seen.append(exporter.state),
    )

    assert seen == [ExportState.RUNNING]
    assert exporter.state == ExportState.COMPLETED


def test_unknown_target_size_fails_before_running(exporter, photo_dir, tmp_path):
    with pytest.raises(UnknownTargetSizeError):
        exporter.export_batch(_items(), "A4", tmp_path / "out", photo_dir)

    assert exporter.state == ExportState.IDLE
    assert not (tmp_path / "out").exists()


def test_failing_progress_callback_does_not_fail_items(exporter, photo_dir, tmp_path):
    def explode(current, total, name):
        raise RuntimeError("listener gone")

    result = exporter.export_batch(_items(), "6", tmp_path / "out", photo_dir, on_progress=explode)

    assert (result.exported_count, result.failed_count) == (2, 1)


def test_thread_pool_keeps_order(renderer, photo_dir, tmp_path):
    exporter = Exporter(renderer, max_workers=2, dir_prefix="stamped")
    events = []

    result = exporter.export_batch(
        _items(), "6", tmp_path / "out", photo_dir,
        on_progress=lambda current, total, name: events.append((current, name)),
    )

    assert (result.exported_count, result.failed_count, result.total_count) == (2, 1, 3)
    assert events == [(1, "landscape.jpg"), (2, "portrait.png"), (3, "broken.jpg")]


class TestOutputPath:
    def test_forces_extension_to_source_kind(self, exporter, tmp_path):
        item = ExportItem("a/b/photo.JPEG", "out", CaptionMetadata())
        assert exporter.output_path_for(item, tmp_path) == (tmp_path / "a" / "b" / "out.jpg", "jpeg")

        item = ExportItem("scan.PNG", "final.jpg", CaptionMetadata())
        assert exporter.output_path_for(item, tmp_path) == (tmp_path / "final.jpg.png", "png")

    def test_blank_stem_falls_back_to_source_name(self, exporter, tmp_path):
        path, _ = exporter.output_path_for(ExportItem("x/photo.jpg", "  ", CaptionMetadata()), tmp_path)
        assert path == tmp_path / "x" / "photo.jpg"

    def test_stays_inside_output_dir(self, exporter, tmp_path):
        item = ExportItem("../outside/photo.png", "../../evil", CaptionMetadata())
        path, _ = exporter.output_path_for(item, tmp_path)
        assert path == tmp_path / "evil.png"
        assert Path(path).parent == tmp_path

    def test_unsupported_extension(self, exporter, tmp_path):
        with pytest.raises(DecodeError):
            exporter.output_path_for(ExportItem("anim.gif", "anim", CaptionMetadata()), tmp_path)


def test_duplicate_output_names_get_suffixes(exporter, photo_dir, tmp_path):
    items = [
        ExportItem("landscape.jpg", "print", CaptionMetadata()),
        ExportItem("landscape.jpg", "print", CaptionMetadata(date="2024-05-01")),
        ExportItem("landscape.jpg", "PRINT", CaptionMetadata()),
        ExportItem("trip/portrait.png", "print", CaptionMetadata()),
    ]

    result = exporter.export_batch(items, "6", tmp_path / "out", photo_dir)
    out = result.output_dir

    assert result.exported_count == 4
    assert sorted(p.relative_to(out).as_posix() for p in out.rglob("*.*")) == [
        "PRINT_3.jpg", "print.jpg", "print_2.jpg", "trip/print.png",
    ]


def test_assign_output_paths_keeps_errors_in_place(exporter, tmp_path):
    items = [
        ExportItem("a.jpg", "same", CaptionMetadata()),
        ExportItem("clip.gif", "same", CaptionMetadata()),
        ExportItem("b.jpeg", "same", CaptionMetadata()),
    ]

    first, second, third = exporter.assign_output_paths(items, tmp_path)

    assert first == (tmp_path / "same.jpg", "jpeg")
    assert isinstance(second, DecodeError)
    assert third == (tmp_path / "same_2.jpg", "jpeg")
