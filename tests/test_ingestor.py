import pytest
from PIL import Image

from imgstamp.modules.ingestor import Ingestor, parse_exif_date
from imgstamp.utils.exceptions import DecodeError
from tests.conftest import decode


@pytest.fixture
def ingestor(photo_dir):
    return Ingestor(photo_dir)


def test_scan_lists_supported_images_recursively(ingestor, photo_dir):
    (photo_dir / "notes.txt").write_text("not a photo")
    Image.new("RGB", (8, 8)).save(photo_dir / "trip" / "UPPER.JPG")

    paths = [entry.relative_path for entry in ingestor.scan()]

    assert paths == sorted(paths)
    assert set(paths) == {"broken.jpg", "landscape.jpg", "trip/UPPER.JPG", "trip/portrait.png"}
    assert {entry.filename for entry in ingestor.scan()} >= {"portrait.png", "UPPER.JPG"}


def test_scan_missing_directory(tmp_path):
    assert Ingestor(tmp_path / "nope").scan() == []


def test_image_metadata(ingestor):
    meta = ingestor.image_metadata("trip/portrait.png")

    assert (meta["width"], meta["height"]) == (200, 300)
    assert meta["aspect_ratio"] == pytest.approx(1.5)
    assert meta["capture_date"] is None


def test_image_metadata_unreadable(ingestor):
    with pytest.raises(DecodeError):
        ingestor.image_metadata("broken.jpg")


def test_read_capture_date(photo_dir, ingestor):
    exif = Image.Exif()
    exif[306] = "2023:08:15 10:00:00"
    Image.new("RGB", (16, 16), (10, 20, 30)).save(photo_dir / "dated.jpg", exif=exif)

    assert ingestor.read_capture_date("dated.jpg") == "2023-08-15"
    assert ingestor.read_capture_date("landscape.jpg") is None
    assert ingestor.read_capture_date("broken.jpg") is None
    assert ingestor.read_capture_date("missing.jpg") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2023:08:15 10:00:00", "2023-08-15"),
        (b"2023:08:15 10:00:00\x00", "2023-08-15"),
        ("2023:08:15", "2023-08-15"),
        ("2023-08-15 10:00:00", "2023-08-15"),
        ("0000:00:00 00:00:00", None),
        ("    ", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_exif_date(raw, expected):
    assert parse_exif_date(raw) == expected


def test_thumbnail_fits_box(ingestor):
    thumb = decode(ingestor.thumbnail("landscape.jpg", 100))
    assert thumb.shape == (67, 100, 3)


def test_thumbnail_never_enlarges(ingestor):
    thumb = decode(ingestor.thumbnail("trip/portrait.png", 1000))
    assert thumb.shape == (300, 200, 3)


def test_thumbnail_of_broken_file(ingestor):
    with pytest.raises(DecodeError):
        ingestor.thumbnail("broken.jpg")
