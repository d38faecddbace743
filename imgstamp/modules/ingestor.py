"""
Ingestor Module - Discover photos, read capture dates, build thumbnails
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional
from loguru import logger
from PIL import Image, UnidentifiedImageError

from imgstamp.config import settings
from imgstamp.utils.image_utils import (
    JPEG_EXTENSIONS,
    PNG_EXTENSIONS,
    encode_image,
    fit_inside,
    get_image_dimensions,
    load_image,
)

ALLOWED_EXTENSIONS = JPEG_EXTENSIONS + PNG_EXTENSIONS

_EXIF_IFD = 0x8769
_DATE_TIME_ORIGINAL = 36867
_DATE_TIME_DIGITIZED = 36868
_DATE_TIME = 306


@dataclass(frozen=True)
class ScannedImage:
    relative_path: str
    filename: str


class Ingestor:
    """
    Finds photos under a base directory and reads what the caption editor needs
    """

    def __init__(self, base_dir: Path):
        """
        Initialize Ingestor

        Args:
            base_dir: Root of the photo folder
        """
        self.base_dir = Path(base_dir)
        logger.info(f"Ingestor initialized with source: {self.base_dir}")

    def resolve(self, relative_path: str) -> Path:
        return self.base_dir / relative_path

    def scan(self) -> List[ScannedImage]:
        """
        Discover every JPEG/PNG below the base directory

        Returns:
            Images sorted by relative path
        """
        if not self.base_dir.is_dir():
            logger.error(f"Source directory does not exist: {self.base_dir}")
            return []

        results = [
            ScannedImage(relative_path=path.relative_to(self.base_dir).as_posix(), filename=path.name)
            for path in self.base_dir.rglob("*")
            if path.is_file() and path.suffix.lower() in ALLOWED_EXTENSIONS
        ]
        results.sort(key=lambda r: r.relative_path)

        logger.info(f"Discovered {len(results)} image files")
        return results

    def image_metadata(self, relative_path: str) -> Dict:
        """
        Get metadata for an image without decoding it

        Raises:
            DecodeError: If the header cannot be read
        """
        path = self.resolve(relative_path)
        width, height = get_image_dimensions(path)
        return {
            "relative_path": relative_path,
            "filename": path.name,
            "width": width,
            "height": height,
            "aspect_ratio": height / width if width else 0.0,
            "capture_date": self.read_capture_date(relative_path),
        }

    def read_capture_date(self, relative_path: str) -> Optional[str]:
        """
        Read the EXIF capture date

        Returns:
            "YYYY-MM-DD", or None when the file has no usable date
        """
        path = self.resolve(relative_path)
        try:
            with Image.open(path) as img:
                exif = img.getexif()
                exif_ifd = exif.get_ifd(_EXIF_IFD)
                raw = (
                    exif_ifd.get(_DATE_TIME_ORIGINAL)
                    or exif_ifd.get(_DATE_TIME_DIGITIZED)
                    or exif.get(_DATE_TIME)
                )
        except (OSError, UnidentifiedImageError) as e:
            logger.warning(f"Failed to read EXIF from {path.name}: {e}")
            return None

        return parse_exif_date(raw)

    def thumbnail(self, relative_path: str, size: int = None) -> bytes:
        """
        JPEG thumbnail that fits inside size x size, never enlarged

        Raises:
            DecodeError: If the photo cannot be decoded
        """
        size = size if size and size > 0 else settings.THUMBNAIL_SIZE
        image = load_image(self.resolve(relative_path))
        thumb = fit_inside(image, (size, size), allow_upscale=False)
        return encode_image(thumb, "jpeg", settings.THUMBNAIL_QUALITY)


def parse_exif_date(raw) -> Optional[str]:
    """Normalize an EXIF date/time value (YYYY:MM:DD HH:MM:SS) to YYYY-MM-DD"""
    if not raw:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="ignore")

    text = str(raw).strip().strip("\x00")
    for fmt in ("%Y:%m:%d %H:%M:%S", "%Y:%m:%d", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
        try:
            return datetime.strptime(text[:19] if " " in fmt else text[:10], fmt).strftime("%Y-%m-%d")
        except ValueError:
            continue
    return None
