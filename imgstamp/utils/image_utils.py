"""
Image codec helpers - decode, inspect, resize and encode raster buffers
"""

import cv2
from io import BytesIO
import numpy as np
from pathlib import Path
from typing import Optional, Tuple, Union
from PIL import Image, UnidentifiedImageError

from imgstamp.utils.exceptions import DecodeError, EncodeError

ImageSource = Union[str, Path, bytes]

JPEG_EXTENSIONS = (".jpg", ".jpeg")
PNG_EXTENSIONS = (".png",)

# EXIF orientations that rotate the stored raster by 90 degrees
_TRANSPOSED_ORIENTATIONS = (5, 6, 7, 8)
_EXIF_ORIENTATION_TAG = 274


def describe_source(source: ImageSource) -> str:
    """Short human readable label for logs and error messages"""
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return str(source)


def _read_bytes(source: ImageSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    path = Path(source)
    try:
        return path.read_bytes()
    except OSError as e:
        raise DecodeError(str(path), f"Failed to read image {path}: {e}") from e


def load_image(source: ImageSource) -> np.ndarray:
    """
    Decode an image from a path or an in-memory buffer

    EXIF orientation is applied, so the returned array is upright.

    Args:
        source: File path or encoded bytes

    Returns:
        Image as numpy array in RGB format (H, W, 3), uint8

    Raises:
        DecodeError: If the data cannot be decoded
    """
    data = _read_bytes(source)
    buffer = np.frombuffer(data, dtype=np.uint8)

    img = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if img is None:
        raise DecodeError(describe_source(source))

    return cv2.cvtColor(img, cv2.COLOR_BGR2RGB)


def get_image_dimensions(source: ImageSource) -> Tuple[int, int]:
    """
    Get upright image dimensions without decoding the full raster

    Args:
        source: File path or encoded bytes

    Returns:
        (width, height), swapped when EXIF orientation rotates the image

    Raises:
        DecodeError: If the header cannot be read
    """
    try:
        if isinstance(source, (bytes, bytearray)):
            handle = Image.open(BytesIO(source))
        else:
            handle = Image.open(source)
        with handle as img:
            width, height = img.size
            orientation = img.getexif().get(_EXIF_ORIENTATION_TAG, 1)
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise DecodeError(describe_source(source), f"Failed to read image header: {e}") from e

    if orientation in _TRANSPOSED_ORIENTATIONS:
        return height, width
    return width, height


def image_kind(path: Union[str, Path]) -> Optional[str]:
    """
    Map a file name to its output format

    Returns:
        "jpeg", "png" or None for unsupported extensions
    """
    suffix = Path(path).suffix.lower()
    if suffix in JPEG_EXTENSIONS:
        return "jpeg"
    if suffix in PNG_EXTENSIONS:
        return "png"
    return None


def extension_for(output_format: str) -> str:
    """Canonical file extension for an output format"""
    return ".png" if output_format == "png" else ".jpg"


def resize_image(image: np.ndarray, target_size: Tuple[int, int]) -> np.ndarray:
    """
    Resize image to an exact size

    Args:
        image: Input image
        target_size: (width, height)

    Returns:
        Resized image
    """
    target_w, target_h = max(1, int(target_size[0])), max(1, int(target_size[1]))
    h, w = image.shape[:2]
    if (w, h) == (target_w, target_h):
        return image

    # Area averaging for shrinking, Lanczos for enlarging
    interpolation = cv2.INTER_AREA if target_w < w and target_h < h else cv2.INTER_LANCZOS4
    return cv2.resize(image, (target_w, target_h), interpolation=interpolation)


def fit_inside(image: np.ndarray, max_size: Tuple[int, int], allow_upscale: bool = True) -> np.ndarray:
    """
    Resize image to fit inside a box keeping its aspect ratio

    Args:
        image: Input image
        max_size: (width, height) of the box
        allow_upscale: Enlarge images smaller than the box

    Returns:
        Resized image
    """
    h, w = image.shape[:2]
    box_w, box_h = max_size
    scale = min(box_w / w, box_h / h)
    if not allow_upscale:
        scale = min(scale, 1.0)

    new_w = max(1, int(round(w * scale)))
    new_h = max(1, int(round(h * scale)))
    return resize_image(image, (new_w, new_h))


def encode_image(image: np.ndarray, output_format: str = "jpeg", quality: int = 92) -> bytes:
    """
    Encode an RGB image to bytes

    Args:
        image: Image as numpy array (RGB format)
        output_format: "jpeg" or "png"
        quality: JPEG quality (1-100), ignored for PNG

    Returns:
        Encoded bytes

    Raises:
        EncodeError: If the format is unsupported or encoding fails
    """
    if output_format == "jpeg":
        ext = ".jpg"
        params = [cv2.IMWRITE_JPEG_QUALITY, int(max(1, min(100, quality)))]
    elif output_format == "png":
        ext = ".png"
        params = [cv2.IMWRITE_PNG_COMPRESSION, 6]
    else:
        raise EncodeError(output_format, f"Unsupported output format: {output_format}")

    try:
        img_bgr = cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_RGB2BGR)
        ok, encoded = cv2.imencode(ext, img_bgr, params)
    except cv2.error as e:
        raise EncodeError(output_format, f"Failed to encode image as {output_format}: {e}") from e

    if not ok:
        raise EncodeError(output_format)

    return encoded.tobytes()


def save_image(data: bytes, output_path: Union[str, Path]) -> None:
    """
    Write encoded image bytes to file

    Args:
        data: Encoded image
        output_path: Output file path
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
