"""
Content Bounds Module - Find the real subject inside a self-bordered photo
"""

import math
import cv2
import numpy as np
from typing import Optional, Tuple
from loguru import logger

from imgstamp.config import StampConfig
from imgstamp.modules.geometry import Rect

Box = Tuple[int, int, int, int]  # x0, y0, x1, y1 (exclusive)


def scan_content_bounds(
    buffer: bytes,
    width: int,
    height: int,
    channels: int,
    config: StampConfig,
) -> Optional[Box]:
    """
    Bounding box of pixels that differ from a light, uniform background

    Args:
        buffer: Row-major 8-bit pixel data, `channels` bytes per pixel
            (first three are R, G, B)
        width: Pixels per row
        height: Number of rows
        channels: Channel stride (3 or 4)
        config: Detector thresholds

    Returns:
        (x0, y0, x1, y1) in buffer pixels, or None when the corners are not
        a clean light background, nothing stands out, or the box is not
        meaningfully inset on any side
    """
    if width < 2 or height < 2 or channels < 3:
        return None

    pixels = np.frombuffer(buffer, dtype=np.uint8, count=width * height * channels)
    pixels = pixels.reshape(height, width, channels)[:, :, :3].astype(np.float32)

    # 1. Corner sampling
    corners = pixels[[0, 0, height - 1, height - 1], [0, width - 1, 0, width - 1]]
    background = corners.mean(axis=0)
    brightness = float(background.mean())
    variance = float(np.linalg.norm(corners[:, None, :] - corners[None, :, :], axis=2).max())

    if brightness < config.detect_brightness_floor or variance > config.detect_corner_variance:
        logger.debug(
            f"Bounds detection skipped: brightness={brightness:.1f}, corner variance={variance:.1f}"
        )
        return None

    # 2. Pixels that stand out from the background
    distance = np.linalg.norm(pixels - background, axis=2)
    mask = distance > config.detect_pixel_threshold

    rows = np.flatnonzero(mask.any(axis=1))
    cols = np.flatnonzero(mask.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        logger.debug("Bounds detection found no foreground pixels")
        return None

    x0, x1 = int(cols[0]), int(cols[-1]) + 1
    y0, y1 = int(rows[0]), int(rows[-1]) + 1

    # 3. Reject boxes that are not inset anywhere
    min_x = width * config.detect_min_inset_ratio
    min_y = height * config.detect_min_inset_ratio
    if x0 < min_x and (width - x1) < min_x and y0 < min_y and (height - y1) < min_y:
        logger.debug("Bounds detection rejected: no meaningful margin")
        return None

    return x0, y0, x1, y1


def detect_content_bounds(image: np.ndarray, config: StampConfig) -> Optional[Rect]:
    """
    Detect the subject rectangle of an already placed bitmap

    Best effort: any failure counts as "no detection".

    Args:
        image: Placed bitmap, RGB (H, W, 3)
        config: Detector thresholds

    Returns:
        Rect in the bitmap's own pixel coordinates, or None
    """
    try:
        h, w = image.shape[:2]
        scale = min(1.0, config.detect_max_edge / max(h, w))

        if scale < 1.0:
            sample_w = max(2, int(round(w * scale)))
            sample_h = max(2, int(round(h * scale)))
            sample = cv2.resize(image, (sample_w, sample_h), interpolation=cv2.INTER_AREA)
        else:
            sample = image
        sample = np.ascontiguousarray(sample, dtype=np.uint8)
        sample_h, sample_w = sample.shape[:2]
        channels = sample.shape[2] if sample.ndim == 3 else 1

        box = scan_content_bounds(sample.tobytes(), sample_w, sample_h, channels, config)
        if box is None:
            return None

        # Back to full resolution
        fx, fy = w / sample_w, h / sample_h
        x0 = max(0, int(math.floor(box[0] * fx)))
        y0 = max(0, int(math.floor(box[1] * fy)))
        x1 = min(w, int(math.ceil(box[2] * fx)))
        y1 = min(h, int(math.ceil(box[3] * fy)))

        bounds = Rect(x0, y0, x1 - x0, y1 - y0)
        logger.debug(f"Content bounds detected: {bounds} in {w}x{h}")
        return bounds

    except Exception as e:
        logger.debug(f"Bounds detection degraded: {e}")
        return None
