"""
Utility Functions
"""

from .exceptions import DecodeError, EncodeError, StampError, UnknownTargetSizeError
from .image_utils import (
    load_image,
    save_image,
    resize_image,
    fit_inside,
    encode_image,
    get_image_dimensions,
    image_kind,
)

__all__ = [
    "DecodeError",
    "EncodeError",
    "StampError",
    "UnknownTargetSizeError",
    "load_image",
    "save_image",
    "resize_image",
    "fit_inside",
    "encode_image",
    "get_image_dimensions",
    "image_kind",
]
