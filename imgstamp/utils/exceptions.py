"""
Custom exceptions for imgstamp
"""

from typing import Optional


class StampError(Exception):
    """Base class for every error raised by the stamping engine"""


class DecodeError(StampError):
    """
    Raised when a source photo cannot be decoded or its header cannot be read.

    Fatal to the single render that hit it. The export pipeline counts it
    as a failed item and moves on.
    """

    def __init__(self, source: str, message: str = None):
        self.source = source
        self.message = message or f"Failed to decode image: {source}"
        super().__init__(self.message)


class EncodeError(StampError):
    """Raised when the composited canvas cannot be encoded to the requested format"""

    def __init__(self, output_format: str, message: Optional[str] = None):
        self.output_format = output_format
        self.message = message or f"Failed to encode image as {output_format}"
        super().__init__(self.message)


class UnknownTargetSizeError(StampError, ValueError):
    """Raised when a target size id is not one of the configured presets"""

    def __init__(self, target_size_id: str, available: list = None):
        self.target_size_id = target_size_id
        self.available = list(available or [])
        self.message = (
            f"Unknown target size '{target_size_id}' "
            f"(available: {', '.join(self.available) or 'none'})"
        )
        super().__init__(self.message)
