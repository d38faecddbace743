"""
imgstamp Modules
"""

from .layout import LayoutEngine
from .renderer import Renderer, RenderOptions, TextRasterizer
from .exporter import Exporter, ExportItem, ExportResult, ExportState
from .ingestor import Ingestor
from .typography import CaptionMetadata

__all__ = [
    "LayoutEngine",
    "Renderer",
    "RenderOptions",
    "TextRasterizer",
    "Exporter",
    "ExportItem",
    "ExportResult",
    "ExportState",
    "Ingestor",
    "CaptionMetadata",
]
