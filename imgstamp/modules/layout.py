"""
Layout Engine - Resolve canvas size, caption band and photo placement
"""

from typing import Optional, Tuple
from loguru import logger

from imgstamp.config import StampConfig, settings
from imgstamp.modules.geometry import (
    BOTTOM,
    RIGHT,
    Canvas,
    Layout,
    Placement,
    Rect,
    SourceInfo,
)
from imgstamp.modules.typography import TypographyMetrics, compute_metrics


class LayoutEngine:
    """
    Decides canvas dimensions, caption mode and where the photo goes.

    Pure functions of their inputs; holds nothing but the configuration.
    """

    def __init__(self, config: StampConfig = None):
        """
        Initialize Layout Engine

        Args:
            config: Engine configuration (default: built from settings)
        """
        self.config = config or settings.stamp_config()

    def resolve_canvas(
        self,
        target_size_id: str,
        source: Optional[SourceInfo] = None,
        scale: float = 1.0,
    ) -> Canvas:
        """
        Resolve canvas size for a target preset

        Args:
            target_size_id: Preset id
            source: Source dimensions; portrait sources swap width/height
            scale: Resolution factor (< 1 for previews)

        Returns:
            Canvas
        """
        target = self.config.target_size(target_size_id)
        width = max(1, int(round(target.width * scale)))
        height = max(1, int(round(target.height * scale)))

        if source is not None and source.is_portrait:
            width, height = height, width

        return Canvas(width=width, height=height)

    def select_mode(self, source: Optional[SourceInfo], include_text: bool) -> str:
        """
        Select caption mode

        Returns:
            RIGHT only for captioned extreme portraits, BOTTOM otherwise
        """
        if include_text and source is not None and source.aspect >= self.config.right_mode_aspect:
            return RIGHT
        return BOTTOM

    def resolve_layout(
        self,
        canvas: Canvas,
        source: Optional[SourceInfo] = None,
        include_text: bool = True,
    ) -> Tuple[Layout, TypographyMetrics]:
        """
        Split the canvas into image area and caption band

        Args:
            canvas: Resolved canvas
            source: Source dimensions (None degrades to bottom mode)
            include_text: Reserve a caption band

        Returns:
            (layout, typography metrics)
        """
        metrics = compute_metrics(canvas, self.config)
        mode = self.select_mode(source, include_text)
        w, h = canvas.width, canvas.height

        if not include_text:
            layout = Layout(
                mode=BOTTOM,
                canvas=canvas,
                image_area=Rect(0, 0, w, h),
                text_area=Rect(0, h, w, 0),
            )
        elif mode == RIGHT:
            band = min(metrics.band, w // 2)
            layout = Layout(
                mode=RIGHT,
                canvas=canvas,
                image_area=Rect(0, 0, w - band, h),
                text_area=Rect(w - band, 0, band, h),
            )
        else:
            band = min(metrics.band, h // 2)
            layout = Layout(
                mode=BOTTOM,
                canvas=canvas,
                image_area=Rect(0, 0, w, h - band),
                text_area=Rect(0, h - band, w, band),
            )

        logger.debug(
            f"Layout {layout.mode}: canvas {w}x{h}, image {layout.image_area}, "
            f"text {layout.text_area}, font {metrics.font_size}px"
        )
        return layout, metrics

    def resolve_placement(
        self,
        source: Optional[SourceInfo],
        layout: Layout,
        metrics: TypographyMetrics,
    ) -> Placement:
        """
        Scale and position the source inside the image area

        Args:
            source: Source dimensions (None: contain-fit the whole image area)
            layout: Resolved layout
            metrics: Typography metrics (clearance towards the caption band)

        Returns:
            Placement in canvas coordinates
        """
        area = layout.image_area

        if source is None or source.width <= 0 or source.height <= 0:
            return Placement(rect=area, fit="contain")

        scale = min(area.width / source.width, area.height / source.height)
        w = min(area.width, max(1, int(round(source.width * scale))))
        h = min(area.height, max(1, int(round(source.height * scale))))

        # Center on both axes
        x = area.x + (area.width - w) // 2
        y = area.y + (area.height - h) // 2

        # Pull away from the caption band when centering leaves too little room
        if layout.has_text:
            if layout.mode == RIGHT:
                gap = area.right - (x + w)
                if gap < metrics.clearance:
                    x -= min(metrics.clearance - gap, x - area.x)
            else:
                gap = area.bottom - (y + h)
                if gap < metrics.clearance:
                    y -= min(metrics.clearance - gap, y - area.y)

        return Placement(rect=Rect(x, y, w, h), fit="exact")
