"""
Renderer Module - Composite the bordered photo and its caption, encode the result
"""

import math
import numpy as np
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple
from loguru import logger
from PIL import Image, ImageDraw, ImageFont

from imgstamp.config import StampConfig, settings
from imgstamp.modules.bounds import detect_content_bounds
from imgstamp.modules.geometry import Canvas, Layout, Placement, Rect, SourceInfo
from imgstamp.modules.layout import LayoutEngine
from imgstamp.modules.typography import (
    CJK,
    LATIN,
    CaptionMetadata,
    TextFragment,
    TextLayer,
    TypographyMetrics,
    layout_caption,
)
from imgstamp.utils.image_utils import (
    ImageSource,
    describe_source,
    encode_image,
    fit_inside,
    load_image,
    resize_image,
)


@dataclass(frozen=True)
class RenderOptions:
    """Per call render switches"""
    include_text: bool = True
    output_format: str = "jpeg"  # "jpeg" or "png"
    quality: Optional[int] = None  # JPEG quality, settings default when None
    scale: float = 1.0  # canvas resolution factor, < 1 for previews


@dataclass
class RenderPlan:
    """Everything decided for one render before pixels are encoded"""
    source: SourceInfo
    canvas: Canvas
    layout: Layout
    metrics: TypographyMetrics
    placement: Placement
    image_rect: Rect
    content_bounds: Optional[Rect]
    text_layer: Optional[TextLayer]


@lru_cache(maxsize=64)
def _load_font(font_path: str, size: int) -> ImageFont.FreeTypeFont:
    path = Path(font_path)
    if path.is_file():
        try:
            return ImageFont.truetype(str(path), size)
        except OSError as e:
            logger.warning(f"Failed to load font {path}: {e}, using default")
    else:
        logger.warning(f"Font not found: {path}, using default")
    return ImageFont.load_default(size=size)


class TextRasterizer:
    """
    Rasterizes a TextLayer with Pillow, picking the CJK or Latin face per run
    """

    def __init__(self, latin_font_path: Path = None, cjk_font_path: Path = None):
        """
        Initialize TextRasterizer

        Args:
            latin_font_path: Font for Latin/other runs
            cjk_font_path: Font for CJK runs
        """
        self.latin_font_path = Path(latin_font_path or settings.latin_font_path)
        self.cjk_font_path = Path(cjk_font_path or settings.cjk_font_path)

    def _fonts(self, size: int) -> Dict[str, ImageFont.FreeTypeFont]:
        return {
            LATIN: _load_font(str(self.latin_font_path), size),
            CJK: _load_font(str(self.cjk_font_path), size),
        }

    def rasterize(self, layer: TextLayer) -> Image.Image:
        """
        Draw every fragment onto a transparent canvas-sized image

        Args:
            layer: Text layer

        Returns:
            RGBA image of layer.width x layer.height
        """
        canvas = Image.new("RGBA", (layer.width, layer.height), (0, 0, 0, 0))
        if layer.is_empty:
            return canvas

        fonts = self._fonts(layer.font_size)
        ascent = max(f.getmetrics()[0] for f in fonts.values())
        descent = max(f.getmetrics()[1] for f in fonts.values())
        fill = tuple(layer.color) + (255,)

        for fragment in layer.fragments:
            strip = self._draw_strip(fragment, fonts, ascent, descent, fill)
            if strip is None:
                continue
            length = strip.width
            if fragment.rotated:
                # 90 degrees clockwise: text reads downward, baseline at x
                strip = strip.transpose(Image.Transpose.ROTATE_270)
                x = fragment.x - descent
                y = fragment.y if fragment.anchor == "start" else fragment.y - length
            else:
                x = fragment.x if fragment.anchor == "start" else fragment.x - length
                y = fragment.y - ascent
            canvas.alpha_composite(strip, dest=(max(0, x), max(0, y)))

        return canvas

    def _draw_strip(
        self,
        fragment: TextFragment,
        fonts: Dict[str, ImageFont.FreeTypeFont],
        ascent: int,
        descent: int,
        fill: Tuple[int, int, int, int],
    ) -> Optional[Image.Image]:
        """Render one fragment horizontally into a tight strip"""
        lengths = [fonts[run.script].getlength(run.text) for run in fragment.runs]
        length = int(math.ceil(sum(lengths)))
        if length <= 0:
            return None

        strip = Image.new("RGBA", (length, ascent + descent), (0, 0, 0, 0))
        draw = ImageDraw.Draw(strip)
        cursor = 0.0
        for run, run_length in zip(fragment.runs, lengths):
            draw.text((cursor, ascent), run.text, font=fonts[run.script], fill=fill, anchor="ls")
            cursor += run_length

        if fragment.max_length is not None and length > fragment.max_length:
            if fragment.max_length <= 0:
                return None
            strip = strip.crop((0, 0, fragment.max_length, strip.height))
        return strip


class Renderer:
    """
    Renders the stamped photo: white canvas, placed photo, caption layer
    """

    def __init__(
        self,
        config: StampConfig = None,
        rasterizer: TextRasterizer = None,
        quality: int = None,
    ):
        """
        Initialize Renderer

        Args:
            config: Engine configuration (default: built from settings)
            rasterizer: Caption rasterizer (default: fonts from settings)
            quality: Default JPEG quality
        """
        self.config = config or settings.stamp_config()
        self.layout_engine = LayoutEngine(self.config)
        self.rasterizer = rasterizer or TextRasterizer()
        self.quality = quality or settings.OUTPUT_QUALITY

        logger.info(f"Renderer initialized ({len(self.config.target_sizes)} target sizes)")

    def plan(
        self,
        image: np.ndarray,
        target_size_id: str,
        caption: CaptionMetadata,
        source_size: Optional[Tuple[int, int]] = None,
        options: RenderOptions = None,
    ) -> Tuple[RenderPlan, np.ndarray]:
        """
        Resolve geometry and caption for a decoded image

        Args:
            image: Decoded source (RGB)
            target_size_id: Preset id
            caption: Caption text
            source_size: Optional (width, height) hint
            options: Render options

        Returns:
            (plan, placed bitmap)
        """
        options = options or RenderOptions()
        source = self._source_info(image, source_size)

        canvas = self.layout_engine.resolve_canvas(target_size_id, source, options.scale)
        layout, metrics = self.layout_engine.resolve_layout(canvas, source, options.include_text)
        placement = self.layout_engine.resolve_placement(source, layout, metrics)
        bitmap, image_rect = self._place_bitmap(image, placement)

        content_bounds = None
        text_layer = None
        if layout.has_text:
            detected = detect_content_bounds(bitmap, self.config)
            if detected is not None:
                content_bounds = detected.translate(image_rect.x, image_rect.y)
            anchor = content_bounds or image_rect
            text_layer = layout_caption(caption, layout, metrics, anchor, self.config)

        plan = RenderPlan(
            source=source,
            canvas=canvas,
            layout=layout,
            metrics=metrics,
            placement=placement,
            image_rect=image_rect,
            content_bounds=content_bounds,
            text_layer=text_layer,
        )
        return plan, bitmap

    def render(
        self,
        source: ImageSource,
        target_size_id: str,
        caption: CaptionMetadata,
        source_size: Optional[Tuple[int, int]] = None,
        options: RenderOptions = None,
    ) -> bytes:
        """
        Render one stamped photo

        Args:
            source: Source path or encoded bytes
            target_size_id: Preset id
            caption: Caption text
            source_size: Optional (width, height) hint
            options: Render options

        Returns:
            Encoded image bytes

        Raises:
            DecodeError: Source cannot be decoded
            EncodeError: Output cannot be encoded
            UnknownTargetSizeError: Unknown preset id
        """
        options = options or RenderOptions()
        self.config.target_size(target_size_id)

        image = load_image(source)
        plan, bitmap = self.plan(image, target_size_id, caption, source_size, options)

        canvas = self.composite(plan, bitmap)
        quality = options.quality or self.quality
        data = encode_image(canvas, options.output_format, quality)

        logger.info(
            f"Rendered {describe_source(source)} -> {plan.canvas.width}x{plan.canvas.height} "
            f"{options.output_format} ({plan.layout.mode}, {len(data)} bytes)"
        )
        return data

    def render_preview(
        self,
        source: ImageSource,
        target_size_id: str,
        caption: CaptionMetadata,
        source_size: Optional[Tuple[int, int]] = None,
        include_text: bool = True,
        max_edge: int = None,
        quality: int = None,
    ) -> bytes:
        """
        Render a reduced resolution JPEG that matches the export layout

        Args:
            max_edge: Longest canvas edge in pixels (default from settings)
        """
        target = self.config.target_size(target_size_id)
        max_edge = max_edge or settings.PREVIEW_MAX_EDGE
        scale = min(1.0, max_edge / target.long_edge)
        options = RenderOptions(
            include_text=include_text,
            output_format="jpeg",
            quality=quality or settings.PREVIEW_QUALITY,
            scale=scale,
        )
        return self.render(source, target_size_id, caption, source_size, options)

    def composite(self, plan: RenderPlan, bitmap: np.ndarray) -> np.ndarray:
        """
        Compose background, photo and caption layer

        Args:
            plan: Render plan
            bitmap: Placed photo sized to plan.image_rect

        Returns:
            RGB canvas as numpy array
        """
        canvas = Image.new("RGB", (plan.canvas.width, plan.canvas.height), self.config.background_color)
        canvas.paste(Image.fromarray(bitmap), (plan.image_rect.x, plan.image_rect.y))

        if plan.text_layer is not None and not plan.text_layer.is_empty:
            text_layer = self.rasterizer.rasterize(plan.text_layer)
            canvas = Image.alpha_composite(canvas.convert("RGBA"), text_layer).convert("RGB")

        return np.array(canvas)

    def _source_info(self, image: np.ndarray, source_size: Optional[Tuple[int, int]]) -> SourceInfo:
        h, w = image.shape[:2]
        decoded = SourceInfo(width=w, height=h)
        if not source_size:
            return decoded

        hinted = SourceInfo(width=int(source_size[0]), height=int(source_size[1]))
        if hinted.width <= 0 or hinted.height <= 0 or abs(hinted.aspect - decoded.aspect) > 0.01 * decoded.aspect:
            logger.warning(
                f"Source size hint {hinted.width}x{hinted.height} disagrees with decoded "
                f"{w}x{h}, using decoded size"
            )
            return decoded
        return hinted

    def _place_bitmap(self, image: np.ndarray, placement: Placement) -> Tuple[np.ndarray, Rect]:
        """Resize the source for its placement; returns the bitmap and its canvas rect"""
        rect = placement.rect
        if placement.fit == "contain":
            bitmap = fit_inside(image, (rect.width, rect.height))
            bh, bw = bitmap.shape[:2]
            x = rect.x + (rect.width - bw) // 2
            y = rect.y + (rect.height - bh) // 2
            return bitmap, Rect(x, y, bw, bh)

        return resize_image(image, (rect.width, rect.height)), rect
