"""
Typography Module - Font metrics, script segmentation and caption layout
"""

import unicodedata
from dataclasses import dataclass, field
from html import escape
from typing import List, Optional, Tuple
from loguru import logger

from imgstamp.config import StampConfig
from imgstamp.modules.geometry import RIGHT, Canvas, Layout, Rect

CJK = "cjk"
LATIN = "latin"

# Han, kana, hangul, CJK punctuation and full-width forms
_CJK_RANGES: Tuple[Tuple[int, int], ...] = (
    (0x1100, 0x11FF),
    (0x2E80, 0x2FDF),
    (0x3000, 0x303F),
    (0x3040, 0x30FF),
    (0x3100, 0x31FF),
    (0x3200, 0x4DBF),
    (0x4E00, 0x9FFF),
    (0xA960, 0xA97F),
    (0xAC00, 0xD7AF),
    (0xF900, 0xFAFF),
    (0xFE30, 0xFE4F),
    (0xFF00, 0xFFEF),
    (0x20000, 0x2FA1F),
)


@dataclass(frozen=True)
class CaptionMetadata:
    """Resolved caption text; an empty string renders nothing for that field"""
    date: Optional[str] = None
    location: str = ""
    description: str = ""


@dataclass(frozen=True)
class TypographyMetrics:
    """Spacing derived from the font size, in canvas pixels"""
    font_size: int
    line_height: int
    line_gap: int
    edge_margin: int
    band: int
    clearance: int
    fragment_gap: int


@dataclass(frozen=True)
class TextRun:
    """Script homogeneous slice of a caption"""
    text: str
    script: str  # CJK or LATIN


@dataclass
class TextFragment:
    """
    One caption fragment anchored on its baseline.

    anchor "start" puts the first glyph at (x, y); "end" puts the last glyph
    there. Rotated fragments read top to bottom (90 degrees clockwise) with
    the baseline running down the column at x. max_length caps the drawn
    length in pixels.
    """
    text: str
    x: int
    y: int
    anchor: str = "start"
    rotated: bool = False
    runs: List[TextRun] = field(default_factory=list)
    max_length: Optional[int] = None


@dataclass
class TextLayer:
    """Caption layer covering the whole canvas"""
    width: int
    height: int
    font_size: int
    color: Tuple[int, int, int]
    fragments: List[TextFragment] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.fragments

    def to_svg(
        self,
        latin_family: str = "\"Segoe UI\", \"Helvetica Neue\", Arial, sans-serif",
        cjk_family: str = "\"Microsoft YaHei\", \"PingFang SC\", \"Noto Sans CJK SC\", sans-serif",
    ) -> str:
        """Serialize the layer as SVG markup with every text node XML-escaped"""
        fill = "#{:02x}{:02x}{:02x}".format(*self.color)
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" height="{self.height}">',
            "  <style>",
            f"    text {{ font-size: {self.font_size}px; fill: {fill}; }}",
            f"    .{LATIN} {{ font-family: {latin_family}; }}",
            f"    .{CJK} {{ font-family: {cjk_family}; }}",
            "  </style>",
        ]
        for fragment in self.fragments:
            attrs = f'x="{fragment.x}" y="{fragment.y}" text-anchor="{fragment.anchor}"'
            if fragment.rotated:
                attrs += f' transform="rotate(90 {fragment.x} {fragment.y})"'
            spans = "".join(
                f'<tspan class="{run.script}">{escape(run.text, quote=False)}</tspan>'
                for run in fragment.runs
            )
            lines.append(f"  <text {attrs}>{spans}</text>")
        lines.append("</svg>")
        return "\n".join(lines)


def compute_font_size(canvas: Canvas, config: StampConfig) -> int:
    return max(config.min_font_size, int(round(canvas.height * config.font_size_ratio)))


def compute_metrics(canvas: Canvas, config: StampConfig) -> TypographyMetrics:
    """
    Derive every caption spacing value from the canvas height

    The caption band must hold two lines plus the gap between them and a
    safety margin on both sides, whatever band_ratio says.
    """
    font_size = compute_font_size(canvas, config)
    line_height = int(round(font_size * config.line_height_ratio))
    line_gap = int(round(font_size * config.line_gap_ratio))
    edge_margin = int(round(font_size * config.edge_margin_ratio))

    min_band = 2 * line_height + line_gap + 2 * edge_margin
    band = max(int(round(font_size * config.band_ratio)), min_band)

    return TypographyMetrics(
        font_size=font_size,
        line_height=line_height,
        line_gap=line_gap,
        edge_margin=edge_margin,
        band=band,
        clearance=int(round(font_size * config.text_clearance_ratio)),
        fragment_gap=int(round(font_size * config.fragment_gap_ratio)),
    )


def is_cjk(char: str) -> bool:
    code = ord(char)
    return any(start <= code <= end for start, end in _CJK_RANGES)


def segment_runs(text: str) -> List[TextRun]:
    """
    Split text into maximal runs of CJK and non-CJK code points

    Args:
        text: Caption text

    Returns:
        Runs in order; concatenating their text gives back the input
    """
    runs: List[TextRun] = []
    current: List[str] = []
    current_script = None

    for char in text:
        script = CJK if is_cjk(char) else LATIN
        if script != current_script and current:
            runs.append(TextRun("".join(current), current_script))
            current = []
        current_script = script
        current.append(char)

    if current:
        runs.append(TextRun("".join(current), current_script))

    return runs


def char_width_units(char: str) -> float:
    """Approximate advance width of one character in font-size units"""
    if is_cjk(char):
        return 1.0
    if char.isspace():
        return 0.33
    if char.isdigit():
        return 0.6
    if char.isalpha():
        return 0.75 if char.isupper() else 0.6
    if unicodedata.category(char).startswith("P"):
        return 0.4
    return 0.6


def estimate_text_length(text: str, font_size: int) -> int:
    """Estimated rendered length of text in pixels"""
    return int(round(sum(char_width_units(c) for c in text) * font_size))


def truncate_to_length(text: str, max_length: int, font_size: int, ellipsis: str = "…") -> str:
    """
    Shorten text until its estimated length fits max_length

    Returns:
        text unchanged when it fits, otherwise its longest fitting prefix
        followed by the ellipsis ("" when not even that fits)
    """
    if estimate_text_length(text, font_size) <= max_length:
        return text

    budget = max_length - estimate_text_length(ellipsis, font_size)
    used = 0.0
    kept = 0
    for char in text:
        used += char_width_units(char) * font_size
        if used > budget:
            break
        kept += 1

    head = text[:kept].rstrip()
    return head + ellipsis if head else ""


def compose_fragments(caption: CaptionMetadata, separator: str) -> Tuple[str, str]:
    """
    Build the two caption strings

    Returns:
        (left, date): location and description joined by the separator with
        blank parts omitted, and the date text ("" when absent)
    """
    parts = [p.strip() for p in (caption.location, caption.description) if p and p.strip()]
    left = separator.join(parts)
    date = (caption.date or "").strip()
    return left, date


def layout_caption(
    caption: CaptionMetadata,
    layout: Layout,
    metrics: TypographyMetrics,
    anchor: Rect,
    config: StampConfig,
) -> TextLayer:
    """
    Position the caption fragments for the layout mode

    Args:
        caption: Caption text
        layout: Resolved layout (text area must be non-empty)
        metrics: Typography metrics for this canvas
        anchor: Rect the caption hugs, in canvas coordinates (detected
            content bounds or the placement rect)
        config: Engine configuration

    Returns:
        Text layer sized to the canvas
    """
    canvas = layout.canvas
    layer = TextLayer(
        width=canvas.width,
        height=canvas.height,
        font_size=metrics.font_size,
        color=config.text_color,
    )
    if not layout.has_text:
        return layer

    left_text, date_text = compose_fragments(caption, config.caption_separator)
    if not left_text and not date_text:
        return layer

    if layout.mode == RIGHT:
        fragments = _layout_right(left_text, date_text, layout, metrics, anchor)
    else:
        fragments = _layout_bottom(left_text, date_text, layout, metrics, anchor)

    for fragment in fragments:
        fragment.runs = segment_runs(fragment.text)
    layer.fragments = fragments

    logger.debug(
        f"Caption layout ({layout.mode}): "
        + ", ".join(f"'{f.text}'@({f.x},{f.y},{f.anchor})" for f in fragments)
    )
    return layer


def _layout_bottom(
    left_text: str,
    date_text: str,
    layout: Layout,
    metrics: TypographyMetrics,
    anchor: Rect,
) -> List[TextFragment]:
    canvas = layout.canvas
    band = layout.text_area
    margin = metrics.edge_margin
    font_size = metrics.font_size

    left_x = max(anchor.x, margin)
    right_x = min(anchor.right, canvas.width - margin)
    if right_x - left_x < font_size:
        left_x, right_x = margin, canvas.width - margin
    available = right_x - left_x

    # Each fragment gets at most one full line
    left_text = truncate_to_length(left_text, available, font_size)
    date_text = truncate_to_length(date_text, available, font_size)

    baseline = band.y + margin + font_size
    date_baseline = baseline

    if left_text and date_text:
        needed = (
            estimate_text_length(left_text, font_size)
            + metrics.fragment_gap
            + estimate_text_length(date_text, font_size)
        )
        if needed > available:
            date_baseline = baseline + metrics.line_height + metrics.line_gap

    fragments = []
    if left_text:
        fragments.append(TextFragment(left_text, left_x, baseline, "start", max_length=available))
    if date_text:
        fragments.append(TextFragment(date_text, right_x, date_baseline, "end", max_length=available))
    return fragments


def _layout_right(
    left_text: str,
    date_text: str,
    layout: Layout,
    metrics: TypographyMetrics,
    anchor: Rect,
) -> List[TextFragment]:
    canvas = layout.canvas
    band = layout.text_area
    margin = metrics.edge_margin
    font_size = metrics.font_size

    column_x = band.x + margin
    top = max(anchor.y, margin)
    bottom = min(anchor.bottom, canvas.height - margin)

    if left_text and date_text:
        needed = (
            estimate_text_length(left_text, font_size)
            + metrics.fragment_gap
            + estimate_text_length(date_text, font_size)
        )
        if needed > bottom - top:
            # Not enough room beside the content: spread to the band ends
            top, bottom = margin, canvas.height - margin

    # Single column: the date keeps its room, the left fragment takes the rest
    span = bottom - top
    date_text = truncate_to_length(date_text, span, font_size)
    left_room = span
    if date_text:
        left_room = max(0, span - metrics.fragment_gap - estimate_text_length(date_text, font_size))
    left_text = truncate_to_length(left_text, left_room, font_size)

    fragments = []
    if left_text:
        fragments.append(TextFragment(left_text, column_x, top, "start", rotated=True, max_length=left_room))
    if date_text:
        fragments.append(TextFragment(date_text, column_x, bottom, "end", rotated=True, max_length=span))
    return fragments
