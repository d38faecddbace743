"""
Geometry primitives shared by the layout, placement and typography stages
"""

from dataclasses import dataclass

BOTTOM = "bottom"
RIGHT = "right"


@dataclass(frozen=True)
class Rect:
    """Axis aligned rectangle in canvas pixels (x, y = top-left corner)"""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersects(self, other: "Rect") -> bool:
        """True when both rects have area and share at least one pixel"""
        if self.is_empty or other.is_empty:
            return False
        return (
            self.x < other.right and other.x < self.right
            and self.y < other.bottom and other.y < self.bottom
        )

    def contains(self, other: "Rect") -> bool:
        return (
            other.x >= self.x and other.y >= self.y
            and other.right <= self.right and other.bottom <= self.bottom
        )

    def translate(self, dx: int, dy: int) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)


@dataclass(frozen=True)
class SourceInfo:
    """Pixel size of the original raster"""
    width: int
    height: int

    @property
    def aspect(self) -> float:
        """Height over width; > 1 for portrait sources"""
        return self.height / self.width if self.width else 0.0

    @property
    def is_portrait(self) -> bool:
        return self.height > self.width


@dataclass(frozen=True)
class Canvas:
    """Resolved output dimensions for one render"""
    width: int
    height: int

    @property
    def rect(self) -> Rect:
        return Rect(0, 0, self.width, self.height)


@dataclass(frozen=True)
class Layout:
    """Caption placement mode and the image / text split of the canvas"""
    mode: str  # BOTTOM or RIGHT
    canvas: Canvas
    image_area: Rect
    text_area: Rect

    @property
    def has_text(self) -> bool:
        return not self.text_area.is_empty


@dataclass(frozen=True)
class Placement:
    """Where the source bitmap lands on the canvas"""
    rect: Rect
    fit: str = "exact"  # "exact": rect is the scaled source; "contain": fit inside rect
