"""
Configuration settings for imgstamp
"""

from pathlib import Path
from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

from imgstamp.utils.exceptions import UnknownTargetSizeError

RGB = Tuple[int, int, int]


class TargetSize(BaseModel):
    """Named print size preset, orientation neutral (landscape pixels)"""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    width: int
    height: int
    dpi: int = 300

    @property
    def long_edge(self) -> int:
        return max(self.width, self.height)


DEFAULT_TARGET_SIZES: Tuple[TargetSize, ...] = (
    TargetSize(id="5", label="5 inch (12.7 x 8.9 cm, 10:7)", width=1500, height=1050),
    TargetSize(id="5L", label="5 inch large (12.7 x 9.5 cm, 4:3)", width=1500, height=1125),
    TargetSize(id="6", label="6 inch (15.2 x 10.2 cm, 3:2)", width=1800, height=1200),
    TargetSize(id="6L", label="6 inch large (15.2 x 11.4 cm, 4:3)", width=1800, height=1350),
)


class StampConfig(BaseModel):
    """
    Immutable tuning for the composition engine.

    Every ratio below is relative to the font size, which is itself a fixed
    fraction of the canvas height, so preview and export scale together.
    """

    model_config = ConfigDict(frozen=True)

    target_sizes: Tuple[TargetSize, ...] = DEFAULT_TARGET_SIZES

    # Canvas / layout
    right_mode_aspect: float = 1.8  # height / width at or above which captions go vertical
    background_color: RGB = (255, 255, 255)

    # Typography (multiples of font size)
    font_size_ratio: float = 0.028
    min_font_size: int = 6
    line_height_ratio: float = 1.25
    line_gap_ratio: float = 0.4
    edge_margin_ratio: float = 0.8
    band_ratio: float = 3.2
    text_clearance_ratio: float = 0.6
    fragment_gap_ratio: float = 1.5
    text_color: RGB = (17, 24, 39)
    caption_separator: str = " · "

    # Content bounds detector
    detect_max_edge: int = 320
    detect_brightness_floor: float = 200.0
    detect_corner_variance: float = 30.0
    detect_pixel_threshold: float = 40.0
    detect_min_inset_ratio: float = 0.02

    def target_size(self, target_size_id: str) -> TargetSize:
        """
        Look up a preset by id

        Raises:
            UnknownTargetSizeError: If no preset has this id
        """
        for size in self.target_sizes:
            if size.id == target_size_id:
                return size
        raise UnknownTargetSizeError(target_size_id, [s.id for s in self.target_sizes])


class Settings(BaseSettings):
    """Application settings"""

    # Project paths (runtime dirs relative to the working directory)
    PACKAGE_DIR: Path = Path(__file__).parent
    WORKSPACE_DIR: Path = Path("workspace")
    EXPORT_DIR: Path = WORKSPACE_DIR / "export"
    LOGS_DIR: Path = Path("logs")
    ASSETS_DIR: Path = PACKAGE_DIR / "assets"
    FONTS_DIR: Path = ASSETS_DIR / "fonts"

    # Fonts (looked up in FONTS_DIR, Pillow's built-in font when missing)
    FONT_LATIN: str = "NotoSans-Regular.ttf"
    FONT_CJK: str = "NotoSansSC-Regular.otf"

    # Output settings
    OUTPUT_QUALITY: int = 92
    PREVIEW_MAX_EDGE: int = 900
    PREVIEW_QUALITY: int = 85
    THUMBNAIL_SIZE: int = 256
    THUMBNAIL_QUALITY: int = 80

    # Export settings
    EXPORT_DIR_PREFIX: str = "stamped"
    EXPORT_WORKERS: int = 1  # 1 = strictly sequential

    # Heuristic overrides (None = engine default)
    FONT_SIZE_RATIO: Optional[float] = None
    RIGHT_MODE_ASPECT: Optional[float] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    # FastAPI settings
    API_TITLE: str = "imgstamp"
    API_VERSION: str = "1.0.0"
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "IMGSTAMP_"

    @property
    def latin_font_path(self) -> Path:
        return self.FONTS_DIR / self.FONT_LATIN

    @property
    def cjk_font_path(self) -> Path:
        return self.FONTS_DIR / self.FONT_CJK

    def stamp_config(self) -> StampConfig:
        """Build the engine configuration, applying any env overrides"""
        overrides = {}
        if self.FONT_SIZE_RATIO is not None:
            overrides["font_size_ratio"] = self.FONT_SIZE_RATIO
        if self.RIGHT_MODE_ASPECT is not None:
            overrides["right_mode_aspect"] = self.RIGHT_MODE_ASPECT
        return StampConfig(**overrides)


settings = Settings()
