"""Configuration and validation for pixel blueprint."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple


class BlueprintError(Exception):
    """Base exception for pixel blueprint errors."""

    pass


class ConfigError(BlueprintError):
    """Raised when a configuration option is out of range."""

    pass


class InputTooLargeError(BlueprintError):
    """Raised when an input or derived size exceeds a hard ceiling."""

    pass


class CanvasTooLargeError(InputTooLargeError):
    """Raised when the computed blueprint canvas exceeds the safety ceiling."""

    pass


class CatalogError(BlueprintError):
    """Raised when a bead catalog document cannot be read at all."""

    pass


MAX_IMAGE_SIDE = 8192
MAX_CANVAS_SIDE = 16384

CROP_MODES = ("none", "transparent", "white", "black", "custom")
BEAD_SOURCE_MODES = ("none", "system", "user")
DISTANCE_ALGORITHMS = ("rgb", "deltaE76", "deltaE2000")
LEGEND_POSITIONS = ("top", "bottom", "left", "right")
LEGEND_SORTS = ("by_count", "by_index", "by_brightness", "by_hue")
COLOR_FORMATS = ("hex", "hsb")

_HEX_COLOR_RE = re.compile(r"^#([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$")


@dataclass(frozen=True)
class Config:
    """Configuration for the blueprint pipeline."""

    # Rendering
    scale: int = 40
    margin: int = 80
    show_coordinates: bool = True
    show_grid: bool = True
    major_grid_interval: int = 5
    grid_color: str = "#000000"
    grid_opacity: float = 0.3

    # Processing
    custom_block_size: int = 0  # 0 means auto-detect
    auto_crop: str = "transparent"
    custom_crop_color: str = "#000000"
    background_tolerance: int = 10
    color_tolerance: int = 10
    ignore_transparent: bool = True

    # Bead matching
    bead_matching_enabled: bool = False
    bead_source_mode: str = "none"
    bead_accuracy_threshold: int = 100  # 0 strict .. 100 accept anything
    bead_distance_algorithm: str = "deltaE2000"
    bead_priority_brands: Tuple[str, ...] = ()
    show_original_color: bool = False

    # Legend
    legend_position: str = "top"
    legend_sort: str = "by_count"
    show_color_value: bool = False
    color_format: str = "hex"

    title: str = "Pixel Art"

    # Application
    input_path: str = ""
    output_path: str = ""
    strict_edges: bool = True  # lossless input (PNG/WebP)
    timing: bool = False

    @property
    def effective_bead_mode(self) -> str:
        """Bead source mode actually used for matching."""
        if not self.bead_matching_enabled:
            return "none"
        return self.bead_source_mode


def _check_choice(name: str, value: str, choices: Tuple[str, ...]) -> None:
    if value not in choices:
        raise ConfigError(
            f"Invalid {name}: '{value}' (expected one of {', '.join(choices)})"
        )


def validate_config(config: Config) -> None:
    """Validate every enumerated option and numeric range.

    Args:
        config: Configuration to validate.

    Raises:
        ConfigError: If an option is invalid.
    """
    _check_choice("auto_crop", config.auto_crop, CROP_MODES)
    _check_choice("bead_source_mode", config.bead_source_mode, BEAD_SOURCE_MODES)
    _check_choice(
        "bead_distance_algorithm",
        config.bead_distance_algorithm,
        DISTANCE_ALGORITHMS,
    )
    _check_choice("legend_position", config.legend_position, LEGEND_POSITIONS)
    _check_choice("legend_sort", config.legend_sort, LEGEND_SORTS)
    _check_choice("color_format", config.color_format, COLOR_FORMATS)

    if config.scale <= 0:
        raise ConfigError("scale must be greater than 0")
    if config.margin < 0:
        raise ConfigError("margin cannot be negative")
    if config.major_grid_interval <= 0:
        raise ConfigError("major_grid_interval must be greater than 0")
    if not 0.0 <= config.grid_opacity <= 1.0:
        raise ConfigError("grid_opacity must be between 0 and 1")
    if config.custom_block_size < 0:
        raise ConfigError("custom_block_size cannot be negative")
    if config.background_tolerance < 0 or config.color_tolerance < 0:
        raise ConfigError("tolerances cannot be negative")
    if not 0 <= config.bead_accuracy_threshold <= 100:
        raise ConfigError("bead_accuracy_threshold must be between 0 and 100")
    for name in ("grid_color", "custom_crop_color"):
        value = getattr(config, name)
        if not _HEX_COLOR_RE.match(value):
            raise ConfigError(f"Invalid {name}: '{value}' (expected #RGB or #RRGGBB)")


def validate_image_dimensions(width: int, height: int) -> None:
    """Validate image dimensions are within acceptable bounds.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.

    Raises:
        BlueprintError: If a side is zero.
        InputTooLargeError: If a side exceeds the supported maximum.
    """
    if width == 0 or height == 0:
        raise BlueprintError("Image dimensions cannot be zero")
    if width > MAX_IMAGE_SIDE or height > MAX_IMAGE_SIDE:
        raise InputTooLargeError(
            "Image exceeds maximum supported dimensions "
            f"(max {MAX_IMAGE_SIDE}x{MAX_IMAGE_SIDE})"
        )
