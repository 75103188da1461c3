"""Command-line interface and processing pipeline for pixel blueprint."""
from __future__ import annotations

import io
import logging
import sys
import time
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

import numpy as np
from PIL import Image

logger = logging.getLogger("pixel_blueprint")

from .catalog import BeadCatalogs, catalogs_from_documents, load_catalog_document
from .config import (
    BlueprintError,
    Config,
    ConfigError,
    validate_config,
    validate_image_dimensions,
)
from .crop import Box, find_bounding_box
from .match import BeadAnalysis, match_palette
from .pattern import render_blueprint
from .quantize import Grid, PaletteEntry, grid_dimensions, quantize_grid
from .scale import detect_block_size

LOSSLESS_FORMATS = ("PNG", "WEBP")


@dataclass
class ProcessingResult:
    """Logical grid, palette and bead analysis of one processed image."""

    width: int
    height: int
    grid: Grid
    palette: List[PaletteEntry]
    original_width: int
    original_height: int
    block_size: int
    crop_box: Box
    bead_analysis: Optional[BeadAnalysis] = None


def process_bitmap(
    arr: np.ndarray,
    config: Optional[Config] = None,
    catalogs: Optional[BeadCatalogs] = None,
) -> ProcessingResult:
    """Run the blueprint pipeline on a decoded RGBA bitmap.

    Args:
        arr: RGBA array of shape (H, W, 4), dtype uint8.
        config: Configuration options. Uses defaults if None.
        catalogs: Bead catalogs for matching; None means empty catalogs.

    Returns:
        ProcessingResult with the logical grid and annotated palette.

    Raises:
        ConfigError: If the configuration is invalid.
        InputTooLargeError: If the bitmap exceeds the size ceiling.
    """
    config = config or Config()
    validate_config(config)
    height, width = arr.shape[:2]
    validate_image_dimensions(width, height)

    t0 = time.perf_counter()
    if config.custom_block_size > 0:
        block_size = config.custom_block_size
        logger.debug(f"Using custom block size {block_size}")
    else:
        block_size = detect_block_size(arr, config.strict_edges)
    t1 = time.perf_counter()

    box = find_bounding_box(arr, config)
    t2 = time.perf_counter()

    grid_w, grid_h = grid_dimensions(box, block_size)
    if grid_w == 0 or grid_h == 0:
        logger.debug(f"Empty grid for crop box {box}")
        return ProcessingResult(
            width=0,
            height=0,
            grid=[],
            palette=[],
            original_width=width,
            original_height=height,
            block_size=block_size,
            crop_box=box,
        )

    grid, palette = quantize_grid(arr, box, block_size, config)
    t3 = time.perf_counter()

    palette, analysis = match_palette(palette, catalogs, config)
    t4 = time.perf_counter()

    if config.timing:
        print(
            "Timing (s): "
            f"scale={t1 - t0:.4f}, "
            f"crop={t2 - t1:.4f}, "
            f"quantize={t3 - t2:.4f}, "
            f"match={t4 - t3:.4f}, "
            f"total={t4 - t0:.4f}"
        )

    return ProcessingResult(
        width=grid_w,
        height=grid_h,
        grid=grid,
        palette=palette,
        original_width=width,
        original_height=height,
        block_size=block_size,
        crop_box=box,
        bead_analysis=analysis,
    )


def process_image_bytes(
    input_bytes: bytes,
    config: Optional[Config] = None,
    catalogs: Optional[BeadCatalogs] = None,
) -> ProcessingResult:
    """Decode image bytes and run the blueprint pipeline.

    Lossless formats (PNG, WebP) use the strict scale-detection threshold.

    Args:
        input_bytes: Encoded image bytes.
        config: Configuration options. Uses defaults if None.
        catalogs: Bead catalogs for matching.

    Returns:
        ProcessingResult for the decoded image.
    """
    config = config or Config()
    img = Image.open(io.BytesIO(input_bytes))
    strict = (img.format or "").upper() in LOSSLESS_FORMATS
    arr = np.asarray(img.convert("RGBA"), dtype=np.uint8)
    return process_bitmap(arr, replace(config, strict_edges=strict), catalogs)


def render_blueprint_bytes(
    input_bytes: bytes,
    config: Optional[Config] = None,
    catalogs: Optional[BeadCatalogs] = None,
) -> bytes:
    """Process image bytes and encode the rendered blueprint as PNG.

    Args:
        input_bytes: Encoded image bytes.
        config: Configuration options. Uses defaults if None.
        catalogs: Bead catalogs for matching.

    Returns:
        PNG bytes of the blueprint.
    """
    config = config or Config()
    result = process_image_bytes(input_bytes, config, catalogs)

    t0 = time.perf_counter()
    image = render_blueprint(result, config)
    out_buf = io.BytesIO()
    image.save(out_buf, format="PNG")
    t1 = time.perf_counter()

    if config.timing:
        print(f"Timing (s): render={t1 - t0:.4f}")
    return out_buf.getvalue()


def load_catalogs(
    catalog_path: Optional[str], inventory_path: Optional[str] = None
) -> BeadCatalogs:
    """Load system catalog and user inventory documents from disk.

    Raises:
        CatalogError: If a document cannot be read or parsed.
    """
    system_doc = load_catalog_document(catalog_path) if catalog_path else None
    user_doc = load_catalog_document(inventory_path) if inventory_path else None
    catalogs = catalogs_from_documents(system_doc, user_doc)
    logger.debug(
        f"Loaded catalogs: {len(catalogs.system)} system colors, "
        f"{len(catalogs.user)} inventory colors"
    )
    return catalogs


def process_image(config: Config, catalogs: Optional[BeadCatalogs] = None) -> None:
    """Process an image file into a blueprint file.

    Args:
        config: Configuration with input/output paths.
        catalogs: Bead catalogs for matching.
    """
    print(f"Processing: {config.input_path}")
    with open(config.input_path, "rb") as f:
        img_bytes = f.read()

    result = process_image_bytes(img_bytes, config, catalogs)
    image = render_blueprint(result, config)
    image.save(config.output_path, format="PNG")

    print(
        f"Grid: {result.width}x{result.height} cells "
        f"(block size {result.block_size}), {len(result.palette)} colors"
    )
    analysis = result.bead_analysis
    if analysis is not None:
        print(
            f"Bead accuracy: {analysis.accuracy}% "
            f"({analysis.missing_count} missing of {len(result.palette)}, "
            f"{analysis.total_beads_in_scope} beads in scope)"
        )
        if analysis.missing_refs:
            print(f"Missing beads: {', '.join(analysis.missing_refs)}")
    print(f"Saved to: {config.output_path}")


@dataclass
class CliOptions:
    """Parsed command line: configuration plus catalog paths."""

    config: Config
    catalog_path: Optional[str] = None
    inventory_path: Optional[str] = None


# option -> (config field, converter)
_VALUE_OPTIONS = {
    "--block-size": ("custom_block_size", int),
    "--crop": ("auto_crop", str),
    "--crop-color": ("custom_crop_color", str),
    "--background-tolerance": ("background_tolerance", int),
    "--color-tolerance": ("color_tolerance", int),
    "--accuracy": ("bead_accuracy_threshold", int),
    "--distance": ("bead_distance_algorithm", str),
    "--legend": ("legend_position", str),
    "--sort": ("legend_sort", str),
    "--color-format": ("color_format", str),
    "--title": ("title", str),
    "--scale": ("scale", int),
    "--margin": ("margin", int),
    "--major-interval": ("major_grid_interval", int),
    "--grid-color": ("grid_color", str),
    "--grid-opacity": ("grid_opacity", float),
}

# option -> (config field, value when present)
_FLAG_OPTIONS = {
    "--keep-transparent": ("ignore_transparent", False),
    "--show-color-value": ("show_color_value", True),
    "--no-grid": ("show_grid", False),
    "--no-coordinates": ("show_coordinates", False),
    "--original-colors": ("show_original_color", True),
    "--timing": ("timing", True),
}


def parse_args(argv: Sequence[str]) -> CliOptions:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (including program name).

    Returns:
        Parsed options with a validated Config.

    Raises:
        BlueprintError: If arguments are invalid.
    """
    args = list(argv[1:])
    values = {}
    debug = False
    catalog_path: Optional[str] = None
    inventory_path: Optional[str] = None
    beads: Optional[str] = None
    priority: List[str] = []
    positional: List[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in _FLAG_OPTIONS:
            name, value = _FLAG_OPTIONS[arg]
            values[name] = value
            i += 1
        elif arg == "--debug":
            debug = True
            i += 1
        elif arg in _VALUE_OPTIONS or arg in (
            "--catalog",
            "--inventory",
            "--beads",
            "--priority",
        ):
            if i + 1 >= len(args):
                raise BlueprintError(_usage_message())
            raw = args[i + 1]
            if arg == "--catalog":
                catalog_path = raw
            elif arg == "--inventory":
                inventory_path = raw
            elif arg == "--beads":
                beads = raw.lower()
            elif arg == "--priority":
                priority = [brand.strip() for brand in raw.split(",") if brand.strip()]
            else:
                name, convert = _VALUE_OPTIONS[arg]
                try:
                    values[name] = convert(raw)
                except ValueError:
                    raise BlueprintError(f"Invalid {arg[2:]} value: '{raw}'")
            i += 2
        elif arg.startswith("--"):
            raise BlueprintError(f"Unknown option: {arg}\n{_usage_message()}")
        else:
            positional.append(arg)
            i += 1

    if len(positional) != 2:
        raise BlueprintError(_usage_message())

    if beads is None:
        if inventory_path:
            beads = "user"
        elif catalog_path:
            beads = "system"
        else:
            beads = "none"

    if beads != "none" and not (catalog_path or inventory_path):
        raise ConfigError("--beads requires --catalog or --inventory")

    config = Config(
        input_path=positional[0],
        output_path=positional[1],
        bead_matching_enabled=beads != "none",
        bead_source_mode=beads,
        bead_priority_brands=tuple(priority),
        **values,
    )
    validate_config(config)

    # Enable debug logging if requested
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s"
        )
        logging.getLogger("pixel_blueprint").setLevel(logging.DEBUG)

    return CliOptions(
        config=config,
        catalog_path=catalog_path,
        inventory_path=inventory_path,
    )


def _usage_message() -> str:
    """Return usage message string."""
    return (
        "Usage: pixel-blueprint input.png output.png "
        "[--block-size N] [--crop none|transparent|white|black|custom] "
        "[--crop-color #RRGGBB] [--background-tolerance N] "
        "[--color-tolerance N] [--keep-transparent] "
        "[--catalog PATH] [--inventory PATH] [--beads none|system|user] "
        "[--accuracy 0-100] [--distance rgb|deltaE76|deltaE2000] "
        "[--priority BRAND,...] [--original-colors] "
        "[--legend top|bottom|left|right] "
        "[--sort by_count|by_index|by_brightness|by_hue] "
        "[--show-color-value] [--color-format hex|hsb] [--title TEXT] "
        "[--scale N] [--margin N] [--no-grid] [--no-coordinates] "
        "[--major-interval N] [--grid-color #RRGGBB] [--grid-opacity F] "
        "[--timing] [--debug]"
    )


def main(argv: Sequence[str]) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        options = parse_args(argv)
        catalogs = load_catalogs(options.catalog_path, options.inventory_path)
        process_image(options.config, catalogs)
        return 0
    except BlueprintError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"Processing error: {exc}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main(sys.argv))
