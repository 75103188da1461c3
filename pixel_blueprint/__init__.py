"""Pixel Blueprint - Turn pixel art into bead and cross-stitch blueprints.

This package detects the block size of pixel art, quantizes it into a
labeled palette, optionally matches every color against bead catalogs, and
renders a printable blueprint with a legend and per-region labels.

Example:
    from pixel_blueprint import Config, render_blueprint_bytes

    with open("input.png", "rb") as f:
        input_bytes = f.read()

    config = Config(scale=30, legend_position="right")
    output_bytes = render_blueprint_bytes(input_bytes, config)

    with open("blueprint.png", "wb") as f:
        f.write(output_bytes)

For the grid and palette only, use process_image_bytes:

    from pixel_blueprint import Config, process_image_bytes

    result = process_image_bytes(input_bytes, Config())
    print(f"Grid: {result.width}x{result.height} cells")

Bead matching needs catalogs, loaded from YAML documents:

    from pixel_blueprint import load_catalogs

    catalogs = load_catalogs("beads.yaml", "my_inventory.yaml")
    config = Config(bead_matching_enabled=True, bead_source_mode="user")
    result = process_image_bytes(input_bytes, config, catalogs)

For debug logging, enable with:

    import logging
    logging.getLogger("pixel_blueprint").setLevel(logging.DEBUG)
    logging.basicConfig(level=logging.DEBUG)
"""
import logging

# Package logger - disabled by default, enable with logging.getLogger("pixel_blueprint").setLevel(logging.DEBUG)
logger = logging.getLogger("pixel_blueprint")
logger.addHandler(logging.NullHandler())
from .catalog import (
    BeadCatalogEntry,
    BeadCatalogs,
    BeadRef,
    build_catalog,
    catalogs_from_documents,
    parse_catalog_document,
)
from .cli import (
    ProcessingResult,
    load_catalogs,
    main,
    process_bitmap,
    process_image,
    process_image_bytes,
    render_blueprint_bytes,
)
from .color import color_distance, delta_e_2000, rgb_to_lab
from .config import (
    BlueprintError,
    CanvasTooLargeError,
    CatalogError,
    Config,
    ConfigError,
    InputTooLargeError,
)
from .layout import LayoutGeometry, compute_layout
from .match import BeadAnalysis, match_palette
from .pattern import render_blueprint
from .quantize import Cell, PaletteEntry, quantize_grid
from .regions import LabelPlacement, label_regions
from .scale import detect_block_size

__all__ = [
    "Config",
    "BlueprintError",
    "ConfigError",
    "InputTooLargeError",
    "CanvasTooLargeError",
    "CatalogError",
    "ProcessingResult",
    "main",
    "process_bitmap",
    "process_image",
    "process_image_bytes",
    "render_blueprint_bytes",
    "load_catalogs",
    # Engine stages
    "detect_block_size",
    "quantize_grid",
    "match_palette",
    "label_regions",
    "compute_layout",
    "render_blueprint",
    # Color
    "rgb_to_lab",
    "delta_e_2000",
    "color_distance",
    # Data types
    "Cell",
    "PaletteEntry",
    "BeadAnalysis",
    "LabelPlacement",
    "LayoutGeometry",
    # Catalogs
    "BeadRef",
    "BeadCatalogEntry",
    "BeadCatalogs",
    "build_catalog",
    "catalogs_from_documents",
    "parse_catalog_document",
]

__version__ = "1.0.0"
