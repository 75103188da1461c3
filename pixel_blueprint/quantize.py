"""Block sampling and palette quantization."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import numpy as np

from .catalog import BeadCatalogEntry
from .color import RGBA, brightness, hsl_hue, rgba_distance, rgba_to_hex
from .config import Config
from .crop import Box

logger = logging.getLogger("pixel_blueprint")

TRANSPARENT_ALPHA = 20
_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


@dataclass(frozen=True)
class Cell:
    """One non-empty cell of the logical grid."""

    x: int
    y: int
    palette_id: str
    original_color: RGBA


@dataclass(frozen=True)
class PaletteEntry:
    """One quantized color of the output grid."""

    id: str
    color: RGBA
    hex: str
    count: int
    brightness: float
    hue: float
    matched_bead: Optional[BeadCatalogEntry] = None
    bead_delta_e: Optional[float] = None
    is_bead_missing: bool = False


# grid[y][x], None for empty cells
Grid = List[List[Optional[Cell]]]


def palette_id(index: int) -> str:
    """Spreadsheet-style alphabetic id: A..Z, AA, AB, ..., ZZ, AAA, ..."""
    text = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        text = _LETTERS[rem] + text
    return text


def is_similar(c1: RGBA, c2: RGBA, tolerance: float) -> bool:
    """Whether two samples belong in the same palette bucket."""
    if abs(c1[3] - c2[3]) > tolerance:
        return False
    if c1[3] < 10 and c2[3] < 10:
        return True
    return rgba_distance(c1, c2) <= tolerance


_SORT_KEYS = {
    "by_count": lambda e: -e.count,
    "by_brightness": lambda e: e.brightness,
    "by_hue": lambda e: e.hue,
}


def sort_order(entries: List[PaletteEntry], mode: str) -> List[int]:
    """Indices of entries in legend order.

    Sorting is stable, so ties and "by_index" keep discovery order.
    """
    key = _SORT_KEYS.get(mode)
    if key is None:
        return list(range(len(entries)))
    return sorted(range(len(entries)), key=lambda i: key(entries[i]))


def grid_dimensions(box: Box, block_size: int) -> Tuple[int, int]:
    """Logical grid (width, height) for a cropped box."""
    min_x, min_y, max_x, max_y = box
    return (
        math.ceil((max_x - min_x) / block_size),
        math.ceil((max_y - min_y) / block_size),
    )


def quantize_grid(
    arr: np.ndarray, box: Box, block_size: int, config: Config
) -> Tuple[Grid, List[PaletteEntry]]:
    """Sample one pixel per block and group samples into a palette.

    Each logical cell samples the pixel at its block center. A sample joins
    the first existing bucket whose representative is within
    ``color_tolerance``; otherwise it starts a new bucket.

    Args:
        arr: RGBA array of shape (H, W, 4).
        box: Cropped bounding box.
        block_size: Source pixels per logical cell.
        config: Configuration options.

    Returns:
        Tuple of (grid, sorted palette entries with ids assigned).
    """
    min_x, min_y, max_x, max_y = box
    width, height = grid_dimensions(box, block_size)
    offset = block_size // 2

    representatives: List[RGBA] = []
    members: List[List[Tuple[int, int, RGBA]]] = []
    bucket_of: Dict[RGBA, int] = {}

    for y in range(height):
        phys_y = min_y + y * block_size + offset
        if phys_y >= max_y:
            continue
        for x in range(width):
            phys_x = min_x + x * block_size + offset
            if phys_x >= max_x:
                continue
            r, g, b, a = arr[phys_y, phys_x].tolist()
            color = (r, g, b, a)
            if config.ignore_transparent and a < TRANSPARENT_ALPHA:
                continue

            # Buckets only ever get appended, so an exact color always
            # resolves to the same first match.
            bucket = bucket_of.get(color)
            if bucket is None:
                bucket = next(
                    (
                        idx
                        for idx, rep in enumerate(representatives)
                        if is_similar(color, rep, config.color_tolerance)
                    ),
                    -1,
                )
                if bucket < 0:
                    bucket = len(representatives)
                    representatives.append(color)
                    members.append([])
                bucket_of[color] = bucket
            members[bucket].append((x, y, color))

    drafts = [
        PaletteEntry(
            id="",
            color=rep,
            hex=rgba_to_hex(rep),
            count=len(members[bucket]),
            brightness=brightness(rep),
            hue=hsl_hue(rep),
        )
        for bucket, rep in enumerate(representatives)
    ]

    grid: Grid = [[None] * width for _ in range(height)]
    palette: List[PaletteEntry] = []
    for index, bucket in enumerate(sort_order(drafts, config.legend_sort)):
        pid = palette_id(index)
        palette.append(replace(drafts[bucket], id=pid))
        for x, y, color in members[bucket]:
            grid[y][x] = Cell(x=x, y=y, palette_id=pid, original_color=color)

    logger.debug(
        f"Quantized {width}x{height} cells into {len(palette)} colors "
        f"(tolerance={config.color_tolerance}, sort={config.legend_sort})"
    )
    return grid, palette
