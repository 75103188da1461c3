"""Connected-region label placement on the logical grid."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .color import rgba_to_hex, round_half_up
from .config import Config
from .quantize import Cell, Grid, PaletteEntry, TRANSPARENT_ALPHA

logger = logging.getLogger("pixel_blueprint")

_NEIGHBORS = ((1, 0), (-1, 0), (0, 1), (0, -1))


@dataclass(frozen=True)
class LabelPlacement:
    """A grid cell that receives a printed label."""

    x: int
    y: int
    palette_id: str
    rendered_hex: str


def rendered_hex(cell: Cell, entry: Optional[PaletteEntry], config: Config) -> str:
    """Hex color actually drawn for a cell."""
    if (
        config.effective_bead_mode == "none"
        or config.show_original_color
        or entry is None
        or entry.matched_bead is None
    ):
        return rgba_to_hex(cell.original_color)
    return entry.matched_bead.hex


def _is_labelable(cell: Optional[Cell], missing: set) -> bool:
    return (
        cell is not None
        and cell.original_color[3] > TRANSPARENT_ALPHA
        and cell.palette_id not in missing
    )


def _flood_fill(
    grid: Grid,
    region_ids: np.ndarray,
    start: Tuple[int, int],
    region: int,
) -> List[Tuple[int, int]]:
    """Collect the 4-connected same-id region containing ``start``.

    Cells are marked in ``region_ids`` as they are queued.
    """
    height, width = region_ids.shape
    sx, sy = start
    target = grid[sy][sx].palette_id
    region_ids[sy, sx] = region
    queue = [start]
    head = 0
    while head < len(queue):
        x, y = queue[head]
        head += 1
        for dx, dy in _NEIGHBORS:
            nx, ny = x + dx, y + dy
            if 0 <= nx < width and 0 <= ny < height and region_ids[ny, nx] == -1:
                cell = grid[ny][nx]
                if (
                    cell is not None
                    and cell.palette_id == target
                    and cell.original_color[3] > TRANSPARENT_ALPHA
                ):
                    region_ids[ny, nx] = region
                    queue.append((nx, ny))
    return queue


def _centroid(cells: List[Tuple[int, int]], inside) -> Tuple[int, int]:
    sum_x = sum(x for x, _ in cells)
    sum_y = sum(y for _, y in cells)
    cx = round_half_up(sum_x / len(cells))
    cy = round_half_up(sum_y / len(cells))
    if inside(cx, cy):
        return cx, cy
    # Concave regions: nearest member to the centroid
    return min(cells, key=lambda p: (p[0] - cx) ** 2 + (p[1] - cy) ** 2)


def _edge_cells(cells: List[Tuple[int, int]], inside) -> List[Tuple[int, int]]:
    """Boundary cells that end or turn an edge.

    A cell on, say, the top edge is dropped when both its left and right
    neighbors are top-edge cells too; corners and run ends are kept.
    """
    kept = []
    for x, y in cells:
        keep = False
        if not inside(x, y - 1):
            left = inside(x - 1, y) and not inside(x - 1, y - 1)
            right = inside(x + 1, y) and not inside(x + 1, y - 1)
            keep = keep or not (left and right)
        if not inside(x, y + 1):
            left = inside(x - 1, y) and not inside(x - 1, y + 1)
            right = inside(x + 1, y) and not inside(x + 1, y + 1)
            keep = keep or not (left and right)
        if not inside(x - 1, y):
            up = inside(x, y - 1) and not inside(x - 1, y - 1)
            down = inside(x, y + 1) and not inside(x - 1, y + 1)
            keep = keep or not (up and down)
        if not inside(x + 1, y):
            up = inside(x, y - 1) and not inside(x + 1, y - 1)
            down = inside(x, y + 1) and not inside(x + 1, y + 1)
            keep = keep or not (up and down)
        if keep:
            kept.append((x, y))
    return kept


def label_regions(
    grid: Grid, palette: Sequence[PaletteEntry], config: Config
) -> List[LabelPlacement]:
    """Choose which cells of each connected region get a printed label.

    Every region gets a label at its centroid. Regions whose bounding box
    reaches 3 cells on either side also label boundary cells at corners and
    edge ends, so labels stay readable along region outlines without
    filling uniform areas. Cells of missing-bead colors are never labeled.

    Args:
        grid: Logical grid.
        palette: Palette entries (with bead matches, if any).
        config: Configuration options.

    Returns:
        Label placements, region by region in scan order.
    """
    height = len(grid)
    width = len(grid[0]) if height else 0
    entries: Dict[str, PaletteEntry] = {entry.id: entry for entry in palette}
    missing = {entry.id for entry in palette if entry.is_bead_missing}

    region_ids = np.full((height, width), -1, dtype=np.int64)
    labels: List[LabelPlacement] = []
    region = 0

    for y in range(height):
        for x in range(width):
            if region_ids[y, x] != -1:
                continue
            cell = grid[y][x]
            if not _is_labelable(cell, missing):
                region_ids[y, x] = -2
                continue

            cells = _flood_fill(grid, region_ids, (x, y), region)
            current = region

            def inside(tx: int, ty: int) -> bool:
                return (
                    0 <= tx < width
                    and 0 <= ty < height
                    and region_ids[ty, tx] == current
                )

            candidates = [_centroid(cells, inside)]
            seen = set(candidates)
            xs = [cx for cx, _ in cells]
            ys = [cy for _, cy in cells]
            if max(xs) - min(xs) + 1 >= 3 or max(ys) - min(ys) + 1 >= 3:
                for point in _edge_cells(cells, inside):
                    if point not in seen:
                        seen.add(point)
                        candidates.append(point)

            entry = entries.get(cell.palette_id)
            for cx, cy in candidates:
                labels.append(
                    LabelPlacement(
                        x=cx,
                        y=cy,
                        palette_id=cell.palette_id,
                        rendered_hex=rendered_hex(grid[cy][cx], entry, config),
                    )
                )
            region += 1

    logger.debug(f"Placed {len(labels)} labels over {region} regions")
    return labels
