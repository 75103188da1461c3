"""Pytest fixtures for pixel_blueprint tests."""
from __future__ import annotations

import io
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pytest
from PIL import Image

from pixel_blueprint import Config
from pixel_blueprint.color import brightness, hsl_hue, rgba_to_hex
from pixel_blueprint.quantize import Cell, Grid, PaletteEntry

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
YELLOW = (255, 255, 0, 255)
WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


SYSTEM_CATALOG_YAML = """
meta:
  name: Test Beads
  updated_at: "2024-01-01T00:00:00Z"
brands:
  Alpha:
    "A1": "#FF0000"
    "A2": "#00FF00"
    "A3": "#0000FF"
  Beta:
    "B1": "#ff0000"
    "B2": "#FFFF00"
"""


@pytest.fixture
def default_config() -> Config:
    """Return a default Config instance."""
    return Config()


@pytest.fixture
def sample_image() -> Image.Image:
    """Create a 64x64 test image with a visible grid pattern.

    The image has 8x8 pixel cells with four colors repeating along
    diagonals.
    """
    arr = np.zeros((64, 64, 4), dtype=np.uint8)
    colors = [RED, GREEN, BLUE, YELLOW]

    cell_size = 8
    for y in range(8):
        for x in range(8):
            color_idx = (x + y) % len(colors)
            y_start, y_end = y * cell_size, (y + 1) * cell_size
            x_start, x_end = x * cell_size, (x + 1) * cell_size
            arr[y_start:y_end, x_start:x_end] = colors[color_idx]

    return Image.fromarray(arr, "RGBA")


@pytest.fixture
def sample_image_bytes(sample_image: Image.Image) -> bytes:
    """Return sample image as PNG bytes."""
    buf = io.BytesIO()
    sample_image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def transparent_image() -> np.ndarray:
    """Create a 32x32 RGBA array with an opaque 16x16 center."""
    arr = np.zeros((32, 32, 4), dtype=np.uint8)
    arr[8:24, 8:24] = (255, 128, 64, 255)
    return arr


@pytest.fixture
def two_color_image() -> np.ndarray:
    """8x8 image: red 4x4 blocks on the diagonal, blue elsewhere."""
    arr = np.zeros((8, 8, 4), dtype=np.uint8)
    arr[:, :] = BLUE
    arr[0:4, 0:4] = RED
    arr[4:8, 4:8] = RED
    return arr


@pytest.fixture
def gradient_image() -> np.ndarray:
    """Create a 64x64 horizontal gray gradient."""
    arr = np.zeros((64, 64, 4), dtype=np.uint8)
    for x in range(64):
        gray = int(x * 255 / 63)
        arr[:, x] = (gray, gray, gray, 255)
    return arr


def make_checkerboard(
    cells_x: int,
    cells_y: int,
    block: int,
    colors: Sequence[Tuple[int, int, int, int]] = (BLACK, WHITE),
) -> np.ndarray:
    """Build an RGBA array of uniform blocks alternating between colors."""
    arr = np.zeros((cells_y * block, cells_x * block, 4), dtype=np.uint8)
    for y in range(cells_y):
        for x in range(cells_x):
            color = colors[(x + y) % len(colors)]
            arr[y * block:(y + 1) * block, x * block:(x + 1) * block] = color
    return arr


def make_entry(
    pid: str,
    color: Tuple[int, int, int, int],
    count: int = 1,
) -> PaletteEntry:
    """Helper to create a palette entry for a color."""
    return PaletteEntry(
        id=pid,
        color=color,
        hex=rgba_to_hex(color),
        count=count,
        brightness=brightness(color),
        hue=hsl_hue(color),
    )


def make_grid(
    rows: Sequence[str],
    colors: Optional[dict] = None,
) -> Grid:
    """Build a grid from strings of palette ids; '.' marks an empty cell."""
    colors = colors or {}
    grid: List[List[Optional[Cell]]] = []
    for y, row in enumerate(rows):
        line: List[Optional[Cell]] = []
        for x, pid in enumerate(row):
            if pid == ".":
                line.append(None)
            else:
                line.append(
                    Cell(x=x, y=y, palette_id=pid, original_color=colors.get(pid, RED))
                )
        grid.append(line)
    return grid


@pytest.fixture
def checkerboard():
    """Factory fixture for block checkerboards."""
    return make_checkerboard


@pytest.fixture
def entry_factory():
    """Factory fixture for palette entries."""
    return make_entry


@pytest.fixture
def grid_factory():
    """Factory fixture for logical grids."""
    return make_grid


@pytest.fixture
def system_catalog_yaml() -> str:
    """YAML text of a small two-brand system catalog."""
    return SYSTEM_CATALOG_YAML
