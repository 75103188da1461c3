"""Background bounding-box detection."""
from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

from .color import hex_to_rgba
from .config import Config

logger = logging.getLogger("pixel_blueprint")

# (min_x, min_y, max_x, max_y), max exclusive
Box = Tuple[int, int, int, int]


def background_mask(arr: np.ndarray, config: Config) -> np.ndarray:
    """Mark pixels treated as background under the crop mode.

    Args:
        arr: RGBA array of shape (H, W, 4).
        config: Configuration with crop mode and tolerance.

    Returns:
        Boolean array of shape (H, W).
    """
    rgba = arr.astype(np.int32)
    r, g, b, a = rgba[..., 0], rgba[..., 1], rgba[..., 2], rgba[..., 3]
    tol = config.background_tolerance
    mode = config.auto_crop

    if mode == "white":
        return (r > 255 - tol) & (g > 255 - tol) & (b > 255 - tol) & (a > 200)
    if mode == "black":
        return (r < tol) & (g < tol) & (b < tol) & (a > 200)
    if mode == "custom":
        target = np.array(hex_to_rgba(config.custom_crop_color), dtype=np.float64)
        diff = rgba.astype(np.float64) - target
        return np.sqrt(np.sum(diff * diff, axis=-1)) <= tol
    return a < 10


def find_bounding_box(arr: np.ndarray, config: Config) -> Box:
    """Find the content bounding box by scanning in from each edge.

    When the crop mode is "none", or every pixel is background, the full
    image is returned.

    Args:
        arr: RGBA array of shape (H, W, 4).
        config: Configuration with crop mode and tolerance.

    Returns:
        Bounding box (min_x, min_y, max_x, max_y).
    """
    height, width = arr.shape[:2]
    if config.auto_crop == "none":
        return (0, 0, width, height)

    content = ~background_mask(arr, config)
    rows = np.flatnonzero(content.any(axis=1))
    cols = np.flatnonzero(content.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        logger.debug("Crop found no content, keeping full image")
        return (0, 0, width, height)

    box = (int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1)
    logger.debug(f"Crop box ({config.auto_crop}): {box}")
    return box
