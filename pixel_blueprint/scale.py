"""Pixel-art block size detection by luminance run-length voting."""
from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import numpy as np

from .color import round_half_up

logger = logging.getLogger("pixel_blueprint")

SMALL_IMAGE_SIDE = 256
SAMPLE_SIZE = 384
MAX_RUN = 128
MIN_STABLE_REGIONS = 5
FALLBACK_TARGET_CELLS = 32
FALLBACK_MIN_BLOCK = 16
FALLBACK_MAX_BLOCK = 64


def luminance_map(arr: np.ndarray) -> np.ndarray:
    """Approximate CIE L* (0-100) of each pixel.

    Args:
        arr: Array of shape (H, W, 3+) with RGB(A) values in [0, 255].

    Returns:
        Array of shape (H, W).
    """
    rgb = arr[..., :3].astype(np.float64)
    y = (rgb[..., 0] * 0.2126 + rgb[..., 1] * 0.7152 + rgb[..., 2] * 0.0722) / 255.0
    y = np.where(y > 0.008856, np.cbrt(y), 7.787 * y + 16.0 / 116.0)
    return 116.0 * y - 16.0


def smooth_cross_median(lum: np.ndarray) -> np.ndarray:
    """5-point (center + 4 neighbors) median filter of the interior.

    Args:
        lum: Luminance map of shape (H, W), H and W at least 3.

    Returns:
        Smoothed interior of shape (H - 2, W - 2).
    """
    stacked = np.stack([
        lum[1:-1, 1:-1],
        lum[:-2, 1:-1],
        lum[2:, 1:-1],
        lum[1:-1, :-2],
        lum[1:-1, 2:],
    ])
    return np.median(stacked, axis=0)


def _scan_runs(
    lines: List[List[float]],
    threshold: float,
    runs: Dict[int, int],
    min_period: int,
) -> None:
    def add_run(length: int) -> None:
        # Longer runs are layout structure, not pixel-art cells
        if min_period <= length <= MAX_RUN:
            runs[length] = runs.get(length, 0) + 1

    for line in lines:
        if not line:
            continue
        run = 1
        prev = line[0]
        for curr in line[1:]:
            if abs(curr - prev) > threshold:
                add_run(run)
                run = 1
                prev = curr
            else:
                run += 1
        add_run(run)


def merge_adjacent_runs(runs: Dict[int, int]) -> Dict[int, int]:
    """Merge run-length buckets one apart into the more-voted bucket.

    Args:
        runs: Mapping of run length to vote count.

    Returns:
        New mapping ordered by ascending run length.
    """
    lengths = sorted(runs)
    merged = {length: runs[length] for length in lengths}
    for a, b in zip(lengths[:-1], lengths[1:]):
        if a in merged and b in merged and b - a <= 1:
            count_a = merged[a]
            count_b = merged[b]
            if count_a >= count_b:
                merged[a] = count_a + count_b
                del merged[b]
            else:
                merged[b] = count_a + count_b
                del merged[a]
    return merged


def analyze_region(
    lum: np.ndarray, strict: bool, min_period: int
) -> int:
    """Return the most-voted run length within one luminance region.

    Args:
        lum: Luminance map of the region.
        strict: Whether the source is lossless (tighter noise threshold).
        min_period: Shortest run length that may vote.

    Returns:
        Detected period, 1 if no runs qualify.
    """
    if lum.shape[0] < 3 or lum.shape[1] < 3:
        return 1

    smoothed = smooth_cross_median(lum)
    threshold = 5.0 if strict else 10.0

    runs: Dict[int, int] = {}
    _scan_runs(smoothed.tolist(), threshold, runs, min_period)
    _scan_runs(smoothed.T.tolist(), threshold, runs, min_period)

    merged = merge_adjacent_runs(runs)
    best_scale = 1
    max_count = 0
    for scale, count in merged.items():
        if count > max_count:
            max_count = count
            best_scale = scale
    return best_scale


def sample_regions(width: int, height: int) -> List[Tuple[int, int, int, int]]:
    """Eight fixed sampling windows: corners, center and three edge midpoints.

    Returns:
        List of (x, y, w, h) windows.
    """
    safe_w = max(0, width - SAMPLE_SIZE)
    safe_h = max(0, height - SAMPLE_SIZE)
    origins = [
        (0, 0),
        (safe_w, 0),
        (0, safe_h),
        (safe_w, safe_h),
        (safe_w >> 1, safe_h >> 1),
        (safe_w >> 1, 0),
        (safe_w >> 1, safe_h),
        (0, safe_h >> 1),
    ]
    return [
        (x, y, min(SAMPLE_SIZE, width - x), min(SAMPLE_SIZE, height - y))
        for x, y in origins
    ]


def detect_block_size(arr: np.ndarray, strict: bool = True) -> int:
    """Infer how many source pixels make up one pixel-art cell.

    Small images are analyzed whole. Larger images vote over eight sampled
    windows; a period must be the mode of at least five windows to count.
    When nothing is stable the image is treated as non-pixel-art and cut
    into roughly 32 cells along its long side.

    Args:
        arr: RGBA array of shape (H, W, 4).
        strict: Whether the source is lossless (PNG/WebP).

    Returns:
        Block size in source pixels (at least 1).
    """
    height, width = arr.shape[:2]
    lum = luminance_map(arr)

    if max(width, height) <= SMALL_IMAGE_SIDE:
        scale = analyze_region(lum, strict, 1)
        logger.debug(f"Block size (whole image): {scale}")
        return scale

    votes: Dict[int, int] = {}
    for x, y, rw, rh in sample_regions(width, height):
        scale = analyze_region(lum[y:y + rh, x:x + rw], strict, 2)
        logger.debug(f"  Region ({x},{y}) {rw}x{rh}: period={scale}")
        if scale > 1:
            votes[scale] = votes.get(scale, 0) + 1

    stable = {
        scale: count
        for scale, count in votes.items()
        if count >= MIN_STABLE_REGIONS
    }

    if not stable:
        fallback = round_half_up(max(width, height) / FALLBACK_TARGET_CELLS)
        fallback = max(FALLBACK_MIN_BLOCK, min(FALLBACK_MAX_BLOCK, fallback))
        logger.debug(f"No stable period (votes={votes}), fallback block size {fallback}")
        return fallback

    dominant = 1
    max_votes = 0
    for scale, count in stable.items():
        if count > max_votes:
            max_votes = count
            dominant = scale

    final = dominant
    for candidate in stable:
        if candidate > final and candidate % final == 0:
            final = candidate

    logger.debug(f"Block size: {final} (votes={votes})")
    return final
