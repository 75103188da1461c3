"""Tests for quantize module."""
from __future__ import annotations

import numpy as np
import pytest

from pixel_blueprint.config import Config
from pixel_blueprint.quantize import (
    grid_dimensions,
    is_similar,
    palette_id,
    quantize_grid,
    sort_order,
)

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def _full_box(arr: np.ndarray):
    return (0, 0, arr.shape[1], arr.shape[0])


class TestQuantizeGrid:
    """Tests for quantize_grid function."""

    def test_two_color_scenario(self, two_color_image: np.ndarray) -> None:
        """Two colors split 32/32, ids in discovery order on ties."""
        config = Config(color_tolerance=0)
        grid, palette = quantize_grid(two_color_image, _full_box(two_color_image), 1, config)

        assert len(palette) == 2
        assert [entry.id for entry in palette] == ["A", "B"]
        assert [entry.count for entry in palette] == [32, 32]
        assert palette[0].color == RED
        assert palette[1].color == BLUE
        assert grid[0][0].palette_id == "A"
        assert grid[0][7].palette_id == "B"
        assert grid[7][7].palette_id == "A"

    def test_sort_by_brightness(self, two_color_image: np.ndarray) -> None:
        """Darker blue sorts before red by brightness."""
        config = Config(color_tolerance=0, legend_sort="by_brightness")
        grid, palette = quantize_grid(two_color_image, _full_box(two_color_image), 1, config)
        assert palette[0].color == BLUE
        assert palette[0].id == "A"
        assert grid[0][0].palette_id == "B"

    def test_sort_by_count(self) -> None:
        """More frequent colors come first."""
        arr = np.zeros((2, 4, 4), dtype=np.uint8)
        arr[:, :] = BLUE
        arr[0, 0] = RED
        _, palette = quantize_grid(arr, _full_box(arr), 1, Config(color_tolerance=0))
        assert [entry.color for entry in palette] == [BLUE, RED]
        assert [entry.count for entry in palette] == [7, 1]

    def test_block_sampling(self, sample_image) -> None:
        """One sample per block at the block center."""
        arr = np.array(sample_image)
        grid, palette = quantize_grid(arr, _full_box(arr), 8, Config())
        assert len(grid) == 8 and len(grid[0]) == 8
        assert len(palette) == 4
        assert all(entry.count == 16 for entry in palette)

    def test_partial_blocks(self) -> None:
        """Blocks whose center falls outside the box stay empty."""
        arr = np.full((5, 5, 4), 255, dtype=np.uint8)
        grid, palette = quantize_grid(arr, (0, 0, 5, 5), 4, Config())
        assert grid_dimensions((0, 0, 5, 5), 4) == (2, 2)
        assert grid[0][0] is not None
        assert grid[0][1] is None
        assert grid[1][1] is None
        assert palette[0].count == 1

    def test_transparent_cells_empty(self, transparent_image: np.ndarray) -> None:
        """Transparent samples are skipped when ignore_transparent is set."""
        grid, palette = quantize_grid(
            transparent_image, _full_box(transparent_image), 8, Config()
        )
        assert grid[0][0] is None
        assert grid[1][1] is not None
        assert len(palette) == 1
        assert palette[0].count == 4

    def test_transparent_cells_kept(self, transparent_image: np.ndarray) -> None:
        """Transparent samples form their own entry otherwise."""
        config = Config(ignore_transparent=False)
        grid, palette = quantize_grid(
            transparent_image, _full_box(transparent_image), 8, config
        )
        assert grid[0][0] is not None
        assert len(palette) == 2

    def test_idempotent(self, gradient_image: np.ndarray) -> None:
        """Same input and config give the same palette."""
        config = Config(color_tolerance=20)
        _, first = quantize_grid(gradient_image, _full_box(gradient_image), 1, config)
        _, second = quantize_grid(gradient_image, _full_box(gradient_image), 1, config)
        assert first == second

    def test_tolerance_monotonic_on_ramp(self, gradient_image: np.ndarray) -> None:
        """Along a single-axis ramp a larger tolerance never adds colors."""
        sizes = []
        for tolerance in (0, 5, 10, 30, 100, 500):
            _, palette = quantize_grid(
                gradient_image,
                _full_box(gradient_image),
                1,
                Config(color_tolerance=tolerance),
            )
            sizes.append(len(palette))
        assert sizes == sorted(sizes, reverse=True)
        assert sizes[-1] == 1

    def test_tolerance_not_monotonic_in_color_space(self) -> None:
        """First-fit buckets depend on which colors become representatives.

        At tolerance 10 the second sample joins the first bucket, leaving the
        last two samples too far from it and from each other.
        """
        arr = np.array(
            [[[0, 0, 0, 255], [10, 0, 0, 255], [10, 9, 0, 255], [10, 0, 9, 255]]],
            dtype=np.uint8,
        )
        counts = [
            len(quantize_grid(arr, (0, 0, 4, 1), 1, Config(color_tolerance=t))[1])
            for t in (9, 10)
        ]
        assert counts == [2, 3]

    def test_first_bucket_wins(self) -> None:
        """A sample joins the first representative within tolerance."""
        arr = np.array(
            [[[100, 0, 0, 255], [110, 0, 0, 255], [105, 0, 0, 255]]], dtype=np.uint8
        )
        grid, palette = quantize_grid(arr, (0, 0, 3, 1), 1, Config(color_tolerance=8))
        assert len(palette) == 2
        assert grid[0][2].palette_id == grid[0][0].palette_id
        assert grid[0][2].original_color == (105, 0, 0, 255)

    def test_empty_box(self) -> None:
        arr = np.zeros((4, 4, 4), dtype=np.uint8)
        grid, palette = quantize_grid(arr, (0, 0, 0, 0), 1, Config())
        assert grid == []
        assert palette == []


class TestPaletteId:
    """Tests for palette_id function."""

    @pytest.mark.parametrize(
        "index,expected",
        [(0, "A"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA")],
    )
    def test_ids(self, index: int, expected: str) -> None:
        assert palette_id(index) == expected

    def test_unique(self) -> None:
        ids = [palette_id(i) for i in range(2000)]
        assert len(set(ids)) == 2000


class TestIsSimilar:
    """Tests for is_similar function."""

    def test_alpha_gap(self) -> None:
        """A large alpha difference separates otherwise equal colors."""
        assert not is_similar((0, 0, 0, 255), (0, 0, 0, 200), 10)

    def test_both_transparent(self) -> None:
        """Nearly invisible colors match regardless of RGB."""
        assert is_similar((255, 0, 0, 5), (0, 255, 0, 2), 10)

    def test_distance(self) -> None:
        assert is_similar((10, 10, 10, 255), (13, 14, 10, 255), 5)
        assert not is_similar((10, 10, 10, 255), (13, 14, 10, 255), 4)


class TestSortOrder:
    """Tests for sort_order function."""

    def test_by_index_keeps_order(self, entry_factory) -> None:
        entries = [entry_factory("", RED, 1), entry_factory("", BLUE, 5)]
        assert sort_order(entries, "by_index") == [0, 1]
        assert sort_order(entries, "by_count") == [1, 0]

    def test_by_hue(self, entry_factory) -> None:
        entries = [entry_factory("", BLUE), entry_factory("", RED)]
        assert sort_order(entries, "by_hue") == [1, 0]
