"""Blueprint canvas layout: grid, legend, title and axis placement."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .color import hsb_label
from .config import MAX_CANVAS_SIDE, CanvasTooLargeError, Config
from .quantize import PaletteEntry

logger = logging.getLogger("pixel_blueprint")

GAP_SWATCH_TO_TEXT = 10
GAP_TEXT_TO_COUNT = 15
GAP_COL_TO_COL = 40
BOX_PADDING = 20
LAYOUT_GAP = 30
TITLE_GAP = 20
LEGEND_ROW_GAP = 4
MIN_LEGEND_EXTENT = 400


@dataclass(frozen=True)
class FontSpec:
    """Font request passed to the text measurement callback."""

    family: str  # "text" or "code"
    size: float
    bold: bool = False


# (text, font) -> rendered width in pixels
TextMeasurer = Callable[[str, FontSpec], float]

# (text, bold)
TextSegment = Tuple[str, bool]


@dataclass(frozen=True)
class LayoutGeometry:
    """Pixel geometry of a rendered blueprint."""

    canvas_width: int
    canvas_height: int
    scale: int
    margin: int
    base_font_size: float
    title_height: float
    grid_x: float
    grid_y: float
    grid_pixel_width: int
    grid_pixel_height: int
    axis_size: float
    axis_gap: float
    axis_total: float
    legend_x: float
    legend_y: float
    legend_width: float
    legend_height: float
    legend_cols: int
    legend_rows: int
    legend_item_width: float
    legend_item_height: float
    swatch_size: float
    max_extra_text_width: float
    header_lines: Tuple[str, ...]
    header_line_height: float
    header_section_height: float
    horizontal: bool

    def legend_item_origin(self, index: int) -> Tuple[float, float]:
        """Top-left corner of the index-th legend item.

        Horizontal legends fill row by row, vertical legends column by column.
        """
        if self.horizontal:
            col, row = index % self.legend_cols, index // self.legend_cols
        else:
            col, row = index // self.legend_rows, index % self.legend_rows
        x = self.legend_x + BOX_PADDING + col * self.legend_item_width
        y = (
            self.legend_y
            + BOX_PADDING
            + self.header_section_height
            + row * self.legend_item_height
        )
        return x, y


def extra_font(base_font_size: float, bold: bool = False) -> FontSpec:
    return FontSpec("code", base_font_size * 0.8, bold)


def count_font(base_font_size: float) -> FontSpec:
    return FontSpec("code", base_font_size, True)


def header_font(base_font_size: float) -> FontSpec:
    return FontSpec("text", base_font_size, True)


def title_font(base_font_size: float) -> FontSpec:
    return FontSpec("text", base_font_size * 1.5, True)


def legend_extra_segments(entry: PaletteEntry, config: Config) -> List[TextSegment]:
    """Extra legend text after the swatch.

    Matched beads list their alternative codes; missing beads list every
    code with the preferred one in bold. Without bead matching the color
    value is shown when enabled.
    """
    bead = entry.matched_bead
    if config.effective_bead_mode != "none" and bead is not None:
        codes = [ref.code for ref in bead.refs]
        others = ",".join(codes[1:])
        if entry.is_bead_missing:
            suffix = f", {others})" if others else ")"
            return [("(", False), (codes[0] if codes else "", True), (suffix, False)]
        return [(f"({others})", False)] if others else []
    if config.show_color_value:
        text = entry.hex if config.color_format == "hex" else hsb_label(entry.color)
        return [(text, False)]
    return []


def header_lines(palette: Sequence[PaletteEntry], config: Config) -> List[str]:
    """Statistics lines shown at the top of the legend box."""
    lines = [
        f"Total pixels: {sum(entry.count for entry in palette)}",
        f"Total colors: {len(palette)}",
    ]
    if config.show_color_value and config.effective_bead_mode == "none":
        lines.append(f"Color format: {config.color_format.upper()}")
    if config.legend_position in ("top", "bottom"):
        return ["   ".join(lines)]
    return lines


def compute_layout(
    grid_width: int,
    grid_height: int,
    palette: Sequence[PaletteEntry],
    config: Config,
    measure: TextMeasurer,
) -> LayoutGeometry:
    """Compute the blueprint canvas geometry.

    Args:
        grid_width: Logical grid width in cells.
        grid_height: Logical grid height in cells.
        palette: Legend entries in display order.
        config: Configuration options.
        measure: Callback returning the pixel width of text in a font.

    Returns:
        Layout geometry.

    Raises:
        CanvasTooLargeError: If either canvas side exceeds the ceiling.
    """
    scale = config.scale
    margin = config.margin

    axis_size = scale if config.show_coordinates else 0
    axis_gap = max(2, scale * 0.1) if config.show_coordinates else 0
    axis_total = axis_size + axis_gap if config.show_coordinates else 0

    grid_pixel_w = grid_width * scale
    grid_pixel_h = grid_height * scale
    grid_block_w = grid_pixel_w + axis_total * 2
    grid_block_h = grid_pixel_h + axis_total * 2

    base_font_size = max(16, scale * 0.65)
    swatch_size = max(20, scale)
    legend_item_h = max(swatch_size, base_font_size * 1.5) + LEGEND_ROW_GAP

    # Legend column width from the widest extra text and count
    max_extra_w = 0.0
    max_count_w = 0.0
    for entry in palette:
        extra_w = sum(
            measure(text, extra_font(base_font_size, bold))
            for text, bold in legend_extra_segments(entry, config)
        )
        max_extra_w = max(max_extra_w, extra_w)
        max_count_w = max(
            max_count_w, measure(str(entry.count), count_font(base_font_size))
        )

    legend_item_w = swatch_size + GAP_SWATCH_TO_TEXT + max_count_w
    if max_extra_w > 0:
        legend_item_w += max_extra_w + GAP_TEXT_TO_COUNT
    legend_item_w += GAP_COL_TO_COL

    horizontal = config.legend_position in ("top", "bottom")
    lines = header_lines(palette, config)
    max_header_w = max(
        (measure(line, header_font(base_font_size)) for line in lines), default=0.0
    )
    header_line_h = base_font_size * 1.5
    header_section_h = len(lines) * header_line_h + 10

    count = len(palette)
    if horizontal:
        effective_w = max(grid_block_w, MIN_LEGEND_EXTENT) - BOX_PADDING * 2
        legend_cols = max(1, math.floor(effective_w / legend_item_w))
        legend_rows = math.ceil(count / legend_cols)
    else:
        effective_h = (
            max(grid_block_h, MIN_LEGEND_EXTENT) - BOX_PADDING * 2 - header_section_h
        )
        per_col = max(1, math.floor(effective_h / legend_item_h))
        legend_cols = max(1, math.ceil(count / per_col))
        legend_rows = math.ceil(count / legend_cols)

    content_w = max(legend_cols * legend_item_w, max_header_w)
    content_h = header_section_h + legend_rows * legend_item_h
    legend_w = content_w + BOX_PADDING * 2
    legend_h = content_h + BOX_PADDING * 2
    if horizontal:
        legend_w = max(legend_w, grid_block_w)

    title_h = base_font_size * 1.5 if config.title else 0
    title_gap = TITLE_GAP if config.title else 0
    content_y = margin + title_h + title_gap

    position = config.legend_position
    if position == "top":
        legend_x = margin
        legend_y = content_y
        grid_x = margin + axis_total
        grid_y = legend_y + legend_h + LAYOUT_GAP + axis_total
        canvas_w = max(grid_block_w, legend_w) + margin * 2
        canvas_h = grid_y + grid_pixel_h + axis_total + margin
    elif position == "bottom":
        grid_x = margin + axis_total
        grid_y = content_y + axis_total
        legend_x = margin
        legend_y = grid_y + grid_pixel_h + axis_total + LAYOUT_GAP
        canvas_w = max(grid_block_w, legend_w) + margin * 2
        canvas_h = legend_y + legend_h + margin
    elif position == "left":
        legend_x = margin
        legend_y = content_y
        grid_x = margin + legend_w + LAYOUT_GAP + axis_total
        grid_y = content_y + axis_total
        canvas_w = grid_x + grid_pixel_w + axis_total + margin
        canvas_h = max(grid_block_h + axis_total * 2, legend_h) + content_y + margin
    else:
        grid_x = margin + axis_total
        grid_y = content_y + axis_total
        legend_x = grid_x + grid_pixel_w + axis_total + LAYOUT_GAP
        legend_y = content_y
        canvas_w = legend_x + legend_w + margin
        canvas_h = max(grid_block_h + axis_total * 2, legend_h) + content_y + margin

    canvas_w = math.ceil(canvas_w)
    canvas_h = math.ceil(canvas_h)
    if canvas_w > MAX_CANVAS_SIDE or canvas_h > MAX_CANVAS_SIDE:
        raise CanvasTooLargeError(
            f"Computed canvas {canvas_w}x{canvas_h} exceeds safety ceiling "
            f"(max {MAX_CANVAS_SIDE}x{MAX_CANVAS_SIDE}); lower the scale"
        )

    logger.debug(
        f"Layout ({position}): canvas {canvas_w}x{canvas_h}, "
        f"legend {legend_cols}x{legend_rows}"
    )
    return LayoutGeometry(
        canvas_width=canvas_w,
        canvas_height=canvas_h,
        scale=scale,
        margin=margin,
        base_font_size=base_font_size,
        title_height=title_h,
        grid_x=grid_x,
        grid_y=grid_y,
        grid_pixel_width=grid_pixel_w,
        grid_pixel_height=grid_pixel_h,
        axis_size=axis_size,
        axis_gap=axis_gap,
        axis_total=axis_total,
        legend_x=legend_x,
        legend_y=legend_y,
        legend_width=legend_w,
        legend_height=legend_h,
        legend_cols=legend_cols,
        legend_rows=legend_rows,
        legend_item_width=legend_item_w,
        legend_item_height=legend_item_h,
        swatch_size=swatch_size,
        max_extra_text_width=max_extra_w,
        header_lines=tuple(lines),
        header_line_height=header_line_h,
        header_section_height=header_section_h,
        horizontal=horizontal,
    )
