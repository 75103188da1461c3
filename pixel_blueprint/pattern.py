"""Blueprint rendering with Pillow."""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from .color import RGBA, brightness, hex_to_rgba, rgba_to_hex
from .config import Config
from .layout import (
    GAP_SWATCH_TO_TEXT,
    GAP_TEXT_TO_COUNT,
    FontSpec,
    LayoutGeometry,
    TextMeasurer,
    compute_layout,
    count_font,
    extra_font,
    header_font,
    legend_extra_segments,
    title_font,
)
from .quantize import PaletteEntry
from .regions import LabelPlacement, label_regions

if TYPE_CHECKING:
    from .cli import ProcessingResult

logger = logging.getLogger("pixel_blueprint")

BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
RED = (255, 0, 0)
SWATCH_BORDER = (204, 204, 204)
EXTRA_TEXT = (102, 102, 102)
EXTRA_TEXT_BOLD = (51, 51, 51)
MAJOR_AXIS_FILL = (0, 0, 0, 20)

_LETTER_DIGITS = re.compile(r"^[A-Za-z]\d{3}$")
_DIGITS_LETTER = re.compile(r"^\d{3}[A-Za-z]$")
_LETTERS_DIGIT = re.compile(r"^[A-Za-z]{3}\d$")


def format_bead_code(code: str) -> str:
    """Split a bead code over two lines so it fits in a cell.

    Codes of up to three characters stay on one line. Four-character codes
    split after a leading zero or letter prefix, before a trailing letter or
    digit suffix, or in the middle; longer codes split at the midpoint.
    """
    if not code:
        return ""
    text = str(code)
    if len(text) <= 3:
        return text
    if len(text) == 4:
        if text.startswith("0") or _LETTER_DIGITS.match(text):
            return f"{text[0]}\n{text[1:]}"
        if _DIGITS_LETTER.match(text) or _LETTERS_DIGIT.match(text):
            return f"{text[:3]}\n{text[3:]}"
        return f"{text[:2]}\n{text[2:]}"
    mid = (len(text) + 1) // 2
    return f"{text[:mid]}\n{text[mid:]}"


def contrast_color(color: RGBA) -> Tuple[int, int, int]:
    """Black or white, whichever reads better on top of ``color``."""
    if color[3] < 128:
        return BLACK
    return BLACK if brightness(color) > 128 else WHITE


def label_font_size(label: str, scale: int) -> float:
    """Font size that fits a (possibly two-line) label inside one cell."""
    lines = format_bead_code(label).split("\n")
    max_chars = max(len(line) for line in lines)
    size = scale * 0.5
    if max_chars > 0:
        size = min(size, (scale * 0.9) / (max_chars * 0.6))
    size = min(size, (scale * 0.9) / (len(lines) * 1.1))
    size = min(size, scale * 0.7)
    return max(4.0, size)


@lru_cache(maxsize=64)
def _load_font(size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.load_default(size=size)


def _font(spec: FontSpec) -> ImageFont.FreeTypeFont:
    return _load_font(max(1, int(round(spec.size))))


def _stroke(spec: FontSpec) -> int:
    # The bundled font has no bold face; bold is drawn with a thin stroke.
    return 1 if spec.bold else 0


def _text_size(
    draw: ImageDraw.ImageDraw, text: str, spec: FontSpec
) -> Tuple[int, int]:
    left, top, right, bottom = draw.textbbox(
        (0, 0), text, font=_font(spec), stroke_width=_stroke(spec)
    )
    return right - left, bottom - top


def make_measurer() -> TextMeasurer:
    """Text width callback backed by Pillow text metrics."""
    dummy = Image.new("RGB", (1, 1), "white")
    dummy_draw = ImageDraw.Draw(dummy)

    def measure(text: str, spec: FontSpec) -> float:
        return float(_text_size(dummy_draw, text, spec)[0])

    return measure


def _draw_text(
    draw: ImageDraw.ImageDraw,
    xy: Tuple[float, float],
    text: str,
    spec: FontSpec,
    fill: Tuple[int, ...],
    anchor: str = "la",
) -> None:
    stroke = _stroke(spec)
    draw.text(
        xy,
        text,
        font=_font(spec),
        fill=fill,
        anchor=anchor,
        stroke_width=stroke,
        stroke_fill=fill if stroke else None,
    )


def _draw_cross(draw: ImageDraw.ImageDraw, x: float, y: float, size: float) -> None:
    """White cell with a red border and diagonals, marking a missing bead."""
    draw.rectangle([x, y, x + size, y + size], fill=WHITE, outline=RED, width=2)
    draw.line([(x, y), (x + size, y + size)], fill=RED, width=2)
    draw.line([(x + size, y), (x, y + size)], fill=RED, width=2)


def _has_bead(entry: PaletteEntry, config: Config) -> bool:
    return config.effective_bead_mode != "none" and entry.matched_bead is not None


def _cell_label(entry: PaletteEntry, config: Config) -> str:
    if config.effective_bead_mode != "none" and entry.matched_bead is not None:
        if entry.matched_bead.refs:
            return entry.matched_bead.refs[0].code
    return entry.id


def _darkest_hex(palette: Sequence[PaletteEntry]) -> str:
    darkest = "#000000"
    lowest = 255.0
    for entry in palette:
        if entry.brightness < lowest:
            lowest = entry.brightness
            darkest = entry.hex
    return darkest


def _draw_legend(
    draw: ImageDraw.ImageDraw,
    geometry: LayoutGeometry,
    palette: Sequence[PaletteEntry],
    config: Config,
    measure: TextMeasurer,
) -> None:
    base = geometry.base_font_size
    box_x, box_y = geometry.legend_x, geometry.legend_y
    draw.rectangle(
        [box_x, box_y, box_x + geometry.legend_width, box_y + geometry.legend_height],
        outline=hex_to_rgba(_darkest_hex(palette))[:3],
        width=2,
    )

    header_x = box_x + 20
    for idx, line in enumerate(geometry.header_lines):
        header_y = box_y + 20 + idx * geometry.header_line_height
        _draw_text(draw, (header_x, header_y), line, header_font(base), BLACK)

    swatch = geometry.swatch_size
    for index, entry in enumerate(palette):
        lx, ly = geometry.legend_item_origin(index)
        center_y = ly + swatch / 2
        bead = entry.matched_bead if _has_bead(entry, config) else None

        if config.effective_bead_mode != "none" and entry.is_bead_missing:
            _draw_cross(draw, lx, ly, swatch)
        elif bead is not None:
            half = swatch / 2
            draw.rectangle([lx, ly, lx + half, ly + swatch], fill=entry.color[:3])
            draw.rectangle(
                [lx + half, ly, lx + swatch, ly + swatch],
                fill=hex_to_rgba(bead.hex)[:3],
            )
            draw.rectangle([lx, ly, lx + swatch, ly + swatch], outline=SWATCH_BORDER)
        else:
            draw.rectangle(
                [lx, ly, lx + swatch, ly + swatch],
                fill=entry.color[:3],
                outline=SWATCH_BORDER,
            )

        # Swatch label: bead code for matched beads, palette id otherwise
        if bead is not None and not entry.is_bead_missing and bead.refs:
            swatch_label = bead.refs[0].code
            base_color = hex_to_rgba(bead.hex)
        else:
            swatch_label = entry.id
            base_color = entry.color
        fill = RED if entry.is_bead_missing else contrast_color(base_color)
        lines = format_bead_code(swatch_label).split("\n")
        size = max(6.0, (swatch * 0.45) / (1.2 if len(lines) > 1 else 1))
        for idx, line in enumerate(lines):
            line_y = center_y + (idx - (len(lines) - 1) / 2) * size * 1.1
            _draw_text(
                draw, (lx + swatch / 2, line_y), line, FontSpec("code", size), fill, "mm"
            )

        cursor_x = lx + swatch + GAP_SWATCH_TO_TEXT
        text_x = cursor_x
        for text, bold in legend_extra_segments(entry, config):
            spec = extra_font(base, bold)
            color = EXTRA_TEXT_BOLD if bold else EXTRA_TEXT
            _draw_text(draw, (text_x, center_y), text, spec, color, "lm")
            text_x += measure(text, spec)
        if geometry.max_extra_text_width > 0:
            cursor_x += geometry.max_extra_text_width + GAP_TEXT_TO_COUNT

        _draw_text(draw, (cursor_x, center_y), str(entry.count), count_font(base), BLACK, "lm")


def _draw_cells(
    draw: ImageDraw.ImageDraw,
    geometry: LayoutGeometry,
    result: "ProcessingResult",
    entries: Dict[str, PaletteEntry],
    config: Config,
) -> None:
    scale = geometry.scale
    for row in result.grid:
        for cell in row:
            if cell is None:
                continue
            px = geometry.grid_x + cell.x * scale
            py = geometry.grid_y + cell.y * scale
            entry = entries.get(cell.palette_id)
            if entry is not None and entry.is_bead_missing:
                _draw_cross(draw, px, py, scale)
            elif cell.original_color[3] > 20:
                fill = rgba_to_hex(cell.original_color)
                if (
                    config.effective_bead_mode != "none"
                    and not config.show_original_color
                    and entry is not None
                    and entry.matched_bead is not None
                ):
                    fill = entry.matched_bead.hex
                draw.rectangle(
                    [px, py, px + scale, py + scale], fill=hex_to_rgba(fill[:7])[:3]
                )


def _grid_line_color(config: Config, opacity: float) -> Tuple[int, int, int, int]:
    r, g, b, _ = hex_to_rgba(config.grid_color)
    return (r, g, b, int(round(min(1.0, opacity) * 255)))


def _draw_grid_lines(
    draw: ImageDraw.ImageDraw,
    geometry: LayoutGeometry,
    result: "ProcessingResult",
    config: Config,
) -> None:
    scale = geometry.scale
    gx, gy = geometry.grid_x, geometry.grid_y
    interval = config.major_grid_interval
    minor = _grid_line_color(config, config.grid_opacity)
    major = _grid_line_color(config, config.grid_opacity + 0.2)

    if config.show_grid:
        for x in range(result.width + 1):
            is_major = x % interval == 0
            draw.line(
                [(gx + x * scale, gy), (gx + x * scale, gy + geometry.grid_pixel_height)],
                fill=major if is_major else minor,
                width=2 if is_major else 1,
            )
        for y in range(result.height + 1):
            is_major = y % interval == 0
            draw.line(
                [(gx, gy + y * scale), (gx + geometry.grid_pixel_width, gy + y * scale)],
                fill=major if is_major else minor,
                width=2 if is_major else 1,
            )

    draw.rectangle(
        [gx, gy, gx + geometry.grid_pixel_width, gy + geometry.grid_pixel_height],
        outline=BLACK,
        width=2,
    )


def _draw_labels(
    draw: ImageDraw.ImageDraw,
    geometry: LayoutGeometry,
    labels: Sequence[LabelPlacement],
    entries: Dict[str, PaletteEntry],
    config: Config,
) -> None:
    scale = geometry.scale
    cache: Dict[str, Tuple[List[str], float]] = {}
    for entry in entries.values():
        label = _cell_label(entry, config)
        cache[entry.id] = (
            format_bead_code(label).split("\n"),
            label_font_size(label, scale),
        )

    for placement in labels:
        cached = cache.get(placement.palette_id)
        if cached is None:
            continue
        lines, size = cached
        fill = contrast_color(hex_to_rgba(placement.rendered_hex[:7]))
        px = geometry.grid_x + placement.x * scale
        py = geometry.grid_y + placement.y * scale
        line_h = size * 1.1
        top = py + (scale - line_h * len(lines)) / 2
        for i, line in enumerate(lines):
            _draw_text(
                draw,
                (px + scale / 2, top + i * line_h + line_h / 2),
                line,
                FontSpec("code", size),
                fill,
                "mm",
            )


def _draw_axes(
    draw: ImageDraw.ImageDraw,
    geometry: LayoutGeometry,
    result: "ProcessingResult",
    config: Config,
) -> None:
    scale = geometry.scale
    interval = config.major_grid_interval
    font_size = max(8.0, min(scale * 0.45, 16.0))
    border = _grid_line_color(config, 0.3)

    def coord_cell(cx: float, cy: float, value: int) -> None:
        is_major = value % interval == 0
        if is_major:
            draw.rectangle([cx, cy, cx + scale, cy + scale], fill=MAJOR_AXIS_FILL)
        draw.rectangle([cx, cy, cx + scale, cy + scale], outline=border)
        spec = FontSpec("code", font_size * 1.1 if is_major else font_size, is_major)
        _draw_text(draw, (cx + scale / 2, cy + scale / 2), str(value), spec, BLACK, "mm")

    gx, gy = geometry.grid_x, geometry.grid_y
    total, gap = geometry.axis_total, geometry.axis_gap
    for x in range(result.width):
        px = gx + x * scale
        coord_cell(px, gy - total + gap, x + 1)
        coord_cell(px, gy + geometry.grid_pixel_height + gap, x + 1)
    for y in range(result.height):
        py = gy + y * scale
        coord_cell(gx - total + gap, py, y + 1)
        coord_cell(gx + geometry.grid_pixel_width + gap, py, y + 1)


def render_blueprint(
    result: "ProcessingResult",
    config: Config,
    labels: Optional[Sequence[LabelPlacement]] = None,
) -> Image.Image:
    """Render a printable blueprint image.

    Args:
        result: Processed grid and palette.
        config: Configuration options.
        labels: Precomputed label placements; computed from the grid if None.

    Returns:
        RGB image of the blueprint.

    Raises:
        CanvasTooLargeError: If the layout exceeds the canvas ceiling.
    """
    measure = make_measurer()
    geometry = compute_layout(
        result.width, result.height, result.palette, config, measure
    )
    if labels is None:
        labels = label_regions(result.grid, result.palette, config)
    entries = {entry.id: entry for entry in result.palette}

    image = Image.new("RGB", (geometry.canvas_width, geometry.canvas_height), WHITE)
    draw = ImageDraw.Draw(image, "RGBA")

    if config.title:
        _draw_text(
            draw,
            (config.margin, config.margin),
            config.title,
            title_font(geometry.base_font_size),
            BLACK,
        )

    _draw_legend(draw, geometry, result.palette, config, measure)
    _draw_cells(draw, geometry, result, entries, config)
    _draw_grid_lines(draw, geometry, result, config)
    _draw_labels(draw, geometry, labels, entries, config)
    if config.show_coordinates:
        _draw_axes(draw, geometry, result, config)

    logger.debug(
        f"Rendered blueprint {geometry.canvas_width}x{geometry.canvas_height} "
        f"with {len(labels)} labels"
    )
    return image
