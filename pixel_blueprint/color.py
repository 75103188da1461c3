"""Color space conversion, distance metrics and color formatting."""
from __future__ import annotations

import math
from typing import Dict, Sequence, Tuple

import numpy as np

# (r, g, b, a), each 0-255
RGBA = Tuple[int, int, int, int]

# D65 illuminant reference white (XYZ scaled to 0-100)
D65_X = 95.047
D65_Y = 100.0
D65_Z = 108.883

# sRGB to XYZ transformation matrix
SRGB_TO_XYZ = np.array([
    [0.4124, 0.3576, 0.1805],
    [0.2126, 0.7152, 0.0722],
    [0.0193, 0.1192, 0.9505],
])

# Hue gaps within this of 180 degrees count as wrapping
_HUE_EPSILON = 1e-9


def _lab_f(t: np.ndarray) -> np.ndarray:
    return np.where(t > 0.008856, np.cbrt(t), 7.787 * t + 16.0 / 116.0)


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert RGB values to CIE LAB color space.

    Args:
        rgb: Array of shape (..., 3) with RGB values in range [0, 255].

    Returns:
        Array of the same shape with LAB values.
    """
    rgb_normalized = np.asarray(rgb, dtype=np.float64) / 255.0

    # sRGB gamma correction (linearize)
    linear = np.where(
        rgb_normalized > 0.04045,
        ((rgb_normalized + 0.055) / 1.055) ** 2.4,
        rgb_normalized / 12.92,
    )

    xyz = (linear @ SRGB_TO_XYZ.T) * 100.0
    fx = _lab_f(xyz[..., 0] / D65_X)
    fy = _lab_f(xyz[..., 1] / D65_Y)
    fz = _lab_f(xyz[..., 2] / D65_Z)

    l_val = 116 * fy - 16
    a_val = 500 * (fx - fy)
    b_val = 200 * (fy - fz)

    return np.stack([l_val, a_val, b_val], axis=-1)


def lab_of(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """Convert a single RGB triple to a LAB tuple."""
    lab = rgb_to_lab(np.array([r, g, b], dtype=np.float64))
    return (float(lab[0]), float(lab[1]), float(lab[2]))


def rgb_distance(rgb1: np.ndarray, rgb2: np.ndarray) -> np.ndarray:
    """Euclidean distance over raw 0-255 channels."""
    diff = np.asarray(rgb1, dtype=np.float64) - np.asarray(rgb2, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def delta_e_76(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """CIE76 color difference (Euclidean distance in LAB)."""
    diff = np.asarray(lab1, dtype=np.float64) - np.asarray(lab2, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def delta_e_2000(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """CIEDE2000 color difference.

    Inputs broadcast against each other; both are (..., 3) LAB arrays.
    Weighting factors kL, kC and kH are all 1.
    """
    lab1 = np.asarray(lab1, dtype=np.float64)
    lab2 = np.asarray(lab2, dtype=np.float64)
    l1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    l2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    c1 = np.hypot(a1, b1)
    c2 = np.hypot(a2, b2)
    c_avg7 = ((c1 + c2) / 2.0) ** 7
    g = 0.5 * (1.0 - np.sqrt(c_avg7 / (c_avg7 + 25.0 ** 7)))

    a1p = a1 * (1.0 + g)
    a2p = a2 * (1.0 + g)
    c1p = np.hypot(a1p, b1)
    c2p = np.hypot(a2p, b2)

    h1p = np.degrees(np.arctan2(b1, a1p)) % 360.0
    h2p = np.degrees(np.arctan2(b2, a2p)) % 360.0
    h1p = np.where((a1p == 0) & (b1 == 0), 0.0, h1p)
    h2p = np.where((a2p == 0) & (b2 == 0), 0.0, h2p)

    chroma_product = c1p * c2p
    h_diff = h2p - h1p
    h_sum = h1p + h2p

    delta_hp = np.where(
        np.abs(h_diff) <= 180.0,
        h_diff,
        np.where(h2p <= h1p, h_diff + 360.0, h_diff - 360.0),
    )
    delta_hp = np.where(chroma_product == 0, 0.0, delta_hp)

    # An exact 180° gap can come out a hair below 180 after arctan2
    avg_hp = np.where(
        np.abs(h_diff) < 180.0 - _HUE_EPSILON,
        h_sum / 2.0,
        np.where(h_sum < 360.0, (h_sum + 360.0) / 2.0, (h_sum - 360.0) / 2.0),
    )
    avg_hp = np.where(chroma_product == 0, h_sum, avg_hp)

    delta_lp = l2 - l1
    delta_cp = c2p - c1p
    delta_big_hp = 2.0 * np.sqrt(chroma_product) * np.sin(np.radians(delta_hp / 2.0))

    avg_lp = (l1 + l2) / 2.0
    avg_cp = (c1p + c2p) / 2.0

    t = (
        1.0
        - 0.17 * np.cos(np.radians(avg_hp - 30.0))
        + 0.24 * np.cos(np.radians(2.0 * avg_hp))
        + 0.32 * np.cos(np.radians(3.0 * avg_hp + 6.0))
        - 0.20 * np.cos(np.radians(4.0 * avg_hp - 63.0))
    )

    l_term = (avg_lp - 50.0) ** 2
    s_l = 1.0 + (0.015 * l_term) / np.sqrt(20.0 + l_term)
    s_c = 1.0 + 0.045 * avg_cp
    s_h = 1.0 + 0.015 * avg_cp * t

    delta_theta = 30.0 * np.exp(-(((avg_hp - 275.0) / 25.0) ** 2))
    avg_cp7 = avg_cp ** 7
    r_c = 2.0 * np.sqrt(avg_cp7 / (avg_cp7 + 25.0 ** 7))
    r_t = -np.sin(np.radians(2.0 * delta_theta)) * r_c

    dl = delta_lp / s_l
    dc = delta_cp / s_c
    dh = delta_big_hp / s_h
    return np.sqrt(np.maximum(dl * dl + dc * dc + dh * dh + r_t * dc * dh, 0.0))


def color_distance(
    rgb1: Sequence[float], rgb2: Sequence[float], algorithm: str
) -> float:
    """Distance between two RGB colors using the named algorithm.

    Args:
        rgb1: First color as (r, g, b).
        rgb2: Second color as (r, g, b).
        algorithm: One of "rgb", "deltaE76" or "deltaE2000".

    Returns:
        Non-negative distance.
    """
    a = np.asarray(rgb1[:3], dtype=np.float64)
    b = np.asarray(rgb2[:3], dtype=np.float64)
    if algorithm == "rgb":
        return float(rgb_distance(a, b))
    if algorithm == "deltaE76":
        return float(delta_e_76(rgb_to_lab(a), rgb_to_lab(b)))
    return float(delta_e_2000(rgb_to_lab(a), rgb_to_lab(b)))


def rgba_distance(c1: RGBA, c2: RGBA) -> float:
    """Euclidean distance over all four RGBA channels."""
    return math.sqrt(
        (c1[0] - c2[0]) ** 2
        + (c1[1] - c2[1]) ** 2
        + (c1[2] - c2[2]) ** 2
        + (c1[3] - c2[3]) ** 2
    )


def map_slider_to_delta_e(slider: float) -> float:
    """Map the 0-100 accuracy slider onto a Delta E threshold.

    The curve is quadratic so the strict end of the slider has more
    resolution: 1 + (slider / 100)^2 * 19, clamped to [1, 100]. A slider of
    100 gives the loosest threshold, Delta E 100; colors farther than that
    from every bead are still flagged missing.
    """
    if slider <= 0:
        return 1.0
    if slider >= 100:
        return 100.0
    return 1.0 + (slider / 100.0) ** 2 * 19.0


def bead_distance_threshold(slider: float, algorithm: str) -> float:
    """Distance threshold for bead matching under an algorithm.

    RGB distances are roughly five times larger than Delta E values, so the
    threshold is scaled to match; slider 100 then covers the largest
    possible RGB distance (~441).
    """
    threshold = map_slider_to_delta_e(slider)
    if algorithm == "rgb":
        threshold *= 5.0
    return threshold


# --- Formatting ---


def rgba_to_hex(color: RGBA) -> str:
    """Format a color as #rrggbb, appending alpha when not opaque."""
    r, g, b, a = color
    text = f"#{r:02x}{g:02x}{b:02x}"
    if a < 255:
        text += f"{a:02x}"
    return text


def hex_to_rgba(value: str) -> RGBA:
    """Parse #rgb or #rrggbb into an opaque color."""
    digits = value.lstrip("#")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16), 255)


def brightness(color: RGBA) -> float:
    """Perceptual brightness in [0, 255]."""
    r, g, b = color[:3]
    return (r * 299 + g * 587 + b * 114) / 1000


def hsl_hue(color: RGBA) -> float:
    """Standard HSL hue in degrees, 0 for grays."""
    r, g, b = (channel / 255.0 for channel in color[:3])
    high = max(r, g, b)
    low = min(r, g, b)
    if high == low:
        return 0.0
    d = high - low
    if high == r:
        h = (g - b) / d + (6 if g < b else 0)
    elif high == g:
        h = (b - r) / d + 2
    else:
        h = (r - g) / d + 4
    return h / 6 * 360


def hsb_values(color: RGBA) -> Dict[str, int]:
    """Hue/saturation/brightness rounded to degrees and percents."""
    r, g, b = (channel / 255.0 for channel in color[:3])
    high = max(r, g, b)
    low = min(r, g, b)
    delta = high - low
    saturation = 0.0 if high == 0 else delta / high
    hue = hsl_hue(color) / 360.0
    return {
        "h": round_half_up(hue * 360),
        "s": round_half_up(saturation * 100),
        "b": round_half_up(high * 100),
    }


def hsb_label(color: RGBA) -> str:
    """Legend text for a color in HSB format."""
    values = hsb_values(color)
    return f"[{values['h']}°,{values['s']}%,{values['b']}%]"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
