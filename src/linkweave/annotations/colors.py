"""Colour space conversions, ΔE94 distance and CSS colour helpers.

Lab coordinates use the D65 reference white with XYZ scaled to ``0..100``.
"""

from __future__ import annotations

import math
import re
from typing import Tuple

from ..theme.models import ColorTuple, normalize_color

Lab = Tuple[float, float, float]
Xyz = Tuple[float, float, float]

# D65 reference white
_XN = 95.047
_YN = 100.0
_ZN = 108.883

_EPSILON = 0.008856
_KAPPA = 7.787
_OFFSET = 16 / 116

_RGBA_PATTERN = re.compile(
    r"^rgba?\(\s*([\d.]+)\s*,\s*([\d.]+)\s*,\s*([\d.]+)\s*(?:,\s*([\d.]+)\s*)?\)$",
    re.IGNORECASE,
)


def _to_linear(channel: float) -> float:
    if channel > 0.04045:
        return ((channel + 0.055) / 1.055) ** 2.4
    return channel / 12.92


def _from_linear(channel: float) -> float:
    if channel > 0.0031308:
        return 1.055 * channel ** (1 / 2.4) - 0.055
    return 12.92 * channel


def rgb_to_xyz(rgb: ColorTuple) -> Xyz:
    r, g, b = (_to_linear(component / 255) for component in rgb)
    x = r * 0.4124 + g * 0.3576 + b * 0.1805
    y = r * 0.2126 + g * 0.7152 + b * 0.0722
    z = r * 0.0193 + g * 0.1192 + b * 0.9505
    return (x * 100, y * 100, z * 100)


def xyz_to_lab(xyz: Xyz) -> Lab:
    def f(value: float) -> float:
        return value ** (1 / 3) if value > _EPSILON else _KAPPA * value + _OFFSET

    fx = f(xyz[0] / _XN)
    fy = f(xyz[1] / _YN)
    fz = f(xyz[2] / _ZN)
    return (116 * fy - 16, 500 * (fx - fy), 200 * (fy - fz))


def lab_to_xyz(lab: Lab) -> Xyz:
    lightness, a, b = lab
    fy = (lightness + 16) / 116
    fx = a / 500 + fy
    fz = fy - b / 200

    def inverse(value: float) -> float:
        cubed = value**3
        return cubed if cubed > _EPSILON else (value - _OFFSET) / _KAPPA

    return (inverse(fx) * _XN, inverse(fy) * _YN, inverse(fz) * _ZN)


def xyz_to_rgb(xyz: Xyz) -> ColorTuple:
    """Convert XYZ to 8-bit sRGB, clamping out-of-gamut channels."""

    x, y, z = (component / 100 for component in xyz)
    linear = (
        x * 3.2406 + y * -1.5372 + z * -0.4986,
        x * -0.9689 + y * 1.8758 + z * 0.0415,
        x * 0.0557 + y * -0.2040 + z * 1.0570,
    )
    channels = []
    for value in linear:
        encoded = min(max(0.0, _from_linear(value)), 1.0)
        channels.append(int(round(encoded * 255)))
    return (channels[0], channels[1], channels[2])


def lab_to_rgb(lab: Lab) -> ColorTuple:
    return xyz_to_rgb(lab_to_xyz(lab))


def rgb_to_lab(rgb: ColorTuple) -> Lab:
    return xyz_to_lab(rgb_to_xyz(rgb))


def delta_e94(first: Lab, second: Lab) -> float:
    """Return the CIE94 colour difference (graphic arts weighting).

    Not symmetric: chroma weighting uses ``first`` as the reference colour.
    """

    l1, a1, b1 = first
    l2, a2, b2 = second
    d_l = l1 - l2
    d_a = a1 - a2
    d_b = b1 - b2
    c1 = math.hypot(a1, b1)
    c2 = math.hypot(a2, b2)
    d_c = c1 - c2
    d_h = math.sqrt(max(0.0, d_a * d_a + d_b * d_b - d_c * d_c))
    s_c = 1 + 0.045 * c1
    s_h = 1 + 0.015 * c1
    return math.sqrt(d_l**2 + (d_c / s_c) ** 2 + (d_h / s_h) ** 2)


def format_rgba(rgb: ColorTuple, alpha: float) -> str:
    r, g, b = rgb
    return f"rgba({r}, {g}, {b}, {format(alpha, 'g')})"


def parse_css_color(value: str) -> tuple[ColorTuple, float]:
    """Parse ``rgba()``, ``rgb()`` or hex notation into ``(rgb, alpha)``.

    Raises:
        ValueError: If ``value`` is not a colour in one of those notations.
    """

    text = value.strip()
    match = _RGBA_PATTERN.match(text)
    if match:
        channels = tuple(min(255, max(0, int(round(float(part))))) for part in match.groups()[:3])
        alpha_text = match.group(4)
        alpha = float(alpha_text) if alpha_text is not None else 1.0
        return (channels[0], channels[1], channels[2]), min(1.0, max(0.0, alpha))
    if text.startswith("#"):
        return normalize_color(text), 1.0
    raise ValueError(f"Unsupported CSS color: {value!r}")


def with_alpha(value: str, alpha: float) -> str:
    """Return ``value`` re-rendered as ``rgba()`` with a different alpha."""

    rgb, _ = parse_css_color(value)
    return format_rgba(rgb, alpha)


__all__ = [
    "Lab",
    "Xyz",
    "delta_e94",
    "format_rgba",
    "lab_to_rgb",
    "lab_to_xyz",
    "parse_css_color",
    "rgb_to_lab",
    "rgb_to_xyz",
    "with_alpha",
    "xyz_to_lab",
    "xyz_to_rgb",
]
