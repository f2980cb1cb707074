"""
Colour conversion between the UI hex strings and the PDF / raster colour models.
"""
import re
from typing import Tuple

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{6})$")
_SHORT_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3})$")


def _normalize_hex(value: str) -> str:
    match = _HEX_RE.match(value or "")
    if match:
        return match.group(1)
    match = _SHORT_HEX_RE.match(value or "")
    if match:
        return "".join(c * 2 for c in match.group(1))
    raise ValueError(f"Invalid hex colour: {value!r}")


def hex_to_rgb255(value: str) -> Tuple[int, int, int]:
    """
    Convert a ``#RRGGBB`` string to an integer RGB triple.

    Args:
        value: Hex colour, with or without the leading ``#``

    Returns:
        Tuple of (r, g, b) in 0-255
    """
    digits = _normalize_hex(value)
    return (
        int(digits[0:2], 16),
        int(digits[2:4], 16),
        int(digits[4:6], 16),
    )


def hex_to_rgb(value: str) -> Tuple[float, float, float]:
    """
    Convert a ``#RRGGBB`` string to a normalized RGB triple for PDF drawing.

    Each component is ``int(pair, 16) / 255``.
    """
    return tuple(c / 255.0 for c in hex_to_rgb255(value))


def rgb255_to_hex(color: Tuple[int, int, int]) -> str:
    """Convert an integer RGB triple back to ``#rrggbb``."""
    r, g, b = (max(0, min(255, int(c))) for c in color[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def with_alpha(value: str, opacity: float) -> Tuple[int, int, int, int]:
    """Get an RGBA tuple for Pillow drawing from a hex colour and opacity."""
    alpha = int(round(max(0.0, min(1.0, opacity)) * 255))
    return hex_to_rgb255(value) + (alpha,)
