"""
Coordinate mapping between the three spaces the editor deals with.

- display space: pixels of the on-screen page, origin top-left, scaled by
  the page's display scale (and zoom);
- overlay (page) space: points, origin top-left, where annotation
  elements are stored;
- PDF space: points, origin bottom-left, where native drawing operators
  end up in the content stream.

Overlay -> PDF is a vertical flip: ``pdf_y = H - y - element_height``,
where ``H`` is the height of the visible page (``page.rect``: crop box,
after ``/Rotate``), the same frame the overlay and the renderer use.
PyMuPDF draws in the unrotated page space relative to the crop box, so
points flipped back to the visible top-left frame are handed to it through
``page.derotation_matrix``.
"""
from typing import Tuple

import fitz  # PyMuPDF


def fit_scale(width: float, height: float, max_width: float, max_height: float) -> float:
    """
    Get the uniform scale that fits a page into a viewport box.

    Args:
        width: Page width in points
        height: Page height in points
        max_width: Viewport width
        max_height: Viewport height

    Returns:
        ``min(max_width / width, max_height / height)``
    """
    if width <= 0 or height <= 0:
        return 1.0
    return min(max_width / width, max_height / height)


def display_to_page(x: float, y: float, scale: float) -> Tuple[float, float]:
    """Convert an on-screen pixel position to overlay (page) coordinates."""
    if scale <= 0:
        raise ValueError("scale must be positive")
    return x / scale, y / scale


def page_to_display(x: float, y: float, scale: float) -> Tuple[float, float]:
    """Convert overlay (page) coordinates to an on-screen pixel position."""
    return x * scale, y * scale


def flip_y(y: float, element_height: float, page_height: float) -> float:
    """Flip a top-left overlay y into bottom-left PDF space."""
    return page_height - y - element_height


def overlay_to_pdf(x: float, y: float, element_height: float,
                   page_height: float) -> Tuple[float, float]:
    """
    Map an overlay position to native PDF coordinates.

    Args:
        x: Overlay x (points from the left edge)
        y: Overlay y (points from the top edge)
        element_height: Height of the element being placed (0 for points,
            font size for a text baseline, shape height for shapes)
        page_height: Height of the target page in points

    Returns:
        Tuple of (pdf_x, pdf_y), origin bottom-left
    """
    return x, flip_y(y, element_height, page_height)


def overlay_rect_to_pdf(x: float, y: float, width: float, height: float,
                        page_height: float) -> Tuple[float, float, float, float]:
    """
    Map an overlay box to a PDF-space rectangle.

    Returns:
        Tuple of (x0, y0, x1, y1) with (x0, y0) the bottom-left corner
    """
    pdf_x, pdf_y = overlay_to_pdf(x, y, height, page_height)
    return pdf_x, pdf_y, pdf_x + width, pdf_y + height


def pdf_to_page(page: fitz.Page, x: float, y: float) -> fitz.Point:
    """Convert a PDF-space point to the page space PyMuPDF draws in."""
    return fitz.Point(x, pdf_page_height(page) - y) * page.derotation_matrix


def pdf_rect_to_page(page: fitz.Page, rect: Tuple[float, float, float, float]) -> fitz.Rect:
    """Convert a PDF-space rectangle to the page space PyMuPDF draws in."""
    x0, y0, x1, y1 = rect
    height = pdf_page_height(page)
    result = fitz.Rect(x0, height - y1, x1, height - y0) * page.derotation_matrix
    result.normalize()
    return result


def pdf_page_height(page: fitz.Page) -> float:
    """Get the height used for the vertical flip of a page (visible, rotated)."""
    return page.rect.height
