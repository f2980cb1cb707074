"""
Page rasterization for on-screen display.

The editor only depends on the ``PageRenderer`` contract; any rasterizing
engine can stand behind it. ``FitzPageRenderer`` uses PyMuPDF, and
``PlaceholderRenderer`` draws a blank stand-in page for when real
rendering fails.
"""
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageDraw
from PyQt5.QtGui import QImage

from pagecraft.core.config import Config
from pagecraft.core.document.loader import open_pdf
from pagecraft.core.document.models import Document
from pagecraft.core.errors import LoadError, RenderError

logger = logging.getLogger(__name__)

RasterImage = Image.Image


class PageRenderer(ABC):
    """Turns a page of a Document into a raster image."""

    @abstractmethod
    def render(self, document: Document, page_index: int, scale: float) -> RasterImage:
        """
        Render one page.

        Args:
            document: Loaded document
            page_index: 0-based page index
            scale: Pixels per point

        Returns:
            RGB image of the page

        Raises:
            RenderError: If the page cannot be rasterized
        """

    def close(self) -> None:
        """Release any resources bound to the last rendered document."""


class FitzPageRenderer(PageRenderer):
    """Renders pages with PyMuPDF, keeping the parsed document open between calls."""

    def __init__(self, cache_size: int = 3):
        self._doc: Optional[fitz.Document] = None
        self._bound: Optional[Document] = None
        self._cache: "OrderedDict[Tuple[int, float], RasterImage]" = OrderedDict()
        self._max_cache_size = cache_size

    def _bind(self, document: Document) -> fitz.Document:
        # Refitted copies of a Document share its bytes and stay bound
        if self._bound is None or self._bound.data is not document.data:
            self.close()
            try:
                self._doc = open_pdf(document.data)
            except LoadError as e:
                raise RenderError(f"Cannot open document for rendering: {e}") from e
            self._bound = document
        return self._doc

    def render(self, document: Document, page_index: int, scale: float) -> RasterImage:
        if scale <= 0:
            raise RenderError("Render scale must be positive")
        if not document.has_page(page_index):
            raise RenderError(f"Page index {page_index} out of range")

        doc = self._bind(document)
        cache_key = (page_index, round(scale, 4))
        if cache_key in self._cache:
            self._cache.move_to_end(cache_key)
            return self._cache[cache_key].copy()

        try:
            page = doc.load_page(page_index)
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            image = Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
        except Exception as e:
            raise RenderError(f"Error rendering page {page_index + 1}: {e}") from e

        self._cache[cache_key] = image
        if len(self._cache) > self._max_cache_size:
            self._cache.popitem(last=False)
        return image.copy()

    def close(self) -> None:
        if self._doc is not None:
            self._doc.close()
        self._doc = None
        self._bound = None
        self._cache.clear()


class PlaceholderRenderer(PageRenderer):
    """Draws a neutral page with grey text bars and the page number."""

    def render(self, document: Document, page_index: int, scale: float) -> RasterImage:
        page = document.get_page(page_index)
        return placeholder_page(page.width * scale, page.height * scale,
                                page_index + 1, scale)


def placeholder_page(width: float, height: float, page_number: int,
                     scale: float = 1.0) -> RasterImage:
    """
    Create a placeholder page image.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        page_number: 1-based number printed at the bottom
        scale: Scale applied to margins and bar sizes
    """
    w, h = max(1, int(round(width))), max(1, int(round(height)))
    image = Image.new("RGB", (w, h), Config.PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(image)

    draw.rectangle([0, 0, w - 1, h - 1], outline=Config.PLACEHOLDER_BORDER, width=2)

    margin = 40 * scale
    line_height = 20 * scale
    content_width = max(0.0, w - 2 * margin)

    # Title bar
    draw.rectangle([margin, margin, margin + content_width, margin + 30 * scale],
                   fill=Config.PLACEHOLDER_LINE)

    # Content bars, widths cycle so the page looks like ragged text
    for i in range(15):
        top = margin + 80 * scale + i * line_height
        if top + 12 * scale > h - margin:
            break
        bar = content_width * (0.7 + 0.3 * ((i * 7) % 10) / 10)
        draw.rectangle([margin, top, margin + bar, top + 12 * scale],
                       fill=Config.PLACEHOLDER_LINE)

    label = f"Page {page_number}"
    text_w = draw.textlength(label)
    draw.text(((w - text_w) / 2, h - 20 * scale - 10), label, fill=Config.PLACEHOLDER_TEXT)
    return image


def to_qimage(image: RasterImage) -> QImage:
    """Convert a rendered page to a QImage for display."""
    rgb = image.convert("RGB")
    data = rgb.tobytes("raw", "RGB")
    qimage = QImage(data, rgb.width, rgb.height, 3 * rgb.width, QImage.Format_RGB888)
    # Detach from the Python buffer, which is freed after return
    return qimage.copy()
