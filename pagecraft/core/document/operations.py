"""
Whole-document PDF tools: merge, split, rotate, watermark, compress, reorder
and convert pages to images.

Every tool takes raw PDF bytes and returns new bytes; inputs are never
modified.
"""
import logging
from typing import List, Optional, Sequence, Tuple

import fitz  # PyMuPDF

from pagecraft.core.config import Config
from pagecraft.core.geometry import overlay_to_pdf, pdf_page_height, pdf_to_page

from .loader import BytesLike, open_pdf

logger = logging.getLogger(__name__)


def _save(doc: fitz.Document) -> bytes:
    return doc.tobytes(garbage=4, deflate=True)


def merge_pdfs(sources: Sequence[BytesLike]) -> bytes:
    """
    Concatenate several PDFs, preserving input order.

    Args:
        sources: PDF byte strings, in the order their pages should appear

    Returns:
        Bytes of the merged document
    """
    if not sources:
        raise ValueError("At least one PDF is required for merging")

    merged = fitz.open()
    try:
        for data in sources:
            src = open_pdf(data)
            try:
                merged.insert_pdf(src)
            finally:
                src.close()
        logger.debug("Merged %d PDFs into %d pages", len(sources), merged.page_count)
        return _save(merged)
    finally:
        merged.close()


def _validate_ranges(ranges: Sequence[Tuple[int, int]], page_count: int) -> None:
    if not ranges:
        raise ValueError("At least one page range is required")
    for start, end in ranges:
        if start < 1 or end > page_count or start > end:
            raise ValueError(
                f"Invalid page range ({start}, {end}) for a {page_count}-page document"
            )


def split_pdf(data: BytesLike, ranges: Sequence[Tuple[int, int]]) -> List[bytes]:
    """
    Split a PDF into one document per page range.

    Args:
        data: Source PDF bytes
        ranges: 1-based inclusive ``(start, end)`` page ranges

    Returns:
        List of PDF byte strings, one per range
    """
    src = open_pdf(data)
    try:
        _validate_ranges(ranges, src.page_count)
        results = []
        for start, end in ranges:
            part = fitz.open()
            try:
                part.insert_pdf(src, from_page=start - 1, to_page=end - 1)
                results.append(_save(part))
            finally:
                part.close()
        return results
    finally:
        src.close()


def rotate_pdf(data: BytesLike, angle: int,
               pages: Optional[Sequence[int]] = None) -> bytes:
    """
    Rotate pages by a multiple of 90 degrees.

    Args:
        data: Source PDF bytes
        angle: Clockwise rotation to add, multiple of 90
        pages: Optional 0-based page indices; all pages when omitted
    """
    if angle % 90 != 0:
        raise ValueError("Rotation angle must be a multiple of 90")

    doc = open_pdf(data)
    try:
        targets = range(doc.page_count) if pages is None else pages
        for index in targets:
            page = doc.load_page(index)
            page.set_rotation((page.rotation + angle) % 360)
        return _save(doc)
    finally:
        doc.close()


def add_watermark(data: BytesLike, text: str = Config.WATERMARK_TEXT) -> bytes:
    """Draw a translucent grey text watermark near the centre of every page."""
    size = Config.WATERMARK_FONT_SIZE
    grey = Config.WATERMARK_GREY

    doc = open_pdf(data)
    try:
        for page in doc:
            width = page.mediabox.width
            height = pdf_page_height(page)
            # Baseline at (w/2 - 50, h/2) in PDF space
            pdf_x, pdf_y = overlay_to_pdf(width / 2 - 50, height / 2, 0, height)
            page.insert_text(
                pdf_to_page(page, pdf_x, pdf_y),
                text,
                fontsize=size,
                fontname="helv",
                color=(grey, grey, grey),
                fill_opacity=Config.WATERMARK_OPACITY,
                stroke_opacity=Config.WATERMARK_OPACITY,
            )
        return _save(doc)
    finally:
        doc.close()


def compress_pdf(data: BytesLike) -> bytes:
    """Re-save a PDF with unused objects dropped and streams deflated."""
    doc = open_pdf(data)
    try:
        return doc.tobytes(garbage=4, deflate=True, deflate_images=True,
                           deflate_fonts=True, clean=True)
    finally:
        doc.close()


def reorder_pages(data: BytesLike, order: Sequence[int]) -> bytes:
    """
    Reorder pages.

    Args:
        data: Source PDF bytes
        order: Permutation of the 0-based page indices
    """
    doc = open_pdf(data)
    try:
        if sorted(order) != list(range(doc.page_count)):
            raise ValueError("Page order must be a permutation of all page indices")
        doc.select(list(order))
        return _save(doc)
    finally:
        doc.close()


def convert_to_images(data: BytesLike,
                      scale: float = Config.DEFAULT_RENDER_SCALE) -> List[bytes]:
    """Render every page to PNG bytes."""
    doc = open_pdf(data)
    try:
        matrix = fitz.Matrix(scale, scale)
        return [page.get_pixmap(matrix=matrix, alpha=False).tobytes("png")
                for page in doc]
    finally:
        doc.close()
