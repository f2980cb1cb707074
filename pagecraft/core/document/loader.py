"""
PDF document loading: raw bytes in, immutable page descriptors out.
"""
import logging
from typing import Optional, Union

import fitz  # PyMuPDF

from pagecraft.core.config import Config
from pagecraft.core.errors import (
    EmptyDocumentError,
    NoPagesError,
    UnparseableDocumentError,
)

from .models import Document, Page

logger = logging.getLogger(__name__)

PDF_HEADER = b"%PDF-"

BytesLike = Union[bytes, bytearray, memoryview]


def _open_default(data: bytes) -> fitz.Document:
    if not data.startswith(PDF_HEADER):
        raise ValueError("missing %PDF- header")
    return fitz.open(stream=data, filetype="pdf")


def _open_header_scan(data: bytes) -> fitz.Document:
    # Readers accept junk in front of the header, so look for it further in
    offset = data.find(PDF_HEADER)
    if offset < 0:
        raise ValueError("no %PDF- header found")
    return fitz.open(stream=data[offset:], filetype="pdf")


PARSE_MODES = (
    ("default", _open_default),
    ("header_scan", _open_header_scan),
)


def open_pdf(data: BytesLike) -> fitz.Document:
    """
    Open PDF bytes with PyMuPDF, retrying once with an alternate parse mode.

    Args:
        data: Raw PDF bytes

    Returns:
        An open fitz.Document; the caller owns it and must close it

    Raises:
        EmptyDocumentError: If ``data`` is empty
        UnparseableDocumentError: If no parse mode accepts the bytes, or the
            document is encrypted with a non-empty password
    """
    data = bytes(data or b"")
    if not data:
        raise EmptyDocumentError()

    doc = None
    last_error: Optional[Exception] = None
    for mode_name, opener in PARSE_MODES:
        try:
            doc = opener(data)
        except Exception as e:
            last_error = e
            logger.warning("PDF parse mode %r failed: %s", mode_name, e)
            continue
        if not doc.is_pdf:
            doc.close()
            doc = None
            last_error = ValueError("content is not a PDF")
            logger.warning("PDF parse mode %r opened a non-PDF document", mode_name)
            continue
        break

    if doc is None:
        raise UnparseableDocumentError() from last_error

    if doc.needs_pass and not doc.authenticate(""):
        doc.close()
        raise UnparseableDocumentError("PDF is encrypted and requires a password")

    return doc


class DocumentLoader:
    """Turns raw PDF bytes into a Document with viewport-fitted page descriptors."""

    def __init__(self, max_width: Optional[float] = None,
                 max_height: Optional[float] = None):
        default_w, default_h = Config.get_max_viewport()
        self.max_width = max_width or default_w
        self.max_height = max_height or default_h

    def load(self, data: BytesLike) -> Document:
        """
        Load a PDF document.

        Args:
            data: Raw PDF bytes, must be non-empty

        Returns:
            Document whose pages carry source width/height in points and a
            display scale of ``min(max_w / w, max_h / h)``

        Raises:
            EmptyDocumentError: Zero-length input
            UnparseableDocumentError: The bytes are not a readable PDF
            NoPagesError: The PDF parsed but has no pages
        """
        data = bytes(data or b"")
        doc = open_pdf(data)
        try:
            if doc.page_count == 0:
                raise NoPagesError()

            pages = []
            for index in range(doc.page_count):
                try:
                    rect = doc.load_page(index).rect
                except Exception as e:
                    raise UnparseableDocumentError(
                        f"Page {index + 1} could not be read") from e
                page = Page(index=index, width=rect.width, height=rect.height)
                pages.append(page.fitted(self.max_width, self.max_height))
        finally:
            doc.close()

        logger.debug("Loaded PDF with %d pages (%d bytes)", len(pages), len(data))
        return Document(data=data, pages=tuple(pages))
