"""
Serialization of a document plus its overlay into new PDF bytes.
"""
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence, Union

import fitz  # PyMuPDF
from PyQt5.QtCore import QObject, pyqtSignal

from pagecraft.core.annotations.models import AnnotationElement, AnnotationType
from pagecraft.core.config import Config
from pagecraft.core.document.loader import open_pdf
from pagecraft.core.document.models import Document
from pagecraft.core.errors import (
    ExportCancelledError,
    ExportError,
    LoadError,
    NoDocumentError,
    RasterFailureError,
    RenderError,
    SerializeFailureError,
)
from pagecraft.core.geometry import (
    overlay_rect_to_pdf,
    overlay_to_pdf,
    pdf_page_height,
    pdf_rect_to_page,
    pdf_to_page,
)
from pagecraft.core.render.renderer import FitzPageRenderer, PageRenderer
from pagecraft.utils.colors import hex_to_rgb

from .raster import encode_png, flatten_overlay

logger = logging.getLogger(__name__)

OverlayMap = Mapping[int, Sequence[AnnotationElement]]


class ExportStrategy(Enum):
    """How overlay elements are reconciled with the original pages."""

    # Every exported page becomes one flattened image
    FULL_PAGE_RASTERIZE = "full_page_rasterize"
    # Untouched pages stay as they are; annotated pages get native drawing
    SELECTIVE_REBUILD = "selective_rebuild"

    @classmethod
    def coerce(cls, value: Union["ExportStrategy", str, None]) -> "ExportStrategy":
        if value is None:
            value = Config.DEFAULT_EXPORT_STRATEGY
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


def export_filename(now: Optional[datetime] = None) -> str:
    """Get the download name ``edited-document-<millis>.pdf``."""
    millis = int((now.timestamp() if now else time.time()) * 1000)
    return f"{Config.EXPORT_FILENAME_PREFIX}-{millis}.pdf"


class PDFExporter(QObject):
    """Handles exporting a document and its overlay to PDF bytes."""

    # current, total pages
    progress_signal = pyqtSignal(int, int)

    def __init__(self, strategy: Union[ExportStrategy, str, None] = None,
                 raster_scale: float = Config.EXPORT_RASTER_SCALE):
        super().__init__()
        self.strategy = ExportStrategy.coerce(strategy)
        self.raster_scale = raster_scale
        self._cancelled = False

    def cancel(self) -> None:
        """
        Ask the running export, or the next one to start, to stop before its
        next page. The request is used up when that export ends.
        """
        self._cancelled = True

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise ExportCancelledError()

    def export(self, document: Optional[Document], overlay: OverlayMap,
               strategy: Union[ExportStrategy, str, None] = None,
               pages: Optional[Iterable[int]] = None,
               renderer: Optional[PageRenderer] = None) -> bytes:
        """
        Export a document with its overlay elements.

        Args:
            document: Loaded document, or None
            overlay: Page index -> elements in paint order
            strategy: Overrides the exporter's default strategy
            pages: Pages to include with FULL_PAGE_RASTERIZE (default: all).
                SELECTIVE_REBUILD always keeps every page, so it rejects
                this argument.
            renderer: Renderer for FULL_PAGE_RASTERIZE; a private
                PyMuPDF renderer is used and closed when omitted

        Returns:
            Bytes of the new PDF

        Raises:
            NoDocumentError: ``document`` is None
            ValueError: ``pages`` was given with SELECTIVE_REBUILD
            RasterFailureError: A page or overlay could not be rasterized
            SerializeFailureError: The PDF writer rejected the result
            ExportCancelledError: ``cancel()`` was called before or during
                the export
        """
        try:
            if document is None:
                raise NoDocumentError()

            strategy = self.resolve_strategy(strategy)
            if strategy is ExportStrategy.SELECTIVE_REBUILD and pages is not None:
                raise ValueError("Page selection only applies to full_page_rasterize")
            self._check_cancelled()
            logger.debug("Exporting %d pages with %s", document.page_count, strategy.value)

            if strategy is ExportStrategy.SELECTIVE_REBUILD:
                return self._export_selective(document, overlay)

            owns_renderer = renderer is None
            renderer = renderer or FitzPageRenderer()
            try:
                return self._export_rasterized(document, overlay, pages, renderer)
            finally:
                if owns_renderer:
                    renderer.close()
        finally:
            self._cancelled = False

    def resolve_strategy(self, strategy: Union[ExportStrategy, str, None]) -> ExportStrategy:
        """Get the strategy an export would use, falling back to the exporter's."""
        return ExportStrategy.coerce(strategy) if strategy is not None else self.strategy

    def _export_selective(self, document: Document, overlay: OverlayMap) -> bytes:
        try:
            doc = open_pdf(document.data)
        except LoadError as e:
            raise SerializeFailureError(f"Cannot reopen source document: {e}") from e

        try:
            total = doc.page_count
            for index in range(total):
                self._check_cancelled()
                elements = overlay.get(index, ())
                if elements:
                    page = doc.load_page(index)
                    for element in elements:
                        self._add_element_to_page(page, element)
                self.progress_signal.emit(index + 1, total)
            return doc.tobytes(garbage=4, deflate=True)
        except ExportError:
            raise
        except Exception as e:
            logger.exception("Failed to rebuild PDF")
            raise SerializeFailureError(f"Failed to write PDF: {e}") from e
        finally:
            doc.close()

    def _export_rasterized(self, document: Document, overlay: OverlayMap,
                           pages: Optional[Iterable[int]],
                           renderer: PageRenderer) -> bytes:
        targets = list(range(document.page_count)) if pages is None else sorted(set(pages))
        for index in targets:
            if not document.has_page(index):
                raise RasterFailureError(f"Page index {index} out of range")

        out = fitz.open()
        try:
            for position, index in enumerate(targets):
                self._check_cancelled()
                descriptor = document.get_page(index)
                try:
                    image = renderer.render(document, index, self.raster_scale)
                    image = flatten_overlay(image, overlay.get(index, ()), self.raster_scale)
                    png = encode_png(image)
                except (RenderError, OSError, ValueError) as e:
                    logger.exception("Failed to rasterize page %d", index + 1)
                    raise RasterFailureError(
                        f"Failed to rasterize page {index + 1}: {e}") from e

                try:
                    new_page = out.new_page(width=descriptor.width, height=descriptor.height)
                    new_page.insert_image(new_page.rect, stream=png)
                except Exception as e:
                    raise SerializeFailureError(
                        f"Failed to embed page {index + 1}: {e}") from e
                self.progress_signal.emit(position + 1, len(targets))

            if out.page_count == 0:
                raise SerializeFailureError("Nothing to export")
            try:
                return out.tobytes(garbage=4, deflate=True)
            except Exception as e:
                raise SerializeFailureError(f"Failed to write PDF: {e}") from e
        finally:
            out.close()

    def _add_element_to_page(self, page: fitz.Page, element: AnnotationElement) -> None:
        """Draw a single element onto a PDF page as native content."""
        height = pdf_page_height(page)
        kind = element.annotation_type

        if kind is AnnotationType.TEXT:
            # Top-left anchored box; the baseline sits one font size lower
            pdf_x, pdf_y = overlay_to_pdf(element.x, element.y, element.font_size, height)
            page.insert_text(
                pdf_to_page(page, pdf_x, pdf_y),
                element.content,
                fontsize=element.font_size,
                fontname=Config.get_pdf_font(element.font_family),
                color=hex_to_rgb(element.color),
                rotate=page.rotation,
            )

        elif kind is AnnotationType.IMAGE:
            if not element.data:
                raise SerializeFailureError(f"Image {element.id} has no data")
            rect = overlay_rect_to_pdf(element.x, element.y, element.width,
                                       element.height, height)
            try:
                page.insert_image(pdf_rect_to_page(page, rect), stream=element.data,
                                  keep_proportion=False, rotate=page.rotation)
            except Exception as e:
                raise SerializeFailureError(
                    f"Unsupported image data in {element.id}: {e}") from e

        elif kind is AnnotationType.RECTANGLE:
            rect = overlay_rect_to_pdf(element.x, element.y, element.width,
                                       element.height, height)
            shape = page.new_shape()
            shape.draw_rect(pdf_rect_to_page(page, rect))
            self._finish_shape(shape, element, fill=element.fill_color)

        elif kind is AnnotationType.CIRCLE:
            cx, cy = element.center
            pdf_x, pdf_y = overlay_to_pdf(cx, cy, 0, height)
            shape = page.new_shape()
            shape.draw_circle(pdf_to_page(page, pdf_x, pdf_y), element.radius)
            self._finish_shape(shape, element, fill=element.fill_color)

        elif kind is AnnotationType.LINE:
            start = overlay_to_pdf(*element.start, 0, height)
            end = overlay_to_pdf(*element.end, 0, height)
            shape = page.new_shape()
            shape.draw_line(pdf_to_page(page, *start), pdf_to_page(page, *end))
            self._finish_shape(shape, element, fill=None, close_path=False)

        else:
            raise TypeError(f"Unsupported element type: {kind}")

    @staticmethod
    def _finish_shape(shape, element, fill: Optional[str], close_path: bool = True) -> None:
        stroke = hex_to_rgb(element.stroke_color) if element.stroke_width > 0 else None
        shape.finish(
            color=stroke,
            fill=hex_to_rgb(fill) if fill else None,
            width=element.stroke_width,
            stroke_opacity=element.opacity,
            fill_opacity=element.opacity,
            closePath=close_path,
        )
        shape.commit()
