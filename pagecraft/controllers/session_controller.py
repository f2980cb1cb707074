"""
Controller for the edit session: document, active page, overlay and export.
"""
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from PyQt5.QtCore import QObject, pyqtSignal

from pagecraft.core.annotations import (
    AnnotationElement,
    AnnotationType,
    ImageElement,
    OverlayPersistence,
    OverlayStore,
    ToolMode,
)
from pagecraft.core.annotations.models import ELEMENT_TYPES
from pagecraft.core.config import Config
from pagecraft.core.document import Document, DocumentLoader, Page
from pagecraft.core.errors import ExportInProgressError, NoDocumentError, RenderError
from pagecraft.core.export import ExportStrategy, ExportWorker, PDFExporter
from pagecraft.core.geometry import display_to_page
from pagecraft.core.render import FitzPageRenderer, PageRenderer, PlaceholderRenderer, RasterImage

logger = logging.getLogger(__name__)

# Export only the active page instead of every page
ACTIVE_PAGE = "active"


class SessionState(Enum):
    NO_DOCUMENT = "no_document"
    DOCUMENT_LOADED = "document_loaded"
    EXPORTING = "exporting"


@dataclass
class TextSettings:
    """Text tool settings applied to new text elements."""
    content: str = Config.DEFAULT_TEXT
    font_size: float = Config.DEFAULT_FONT_SIZE
    font_family: str = Config.DEFAULT_FONT_FAMILY
    color: str = Config.DEFAULT_TEXT_COLOR


@dataclass
class ShapeSettings:
    """Shape tool settings applied to new rectangles, circles and lines."""
    fill_color: str = Config.DEFAULT_FILL_COLOR
    stroke_color: str = Config.DEFAULT_STROKE_COLOR
    stroke_width: float = Config.DEFAULT_STROKE_WIDTH
    opacity: float = Config.DEFAULT_OPACITY


class EditSessionController(QObject):
    """
    Owns the loaded document and its overlay, and exposes the editing API.

    State machine: NO_DOCUMENT -> DOCUMENT_LOADED(page) <-> EXPORTING.
    Failed operations leave the previous state in place.
    """

    # Signals
    document_loaded = pyqtSignal(int)  # page count
    page_changed = pyqtSignal(int)  # active page index
    page_rendered = pyqtSignal(int)  # active page index, raster is ready
    selection_changed = pyqtSignal(object)  # element id or None
    elements_changed = pyqtSignal(int)  # page index whose overlay changed
    tool_changed = pyqtSignal(object)  # ToolMode
    state_changed = pyqtSignal(object)  # SessionState
    zoom_changed = pyqtSignal(float)
    export_finished = pyqtSignal(bytes)
    export_failed = pyqtSignal(str)

    def __init__(self, loader: Optional[DocumentLoader] = None,
                 renderer: Optional[PageRenderer] = None,
                 exporter: Optional[PDFExporter] = None,
                 store: Optional[OverlayStore] = None,
                 persistence: Optional[OverlayPersistence] = None):
        super().__init__()
        self.loader = loader or DocumentLoader()
        self.renderer = renderer or FitzPageRenderer()
        self.exporter = exporter or PDFExporter()
        self.store = store or OverlayStore()
        self.persistence = persistence or OverlayPersistence()
        self._fallback_renderer = PlaceholderRenderer()

        # Session state
        self.document: Optional[Document] = None
        self.state = SessionState.NO_DOCUMENT
        self.current_page: int = 0
        self.selected_id: Optional[str] = None
        self.tool = ToolMode.SELECT
        self.zoom_level: float = Config.DEFAULT_ZOOM_LEVEL

        # Raster of the active page and whether it is a placeholder
        self.current_image: Optional[RasterImage] = None
        self.render_failed = False

        self.text_settings = TextSettings()
        self.shape_settings = ShapeSettings()

        self._export_worker: Optional[ExportWorker] = None
        self._export_previous_state = SessionState.NO_DOCUMENT

    # Properties

    @property
    def page_count(self) -> int:
        return self.document.page_count if self.document else 0

    @property
    def active_page(self) -> Optional[Page]:
        if self.document is None:
            return None
        return self.document.get_page(self.current_page)

    @property
    def render_scale(self) -> float:
        """Pixels per point of the active page raster."""
        page = self.active_page
        if page is None:
            return self.zoom_level
        return page.display_scale * self.zoom_level

    @property
    def elements(self) -> List[AnnotationElement]:
        """Elements of the active page in paint order."""
        if self.document is None:
            return []
        return self.store.list_for_page(self.current_page)

    @property
    def selected_element(self) -> Optional[AnnotationElement]:
        if self.selected_id is None:
            return None
        return self.store.get(self.current_page, self.selected_id)

    @property
    def is_exporting(self) -> bool:
        return self.state is SessionState.EXPORTING

    # Document and navigation

    def load_document(self, data: bytes) -> Document:
        """
        Load a new document, replacing the current one and its overlay.

        Args:
            data: Raw PDF bytes

        Returns:
            The loaded document

        Raises:
            LoadError: If the bytes are not a usable PDF; the session keeps
                its previous document in that case
            ExportInProgressError: If an export is running
        """
        if self.is_exporting:
            raise ExportInProgressError("Cannot load a document while exporting")

        document = self.loader.load(data)

        self.renderer.close()
        self.store.clear_all()
        self.document = document
        self.current_page = 0
        self.selected_id = None
        self._set_state(SessionState.DOCUMENT_LOADED)
        logger.info("Loaded document with %d pages", document.page_count)

        self.document_loaded.emit(document.page_count)
        self.selection_changed.emit(None)
        self.page_changed.emit(0)
        self._render_active_page()
        return document

    def select_page(self, index: int) -> bool:
        """
        Make a page active.

        Args:
            index: 0-based page index

        Returns:
            True if the page was selected, False if the index is out of range
        """
        if self.document is None or not self.document.has_page(index):
            logger.debug("Rejected page selection %s", index)
            return False

        self.current_page = index
        self._clear_selection()
        self.page_changed.emit(index)
        self._render_active_page()
        return True

    def next_page(self) -> bool:
        return self.select_page(self.current_page + 1)

    def previous_page(self) -> bool:
        return self.select_page(self.current_page - 1)

    def set_zoom(self, zoom: float) -> float:
        """
        Set the zoom factor applied on top of the viewport fit.

        Returns:
            The zoom actually applied after clamping
        """
        self.zoom_level = Config.clamp_zoom(zoom)
        self.zoom_changed.emit(self.zoom_level)
        if self.document is not None:
            self._render_active_page()
        return self.zoom_level

    def set_viewport(self, max_width: float, max_height: float) -> None:
        """Refit every page to a new viewport. Overlay coordinates are unaffected."""
        self.loader.max_width = max_width
        self.loader.max_height = max_height
        if self.document is None:
            return
        self.document = self.document.with_viewport(max_width, max_height)
        self._render_active_page()

    def _render_active_page(self) -> None:
        try:
            image = self.renderer.render(self.document, self.current_page, self.render_scale)
            self.render_failed = False
        except RenderError as e:
            logger.warning("Rendering page %d failed, showing placeholder: %s",
                           self.current_page + 1, e)
            image = self._fallback_renderer.render(
                self.document, self.current_page, self.render_scale)
            self.render_failed = True
        self.current_image = image
        self.page_rendered.emit(self.current_page)

    # Tools and elements

    def set_tool(self, mode: Union[ToolMode, str]) -> ToolMode:
        """Switch the current tool."""
        self.tool = ToolMode(mode)
        self.tool_changed.emit(self.tool)
        return self.tool

    def add_element(self, position: Optional[Tuple[float, float]] = None,
                    kind: Union[AnnotationType, str, None] = None,
                    **overrides: Any) -> Optional[AnnotationElement]:
        """
        Add an element to the active page from the current tool settings.

        The new element becomes the selection and the tool goes back to
        SELECT, so each tool use adds exactly one element.

        Args:
            position: Overlay (x, y) in points; defaults to
                ``Config.DEFAULT_POSITION``
            kind: Element type; defaults to the one the current tool creates
            **overrides: Attribute values replacing the tool settings. Image
                elements take ``data`` bytes or a ``data_uri``.

        Returns:
            The new element, or None if no document is loaded

        Raises:
            ValueError: If no element type is given while the SELECT tool is
                active, or if the attributes are invalid
        """
        if self.document is None:
            logger.debug("Ignoring add_element without a document")
            return None

        if kind is None:
            kind = self.tool.annotation_type
            if kind is None:
                raise ValueError("Choose an element type or an element tool first")
        kind = AnnotationType(kind)

        attributes = self._tool_defaults(kind)
        attributes.update(overrides)
        if kind is AnnotationType.IMAGE:
            self._prepare_image_attributes(attributes)

        x, y = position if position is not None else Config.DEFAULT_POSITION
        element = ELEMENT_TYPES[kind](
            id=self.store.next_id(), page_index=self.current_page,
            x=float(x), y=float(y), **attributes,
        )
        self.store.append(element)

        self.selected_id = element.id
        self.elements_changed.emit(self.current_page)
        self.selection_changed.emit(element.id)
        if self.tool is not ToolMode.SELECT:
            self.set_tool(ToolMode.SELECT)
        return element

    def add_element_at_display(self, display_x: float, display_y: float,
                               kind: Union[AnnotationType, str, None] = None,
                               **overrides: Any) -> Optional[AnnotationElement]:
        """Add an element at a pointer position on the rendered page."""
        position = display_to_page(display_x, display_y, self.render_scale)
        return self.add_element(position, kind=kind, **overrides)

    def _tool_defaults(self, kind: AnnotationType) -> Dict[str, Any]:
        shape = self.shape_settings
        if kind is AnnotationType.TEXT:
            return asdict(self.text_settings)
        if kind is AnnotationType.IMAGE:
            width, height = Config.DEFAULT_IMAGE_SIZE
            return {'width': width, 'height': height}
        if kind is AnnotationType.LINE:
            dx, dy = Config.DEFAULT_LINE_DELTA
            return {'dx': dx, 'dy': dy, 'stroke_color': shape.stroke_color,
                    'stroke_width': shape.stroke_width, 'opacity': shape.opacity}

        attributes = asdict(shape)
        if kind is AnnotationType.RECTANGLE:
            attributes['width'], attributes['height'] = Config.DEFAULT_RECT_SIZE
        else:
            attributes['radius'] = Config.DEFAULT_CIRCLE_RADIUS
        return attributes

    @staticmethod
    def _prepare_image_attributes(attributes: Dict[str, Any]) -> None:
        data_uri = attributes.pop('data_uri', None)
        if data_uri is not None:
            attributes['data'], attributes['mime_type'] = ImageElement.decode_data_uri(data_uri)
        if not attributes.get('data'):
            raise ValueError("Image elements need image data")

    def update_element(self, element_id: str,
                       changes: Dict[str, Any]) -> Optional[AnnotationElement]:
        """
        Merge attribute changes into an element of the active page.

        An unknown id is tolerated: nothing changes and None is returned.

        Returns:
            The updated element, or None if no such element is on the page
        """
        if self.document is None:
            return None
        updated = self.store.update_by_id(self.current_page, element_id, changes)
        if updated is None:
            logger.debug("Ignoring update of missing element %s", element_id)
            return None
        self.elements_changed.emit(self.current_page)
        return updated

    def move_element(self, element_id: str, x: float, y: float) -> Optional[AnnotationElement]:
        return self.update_element(element_id, {'x': float(x), 'y': float(y)})

    def select_element(self, element_id: Optional[str]) -> bool:
        """
        Select an element of the active page, or clear with None.

        Returns:
            True if the selection now matches the request
        """
        if element_id is None:
            self._clear_selection()
            return True
        if self.document is None or self.store.get(self.current_page, element_id) is None:
            return False
        if self.selected_id != element_id:
            self.selected_id = element_id
            self.selection_changed.emit(element_id)
        return True

    def element_at(self, x: float, y: float) -> Optional[AnnotationElement]:
        """Get the top-most element of the active page at an overlay point."""
        if self.document is None:
            return None
        return self.store.element_at(self.current_page, x, y)

    def select_at(self, x: float, y: float) -> Optional[AnnotationElement]:
        """Select the top-most element at an overlay point, or clear the selection."""
        element = self.element_at(x, y)
        self.select_element(element.id if element else None)
        return element

    def delete_selected(self) -> Optional[AnnotationElement]:
        """
        Delete the selected element.

        Returns:
            The removed element, or None if nothing was selected
        """
        if self.selected_id is None:
            return None
        removed = self.store.remove_by_id(self.current_page, self.selected_id)
        self._clear_selection()
        if removed is not None:
            self.elements_changed.emit(self.current_page)
        return removed

    def clear_page(self) -> int:
        """Remove every element of the active page."""
        if self.document is None:
            return 0
        removed = self.store.clear_page(self.current_page)
        self._clear_selection()
        if removed:
            self.elements_changed.emit(self.current_page)
        return removed

    def _clear_selection(self) -> None:
        if self.selected_id is not None:
            self.selected_id = None
            self.selection_changed.emit(None)

    # History

    def undo(self) -> bool:
        """Undo the last overlay change."""
        if not self.store.undo():
            return False
        self._clear_selection()
        self.elements_changed.emit(self.current_page)
        return True

    def redo(self) -> bool:
        """Redo the last undone overlay change."""
        if not self.store.redo():
            return False
        self._clear_selection()
        self.elements_changed.emit(self.current_page)
        return True

    def can_undo(self) -> bool:
        return self.store.can_undo()

    def can_redo(self) -> bool:
        return self.store.can_redo()

    # Export

    def export_document(self, strategy: Union[ExportStrategy, str, None] = None,
                        pages: Union[str, Sequence[int], None] = None,
                        on_export: Optional[Callable[[bytes], Any]] = None) -> bytes:
        """
        Export the document with its overlay.

        The overlay is read from a snapshot; the session itself is never
        modified by an export.

        Args:
            strategy: Export strategy, defaults to the exporter's
            pages: Pages for the rasterizing strategy: None for all,
                ``"active"`` for the active page, or a list of indices.
                Selective rebuild keeps every page and does not accept it.
            on_export: Called with the produced bytes

        Returns:
            Bytes of the exported PDF

        Raises:
            NoDocumentError: No document is loaded
            ValueError: ``pages`` was given with the selective strategy
            ExportInProgressError: Another export is running
            ExportError: The export itself failed
        """
        page_list = self._begin_export(strategy, pages)
        try:
            data = self.exporter.export(self.document, self.store.snapshot(),
                                        strategy=strategy, pages=page_list)
        finally:
            self._set_state(self._export_previous_state)

        logger.info("Exported %d bytes", len(data))
        self.export_finished.emit(data)
        if on_export is not None:
            on_export(data)
        return data

    def export_document_async(self, strategy: Union[ExportStrategy, str, None] = None,
                              pages: Union[str, Sequence[int], None] = None,
                              output_path: Optional[str] = None) -> ExportWorker:
        """
        Export on a worker thread.

        ``export_finished`` or ``export_failed`` fires when the worker is
        done, and the session goes back to DOCUMENT_LOADED.

        Returns:
            The started worker
        """
        page_list = self._begin_export(strategy, pages)
        exporter = PDFExporter(self.exporter.strategy, self.exporter.raster_scale)
        worker = ExportWorker(self.document, self.store.snapshot(), strategy=strategy,
                              pages=page_list, output_path=output_path, exporter=exporter)
        worker.finished.connect(self._on_worker_finished)
        self._export_worker = worker
        worker.start()
        return worker

    def cancel_export(self) -> None:
        if self._export_worker is not None:
            self._export_worker.cancel()

    def _begin_export(self, strategy, pages) -> Optional[List[int]]:
        if self.is_exporting:
            raise ExportInProgressError()
        if self.document is None:
            raise NoDocumentError()

        if pages is None:
            page_list = None
        elif self.exporter.resolve_strategy(strategy) is ExportStrategy.SELECTIVE_REBUILD:
            raise ValueError("Page selection only applies to full_page_rasterize")
        elif pages == ACTIVE_PAGE:
            page_list = [self.current_page]
        else:
            page_list = list(pages)

        self._export_previous_state = self.state
        self._set_state(SessionState.EXPORTING)
        return page_list

    def _on_worker_finished(self, success: bool, message: str) -> None:
        worker = self._export_worker
        if worker is None:
            return
        self._export_worker = None
        worker.wait()
        self._set_state(self._export_previous_state)

        if success:
            self.export_finished.emit(worker.result)
        else:
            self.export_failed.emit(message)

    # Overlay persistence

    def save_overlay(self, file_path: Optional[str] = None) -> bool:
        """Save every element of the session to JSON."""
        if self.document is None:
            return False
        return self.persistence.save_to_json(
            list(self.store), self.document.fingerprint, file_path)

    def load_overlay(self, file_path: Optional[str] = None) -> bool:
        """
        Replace the overlay with elements saved for this document.

        Elements pointing past the last page are dropped.

        Returns:
            True if a saved overlay was loaded
        """
        if self.document is None:
            return False
        elements, success = self.persistence.load_from_json(
            self.document.fingerprint, file_path)
        if not success:
            return False

        kept = [e for e in elements if self.document.has_page(e.page_index)]
        if len(kept) != len(elements):
            logger.warning("Dropped %d saved elements outside the document",
                           len(elements) - len(kept))
        try:
            self.store.load_elements(kept)
        except ValueError:
            logger.exception("Saved overlay is inconsistent")
            return False

        self._clear_selection()
        self.elements_changed.emit(self.current_page)
        return True

    # Lifecycle

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            self.state = state
            self.state_changed.emit(state)

    def close(self) -> None:
        """Release the renderer and drop the document and overlay."""
        if self._export_worker is not None:
            worker = self._export_worker
            self._export_worker = None
            worker.finished.disconnect(self._on_worker_finished)
            worker.cancel()
            worker.wait()
        self.renderer.close()
        self.store.clear_all()
        self.document = None
        self.current_image = None
        self.current_page = 0
        self.selected_id = None
        self._set_state(SessionState.NO_DOCUMENT)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
