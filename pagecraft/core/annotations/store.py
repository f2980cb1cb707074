"""
Per-page overlay store that holds every annotation element of a session.
"""
import itertools
import logging
from typing import Any, Dict, Iterator, List, Optional

from .models import AnnotationElement
from .undo_redo import OverlayState, UndoRedoStack

logger = logging.getLogger(__name__)


class OverlayStore:
    """
    Ordered annotation elements keyed by page, with undo/redo support.

    Insertion order is paint order: later elements paint on top. Element
    ids are unique across the whole store, not just within a page.
    """

    def __init__(self, id_prefix: str = "element"):
        self._pages: Dict[int, List[AnnotationElement]] = {}
        self._page_of: Dict[str, int] = {}
        self._id_prefix = id_prefix
        self._counter = itertools.count(1)

        self.undo_redo_stack = UndoRedoStack()

    def next_id(self) -> str:
        """Generate a new element id; ids are never reused within a store."""
        while True:
            element_id = f"{self._id_prefix}_{next(self._counter)}"
            if element_id not in self._page_of:
                return element_id

    def append(self, element: AnnotationElement) -> AnnotationElement:
        """
        Append an element to its page, on top of existing elements.

        Args:
            element: Element to add

        Returns:
            The element that was added

        Raises:
            ValueError: If an element with the same id already exists
        """
        if element.id in self._page_of:
            raise ValueError(f"Duplicate element id: {element.id}")

        self.undo_redo_stack.push_state(self.snapshot())
        self._pages.setdefault(element.page_index, []).append(element)
        self._page_of[element.id] = element.page_index
        logger.debug("Appended %s %s on page %d",
                     element.annotation_type.value, element.id, element.page_index)
        return element

    def update_by_id(self, page_index: int, element_id: str,
                     changes: Dict[str, Any]) -> Optional[AnnotationElement]:
        """
        Merge attribute changes into an element on a page.

        Args:
            page_index: Page the element must belong to
            element_id: Id of the element to update
            changes: Attribute names and new values

        Returns:
            The updated element, or None if no such element is on the page
        """
        elements = self._pages.get(page_index, [])
        for position, element in enumerate(elements):
            if element.id == element_id:
                updated = element.with_changes(**changes)
                self.undo_redo_stack.push_state(self.snapshot())
                elements[position] = updated
                return updated
        return None

    def remove_by_id(self, page_index: int, element_id: str) -> Optional[AnnotationElement]:
        """
        Remove an element from a page.

        Returns:
            The removed element, or None if it was not on the page
        """
        elements = self._pages.get(page_index, [])
        for position, element in enumerate(elements):
            if element.id == element_id:
                self.undo_redo_stack.push_state(self.snapshot())
                del elements[position]
                del self._page_of[element_id]
                if not elements:
                    del self._pages[page_index]
                logger.debug("Removed %s from page %d", element_id, page_index)
                return element
        return None

    def list_for_page(self, page_index: int) -> List[AnnotationElement]:
        """Get the elements of a page in paint order."""
        return list(self._pages.get(page_index, []))

    def get(self, page_index: int, element_id: str) -> Optional[AnnotationElement]:
        for element in self._pages.get(page_index, []):
            if element.id == element_id:
                return element
        return None

    def find(self, element_id: str) -> Optional[AnnotationElement]:
        """Find an element on any page."""
        page_index = self._page_of.get(element_id)
        if page_index is None:
            return None
        return self.get(page_index, element_id)

    def element_at(self, page_index: int, x: float, y: float) -> Optional[AnnotationElement]:
        """
        Get the top-most element at an overlay point.

        Args:
            page_index: 0-based page index
            x: X coordinate in overlay space
            y: Y coordinate in overlay space
        """
        for element in reversed(self._pages.get(page_index, [])):
            if element.contains(x, y):
                return element
        return None

    def pages_with_elements(self) -> List[int]:
        return sorted(self._pages)

    def count(self, page_index: Optional[int] = None) -> int:
        """Count elements on one page, or on all pages."""
        if page_index is not None:
            return len(self._pages.get(page_index, []))
        return len(self._page_of)

    def __len__(self) -> int:
        return self.count()

    def __iter__(self) -> Iterator[AnnotationElement]:
        for page_index in self.pages_with_elements():
            yield from self._pages[page_index]

    def snapshot(self) -> OverlayState:
        """Get an immutable view of the current contents."""
        return {page: tuple(elements) for page, elements in self._pages.items()}

    def restore(self, state: OverlayState) -> None:
        """Replace the contents with a snapshot, without recording history."""
        self._pages = {page: list(elements) for page, elements in state.items() if elements}
        self._page_of = {
            element.id: page for page, elements in self._pages.items() for element in elements
        }

    def load_elements(self, elements: List[AnnotationElement]) -> None:
        """
        Replace the contents with elements, as one undoable step.

        Raises:
            ValueError: If two elements share an id
        """
        state: Dict[int, List[AnnotationElement]] = {}
        seen = set()
        for element in elements:
            if element.id in seen:
                raise ValueError(f"Duplicate element id: {element.id}")
            seen.add(element.id)
            state.setdefault(element.page_index, []).append(element)

        self.undo_redo_stack.push_state(self.snapshot())
        self.restore({page: tuple(items) for page, items in state.items()})

    def clear_page(self, page_index: int) -> int:
        """
        Remove every element of a page.

        Returns:
            Number of elements removed
        """
        elements = self._pages.get(page_index)
        if not elements:
            return 0
        self.undo_redo_stack.push_state(self.snapshot())
        for element in elements:
            del self._page_of[element.id]
        del self._pages[page_index]
        return len(elements)

    def undo(self) -> bool:
        """
        Perform undo operation.

        Returns:
            True if undo was successful
        """
        previous_state = self.undo_redo_stack.undo(self.snapshot())
        if previous_state is None:
            return False
        self.restore(previous_state)
        return True

    def redo(self) -> bool:
        """
        Perform redo operation.

        Returns:
            True if redo was successful
        """
        next_state = self.undo_redo_stack.redo(self.snapshot())
        if next_state is None:
            return False
        self.restore(next_state)
        return True

    def can_undo(self) -> bool:
        """Check if undo is available."""
        return self.undo_redo_stack.can_undo()

    def can_redo(self) -> bool:
        """Check if redo is available."""
        return self.undo_redo_stack.can_redo()

    def clear_all(self) -> None:
        """Clear all elements and history. Ids keep counting up."""
        self._pages.clear()
        self._page_of.clear()
        self.undo_redo_stack.clear()
