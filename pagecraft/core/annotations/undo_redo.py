"""
Bounded snapshot history behind the overlay store's undo and redo.
"""
from typing import Dict, List, Optional, Tuple

from pagecraft.core.config import Config

from .models import AnnotationElement

# Page index -> elements in paint order. Elements are immutable, so a
# snapshot only needs fresh containers.
OverlayState = Dict[int, Tuple[AnnotationElement, ...]]


class UndoRedoStack:
    """Two stacks of whole-overlay snapshots, oldest dropped past ``max_size``."""

    def __init__(self, max_size: int = Config.UNDO_HISTORY_SIZE):
        """
        Args:
            max_size: Number of undo steps kept; older snapshots are discarded
        """
        self.undo_stack: List[OverlayState] = []
        self.redo_stack: List[OverlayState] = []
        self.max_size = max_size

    def push_state(self, state: OverlayState) -> None:
        """
        Record the overlay as it was before a mutation.

        Any redo history is discarded, since it no longer follows from the
        new overlay.

        Args:
            state: Snapshot taken before a mutation
        """
        self.undo_stack.append(dict(state))
        self.redo_stack.clear()

        if len(self.undo_stack) > self.max_size:
            self.undo_stack.pop(0)

    def can_undo(self) -> bool:
        return len(self.undo_stack) > 0

    def can_redo(self) -> bool:
        return len(self.redo_stack) > 0

    def undo(self, current_state: OverlayState) -> Optional[OverlayState]:
        """
        Step back one snapshot.

        Args:
            current_state: Overlay to keep for a later redo

        Returns:
            Snapshot to restore, or None when the history is empty
        """
        if not self.can_undo():
            return None

        self.redo_stack.append(dict(current_state))
        return self.undo_stack.pop()

    def redo(self, current_state: OverlayState) -> Optional[OverlayState]:
        """
        Re-apply the snapshot most recently undone.

        Args:
            current_state: Overlay to keep for a later undo

        Returns:
            Snapshot to restore, or None when nothing was undone
        """
        if not self.can_redo():
            return None

        self.undo_stack.append(dict(current_state))
        return self.redo_stack.pop()

    def clear(self) -> None:
        """Forget all history, e.g. when a new document is loaded."""
        self.undo_stack.clear()
        self.redo_stack.clear()
