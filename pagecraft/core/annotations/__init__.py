"""
Annotation overlay: element types, per-page store, history and persistence.
"""
from .models import (
    AnnotationElement,
    AnnotationType,
    CircleElement,
    Element,
    ImageElement,
    LineElement,
    RectangleElement,
    TextElement,
    ToolMode,
)
from .store import OverlayStore
from .undo_redo import UndoRedoStack
from .persistence import OverlayPersistence

__all__ = [
    'AnnotationElement',
    'AnnotationType',
    'Element',
    'TextElement',
    'ImageElement',
    'RectangleElement',
    'CircleElement',
    'LineElement',
    'ToolMode',
    'OverlayStore',
    'UndoRedoStack',
    'OverlayPersistence'
]
