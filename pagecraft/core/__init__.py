"""
Core editing logic for Pagecraft.
"""
from .config import Config
from .document import Document, DocumentLoader, Page
from .annotations import OverlayStore, ToolMode
from .export import ExportStrategy, PDFExporter

__all__ = [
    'Config',
    'Document',
    'DocumentLoader',
    'Page',
    'OverlayStore',
    'ToolMode',
    'ExportStrategy',
    'PDFExporter',
]
