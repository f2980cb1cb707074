"""
Export of an edited document to new PDF bytes.
"""
from .pdf_exporter import ExportStrategy, PDFExporter, export_filename
from .export_worker import ExportWorker
from .raster import flatten_overlay

__all__ = [
    'ExportStrategy',
    'PDFExporter',
    'ExportWorker',
    'export_filename',
    'flatten_overlay',
]
