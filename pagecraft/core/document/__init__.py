"""
PDF document loading and whole-document tools.
"""
from .models import Document, Page
from .loader import DocumentLoader, open_pdf
from .operations import (
    add_watermark,
    compress_pdf,
    convert_to_images,
    merge_pdfs,
    reorder_pages,
    rotate_pdf,
    split_pdf,
)

__all__ = [
    'Document',
    'Page',
    'DocumentLoader',
    'open_pdf',
    'merge_pdfs',
    'split_pdf',
    'rotate_pdf',
    'add_watermark',
    'compress_pdf',
    'reorder_pages',
    'convert_to_images',
]
