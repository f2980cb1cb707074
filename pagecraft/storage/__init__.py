"""
Upload metadata storage.
"""
from .models import FileRecord
from .memory import MemStorage
from .validation import validate_upload

__all__ = [
    'FileRecord',
    'MemStorage',
    'validate_upload',
]
