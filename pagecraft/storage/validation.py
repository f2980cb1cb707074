"""
Checks applied to an upload before it is stored.
"""
from typing import Optional

from pagecraft.core.config import Config
from pagecraft.core.errors import FileTooLargeError, WrongMimeTypeError


def validate_upload(filename: str, mime_type: Optional[str], size: int) -> None:
    """
    Validate an uploaded file.

    Args:
        filename: Client-side name, used in error messages
        mime_type: Declared MIME type
        size: Size in bytes

    Raises:
        WrongMimeTypeError: If the file is not a PDF
        FileTooLargeError: If the file exceeds ``Config.MAX_UPLOAD_SIZE``
    """
    if (mime_type or "").lower() not in Config.ACCEPTED_MIME_TYPES:
        raise WrongMimeTypeError(f"{filename}: only PDF files are allowed")
    if size > Config.MAX_UPLOAD_SIZE:
        limit_mb = Config.MAX_UPLOAD_SIZE // (1024 * 1024)
        raise FileTooLargeError(f"{filename}: file exceeds the {limit_mb} MB limit")
