"""
Error taxonomy for loading, rendering, exporting and uploading documents.

Every error carries a short ``kind`` tag so the UI layer can map it to a
user-facing notification without inspecting the class hierarchy.
"""


class PagecraftError(Exception):
    """Base class for all editor errors."""

    kind = "error"


# Loading

class LoadError(PagecraftError):
    """The supplied bytes could not be turned into a Document."""

    kind = "load"


class EmptyDocumentError(LoadError):
    kind = "empty"

    def __init__(self, message: str = "File is empty"):
        super().__init__(message)


class UnparseableDocumentError(LoadError):
    kind = "unparseable"

    def __init__(self, message: str = (
            "Unable to parse PDF file. The file may be corrupted or encrypted.")):
        super().__init__(message)


class NoPagesError(LoadError):
    kind = "no_pages"

    def __init__(self, message: str = "PDF has no pages"):
        super().__init__(message)


# Rendering

class RenderError(PagecraftError):
    """A page could not be rasterized."""

    kind = "render"


# Exporting

class ExportError(PagecraftError):
    """The edited document could not be serialized."""

    kind = "export"


class NoDocumentError(ExportError):
    kind = "no_document"

    def __init__(self, message: str = "No PDF document loaded"):
        super().__init__(message)


class RasterFailureError(ExportError):
    kind = "raster_failure"


class SerializeFailureError(ExportError):
    kind = "serialize_failure"


class ExportInProgressError(ExportError):
    kind = "export_in_progress"

    def __init__(self, message: str = "An export is already running"):
        super().__init__(message)


class ExportCancelledError(ExportError):
    kind = "export_cancelled"

    def __init__(self, message: str = "Export was cancelled"):
        super().__init__(message)


# Uploads

class ValidationError(PagecraftError):
    """An uploaded file was rejected before storage."""

    kind = "validation"


class WrongMimeTypeError(ValidationError):
    kind = "wrong_mime_type"


class FileTooLargeError(ValidationError):
    kind = "file_too_large"
