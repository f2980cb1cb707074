"""
Configuration settings for the editing session, exporter and upload store.
"""

import logging
import os
from typing import Sequence, Tuple

logger = logging.getLogger(__name__)

EXPORT_STRATEGIES = ("selective_rebuild", "full_page_rasterize")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_choice(name: str, default: str, choices: Sequence[str]) -> str:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value not in choices:
        logger.warning("Ignoring %s=%r, expected one of %s", name, value, ", ".join(choices))
        return default
    return value


class Config:
    """Application configuration settings."""

    # Viewport fit (logical units the page is scaled into for display)
    MAX_VIEWPORT_WIDTH = _env_int("PAGECRAFT_MAX_VIEWPORT_WIDTH", 800)
    MAX_VIEWPORT_HEIGHT = _env_int("PAGECRAFT_MAX_VIEWPORT_HEIGHT", 600)

    # Rendering
    DEFAULT_RENDER_SCALE = 1.5
    EXPORT_RASTER_SCALE = 2.0
    DEFAULT_ZOOM_LEVEL = 1.0
    MIN_ZOOM = 0.25
    MAX_ZOOM = 3.0
    PLACEHOLDER_BACKGROUND = "#ffffff"
    PLACEHOLDER_BORDER = "#e5e5e5"
    PLACEHOLDER_LINE = "#f8f9fa"
    PLACEHOLDER_TEXT = "#666666"

    # Export
    DEFAULT_EXPORT_STRATEGY = _env_choice(
        "PAGECRAFT_EXPORT_STRATEGY", "selective_rebuild", EXPORT_STRATEGIES
    )
    EXPORT_FILENAME_PREFIX = "edited-document"

    # Text tool defaults
    DEFAULT_TEXT = "Sample Text"
    DEFAULT_FONT_SIZE = 16.0
    DEFAULT_FONT_FAMILY = "Arial"
    DEFAULT_TEXT_COLOR = "#000000"

    # Shape tool defaults
    DEFAULT_FILL_COLOR = "#ff0000"
    DEFAULT_STROKE_COLOR = "#000000"
    DEFAULT_STROKE_WIDTH = 2.0
    DEFAULT_OPACITY = 0.7
    DEFAULT_POSITION = (100.0, 100.0)
    DEFAULT_RECT_SIZE = (100.0, 60.0)
    DEFAULT_CIRCLE_RADIUS = 50.0
    DEFAULT_LINE_DELTA = (150.0, 0.0)
    DEFAULT_IMAGE_SIZE = (200.0, 150.0)

    # History
    UNDO_HISTORY_SIZE = 50

    # Uploads
    MAX_UPLOAD_SIZE = 100 * 1024 * 1024  # 100 MiB
    ACCEPTED_MIME_TYPES = ("application/pdf",)
    RECENT_FILES_LIMIT = 10

    # Watermark tool
    WATERMARK_TEXT = "CONFIDENTIAL"
    WATERMARK_FONT_SIZE = 50
    WATERMARK_GREY = 0.7
    WATERMARK_OPACITY = 0.3

    # Font family -> PyMuPDF base-14 font name
    FONT_MAP = {
        "arial": "helv",
        "helvetica": "helv",
        "sans-serif": "helv",
        "times new roman": "tiro",
        "times": "tiro",
        "serif": "tiro",
        "courier new": "cour",
        "courier": "cour",
        "monospace": "cour",
    }

    @classmethod
    def get_max_viewport(cls) -> Tuple[int, int]:
        """Get the (width, height) box pages are fitted into."""
        return cls.MAX_VIEWPORT_WIDTH, cls.MAX_VIEWPORT_HEIGHT

    @classmethod
    def clamp_zoom(cls, zoom: float) -> float:
        """Clamp a zoom factor to the supported range."""
        return max(cls.MIN_ZOOM, min(cls.MAX_ZOOM, zoom))

    @classmethod
    def get_pdf_font(cls, font_family: str) -> str:
        """Get the base-14 font used to draw a UI font family."""
        return cls.FONT_MAP.get((font_family or "").strip().lower(), "helv")
