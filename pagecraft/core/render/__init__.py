"""
Page rasterization capability.
"""
from .renderer import (
    FitzPageRenderer,
    PageRenderer,
    PlaceholderRenderer,
    RasterImage,
    placeholder_page,
    to_qimage,
)

__all__ = [
    'PageRenderer',
    'FitzPageRenderer',
    'PlaceholderRenderer',
    'RasterImage',
    'placeholder_page',
    'to_qimage',
]
