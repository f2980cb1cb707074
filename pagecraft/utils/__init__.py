"""
Utility functions and helpers.
"""
from .colors import hex_to_rgb, hex_to_rgb255, rgb255_to_hex, with_alpha
from .logging_setup import configure_logging
from .resource_loader import APP_NAME, get_app_data_dir

__all__ = [
    # Colours
    'hex_to_rgb',
    'hex_to_rgb255',
    'rgb255_to_hex',
    'with_alpha',

    # Logging
    'configure_logging',

    # Resource management
    'APP_NAME',
    'get_app_data_dir',
]
