"""
Locations for user data written by the editor.
"""
import os
import sys
from pathlib import Path

APP_NAME = "Pagecraft"


def get_app_data_dir(app_name: str = APP_NAME) -> Path:
    """
    Get the application data directory for storing user data.

    ``PAGECRAFT_DATA_DIR`` overrides the platform default.

    Args:
        app_name: Name of the application

    Returns:
        Path to the app data directory
    """
    override = os.environ.get("PAGECRAFT_DATA_DIR")
    if override:
        app_dir = Path(override)
    else:
        if os.name == 'nt':  # Windows
            base_dir = os.environ.get('APPDATA', os.path.expanduser('~'))
        elif sys.platform == 'darwin':  # macOS
            base_dir = os.path.expanduser('~/Library/Application Support')
        else:  # Linux and others
            base_dir = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
        app_dir = Path(base_dir) / app_name

    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir
