"""
Handles persistence of overlay elements to/from JSON files.
"""
import json
import logging
import os
from typing import List, Optional, Tuple

from pagecraft.utils.resource_loader import get_app_data_dir

from .models import AnnotationElement

logger = logging.getLogger(__name__)


class OverlayPersistence:
    """Manages saving and loading overlay elements to/from disk."""

    def __init__(self):
        self._overlay_dir: Optional[str] = None

    def get_overlay_dir(self) -> str:
        """
        Get or create the directory for storing overlays.

        Returns:
            Path to the overlays directory
        """
        if self._overlay_dir:
            return self._overlay_dir

        overlay_dir = os.path.join(str(get_app_data_dir()), 'overlays')
        os.makedirs(overlay_dir, exist_ok=True)
        self._overlay_dir = overlay_dir
        return overlay_dir

    def get_json_path(self, fingerprint: str) -> str:
        """
        Get the JSON file path for a document.

        Args:
            fingerprint: SHA-256 of the document bytes

        Returns:
            Path to the corresponding JSON overlay file
        """
        return os.path.join(self.get_overlay_dir(), f"{fingerprint}.json")

    def save_to_json(self, elements: List[AnnotationElement], fingerprint: str,
                     file_path: Optional[str] = None) -> bool:
        """
        Save elements to a JSON file.

        Args:
            elements: Elements to save, in paint order
            fingerprint: Fingerprint of the associated document
            file_path: Optional custom path for the JSON file

        Returns:
            True if save was successful, False otherwise
        """
        if file_path is None:
            file_path = self.get_json_path(fingerprint)

        data = {
            'document': fingerprint,
            'annotations': [element.to_dict() for element in elements]
        }
        try:
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(file_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            return True
        except OSError:
            logger.exception("Failed to save overlay to %s", file_path)
            return False

    def load_from_json(self, fingerprint: str,
                       file_path: Optional[str] = None) -> Tuple[List[AnnotationElement], bool]:
        """
        Load elements from a JSON file.

        Args:
            fingerprint: Fingerprint of the document the elements belong to
            file_path: Optional custom path for the JSON file

        Returns:
            Tuple of (list of elements, success flag)
        """
        if file_path is None:
            file_path = self.get_json_path(fingerprint)

        if not os.path.exists(file_path):
            return [], False

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)

            stored = data.get('document')
            if stored != fingerprint:
                logger.warning("Overlay file %s belongs to a different document", file_path)

            elements = [AnnotationElement.from_dict(item)
                        for item in data.get('annotations', [])]
            return elements, True
        except (OSError, ValueError, KeyError, TypeError):
            logger.exception("Failed to load overlay from %s", file_path)
            return [], False

    def delete_json_file(self, fingerprint: str) -> bool:
        """
        Delete the JSON overlay file of a document.

        Returns:
            True if deletion was successful or file didn't exist
        """
        file_path = self.get_json_path(fingerprint)

        if not os.path.exists(file_path):
            return True

        try:
            os.remove(file_path)
            return True
        except OSError:
            logger.exception("Failed to delete overlay file %s", file_path)
            return False

    def has_saved_overlay(self, fingerprint: str) -> bool:
        return os.path.exists(self.get_json_path(fingerprint))
