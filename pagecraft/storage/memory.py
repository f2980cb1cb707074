"""
In-memory metadata store for uploaded files.
"""
import itertools
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pagecraft.core.config import Config

from .models import EDITABLE_FIELDS, FileRecord

logger = logging.getLogger(__name__)


class MemStorage:
    """
    File metadata keyed by an auto-incrementing integer id.

    Only metadata lives here; the files themselves are handled elsewhere.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._files: Dict[int, FileRecord] = {}
        self._ids = itertools.count(1)
        self._clock = clock

    def create_file(self, original_name: str, file_name: str, file_path: str,
                    file_size: int, mime_type: Optional[str] = None,
                    user_id: Optional[int] = None) -> FileRecord:
        """
        Store metadata for a new file.

        Args:
            original_name: Name of the file on the client
            file_name: Name the file was stored under
            file_path: Path of the stored file
            file_size: Size in bytes
            mime_type: MIME type, defaults to ``application/pdf``
            user_id: Owning user, if any

        Returns:
            The stored record
        """
        now = self._clock()
        record = FileRecord(
            id=next(self._ids),
            original_name=original_name,
            file_name=file_name,
            file_path=file_path,
            file_size=file_size,
            mime_type=mime_type or Config.ACCEPTED_MIME_TYPES[0],
            user_id=user_id,
            created_at=now,
            last_modified=now,
        )
        self._files[record.id] = record
        logger.debug("Stored file %d (%s)", record.id, original_name)
        return record

    def get_file(self, file_id: int) -> Optional[FileRecord]:
        return self._files.get(file_id)

    def list_files(self, user_id: Optional[int] = None) -> List[FileRecord]:
        """List files of one user, or every file when ``user_id`` is None."""
        return [f for f in self._files.values() if user_id is None or f.user_id == user_id]

    def recent_files(self, limit: int = Config.RECENT_FILES_LIMIT) -> List[FileRecord]:
        """Get the most recently modified files, newest first."""
        files = sorted(self._files.values(), key=lambda f: f.last_modified, reverse=True)
        return files[:max(0, limit)]

    def update_file(self, file_id: int, **updates: Any) -> Optional[FileRecord]:
        """
        Update metadata fields and bump ``last_modified``.

        Returns:
            The updated record, or None if the id is unknown

        Raises:
            ValueError: If an update names a field that cannot be changed
        """
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update {', '.join(sorted(unknown))}")

        record = self._files.get(file_id)
        if record is None:
            return None
        record = replace(record, last_modified=self._clock(), **updates)
        self._files[file_id] = record
        return record

    def delete_file(self, file_id: int) -> bool:
        """
        Delete a file's metadata.

        Returns:
            True if a record was removed
        """
        return self._files.pop(file_id, None) is not None

    def __len__(self) -> int:
        return len(self._files)
