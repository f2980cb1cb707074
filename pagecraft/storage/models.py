"""
Metadata record for an uploaded PDF file.
"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class FileRecord:
    """Stored-file metadata as returned to clients after an upload."""

    id: int
    original_name: str
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    user_id: Optional[int]
    created_at: datetime
    last_modified: datetime

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary with camelCase keys."""
        data = asdict(self)
        return {
            'id': data['id'],
            'originalName': data['original_name'],
            'fileName': data['file_name'],
            'filePath': data['file_path'],
            'fileSize': data['file_size'],
            'mimeType': data['mime_type'],
            'userId': data['user_id'],
            'createdAt': self.created_at.isoformat(),
            'lastModified': self.last_modified.isoformat(),
        }


# Fields a caller may set on create or update
EDITABLE_FIELDS = frozenset({
    'original_name', 'file_name', 'file_path', 'file_size', 'mime_type', 'user_id',
})
