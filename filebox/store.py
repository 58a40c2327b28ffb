"""
User and file metadata persistence.

All metadata lives in one JSON document mapping username to user record.
Every save rewrites the whole document, so mutations must go through
``MetadataStore.transaction()``, which serialises load-mutate-save cycles
behind a single lock.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import IOFailure, MetadataCorrupted

logger = logging.getLogger(__name__)


@dataclass
class FileRecord:
    id: str
    original_name: str
    storage_name: str
    size: int
    uploaded_at: str
    mime_type: str

    def to_dict(self):
        return {
            'id': self.id,
            'originalName': self.original_name,
            'storageName': self.storage_name,
            'size': self.size,
            'uploadedAt': self.uploaded_at,
            'mimeType': self.mime_type,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=data['id'],
            original_name=data['originalName'],
            storage_name=data['storageName'],
            size=data['size'],
            uploaded_at=data['uploadedAt'],
            mime_type=data.get('mimeType') or 'application/octet-stream',
        )


@dataclass
class User:
    username: str
    password_hash: str
    files: List[FileRecord] = field(default_factory=list)

    def find_file(self, file_id: str) -> Optional[FileRecord]:
        for record in self.files:
            if record.id == file_id:
                return record
        return None

    @property
    def total_size(self) -> int:
        return sum(record.size for record in self.files)

    def to_dict(self):
        return {
            'passwordHash': self.password_hash,
            'files': [record.to_dict() for record in self.files],
        }

    @classmethod
    def from_dict(cls, username, data):
        return cls(
            username=username,
            password_hash=data['passwordHash'],
            files=[FileRecord.from_dict(item) for item in data.get('files', [])],
        )


class MetadataStore:
    """
    JSON document store for users and their file records.

    ``save`` writes to a temporary file and renames it over the document,
    so readers never observe a half-written file.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def load(self) -> Dict[str, User]:
        with self._lock:
            try:
                raw = self.path.read_text(encoding='utf-8')
            except FileNotFoundError:
                return {}
            except OSError as exc:
                logger.error(f"Failed to read metadata {self.path}: {exc}")
                raise IOFailure()

            try:
                data = json.loads(raw) if raw.strip() else {}
                return {username: User.from_dict(username, record) for username, record in data.items()}
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.error(f"Metadata document {self.path} is corrupted: {exc}")
                raise MetadataCorrupted()

    def save(self, users: Dict[str, User]) -> None:
        document = {username: user.to_dict() for username, user in users.items()}
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix='.users-', suffix='.json')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                    json.dump(document, handle, indent=2)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_path, self.path)
            except OSError as exc:
                logger.error(f"Failed to write metadata {self.path}: {exc}")
                with suppress(OSError):
                    os.unlink(tmp_path)
                raise IOFailure()

    @contextmanager
    def transaction(self):
        """
        Hold the store lock across load, mutation and save.

        The document is only written when the block exits without raising.
        """
        with self._lock:
            users = self.load()
            yield users
            self.save(users)
