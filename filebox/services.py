"""
File storage service.

Orchestrates registration, login and per-user file operations on top of the
SessionTable, the MetadataStore and a FileSystemStorage holding the blobs.
Blobs are written before metadata on upload and removed before metadata on
delete; a failed metadata save after a delete leaves the record pointing at
a missing blob (download then reports "File not found on disk").
"""

import logging
import posixpath
import secrets
import threading
import time
from pathlib import Path

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage
from django.utils import timezone
from rest_framework.exceptions import NotAuthenticated

from .exceptions import Conflict, FileNotFound, InvalidCredentials, InvalidInput, IOFailure, PayloadTooLarge
from .multipart import DEFAULT_FILE_MIME_TYPE
from .sessions import SessionTable
from .store import FileRecord, MetadataStore, User

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6

UNSAFE_PATH_CHARS = ('/', '\\', '\x00')


def safe_path_component(value):
    """
    Make ``value`` usable as a single directory or file name.

    Path separators are replaced and dot-only names are prefixed, so the
    result can never climb out of its parent directory.
    """
    for char in UNSAFE_PATH_CHARS:
        value = value.replace(char, '_')
    if not value.strip('.'):
        value = '_' + value
    return value


def format_size_limit(size):
    """Render an upload cap as whole megabytes when exact, else as bytes."""
    megabyte = 1024 * 1024
    if size >= megabyte and size % megabyte == 0:
        return f'{size // megabyte}MB'
    return f'{size} bytes'


class FileStorageService:
    def __init__(self, data_dir, max_file_size=10 * 1024 * 1024, session_ttl=None):
        self.data_dir = Path(data_dir)
        self.max_file_size = max_file_size
        self.store = MetadataStore(self.data_dir / 'users.json')
        self.storage = FileSystemStorage(location=self.data_dir / 'uploads')
        self.sessions = SessionTable(ttl=session_ttl)

    @classmethod
    def from_settings(cls):
        return cls(
            data_dir=settings.FILEBOX_DATA_DIR,
            max_file_size=settings.FILEBOX_MAX_FILE_SIZE,
            session_ttl=settings.FILEBOX_SESSION_TTL,
        )

    # Accounts

    def register(self, username, password):
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            raise InvalidInput('Username and password required')
        if len(username) < MIN_USERNAME_LENGTH or len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidInput(
                f'Username must be at least {MIN_USERNAME_LENGTH} characters '
                f'and password at least {MIN_PASSWORD_LENGTH} characters'
            )

        password_hash = make_password(password)
        with self.store.transaction() as users:
            if username in users:
                raise Conflict()
            users[username] = User(username=username, password_hash=password_hash)

        logger.info(f"Registered user {username}")

    def login(self, username, password):
        """Check credentials and return a new session token."""
        if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
            raise InvalidInput('Username and password required')

        user = self.store.load().get(username)
        if user is None:
            # Equalise timing with the known-user path.
            make_password(password)
            raise InvalidCredentials()
        if not check_password(password, user.password_hash):
            raise InvalidCredentials()

        token = self.sessions.create(username)
        logger.info(f"User {username} logged in")
        return token

    def logout(self, token):
        self.sessions.destroy(token)

    # Files

    def upload(self, session, parts):
        """
        Store the first file part of an upload and record it for the session user.
        """
        file_part = next((part for part in parts if getattr(part, 'filename', None)), None)
        if file_part is None:
            raise InvalidInput('No file uploaded')

        content = file_part.content
        if len(content) > self.max_file_size:
            raise PayloadTooLarge(f"File too large (max {format_size_limit(self.max_file_size)})")

        unique_suffix = f'{int(time.time() * 1000)}-{secrets.randbelow(10 ** 9)}'
        storage_name = f'{unique_suffix}-{safe_path_component(file_part.filename)}'
        try:
            blob_name = self.storage.save(self._blob_name(session.username, storage_name), ContentFile(content))
        except OSError as exc:
            logger.error(f"Failed to write blob for {session.username}: {exc}")
            raise IOFailure('Error writing file')

        record = FileRecord(
            id=secrets.token_hex(16),
            original_name=file_part.filename,
            storage_name=posixpath.basename(blob_name),
            size=len(content),
            uploaded_at=timezone.now().isoformat(),
            mime_type=file_part.mime_type or DEFAULT_FILE_MIME_TYPE,
        )

        try:
            with self.store.transaction() as users:
                user = users.get(session.username)
                if user is None:
                    raise NotAuthenticated()
                user.files.append(record)
        except Exception:
            self._remove_blob(blob_name)
            raise

        logger.info(f"User {session.username} uploaded {record.original_name} ({record.size} bytes)")
        return record

    def list_files(self, session):
        return self._get_user(session).files

    def download(self, session, file_id):
        """
        Return ``(record, file)`` for one of the session user's files.

        The caller owns the returned file object and must close it.
        """
        record = self._get_user(session).find_file(file_id)
        if record is None:
            raise FileNotFound()

        blob_name = self._blob_name(session.username, record.storage_name)
        if not self.storage.exists(blob_name):
            raise FileNotFound('File not found on disk')

        try:
            return record, self.storage.open(blob_name, 'rb')
        except OSError as exc:
            logger.error(f"Failed to read blob {blob_name}: {exc}")
            raise IOFailure('Error reading file')

    def delete(self, session, file_id):
        with self.store.transaction() as users:
            user = users.get(session.username)
            if user is None:
                raise NotAuthenticated()
            record = user.find_file(file_id)
            if record is None:
                raise FileNotFound()

            self._remove_blob(self._blob_name(session.username, record.storage_name))
            user.files.remove(record)

        logger.info(f"User {session.username} deleted {record.original_name}")
        return record

    def user_info(self, session):
        user = self._get_user(session)
        return {
            'username': user.username,
            'fileCount': len(user.files),
            'totalSize': user.total_size,
        }

    # Helpers

    def _get_user(self, session):
        user = self.store.load().get(session.username)
        if user is None:
            raise NotAuthenticated()
        return user

    @staticmethod
    def _blob_name(username, storage_name):
        return f'{safe_path_component(username)}/{storage_name}'

    def _remove_blob(self, blob_name):
        try:
            self.storage.delete(blob_name)
        except OSError as exc:
            logger.warning(f"Could not remove blob {blob_name}: {exc}")


_service = None
_service_lock = threading.Lock()


def get_service():
    """Return the process-wide FileStorageService built from settings."""
    global _service
    with _service_lock:
        if _service is None:
            _service = FileStorageService.from_settings()
        return _service


def reset_service(*, setting, **kwargs):
    """setting_changed receiver: rebuild the service when Filebox settings change."""
    global _service
    if setting.startswith('FILEBOX_'):
        with _service_lock:
            _service = None
