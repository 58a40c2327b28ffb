"""
Store and Service Tests

Test suite for MetadataStore, SessionTable and FileStorageService used
directly, without going through HTTP.
"""

import json
import shutil
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path

from django.test import SimpleTestCase

from .exceptions import Conflict, FileNotFound, InvalidCredentials, InvalidInput, MetadataCorrupted, PayloadTooLarge
from .multipart import Part
from .services import FileStorageService, format_size_limit, safe_path_component
from .sessions import SessionTable
from .store import FileRecord, MetadataStore, User


def make_tempdir(test_case):
    path = Path(tempfile.mkdtemp())
    test_case.addCleanup(shutil.rmtree, path, ignore_errors=True)
    return path


class MetadataStoreTests(SimpleTestCase):
    """Tests for MetadataStore"""

    def setUp(self):
        self.path = make_tempdir(self) / 'users.json'
        self.store = MetadataStore(self.path)

    def test_load_missing_document(self):
        """Test that a missing document loads as no users"""
        self.assertEqual(self.store.load(), {})

    def test_save_and_load(self):
        """Test that saved users and records load back unchanged"""
        record = FileRecord(
            id='abc', original_name='a.txt', storage_name='1-2-a.txt',
            size=5, uploaded_at='2024-01-01T00:00:00+00:00', mime_type='text/plain',
        )
        self.store.save({'alice': User(username='alice', password_hash='hash', files=[record])})

        users = self.store.load()

        self.assertEqual(users['alice'], User(username='alice', password_hash='hash', files=[record]))

    def test_document_layout(self):
        """Test the on-disk JSON layout"""
        self.store.save({'alice': User(username='alice', password_hash='hash')})

        document = json.loads(self.path.read_text())

        self.assertEqual(document, {'alice': {'passwordHash': 'hash', 'files': []}})

    def test_corrupted_document(self):
        """Test that an unreadable document raises instead of resetting"""
        self.path.write_text('{not json')

        with self.assertRaises(MetadataCorrupted):
            self.store.load()

    def test_transaction_saves_on_success(self):
        """Test that changes made inside a transaction are persisted"""
        with self.store.transaction() as users:
            users['bob'] = User(username='bob', password_hash='hash')

        self.assertIn('bob', self.store.load())

    def test_transaction_discards_on_error(self):
        """Test that a failing transaction writes nothing"""
        with self.assertRaises(RuntimeError):
            with self.store.transaction() as users:
                users['bob'] = User(username='bob', password_hash='hash')
                raise RuntimeError('boom')

        self.assertEqual(self.store.load(), {})

    def test_no_temp_files_left_behind(self):
        """Test that saves leave only the document in its directory"""
        self.store.save({'alice': User(username='alice', password_hash='hash')})
        self.store.save({})

        self.assertEqual([p.name for p in self.path.parent.iterdir()], ['users.json'])


class SessionTableTests(SimpleTestCase):
    """Tests for SessionTable"""

    def test_create_and_lookup(self):
        table = SessionTable()

        token = table.create('alice')
        session = table.lookup(token)

        self.assertEqual(len(token), 64)
        self.assertEqual(session.username, 'alice')
        self.assertEqual(session.token, token)
        self.assertTrue(session.is_authenticated)

    def test_tokens_are_unique(self):
        table = SessionTable()

        tokens = {table.create('alice') for _ in range(100)}

        self.assertEqual(len(tokens), 100)

    def test_destroy(self):
        table = SessionTable()
        token = table.create('alice')

        table.destroy(token)
        table.destroy(token)

        self.assertIsNone(table.lookup(token))

    def test_lookup_unknown_or_empty(self):
        table = SessionTable()

        self.assertIsNone(table.lookup('missing'))
        self.assertIsNone(table.lookup(None))
        self.assertIsNone(table.lookup(''))

    def test_ttl_expiry(self):
        """Test that sessions older than the TTL are dropped on lookup"""
        table = SessionTable(ttl=60)
        token = table.create('alice')

        self.assertIsNotNone(table.lookup(token))

        table.lookup(token).created_at -= timedelta(seconds=61)

        self.assertIsNone(table.lookup(token))
        self.assertEqual(len(table), 0)


class FileStorageServiceTests(SimpleTestCase):
    """Tests for FileStorageService"""

    def setUp(self):
        self.data_dir = make_tempdir(self)
        self.service = FileStorageService(self.data_dir, max_file_size=1024)
        self.service.register('alice', 'secret1')
        self.session = self.service.sessions.lookup(self.service.login('alice', 'secret1'))

    def file_part(self, filename='a.txt', content=b'hello', mime_type='text/plain'):
        return Part(name='file', content=content, filename=filename, mime_type=mime_type)

    def test_register_validation(self):
        with self.assertRaises(InvalidInput):
            self.service.register('ab', 'secret1')
        with self.assertRaises(InvalidInput):
            self.service.register('bob', 'short')
        with self.assertRaises(InvalidInput):
            self.service.register(None, 'secret1')
        with self.assertRaises(InvalidInput):
            self.service.register(123, 'secret1')
        with self.assertRaises(Conflict):
            self.service.register('alice', 'another1')

    def test_password_is_salted_hash(self):
        self.service.register('bob', 'secret1')

        users = self.service.store.load()

        self.assertNotIn('secret1', users['bob'].password_hash)
        self.assertNotEqual(users['alice'].password_hash, users['bob'].password_hash)

    def test_login_wrong_password(self):
        with self.assertRaises(InvalidCredentials):
            self.service.login('alice', 'wrong-password')
        with self.assertRaises(InvalidCredentials):
            self.service.login('nobody', 'secret1')

    def test_upload_picks_first_file_part(self):
        parts = [
            Part(name='title', content='hello'),
            self.file_part(filename='first.txt'),
            self.file_part(filename='second.txt'),
        ]

        record = self.service.upload(self.session, parts)

        self.assertEqual(record.original_name, 'first.txt')
        self.assertEqual([r.original_name for r in self.service.list_files(self.session)], ['first.txt'])

    def test_upload_without_file_part(self):
        with self.assertRaises(InvalidInput):
            self.service.upload(self.session, [Part(name='title', content='hello')])
        with self.assertRaises(InvalidInput):
            self.service.upload(self.session, [])

    def test_upload_size_limit(self):
        self.service.upload(self.session, [self.file_part(content=b'x' * 1024)])

        with self.assertRaises(PayloadTooLarge) as cm:
            self.service.upload(self.session, [self.file_part(content=b'x' * 1025)])
        self.assertEqual(str(cm.exception.detail), 'File too large (max 1024 bytes)')

    def test_upload_keeps_declared_mime_type(self):
        record = self.service.upload(
            self.session, [self.file_part(filename='data.json', mime_type='application/octet-stream')]
        )

        self.assertEqual(record.mime_type, 'application/octet-stream')

    def test_upload_missing_mime_type_defaults(self):
        record = self.service.upload(self.session, [self.file_part(mime_type=None)])

        self.assertEqual(record.mime_type, 'application/octet-stream')

    def test_download_and_delete(self):
        record = self.service.upload(self.session, [self.file_part()])

        found, handle = self.service.download(self.session, record.id)
        with handle:
            self.assertEqual(handle.read(), b'hello')
        self.assertEqual(found, record)

        self.service.delete(self.session, record.id)

        with self.assertRaises(FileNotFound):
            self.service.download(self.session, record.id)
        with self.assertRaises(FileNotFound):
            self.service.delete(self.session, record.id)

    def test_user_info(self):
        self.service.upload(self.session, [self.file_part(content=b'abc')])
        self.service.upload(self.session, [self.file_part(content=b'defgh')])

        self.assertEqual(
            self.service.user_info(self.session),
            {'username': 'alice', 'fileCount': 2, 'totalSize': 8},
        )

    def test_concurrent_uploads_all_persist(self):
        """Test that overlapping uploads by one user never lose a record"""
        workers = 8
        barrier = threading.Barrier(workers)

        def upload(index):
            barrier.wait()
            return self.service.upload(self.session, [self.file_part(filename=f'file{index}.txt')])

        with ThreadPoolExecutor(max_workers=workers) as executor:
            records = list(executor.map(upload, range(workers)))

        stored = self.service.store.load()['alice'].files
        self.assertEqual({r.id for r in stored}, {r.id for r in records})
        self.assertEqual(len(stored), workers)

    def test_username_directory_is_confined(self):
        """Test that a dot-only username cannot escape the uploads directory"""
        self.service.register('...', 'secret1')
        session = self.service.sessions.lookup(self.service.login('...', 'secret1'))

        record = self.service.upload(session, [self.file_part()])

        self.assertTrue((self.data_dir / 'uploads' / '_...' / record.storage_name).is_file())

    def test_users_sharing_a_directory_stay_isolated(self):
        """Test that a/b and a_b share a blob directory but not each other's files"""
        self.service.register('a/b', 'secret1')
        self.service.register('a_b', 'secret1')
        slash_session = self.service.sessions.lookup(self.service.login('a/b', 'secret1'))
        underscore_session = self.service.sessions.lookup(self.service.login('a_b', 'secret1'))

        first = self.service.upload(slash_session, [self.file_part(filename='same.txt', content=b'one')])
        second = self.service.upload(underscore_session, [self.file_part(filename='same.txt', content=b'two')])

        self.assertNotEqual(first.storage_name, second.storage_name)
        self.assertEqual(self.service.list_files(slash_session), [first])
        self.assertEqual(self.service.list_files(underscore_session), [second])
        with self.assertRaises(FileNotFound):
            self.service.download(underscore_session, first.id)
        _, handle = self.service.download(underscore_session, second.id)
        with handle:
            self.assertEqual(handle.read(), b'two')


class FormatSizeLimitTests(SimpleTestCase):
    """Tests for format_size_limit"""

    def test_whole_megabytes(self):
        self.assertEqual(format_size_limit(10 * 1024 * 1024), '10MB')

    def test_below_or_between_megabytes(self):
        self.assertEqual(format_size_limit(1024), '1024 bytes')
        self.assertEqual(format_size_limit(1024 * 1024 + 1), '1048577 bytes')


class SafePathComponentTests(SimpleTestCase):
    """Tests for safe_path_component"""

    def test_separators_replaced(self):
        self.assertEqual(safe_path_component('../etc/passwd'), '.._etc_passwd')
        self.assertEqual(safe_path_component('a\\b'), 'a_b')

    def test_dot_names_prefixed(self):
        self.assertEqual(safe_path_component('..'), '_..')
        self.assertEqual(safe_path_component('.'), '_.')
        self.assertEqual(safe_path_component(''), '_')

    def test_plain_name_unchanged(self):
        self.assertEqual(safe_path_component('report 2024.pdf'), 'report 2024.pdf')
