import os
import shutil
import tempfile
from pathlib import Path

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from .services import get_service

MAX_FILE_SIZE = 10 * 1024 * 1024


class FileUploadAPITests(APISimpleTestCase):
    """
    Comprehensive test suite for file upload endpoint:
    - POST /api/upload
    """

    def setUp(self):
        """Set up test data"""
        self.data_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.data_dir, ignore_errors=True)
        settings_override = override_settings(FILEBOX_DATA_DIR=self.data_dir, FILEBOX_MAX_FILE_SIZE=MAX_FILE_SIZE)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.upload_url = reverse('file_upload')

        # Create test user and session
        service = get_service()
        service.register('testuser', 'testpass123')
        self.access_token = service.login('testuser', 'testpass123')

        self.test_file_content = b"This is a test file content for upload testing."
        self.test_file = SimpleUploadedFile(
            "test.txt",
            self.test_file_content,
            content_type="text/plain"
        )

    def test_file_upload_success(self):
        """Test successful file upload"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        response = self.client.post(self.upload_url, {'file': self.test_file}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'File uploaded successfully')

        # Check response structure
        file_data = response.data['file']
        self.assertEqual(len(file_data['id']), 32)
        self.assertEqual(file_data['originalName'], 'test.txt')
        self.assertEqual(file_data['size'], len(self.test_file_content))
        self.assertEqual(file_data['mimeType'], 'text/plain')
        self.assertTrue(file_data['storageName'].endswith('-test.txt'))
        self.assertIn('uploadedAt', file_data)

        # Verify blob and metadata were written
        blob_path = self.data_dir / 'uploads' / 'testuser' / file_data['storageName']
        self.assertEqual(blob_path.read_bytes(), self.test_file_content)
        users = get_service().store.load()
        self.assertEqual([record.id for record in users['testuser'].files], [file_data['id']])

    def test_file_upload_with_extra_fields(self):
        """Test that plain fields alongside the file are ignored"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        data = {'title': 'notes', 'file': self.test_file}
        response = self.client.post(self.upload_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['originalName'], 'test.txt')

    def test_file_upload_same_name_twice(self):
        """Test that the same filename gets distinct storage names"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        first = self.client.post(
            self.upload_url,
            {'file': SimpleUploadedFile("same.txt", b"one", content_type="text/plain")},
            format='multipart',
        )
        second = self.client.post(
            self.upload_url,
            {'file': SimpleUploadedFile("same.txt", b"two", content_type="text/plain")},
            format='multipart',
        )

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertNotEqual(first.data['file']['id'], second.data['file']['id'])
        self.assertNotEqual(first.data['file']['storageName'], second.data['file']['storageName'])
        self.assertEqual(len(get_service().store.load()['testuser'].files), 2)

    def test_file_upload_unauthenticated(self):
        """Test file upload without authentication"""
        response = self.client.post(self.upload_url, {'file': self.test_file}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse((self.data_dir / 'uploads').exists())

    def test_file_upload_missing_file(self):
        """Test file upload without a file part"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        response = self.client.post(self.upload_url, {'title': 'no file here'}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No file uploaded')

    def test_file_upload_empty_body(self):
        """Test file upload with no body at all"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        response = self.client.post(self.upload_url)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No file uploaded')

    def test_file_upload_without_boundary(self):
        """Test multipart content type lacking a boundary parameter"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        response = self.client.post(
            self.upload_url,
            data=b'--abc\r\nContent-Disposition: form-data; name="file"; filename="a.txt"\r\n\r\nhi\r\n--abc--\r\n',
            content_type='multipart/form-data',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No file uploaded')

    def test_file_upload_json_body(self):
        """Test that a non-multipart body is treated as having no file"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        response = self.client.post(self.upload_url, {'file': 'nope'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No file uploaded')

    def test_file_upload_exact_size_limit(self):
        """Test that a file of exactly the size limit is accepted"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        content = b"x" * MAX_FILE_SIZE
        data = {'file': SimpleUploadedFile("limit.bin", content, content_type="application/octet-stream")}
        response = self.client.post(self.upload_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['size'], MAX_FILE_SIZE)

    def test_file_upload_oversized_file(self):
        """Test file upload one byte over the size limit"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        content = b"x" * (MAX_FILE_SIZE + 1)
        data = {'file': SimpleUploadedFile("large.bin", content, content_type="application/octet-stream")}
        response = self.client.post(self.upload_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'File too large (max 10MB)')
        self.assertEqual(get_service().store.load()['testuser'].files, [])

    def test_file_upload_keeps_declared_mime_type(self):
        """Test that the declared content type is stored and served unchanged"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        data = {'file': SimpleUploadedFile("data.json", b"{}", content_type="application/octet-stream")}
        response = self.client.post(self.upload_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['mimeType'], 'application/octet-stream')

        download = self.client.get(reverse('file_download', args=[response.data['file']['id']]))
        self.assertEqual(download['Content-Type'], 'application/octet-stream')
        download.close()

    def test_file_upload_path_separators_stripped(self):
        """Test that separators in the filename never reach the filesystem path"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')
        boundary = 'pathboundary'
        body = (
            f'--{boundary}\r\n'
            'Content-Disposition: form-data; name="file"; filename="../../escape.txt"\r\n'
            'Content-Type: text/plain\r\n\r\n'
            'gotcha\r\n'
            f'--{boundary}--\r\n'
        ).encode()

        response = self.client.post(
            self.upload_url, data=body, content_type=f'multipart/form-data; boundary={boundary}'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['originalName'], '../../escape.txt')
        storage_name = response.data['file']['storageName']
        self.assertNotIn('/', storage_name)
        self.assertTrue((self.data_dir / 'uploads' / 'testuser' / storage_name).is_file())
        self.assertEqual(os.listdir(self.data_dir / 'uploads'), ['testuser'])
