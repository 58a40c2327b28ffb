"""
File Access API Tests

Test suite for listing, downloading and deleting files:
- GET /api/files
- GET /api/download/<file_id>
- DELETE /api/files/<file_id>
"""

import shutil
import tempfile
from pathlib import Path

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient, APISimpleTestCase

from .services import get_service


class FileAccessAPITests(APISimpleTestCase):
    """Comprehensive test suite for per-user file access"""

    def setUp(self):
        """Set up test data"""
        self.data_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.data_dir, ignore_errors=True)
        settings_override = override_settings(FILEBOX_DATA_DIR=self.data_dir)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.list_url = reverse('file_list')
        self.upload_url = reverse('file_upload')

        # Create test users
        service = get_service()
        service.register('testuser1', 'testpass123')
        service.register('testuser2', 'testpass123')
        self.access_token1 = service.login('testuser1', 'testpass123')
        self.access_token2 = service.login('testuser2', 'testpass123')

        self.setup_test_files()

    def setup_test_files(self):
        """Upload test files for user1"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token1}')

        test_files = [
            ('document.pdf', b'%PDF-1.4 fake pdf content', 'application/pdf'),
            ('image.jpg', b'\xff\xd8\xff fake jpeg content', 'image/jpeg'),
            ('text.txt', b'simple text file content', 'text/plain'),
        ]

        self.uploaded_files = []
        for filename, content, content_type in test_files:
            data = {'file': SimpleUploadedFile(filename, content, content_type=content_type)}
            response = self.client.post(self.upload_url, data, format='multipart')
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.uploaded_files.append((response.data['file'], content))

    def download_url(self, file_id):
        return reverse('file_download', args=[file_id])

    def delete_url(self, file_id):
        return reverse('file_delete', args=[file_id])

    def test_file_list_success(self):
        """Test successful file listing in upload order"""
        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [item['originalName'] for item in response.data['files']]
        self.assertEqual(names, ['document.pdf', 'image.jpg', 'text.txt'])

        required_fields = ['id', 'originalName', 'storageName', 'size', 'uploadedAt', 'mimeType']
        for field in required_fields:
            self.assertIn(field, response.data['files'][0])

    def test_file_list_unauthenticated(self):
        """Test file listing without authentication"""
        fresh_client = APIClient()

        response = fresh_client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_file_list_user_isolation(self):
        """Test that users only see their own files"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token2}')

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['files'], [])

    def test_file_download_round_trip(self):
        """Test that downloads return the exact uploaded bytes and mime type"""
        for file_data, content in self.uploaded_files:
            response = self.client.get(self.download_url(file_data['id']))

            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.getvalue(), content)
            self.assertEqual(response['Content-Type'], file_data['mimeType'])
            self.assertEqual(response['Content-Length'], str(len(content)))
            self.assertEqual(
                response['Content-Disposition'],
                f'attachment; filename="{file_data["originalName"]}"'
            )
            response.close()

    def test_file_download_not_found(self):
        """Test download of an unknown file id"""
        response = self.client.get(self.download_url('0' * 32))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'File not found')

    def test_file_download_other_users_file(self):
        """Test that a user cannot download another user's file"""
        file_id = self.uploaded_files[0][0]['id']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token2}')

        response = self.client.get(self.download_url(file_id))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_file_download_missing_blob(self):
        """Test download when metadata exists but the blob is gone"""
        file_data = self.uploaded_files[0][0]
        (self.data_dir / 'uploads' / 'testuser1' / file_data['storageName']).unlink()

        response = self.client.get(self.download_url(file_data['id']))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'File not found on disk')

    def test_file_download_length_follows_blob(self):
        """Test that Content-Length matches the bytes on disk, not the recorded size"""
        file_data = self.uploaded_files[2][0]
        blob_path = self.data_dir / 'uploads' / 'testuser1' / file_data['storageName']
        blob_path.write_bytes(b'short')

        response = self.client.get(self.download_url(file_data['id']))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Length'], '5')
        self.assertEqual(response.getvalue(), b'short')
        response.close()

    def test_file_download_unauthenticated(self):
        """Test download without authentication"""
        response = APIClient().get(self.download_url(self.uploaded_files[0][0]['id']))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_file_delete_success(self):
        """Test deleting a file removes blob and metadata"""
        file_data = self.uploaded_files[1][0]
        blob_path = self.data_dir / 'uploads' / 'testuser1' / file_data['storageName']
        self.assertTrue(blob_path.exists())

        response = self.client.delete(self.delete_url(file_data['id']))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'File deleted successfully')
        self.assertFalse(blob_path.exists())

        names = [item['originalName'] for item in self.client.get(self.list_url).data['files']]
        self.assertEqual(names, ['document.pdf', 'text.txt'])

    def test_file_delete_twice(self):
        """Test that a deleted file is gone for good"""
        file_id = self.uploaded_files[0][0]['id']

        self.client.delete(self.delete_url(file_id))
        response = self.client.delete(self.delete_url(file_id))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_file_delete_missing_blob(self):
        """Test that delete proceeds when the blob is already absent"""
        file_data = self.uploaded_files[0][0]
        (self.data_dir / 'uploads' / 'testuser1' / file_data['storageName']).unlink()

        response = self.client.delete(self.delete_url(file_data['id']))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(get_service().store.load()['testuser1'].files), 2)

    def test_file_delete_other_users_file(self):
        """Test that a user cannot delete another user's file"""
        file_data = self.uploaded_files[0][0]
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token2}')

        response = self.client.delete(self.delete_url(file_data['id']))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue((self.data_dir / 'uploads' / 'testuser1' / file_data['storageName']).exists())
        self.assertEqual(len(get_service().store.load()['testuser1'].files), 3)

    def test_file_delete_unauthenticated(self):
        """Test delete without authentication"""
        response = APIClient().delete(self.delete_url(self.uploaded_files[0][0]['id']))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
