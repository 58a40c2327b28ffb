import shutil
import tempfile
from pathlib import Path

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from .services import get_service


class UserInfoAPITests(APISimpleTestCase):
    """
    Test suite for /api/user endpoint
    """

    def setUp(self):
        """Set up test data"""
        data_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, data_dir, ignore_errors=True)
        settings_override = override_settings(FILEBOX_DATA_DIR=Path(data_dir))
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.user_info_url = reverse('user_info')

        service = get_service()
        service.register('testuser', 'testpassword123')
        self.access_token = service.login('testuser', 'testpassword123')

    def test_user_info_empty(self):
        """Test user info before any upload"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')
        response = self.client.get(self.user_info_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'username': 'testuser', 'fileCount': 0, 'totalSize': 0})

    def test_user_info_counts_files(self):
        """Test that file count and total size follow uploads and deletes"""
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')
        upload_url = reverse('file_upload')

        first = self.client.post(
            upload_url, {'file': SimpleUploadedFile('a.txt', b'12345', content_type='text/plain')}, format='multipart'
        )
        self.client.post(
            upload_url, {'file': SimpleUploadedFile('b.txt', b'1234567', content_type='text/plain')}, format='multipart'
        )

        response = self.client.get(self.user_info_url)
        self.assertEqual(response.data, {'username': 'testuser', 'fileCount': 2, 'totalSize': 12})

        self.client.delete(reverse('file_delete', args=[first.data['file']['id']]))

        response = self.client.get(self.user_info_url)
        self.assertEqual(response.data, {'username': 'testuser', 'fileCount': 1, 'totalSize': 7})

    def test_user_info_unauthenticated(self):
        """Test user info endpoint without authentication"""
        response = self.client.get(self.user_info_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_info_invalid_token(self):
        """Test user info endpoint with invalid token"""
        self.client.credentials(HTTP_AUTHORIZATION='Bearer invalid_token')
        response = self.client.get(self.user_info_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_info_different_users(self):
        """Test that each user gets their own info"""
        service = get_service()
        service.register('seconduser', 'testpassword123')
        second_token = service.login('seconduser', 'testpassword123')

        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')
        response1 = self.client.get(self.user_info_url)

        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {second_token}')
        response2 = self.client.get(self.user_info_url)

        self.assertEqual(response1.data['username'], 'testuser')
        self.assertEqual(response2.data['username'], 'seconduser')
