import shutil
import tempfile
from io import StringIO
from pathlib import Path

from django.core.management import call_command
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.settings import api_settings
from rest_framework.test import APISimpleTestCase

from .authentication import BearerTokenAuthentication


class FileboxScenarioTests(APISimpleTestCase):
    """
    End-to-end walk through the whole API:
    register -> login -> upload -> list -> download -> delete -> list -> logout
    """

    def setUp(self):
        """Set up test data"""
        self.data_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.data_dir, ignore_errors=True)
        settings_override = override_settings(FILEBOX_DATA_DIR=self.data_dir)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

    def test_full_scenario(self):
        """Test the complete lifecycle of a single file"""
        credentials = {'username': 'alice', 'password': 'secret1'}

        response = self.client.post(reverse('register'), credentials, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('login'), credentials, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'alice')
        token = response.data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        boundary = 'scenarioBoundary'
        body = (
            f'--{boundary}\r\n'
            'Content-Disposition: form-data; name="file"; filename="a.txt"\r\n'
            'Content-Type: text/plain\r\n\r\n'
            'hello\r\n'
            f'--{boundary}--\r\n'
        ).encode()
        response = self.client.post(
            reverse('file_upload'), data=body, content_type=f'multipart/form-data; boundary={boundary}'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['size'], 5)
        file_id = response.data['file']['id']

        response = self.client.get(reverse('file_list'))
        self.assertEqual([item['id'] for item in response.data['files']], [file_id])

        response = self.client.get(reverse('file_download', args=[file_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.getvalue(), b'hello')
        self.assertEqual(response['Content-Type'], 'text/plain')
        response.close()

        response = self.client.delete(reverse('file_delete', args=[file_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(reverse('file_list'))
        self.assertEqual(response.data['files'], [])

        response = self.client.post(reverse('logout'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(reverse('file_list'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_metadata_survives_service_restart(self):
        """Test that users and files persist across a rebuilt service while sessions do not"""
        credentials = {'username': 'alice', 'password': 'secret1'}
        self.client.post(reverse('register'), credentials, format='json')
        token = self.client.post(reverse('login'), credentials, format='json').data['token']

        # Rebuilding the service drops the in-memory session table
        with override_settings(FILEBOX_SESSION_TTL=None):
            self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
            response = self.client.get(reverse('file_list'))
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

            response = self.client.post(reverse('login'), credentials, format='json')
            self.assertEqual(response.status_code, status.HTTP_200_OK)


class ProjectBootTests(APISimpleTestCase):
    """Checks that the project loads with the configured authentication"""

    def test_system_checks_pass(self):
        """Test that manage.py check resolves every configured class"""
        out = StringIO()

        call_command('check', stdout=out)

        self.assertIn('no issues', out.getvalue())

    def test_authentication_class_is_loaded(self):
        """Test that DRF resolves the bearer authentication from settings"""
        self.assertEqual(api_settings.DEFAULT_AUTHENTICATION_CLASSES, [BearerTokenAuthentication])
