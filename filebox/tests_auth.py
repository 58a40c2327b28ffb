import shutil
import tempfile
from pathlib import Path

from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APISimpleTestCase

from .services import get_service


class AuthenticationAPITests(APISimpleTestCase):
    """
    Comprehensive test suite for authentication endpoints:
    - POST /api/register
    - POST /api/login
    - POST /api/logout
    """

    def setUp(self):
        """Set up test data"""
        data_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, data_dir, ignore_errors=True)
        settings_override = override_settings(FILEBOX_DATA_DIR=Path(data_dir))
        settings_override.enable()
        self.addCleanup(settings_override.disable)

        self.register_url = reverse('register')
        self.login_url = reverse('login')
        self.logout_url = reverse('logout')
        self.files_url = reverse('file_list')

        self.valid_user_data = {
            'username': 'testuser',
            'password': 'securepassword123',
        }

    def test_user_registration_success(self):
        """Test successful user registration"""
        response = self.client.post(self.register_url, self.valid_user_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'User registered successfully')

        # Verify user was persisted
        users = get_service().store.load()
        self.assertIn('testuser', users)
        self.assertEqual(users['testuser'].files, [])
        self.assertNotEqual(users['testuser'].password_hash, 'securepassword123')

    def test_user_registration_short_username(self):
        """Test registration with a 2 character username"""
        response = self.client.post(self.register_url, {'username': 'ab', 'password': 'secret1'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('at least 3 characters', response.data['error'])

    def test_user_registration_short_password(self):
        """Test registration with a password under 6 characters"""
        response = self.client.post(self.register_url, {'username': 'alice', 'password': '12345'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_user_registration_duplicate_username(self):
        """Test registration with duplicate username"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        response = self.client.post(self.register_url, self.valid_user_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Username already exists')

    def test_user_registration_usernames_case_sensitive(self):
        """Test that usernames differing only in case are distinct"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        data = self.valid_user_data.copy()
        data['username'] = 'TestUser'
        response = self.client.post(self.register_url, data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_user_registration_missing_fields(self):
        """Test registration with missing required fields"""
        response = self.client.post(self.register_url, {'username': 'testuser'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Username and password required')

    def test_user_registration_malformed_json(self):
        """Test registration with a body that is not valid JSON"""
        response = self.client.post(self.register_url, data='{not json', content_type='application/json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_user_registration_non_object_json(self):
        """Test registration with a JSON array body"""
        response = self.client.post(self.register_url, ['testuser', 'securepassword123'], format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid request')

    def test_user_login_success(self):
        """Test successful user login"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        response = self.client.post(self.login_url, self.valid_user_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'testuser')
        self.assertEqual(len(response.data['token']), 64)
        self.assertIsNotNone(get_service().sessions.lookup(response.data['token']))

    def test_user_login_issues_distinct_tokens(self):
        """Test that each login creates a new session"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        first = self.client.post(self.login_url, self.valid_user_data, format='json')
        second = self.client.post(self.login_url, self.valid_user_data, format='json')

        self.assertNotEqual(first.data['token'], second.data['token'])

    def test_user_login_invalid_credentials(self):
        """Test login with invalid credentials"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        response = self.client.post(
            self.login_url, {'username': 'testuser', 'password': 'wrongpassword'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid credentials')

    def test_user_login_nonexistent_user(self):
        """Test login with non-existent user"""
        response = self.client.post(
            self.login_url, {'username': 'nonexistent', 'password': 'somepassword'}, format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'Invalid credentials')

    def test_user_login_missing_fields(self):
        """Test login with missing fields"""
        response = self.client.post(self.login_url, {'username': 'testuser'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)

    def test_user_logout_success(self):
        """Test logout invalidates the token"""
        self.client.post(self.register_url, self.valid_user_data, format='json')
        token = self.client.post(self.login_url, self.valid_user_data, format='json').data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        self.assertEqual(self.client.get(self.files_url).status_code, status.HTTP_200_OK)

        response = self.client.post(self.logout_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Logged out successfully')
        self.assertEqual(self.client.get(self.files_url).status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_logout_twice(self):
        """Test that logging out twice with the same token succeeds both times"""
        self.client.post(self.register_url, self.valid_user_data, format='json')
        token = self.client.post(self.login_url, self.valid_user_data, format='json').data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        first = self.client.post(self.logout_url)
        second = self.client.post(self.logout_url)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(second.status_code, status.HTTP_200_OK)

    def test_user_logout_without_token(self):
        """Test logout without any Authorization header"""
        response = self.client.post(self.logout_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_protected_endpoint_without_token(self):
        """Test that protected endpoints answer 401 with a bearer challenge"""
        response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)
        self.assertTrue(response['WWW-Authenticate'].startswith('Bearer'))

    def test_protected_endpoint_with_unknown_token(self):
        """Test protected endpoint with an unknown token"""
        self.client.credentials(HTTP_AUTHORIZATION='Bearer ' + 'f' * 64)

        response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_protected_endpoint_with_wrong_scheme(self):
        """Test that non-Bearer Authorization headers are ignored"""
        self.client.post(self.register_url, self.valid_user_data, format='json')
        token = self.client.post(self.login_url, self.valid_user_data, format='json').data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Token {token}')

        response = self.client.get(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_cors_headers_and_preflight(self):
        """Test permissive CORS headers on responses and OPTIONS preflight"""
        response = self.client.options(self.files_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')
        self.assertIn('Authorization', response['Access-Control-Allow-Headers'])

        response = self.client.get(self.files_url)
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')


class SessionExpiryAPITests(APISimpleTestCase):
    """
    Test suite for the optional session TTL
    """

    def setUp(self):
        """Set up test data"""
        data_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, data_dir, ignore_errors=True)
        settings_override = override_settings(FILEBOX_DATA_DIR=Path(data_dir), FILEBOX_SESSION_TTL=0)
        settings_override.enable()
        self.addCleanup(settings_override.disable)

    def test_expired_session_is_rejected(self):
        """Test that a zero TTL expires sessions immediately"""
        credentials = {'username': 'testuser', 'password': 'securepassword123'}
        self.client.post(reverse('register'), credentials, format='json')
        token = self.client.post(reverse('login'), credentials, format='json').data['token']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = self.client.get(reverse('file_list'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(len(get_service().sessions), 0)
