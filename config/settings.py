"""
Django settings for the filebox service.

Environment overrides:
- DJANGO_SECRET_KEY, DJANGO_DEBUG, DJANGO_ALLOWED_HOSTS
- FILEBOX_DATA_DIR: directory holding users.json and the uploads/ tree
- FILEBOX_MAX_FILE_SIZE: per-file upload cap in bytes
- FILEBOX_SESSION_TTL: session lifetime in seconds (unset = until logout)
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-filebox-development-key')

DEBUG = os.getenv('DJANGO_DEBUG', 'false').lower() in ('1', 'true', 'yes')

ALLOWED_HOSTS = [h for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]

INSTALLED_APPS = [
    'rest_framework',
    'filebox.apps.FileboxConfig',
]

MIDDLEWARE = [
    'filebox.middleware.RequestLogMiddleware',
    'filebox.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

WSGI_APPLICATION = 'config.wsgi.application'

# Metadata lives in a JSON document, not a database.
DATABASES = {}

USE_TZ = True
TIME_ZONE = 'UTC'

# Upload bodies are read by filebox.parsers.RawMultipartParser, which enforces
# its own per-file cap.
DATA_UPLOAD_MAX_MEMORY_SIZE = None

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'filebox.authentication.BearerTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'EXCEPTION_HANDLER': 'filebox.exceptions.api_exception_handler',
    'UNAUTHENTICATED_USER': None,
    'UNAUTHENTICATED_TOKEN': None,
}

# Filebox
FILEBOX_DATA_DIR = Path(os.getenv('FILEBOX_DATA_DIR', BASE_DIR / 'data'))
FILEBOX_MAX_FILE_SIZE = int(os.getenv('FILEBOX_MAX_FILE_SIZE', str(10 * 1024 * 1024)))
FILEBOX_SESSION_TTL = int(os.getenv('FILEBOX_SESSION_TTL')) if os.getenv('FILEBOX_SESSION_TTL') else None

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'filebox': {
            'handlers': ['console'],
            'level': os.getenv('FILEBOX_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
