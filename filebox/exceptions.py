import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidInput(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request'
    default_code = 'invalid_input'


class Conflict(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Username already exists'
    default_code = 'conflict'


class InvalidCredentials(APIException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'Invalid credentials'
    default_code = 'invalid_credentials'


class FileNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'File not found'
    default_code = 'not_found'


class PayloadTooLarge(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'File too large'
    default_code = 'payload_too_large'


class IOFailure(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Storage error'
    default_code = 'io_failure'


class MetadataCorrupted(IOFailure):
    default_detail = 'User metadata could not be read'
    default_code = 'metadata_corrupted'


def _first_message(detail):
    if isinstance(detail, dict):
        for value in detail.values():
            return _first_message(value)
        return ''
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    """
    Render every failure as {"error": "<message>"}.

    Exceptions DRF does not know about are logged and turned into a 500 so
    a handler bug never takes the worker down with an HTML error page.
    """
    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    detail = getattr(exc, 'detail', response.data)
    response.data = {'error': _first_message(detail)}
    return response
