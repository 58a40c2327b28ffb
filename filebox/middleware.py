import logging

from django.http import HttpResponse

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, DELETE, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type, Authorization',
}


class RequestLogMiddleware:
    """Log the method and path of every request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        logger.info(f"{request.method} {request.path}")
        return self.get_response(request)


class CorsMiddleware:
    """
    Permissive CORS: every origin, method and header is allowed, and
    preflight requests are answered without reaching the views.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.method == 'OPTIONS':
            response = HttpResponse(status=200)
        else:
            response = self.get_response(request)

        for header, value in CORS_HEADERS.items():
            response[header] = value
        return response
