from rest_framework.authentication import BaseAuthentication

from . import services

BEARER_PREFIX = 'Bearer '


def extract_bearer_token(request):
    """Return the token from an ``Authorization: Bearer <token>`` header, if any."""
    header = request.META.get('HTTP_AUTHORIZATION', '')
    if not header.startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):].strip() or None


class BearerTokenAuthentication(BaseAuthentication):
    """
    Resolve bearer tokens against the in-memory session table.

    Unknown or missing tokens leave the request anonymous; views guarded by
    IsAuthenticated then answer 401 before doing any work.
    """
    www_authenticate_realm = 'api'

    def authenticate(self, request):
        token = extract_bearer_token(request)
        if token is None:
            return None

        session = services.get_service().sessions.lookup(token)
        if session is None:
            return None
        return (session, token)

    def authenticate_header(self, request):
        return f'Bearer realm="{self.www_authenticate_realm}"'
