"""DRF authentication backed by the opaque ``session`` cookie."""

from django.conf import settings
from rest_framework.authentication import BaseAuthentication
from rest_framework.request import Request

from AssessmentApp.domain.services import session_service


class SessionCookieAuthentication(BaseAuthentication):
    """Resolve the session cookie to a user; unknown or expired cookies are anonymous."""

    def authenticate(self, request: Request):
        token = request.COOKIES.get(settings.ASSESSMENT_SESSION_COOKIE)
        user = session_service.resolve(token)
        if user is None:
            return None
        return user, token

    def authenticate_header(self, request: Request) -> str:
        return 'Cookie realm="api"'
