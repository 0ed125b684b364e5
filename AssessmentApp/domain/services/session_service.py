"""Session Store: opaque login sessions backed by the ``UserSession`` table.

This module is the only code that creates, resolves or deletes sessions.
A session is valid while ``expires_at`` lies in the future; anything else
resolves to "no user".
"""

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import AuthenticationFailed

from AssessmentApp.users.models import UserSession

logger = logging.getLogger(__name__)

User = get_user_model()


def session_ttl():
    return settings.ASSESSMENT_SESSION_TTL


def authenticate_credentials(email: str, password: str) -> User:
    """Verify an email/password pair.

    Unknown email and wrong password fail the same way so the response does
    not reveal which accounts exist.

    Raises:
        AuthenticationFailed: On any credential mismatch or inactive account.
    """
    user = User.objects.filter(email__iexact=email.strip()).first()
    if user is None or not user.is_active or not user.check_password(password):
        logger.info("Login failed for %s", email)
        raise AuthenticationFailed("Invalid credentials")
    return user


@transaction.atomic
def create_session(user: User) -> UserSession:
    """Open a new session for ``user`` expiring after the configured TTL."""
    session = UserSession.objects.create(user=user, expires_at=timezone.now() + session_ttl())
    logger.info("Session created for user %s", user.pk)
    return session


def login(email: str, password: str) -> UserSession:
    user = authenticate_credentials(email, password)
    return create_session(user)


def resolve(token: str | None) -> User | None:
    """Return the user owning a live session, or None for unknown/expired tokens."""
    if not token:
        return None
    session = (
        UserSession.objects.active()
        .select_related("user")
        .filter(pk=token)
        .first()
    )
    if session is None or not session.user.is_active:
        return None
    return session.user


def destroy(token: str | None) -> bool:
    """Delete a session. Returns True when a row was removed."""
    if not token:
        return False
    deleted, _ = UserSession.objects.filter(pk=token).delete()
    if deleted:
        logger.info("Session deleted")
    return bool(deleted)


def purge_expired() -> int:
    """Remove every expired session row and return how many were deleted."""
    deleted, _ = UserSession.objects.expired().delete()
    logger.info("Purged %d expired sessions", deleted)
    return deleted
