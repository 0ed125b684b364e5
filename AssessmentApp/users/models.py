import secrets

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone

from AssessmentApp.core.choices import UserRole


def generate_session_token() -> str:
    return secrets.token_urlsafe(32)


class User(AbstractUser):
    email = models.EmailField(unique=True)
    full_name = models.CharField(max_length=255, blank=True)
    role = models.CharField(max_length=16, choices=UserRole.choices, default=UserRole.STUDENT)
    created_at = models.DateTimeField(auto_now_add=True)
    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]


class SessionQuerySet(models.QuerySet):
    def active(self):
        return self.filter(expires_at__gt=timezone.now())

    def expired(self):
        return self.filter(expires_at__lte=timezone.now())


class UserSession(models.Model):
    """Opaque login session, owned exclusively by the session service.

    A session is valid while ``expires_at`` is in the future; the cookie only
    ever carries ``id``.
    """
    id = models.CharField(max_length=64, primary_key=True, default=generate_session_token, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="sessions")
    created_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField()

    objects = SessionQuerySet.as_manager()

    def __str__(self) -> str:
        return f"Session({self.user_id}, expires {self.expires_at:%Y-%m-%d %H:%M})"
