"""Account administration: create, update and remove users (admin only)."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework.exceptions import ValidationError

from AssessmentApp.core.access import ensure_admin
from AssessmentApp.core.choices import UserRole

logger = logging.getLogger(__name__)

User = get_user_model()


def _ensure_email_free(email: str, exclude_pk: int | None = None) -> None:
    qs = User.objects.filter(email__iexact=email)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise ValidationError({"email": "A user with this email already exists"})


@transaction.atomic
def create_user(actor, email: str, password: str, full_name: str = "", role: str = UserRole.STUDENT) -> User:
    """Create an account. ``actor`` may be None for bootstrap (management command) use."""
    if actor is not None:
        ensure_admin(actor)
    email = User.objects.normalize_email(email).lower()
    _ensure_email_free(email)
    user = User(
        email=email,
        username=email,
        full_name=full_name,
        role=role,
        is_staff=role == UserRole.ADMIN,
    )
    user.set_password(password)
    user.save()
    logger.info("User %s created with role %s", user.pk, role)
    return user


@transaction.atomic
def update_user(actor, user: User, data: dict[str, Any]) -> User:
    """Apply a partial update; ``password`` is hashed, ``email`` stays unique."""
    ensure_admin(actor)
    fields = []
    if "email" in data:
        email = User.objects.normalize_email(data["email"]).lower()
        _ensure_email_free(email, exclude_pk=user.pk)
        user.email = email
        user.username = email
        fields += ["email", "username"]
    for attr in ("full_name", "role"):
        if attr in data:
            setattr(user, attr, data[attr])
            fields.append(attr)
    if "role" in data:
        user.is_staff = data["role"] == UserRole.ADMIN
        fields.append("is_staff")
    if data.get("password"):
        user.set_password(data["password"])
        fields.append("password")
    if fields:
        user.save(update_fields=fields)
    return user


@transaction.atomic
def delete_user(actor, user: User) -> None:
    ensure_admin(actor)
    if actor.pk == user.pk:
        raise ValidationError("Admins cannot delete their own account")
    logger.info("User %s deleted by %s", user.pk, actor.pk)
    user.delete()
