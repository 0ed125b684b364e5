"""Custom querysets encapsulating visibility and role-based filtering for modules."""

from django.db.models import QuerySet
from typing import Self

from AssessmentApp.core.choices import ModuleStatus, UserRole


class ModuleQuerySet(QuerySet):
    """QuerySet with helpers for module status, assignment and enrollment."""

    def published(self) -> Self:
        return self.filter(status=ModuleStatus.PUBLISHED)

    def assigned_to(self, user) -> Self:
        """Modules the user is assigned to as instructor."""
        return self.filter(instructor_assignments__instructor=user).distinct()

    def enrolled(self, user) -> Self:
        """Modules the user is enrolled in as student."""
        return self.filter(enrollments__student=user).distinct()

    def visible_to(self, user) -> Self:
        """Modules visible to user:
        - Admin: all
        - Instructor: assigned modules (any status)
        - Student: published modules they are enrolled in
        - Anyone else: none
        """
        if not user or not user.is_authenticated:
            return self.none()
        if user.role == UserRole.ADMIN:
            return self.all()
        if user.role == UserRole.INSTRUCTOR:
            return self.assigned_to(user)
        if user.role == UserRole.STUDENT:
            return self.published().enrolled(user)
        return self.none()
