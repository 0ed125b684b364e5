"""Custom DRF permission classes: the role + relationship guard pipeline.

Views list these in ``permission_classes`` (or return them from
``get_permissions``), so a new endpoint states its required role and
relationship declaratively instead of re-implementing the checks.
"""

from typing import Any

from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from AssessmentApp.core.choices import UserRole
from AssessmentApp.core.access import (
    module_from, has_role, is_admin, is_assigned_instructor, can_view_module,
)


class RolePermission(BasePermission):
    """Allow access only to authenticated users holding one of ``roles``."""
    roles: tuple[str, ...] = ()
    message = "Insufficient role"

    def has_permission(self, request: Request, view: Any) -> bool:
        return has_role(request.user, *self.roles)


class IsAdmin(RolePermission):
    roles = (UserRole.ADMIN,)
    message = "Admin access required"


class IsInstructor(RolePermission):
    roles = (UserRole.INSTRUCTOR,)
    message = "Instructor role required"


class IsStudent(RolePermission):
    roles = (UserRole.STUDENT,)
    message = "Student role required"


class IsInstructorOrAdmin(RolePermission):
    roles = (UserRole.INSTRUCTOR, UserRole.ADMIN)
    message = "Instructor or admin role required"


class IsAssignedInstructorOrAdmin(BasePermission):
    """Object-level: admins bypass, instructors must be assigned."""
    message = "Instructor not assigned to module"

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return is_admin(request.user) or is_assigned_instructor(request.user, module_from(obj))


class CanViewModule(BasePermission):
    """Object-level: admin, assigned instructor, or enrolled student of a published module."""
    message = "Forbidden"

    def has_object_permission(self, request: Request, view: Any, obj: Any) -> bool:
        return can_view_module(request.user, module_from(obj))

