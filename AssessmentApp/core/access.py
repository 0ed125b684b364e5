"""Role & object access helpers.

Predicates (``is_*``) answer a question; guards (``ensure_*``) raise
PermissionDenied with a readable reason. Both are read-only.
"""

from typing import Any

from rest_framework.exceptions import PermissionDenied

from AssessmentApp.core.choices import ModuleStatus, SubmissionStatus, UserRole
from AssessmentApp.modules.models import Module, ModuleInstructor, ModuleStudent
from AssessmentApp.content.models import Question, Part, SubQuestion, Artefact
from AssessmentApp.assessments.models import Submission, Answer, Grade


def module_from(obj: Any) -> Module | None:
    if obj is None:
        return None
    if isinstance(obj, Module):
        return obj
    if isinstance(obj, (Question, Submission)):
        return obj.module
    if isinstance(obj, (Part, Artefact)):
        return obj.question.module
    if isinstance(obj, SubQuestion):
        return obj.part.question.module
    if isinstance(obj, Answer):
        return obj.submission.module
    if isinstance(obj, Grade):
        return obj.answer.submission.module
    return getattr(obj, "module", None)


def has_role(user, *roles: str) -> bool:
    return bool(user and getattr(user, "is_authenticated", False) and user.role in roles)


def is_admin(user) -> bool:
    return has_role(user, UserRole.ADMIN)


def is_assigned_instructor(user, module: Module | None) -> bool:
    if not (module and has_role(user, UserRole.INSTRUCTOR)):
        return False
    return ModuleInstructor.objects.filter(module=module, instructor=user).exists()


def is_enrolled_student(user, module: Module | None) -> bool:
    if not (module and has_role(user, UserRole.STUDENT)):
        return False
    return ModuleStudent.objects.filter(module=module, student=user).exists()


def is_submission_owner(user, submission: Submission | None) -> bool:
    return bool(user and submission and submission.student_id == user.id)


def ensure_role(user, *roles: str) -> None:
    if not has_role(user, *roles):
        raise PermissionDenied(f"{' or '.join(r.capitalize() for r in roles)} role required")


def ensure_admin(user) -> None:
    ensure_role(user, UserRole.ADMIN)


def ensure_assigned(user, module: Module) -> None:
    """Instructor must be assigned to the module; admins bypass the assignment check."""
    if is_admin(user):
        return
    ensure_role(user, UserRole.INSTRUCTOR, UserRole.ADMIN)
    if not is_assigned_instructor(user, module):
        raise PermissionDenied("Instructor not assigned to module")


def ensure_assigned_instructor(user, module: Module) -> None:
    """Strict variant for instructor-only operations (content authoring, readiness)."""
    ensure_role(user, UserRole.INSTRUCTOR)
    if not is_assigned_instructor(user, module):
        raise PermissionDenied("Instructor not assigned to module")


def ensure_enrolled(user, module: Module, require_published: bool = True) -> None:
    """Student must be enrolled; content reads additionally require a published module."""
    ensure_role(user, UserRole.STUDENT)
    if not is_enrolled_student(user, module):
        raise PermissionDenied("Not enrolled in this module")
    if require_published and module.status != ModuleStatus.PUBLISHED:
        raise PermissionDenied("Module is not published")


def can_view_module(user, module: Module) -> bool:
    if is_admin(user):
        return True
    if is_assigned_instructor(user, module):
        return True
    return module.status == ModuleStatus.PUBLISHED and is_enrolled_student(user, module)


def can_view_submission(user, submission: Submission) -> bool:
    """Owner student, admins, or assigned instructors once the work has left draft."""
    if is_admin(user):
        return True
    if has_role(user, UserRole.STUDENT):
        return is_submission_owner(user, submission)
    if submission.status == SubmissionStatus.DRAFT:
        return False
    return is_assigned_instructor(user, submission.module)
