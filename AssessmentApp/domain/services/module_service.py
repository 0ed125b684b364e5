"""Domain service functions for module lifecycle and membership management.

Module lifecycle:
    DRAFT -> PUBLISHED -> ARCHIVED

- Admins create, publish, archive and delete modules and manage
  instructor assignments and student enrollments.
- An assigned instructor flags a draft module ``ready_for_publish`` once its
  content tree is complete.

Status changes are compare-and-set updates guarded by the state machine in
``AssessmentApp.domain.lifecycle``; a rejected transition never writes.
"""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from AssessmentApp.core.access import ensure_admin, ensure_assigned_instructor
from AssessmentApp.core.choices import ModuleStatus, UserRole
from AssessmentApp.core.validators import validate_submission_window
from AssessmentApp.content.models import Question, Part, SubQuestion
from AssessmentApp.domain import lifecycle
from AssessmentApp.modules.models import Module, ModuleInstructor, ModuleStudent

logger = logging.getLogger(__name__)

User = get_user_model()


def _check_window(start, end) -> None:
    try:
        validate_submission_window(start, end)
    except DjangoValidationError as exc:
        raise ValidationError({"submission_end": exc.messages[0]}) from exc


@transaction.atomic
def create_module(admin: User, data: dict[str, Any]) -> Module:
    """Create a module in draft status (admin only)."""
    ensure_admin(admin)
    _check_window(data.get("submission_start"), data.get("submission_end"))
    module = Module.objects.create(created_by=admin, status=ModuleStatus.DRAFT, **data)
    logger.info("Module %s created by admin %s", module.pk, admin.pk)
    return module


@transaction.atomic
def update_module(admin: User, module: Module, data: dict[str, Any]) -> Module:
    """Edit title, description or submission window (admin only)."""
    ensure_admin(admin)
    start = data.get("submission_start", module.submission_start)
    end = data.get("submission_end", module.submission_end)
    _check_window(start, end)
    for attr, value in data.items():
        setattr(module, attr, value)
    module.save()
    return module


def readiness_problem(module: Module) -> str | None:
    """Return the first reason the content tree is incomplete, or None when it is ready."""
    questions = Question.objects.filter(module=module)
    if not questions.exists():
        return "Module must have at least one question"
    if not SubQuestion.objects.filter(part__question__module=module).exists():
        return "Module must have at least one sub-question"
    if questions.annotate(n=Count("parts")).filter(n=0).exists():
        return "All questions must have at least one part"
    parts = Part.objects.filter(question__module=module)
    if parts.annotate(n=Count("sub_questions")).filter(n=0).exists():
        return "All parts must have at least one sub-question"
    return None


@transaction.atomic
def mark_ready(instructor: User, module: Module) -> Module:
    """Flag a draft module as ready for publishing (assigned instructor only).

    Raises:
        PermissionDenied: Wrong role, not assigned, not draft, or incomplete content.
    """
    ensure_assigned_instructor(instructor, module)
    module = Module.objects.select_for_update().get(pk=module.pk)
    if module.status != ModuleStatus.DRAFT:
        raise PermissionDenied("Module must be in draft status")
    problem = readiness_problem(module)
    if problem:
        logger.info("Module %s not ready: %s", module.pk, problem)
        raise PermissionDenied(problem)
    if not module.ready_for_publish:
        module.ready_for_publish = True
        module.save(update_fields=["ready_for_publish", "updated_at"])
    logger.info("Module %s marked ready by instructor %s", module.pk, instructor.pk)
    return module


def _move(module: Module, target: str, **extra) -> Module:
    """Compare-and-set the module status; a lost race is reported like any invalid transition."""
    new_status = lifecycle.module_transition(module.status, target)
    updated = Module.objects.filter(pk=module.pk, status=module.status).update(
        status=new_status, updated_at=timezone.now(), **extra
    )
    if not updated:
        module.refresh_from_db(fields=["status"])
        lifecycle.module_transition(module.status, target)
    module.refresh_from_db()
    return module


@transaction.atomic
def publish(admin: User, module: Module) -> Module:
    """draft -> published (admin only); requires readiness and an assigned instructor."""
    ensure_admin(admin)
    module = Module.objects.select_for_update().get(pk=module.pk)
    if module.status != ModuleStatus.DRAFT:
        raise PermissionDenied("Module must be in draft status to publish")
    if not module.ready_for_publish:
        raise PermissionDenied("Module must be marked as ready before publishing")
    if not module.instructor_assignments.exists():
        raise PermissionDenied("Module must have an assigned instructor")
    module = _move(module, ModuleStatus.PUBLISHED, published_at=timezone.now())
    logger.info("Module %s published by admin %s", module.pk, admin.pk)
    return module


@transaction.atomic
def archive(admin: User, module: Module) -> Module:
    """published -> archived (admin only). Content and submissions are preserved."""
    ensure_admin(admin)
    module = _move(module, ModuleStatus.ARCHIVED)
    logger.info("Module %s archived by admin %s", module.pk, admin.pk)
    return module


@transaction.atomic
def delete_module(admin: User, module: Module) -> None:
    """Hard-delete a draft module with no enrollments (admin only); content cascades."""
    ensure_admin(admin)
    module = Module.objects.select_for_update().get(pk=module.pk)
    if module.status != ModuleStatus.DRAFT:
        raise PermissionDenied(
            f"Cannot delete {module.status} module. Only draft modules can be deleted."
        )
    if module.enrollments.exists():
        raise PermissionDenied("Cannot delete module with enrolled students")
    logger.info("Module %s deleted by admin %s", module.pk, admin.pk)
    module.delete()


def _target_user(user_id: int, role: str, label: str) -> User:
    user = get_object_or_404(User, pk=user_id)
    if user.role != role:
        raise ValidationError({f"{label}_id": f"User is not a {role}"})
    return user


@transaction.atomic
def enroll_student(admin: User, module: Module, student_id: int) -> ModuleStudent:
    """Enroll a student (admin only). Duplicates are rejected, not ignored."""
    ensure_admin(admin)
    student = _target_user(student_id, UserRole.STUDENT, "student")
    if module.status == ModuleStatus.ARCHIVED:
        raise PermissionDenied("Cannot enroll into an archived module")
    enrollment, created = ModuleStudent.objects.get_or_create(module=module, student=student)
    if not created:
        raise ValidationError("Student is already enrolled in this module")
    logger.info("Student %s enrolled in module %s", student.pk, module.pk)
    return enrollment


@transaction.atomic
def assign_instructor(admin: User, module: Module, instructor_id: int) -> ModuleInstructor:
    """Assign an instructor (admin only). Duplicates are rejected, not ignored."""
    ensure_admin(admin)
    instructor = _target_user(instructor_id, UserRole.INSTRUCTOR, "instructor")
    assignment, created = ModuleInstructor.objects.get_or_create(module=module, instructor=instructor)
    if not created:
        raise ValidationError("Instructor is already assigned to this module")
    logger.info("Instructor %s assigned to module %s", instructor.pk, module.pk)
    return assignment
