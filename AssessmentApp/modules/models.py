"""Module domain models: Module, ModuleInstructor (assignment), ModuleStudent (enrollment)."""

from django.db import models
from django.conf import settings

from simple_history.models import HistoricalRecords

from AssessmentApp.core.choices import ModuleStatus
from AssessmentApp.modules.querysets import ModuleQuerySet


User = settings.AUTH_USER_MODEL

class Module(models.Model):
    """A top-level assessment unit with its own publish lifecycle.

    Fields:
        title: Human readable module title.
        description: Optional longer text.
        status: ModuleStatus value (draft -> published -> archived).
        ready_for_publish: Set by an assigned instructor once content is complete.
        published_at: When the admin published the module.
        submission_start / submission_end: Optional submission window (informational).
        created_by: Admin who created the module.
        history: Audit history (django-simple-history).
    """
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=16, choices=ModuleStatus.choices, default=ModuleStatus.DRAFT)
    ready_for_publish = models.BooleanField(default=False)
    created_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="created_modules"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    published_at = models.DateTimeField(null=True, blank=True)
    submission_start = models.DateTimeField(null=True, blank=True)
    submission_end = models.DateTimeField(null=True, blank=True)
    history = HistoricalRecords()

    objects = ModuleQuerySet.as_manager()

    def __str__(self) -> str:
        return f"{self.title} (#{self.pk}, {self.status})"


class ModuleInstructor(models.Model):
    """Assignment of an instructor to a module (join row, no extra state)."""
    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name="instructor_assignments")
    instructor = models.ForeignKey(User, on_delete=models.CASCADE, related_name="module_assignments")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["module", "instructor"], name="uq_module_instructor"),
        ]

    def __str__(self) -> str:
        return f"{self.instructor} teaches {self.module}"


class ModuleStudent(models.Model):
    """Enrollment of a student in a module (join row, no extra state)."""
    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name="enrollments")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="module_enrollments")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["module", "student"], name="uq_module_student"),
        ]

    def __str__(self) -> str:
        return f"{self.student} -> {self.module}"
