"""Assessment models: Submission, Answer, Grade."""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from simple_history.models import HistoricalRecords

from AssessmentApp.core.choices import SubmissionStatus
from AssessmentApp.modules.models import Module
from AssessmentApp.content.models import SubQuestion
from AssessmentApp.assessments.querysets import SubmissionQuerySet

User = settings.AUTH_USER_MODEL

class Submission(models.Model):
    """One student's attempt at a module (unique per module+student)."""
    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name="submissions")
    student = models.ForeignKey(User, on_delete=models.CASCADE, related_name="submissions")
    status = models.CharField(max_length=16, choices=SubmissionStatus.choices, default=SubmissionStatus.DRAFT)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    graded_at = models.DateTimeField(null=True, blank=True)
    finalised_at = models.DateTimeField(null=True, blank=True)
    history = HistoricalRecords()

    objects = SubmissionQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["module", "student"], name="uq_submission_module_student"),
        ]

    def __str__(self) -> str:
        return f"Submission #{self.pk} ({self.status})"


class Answer(models.Model):
    """A student's answer text for one sub-question (unique per submission+sub-question)."""
    submission = models.ForeignKey(Submission, on_delete=models.CASCADE, related_name="answers")
    sub_question = models.ForeignKey(SubQuestion, on_delete=models.CASCADE, related_name="answers")
    answer_text = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["submission", "sub_question"], name="uq_answer_submission_sub_question"),
        ]

    @property
    def is_blank(self) -> bool:
        return not (self.answer_text or "").strip()


class Grade(models.Model):
    """An instructor's score and feedback for one answer."""
    answer = models.OneToOneField(Answer, on_delete=models.CASCADE, related_name="grade")
    instructor = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="given_grades"
    )
    marks_awarded = models.DecimalField(max_digits=7, decimal_places=2, validators=[MinValueValidator(0)])
    feedback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()
