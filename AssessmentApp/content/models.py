"""Content hierarchy models: Question -> Part -> SubQuestion, plus Artefact links.

All content belongs to exactly one Module and is only mutable while that
module is in draft (enforced by the content service, not the models).
"""

from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator

from simple_history.models import HistoricalRecords

from AssessmentApp.core.choices import PartLabel
from AssessmentApp.modules.models import Module

User = settings.AUTH_USER_MODEL

class Question(models.Model):
    """A scenario-bearing unit within a module."""
    module = models.ForeignKey(Module, on_delete=models.CASCADE, related_name="questions")
    title = models.CharField(max_length=255)
    scenario_text = models.TextField()
    order_index = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        ordering = ["order_index", "id"]

    def __str__(self) -> str:
        return f"Q{self.order_index}: {self.title}"


class Part(models.Model):
    """A labelled (A/B) grouping of sub-questions, unique per question+label."""
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="parts")
    label = models.CharField(max_length=1, choices=PartLabel.choices)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["label"]
        constraints = [
            models.UniqueConstraint(fields=["question", "label"], name="uq_question_part_label"),
        ]

    def __str__(self) -> str:
        return f"Part {self.label} of question #{self.question_id}"


class SubQuestion(models.Model):
    """An individually gradable prompt with a maximum mark value."""
    part = models.ForeignKey(Part, on_delete=models.CASCADE, related_name="sub_questions")
    prompt = models.TextField()
    max_marks = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    order_index = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    history = HistoricalRecords()

    class Meta:
        ordering = ["order_index", "id"]

    def __str__(self) -> str:
        return f"Sub-question #{self.pk} ({self.max_marks} marks)"


class Artefact(models.Model):
    """Reference to a file held in external object storage."""
    question = models.ForeignKey(Question, on_delete=models.CASCADE, related_name="artefacts")
    filename = models.CharField(max_length=255)
    file_type = models.CharField(max_length=255, blank=True)
    storage_key = models.CharField(max_length=1024)
    url = models.URLField(max_length=1024, blank=True)
    uploaded_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name="uploaded_artefacts"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return self.filename
