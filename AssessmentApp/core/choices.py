"""Typed enumerations (TextChoices) for user roles, lifecycle states and part labels."""
from django.db import models

class UserRole(models.TextChoices):
    """System-level role assigned to a user account (one role per user)."""
    STUDENT = "student", "Student"
    INSTRUCTOR = "instructor", "Instructor"
    ADMIN = "admin", "Admin"

class ModuleStatus(models.TextChoices):
    """Lifecycle states for an assessment module."""
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    ARCHIVED = "archived", "Archived"

class SubmissionStatus(models.TextChoices):
    """Lifecycle states for a student's submission."""
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted"
    GRADED = "graded", "Graded"
    FINALISED = "finalised", "Finalised"

class PartLabel(models.TextChoices):
    """Canonical part labels within a question."""
    A = "A", "Part A"
    B = "B", "Part B"
