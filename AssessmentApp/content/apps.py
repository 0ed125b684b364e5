"""Content app configuration (questions, parts, sub-questions, artefacts)."""

from django.apps import AppConfig

class ContentConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "AssessmentApp.content"
