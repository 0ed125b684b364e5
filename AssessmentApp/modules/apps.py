"""Modules app configuration (modules, instructor assignments, enrollments)."""

from django.apps import AppConfig

class ModulesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "AssessmentApp.modules"
