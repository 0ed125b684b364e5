"""Assessments app configuration (submissions, answers, grades)."""

from django.apps import AppConfig

class AssessmentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "AssessmentApp.assessments"
