"""Users app configuration (accounts and login sessions)."""

from django.apps import AppConfig

class UsersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "AssessmentApp.users"
