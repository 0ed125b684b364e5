"""Core app configuration and startup checks (libmagic and object storage settings)."""

import magic
from django.apps import AppConfig
from django.conf import settings
from django.core.checks import register, Error, Warning

class CoreConfig(AppConfig):
    """AppConfig registering system checks for libmagic and storage configuration."""
    default_auto_field = "django.db.models.BigAutoField"
    name = "AssessmentApp.core"

    def ready(self):
        """Register Django system checks run by ``manage.py check`` and on startup."""
        @register()
        def libmagic_check(app_configs, **kwargs):
            try:
                magic.from_buffer(b"\x89PNG\r\n\x1a\n")
            except Exception as exc:
                return [Error(f"libmagic not available: {exc}", id="core.E001")]
            return []

        @register()
        def object_storage_check(app_configs, **kwargs):
            storage = getattr(settings, "OBJECT_STORAGE", {})
            missing = [k for k in ("ACCESS_KEY_ID", "SECRET_ACCESS_KEY", "BUCKET", "ENDPOINT") if not storage.get(k)]
            if missing:
                return [Warning(
                    f"Object storage not configured (missing {', '.join(missing)}); artefact downloads will return 503.",
                    id="core.W001",
                )]
            return []
