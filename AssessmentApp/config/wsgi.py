"""WSGI entry point for the assessment platform."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "AssessmentApp.config.settings")

application = get_wsgi_application()
