"""Django settings for the assessment platform.

Values come from the environment via ``AssessmentApp.config.env``.
"""

from datetime import timedelta
from pathlib import Path

from AssessmentApp.config.env import env

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = env.secret_key
DEBUG = env.debug
ALLOWED_HOSTS = env.allowed_hosts

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "drf_spectacular",
    "simple_history",
    "AssessmentApp.core.apps.CoreConfig",
    "AssessmentApp.users.apps.UsersConfig",
    "AssessmentApp.modules.apps.ModulesConfig",
    "AssessmentApp.content.apps.ContentConfig",
    "AssessmentApp.assessments.apps.AssessmentsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "simple_history.middleware.HistoryRequestMiddleware",
]

ROOT_URLCONF = "AssessmentApp.config.urls"
WSGI_APPLICATION = "AssessmentApp.config.wsgi.application"

if env.db_engine == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": env.db_name,
            "HOST": env.db_host,
            "PORT": env.db_port,
            "USER": env.db_user,
            "PASSWORD": env.db_password,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / env.db_name,
        }
    }

AUTH_USER_MODEL = "users.User"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": ["django.template.context_processors.request"]},
    },
]

STATIC_URL = "static/"

ASSESSMENT_SESSION_COOKIE = "session"
ASSESSMENT_SESSION_TTL = timedelta(days=env.session_ttl_days)

OBJECT_STORAGE = {
    "ACCESS_KEY_ID": env.storage_access_key_id,
    "SECRET_ACCESS_KEY": env.storage_secret_access_key,
    "BUCKET": env.storage_bucket,
    "ENDPOINT": env.storage_endpoint,
    "REGION": env.storage_region,
    "TIMEOUT": env.storage_timeout_seconds,
}
ALLOWED_ARTEFACT_DOMAINS = env.allowed_artefact_domains

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "AssessmentApp.api.authentication.SessionCookieAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 50,
    "EXCEPTION_HANDLER": "AssessmentApp.core.exceptions.api_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "COERCE_DECIMAL_TO_STRING": False,
    "UNAUTHENTICATED_USER": "django.contrib.auth.models.AnonymousUser",
    "TEST_REQUEST_DEFAULT_FORMAT": "json",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Assessment Platform API",
    "DESCRIPTION": "Modules, questions, submissions and grading.",
    "VERSION": "1.0.0",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "simple": {
            "format": "%(levelname)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG" if DEBUG else "INFO",
            "formatter": "detailed",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "AssessmentApp": {
            "level": "DEBUG" if DEBUG else "INFO",
            "handlers": ["console"],
            "propagate": False,
        },
        "django.request": {
            "level": "WARNING",
            "handlers": ["console"],
        },
    },
}
