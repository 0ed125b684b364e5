import os
from dataclasses import dataclass, field


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class EnvSettings:
    secret_key: str = os.getenv("DJANGO_SECRET_KEY", "dev-secret-change-me")
    debug: bool = _flag("DJANGO_DEBUG", "true")
    allowed_hosts: list[str] = field(default_factory=lambda: _list("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver"))

    db_engine: str = os.getenv("DB_ENGINE", "sqlite")
    db_name: str = os.getenv("DB_NAME", "assessment.sqlite3")
    db_host: str = os.getenv("DB_HOST", "localhost")
    db_port: str = os.getenv("DB_PORT", "5432")
    db_user: str = os.getenv("DB_USER", "assessment")
    db_password: str = os.getenv("DB_PASSWORD", "assessment")

    session_ttl_days: int = int(os.getenv("SESSION_TTL_DAYS", "7"))

    storage_access_key_id: str = os.getenv("R2_ACCESS_KEY_ID", "")
    storage_secret_access_key: str = os.getenv("R2_SECRET_ACCESS_KEY", "")
    storage_bucket: str = os.getenv("R2_BUCKET_NAME", "")
    storage_endpoint: str = os.getenv("R2_ENDPOINT", "")
    storage_region: str = os.getenv("STORAGE_REGION", "auto")
    storage_timeout_seconds: float = float(os.getenv("STORAGE_TIMEOUT_SECONDS", "30"))

    allowed_artefact_domains: list[str] = field(default_factory=lambda: _list("ALLOWED_ARTEFACT_DOMAINS"))


env = EnvSettings()
