"""Validation helpers for artefact links, MIME types and module windows."""

import re
from urllib.parse import urlparse
from django.conf import settings
from django.core.exceptions import ValidationError

import magic

DEFAULT_MIME = "application/octet-stream"
_MIME_RE = re.compile(r"^[\w.+-]+/[\w.+-]+$")

def validate_storage_key(key: str) -> None:
    """Object keys are bucket-relative; reject absolute paths and traversal segments."""
    if not key or key.startswith("/"):
        raise ValidationError("Storage key must be a relative object key.")
    if any(segment in ("", ".", "..") for segment in key.split("/")):
        raise ValidationError("Storage key contains an invalid path segment.")

def validate_mime_type(value: str) -> None:
    if value and not _MIME_RE.match(value):
        raise ValidationError(f"Invalid file type: {value}")

def validate_artefact_url(url: str) -> None:
    """Ensure URL uses https and, when configured, matches an allowed domain suffix."""
    if not url:
        return
    result = urlparse(url)
    if result.scheme != "https":
        raise ValidationError("URL must use https.")
    allowed = getattr(settings, "ALLOWED_ARTEFACT_DOMAINS", [])
    if allowed and not any(result.netloc.endswith(d) for d in allowed):
        raise ValidationError("URL domain not allowed.")

def validate_submission_window(start, end) -> None:
    if start and end and end < start:
        raise ValidationError("submission_end must not precede submission_start.")

def sniff_mime(header: bytes) -> str:
    """Detect a MIME type from the first bytes of a file using libmagic."""
    if not header:
        return DEFAULT_MIME
    return magic.from_buffer(header, mime=True) or DEFAULT_MIME
