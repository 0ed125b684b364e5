"""Artefact downloads from S3-compatible object storage (Cloudflare R2 style).

Requests are signed with AWS Signature Version 4 (``AWS4-HMAC-SHA256``):
canonical request -> string to sign -> HMAC-SHA256 key chain scoped to
date/region/service. The object is fetched with httpx and streamed back to the
caller chunk by chunk.
"""

import hashlib
import hmac
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from urllib.parse import quote, urlsplit

import httpx
from django.conf import settings
from rest_framework.exceptions import PermissionDenied

from AssessmentApp.content.models import Artefact
from AssessmentApp.core.access import is_admin, is_assigned_instructor, is_enrolled_student
from AssessmentApp.core.choices import ModuleStatus
from AssessmentApp.core.exceptions import StorageNotConfigured, StorageFetchFailed
from AssessmentApp.core.validators import DEFAULT_MIME, sniff_mime

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"
EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()
SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date"
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StorageConfig:
    access_key_id: str
    secret_access_key: str
    bucket: str
    endpoint: str
    region: str = "auto"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        conf = getattr(settings, "OBJECT_STORAGE", {})
        return cls(
            access_key_id=conf.get("ACCESS_KEY_ID", ""),
            secret_access_key=conf.get("SECRET_ACCESS_KEY", ""),
            bucket=conf.get("BUCKET", ""),
            endpoint=conf.get("ENDPOINT", ""),
            region=conf.get("REGION") or "auto",
            timeout=float(conf.get("TIMEOUT") or 30.0),
        )

    @property
    def is_configured(self) -> bool:
        return all((self.access_key_id, self.secret_access_key, self.bucket, self.endpoint))


@dataclass
class Download:
    """A streamed object plus the headers to send it with."""
    chunks: Iterator[bytes]
    content_type: str
    filename: str


def _sha256_hex(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def amz_date(moment: datetime) -> str:
    return moment.astimezone(dt_timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def signing_key(secret_access_key: str, date_stamp: str, region: str, service: str = SERVICE) -> bytes:
    k_date = _hmac(f"AWS4{secret_access_key}".encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def canonical_uri(bucket: str, key: str) -> str:
    """``/<bucket>/<key>`` with every path segment URI-encoded."""
    path = f"/{bucket}/{key}"
    return "/".join(quote(segment, safe="-_.~") for segment in path.split("/"))


def sign_get(config: StorageConfig, key: str, now: datetime | None = None) -> tuple[str, dict[str, str]]:
    """Build the URL and signed headers for ``GET <endpoint>/<bucket>/<key>``."""
    now = now or datetime.now(dt_timezone.utc)
    stamp = amz_date(now)
    date_stamp = stamp[:8]
    endpoint = urlsplit(config.endpoint)
    uri = canonical_uri(config.bucket, key)

    canonical_headers = (
        f"host:{endpoint.netloc}\n"
        f"x-amz-content-sha256:{EMPTY_PAYLOAD_HASH}\n"
        f"x-amz-date:{stamp}\n"
    )
    canonical_request = "\n".join(
        ["GET", uri, "", canonical_headers, SIGNED_HEADERS, EMPTY_PAYLOAD_HASH]
    )
    scope = f"{date_stamp}/{config.region}/{SERVICE}/aws4_request"
    string_to_sign = "\n".join([ALGORITHM, stamp, scope, _sha256_hex(canonical_request)])
    signature = hmac.new(
        signing_key(config.secret_access_key, date_stamp, config.region),
        string_to_sign.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    headers = {
        "X-Amz-Date": stamp,
        "X-Amz-Content-Sha256": EMPTY_PAYLOAD_HASH,
        "Authorization": (
            f"{ALGORITHM} Credential={config.access_key_id}/{scope}, "
            f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
        ),
    }
    return f"{endpoint.scheme}://{endpoint.netloc}{uri}", headers


def ensure_can_download(user, artefact: Artefact) -> None:
    """Admins, assigned instructors, and enrolled students of a published module."""
    module = artefact.question.module
    if is_admin(user) or is_assigned_instructor(user, module):
        return
    if module.status == ModuleStatus.PUBLISHED and is_enrolled_student(user, module):
        return
    raise PermissionDenied("Forbidden")


def safe_filename(name: str) -> str:
    return (name or "download").replace('"', "_")


def _stream(client: httpx.Client, response: httpx.Response, first: bytes, rest: Iterator[bytes]) -> Iterator[bytes]:
    try:
        if first:
            yield first
        yield from rest
    finally:
        response.close()
        client.close()


def open_download(user, artefact: Artefact, client: httpx.Client | None = None) -> Download:
    """Authorize, sign and start streaming an artefact's bytes.

    Raises:
        PermissionDenied: Caller may not read the artefact.
        StorageNotConfigured: Object storage credentials are missing (503).
        StorageFetchFailed: Network error or non-2xx response from storage (500).
    """
    ensure_can_download(user, artefact)
    config = StorageConfig.from_settings()
    if not config.is_configured:
        raise StorageNotConfigured()

    url, headers = sign_get(config, artefact.storage_key)
    client = client or httpx.Client(timeout=config.timeout)
    try:
        response = client.send(client.build_request("GET", url, headers=headers), stream=True)
    except httpx.HTTPError as exc:
        client.close()
        logger.error("Storage request for artefact %s failed: %s", artefact.pk, exc)
        raise StorageFetchFailed() from exc

    if not response.is_success:
        logger.error("Storage returned %s for artefact %s", response.status_code, artefact.pk)
        response.close()
        client.close()
        raise StorageFetchFailed()

    chunks = response.iter_bytes(CHUNK_SIZE)
    try:
        first = next(chunks, b"")
    except httpx.HTTPError as exc:
        response.close()
        client.close()
        logger.error("Reading artefact %s from storage failed: %s", artefact.pk, exc)
        raise StorageFetchFailed() from exc
    content_type = artefact.file_type or sniff_mime(first[:2048]) or DEFAULT_MIME
    logger.info("Streaming artefact %s to user %s", artefact.pk, user.pk)
    return Download(
        chunks=_stream(client, response, first, chunks),
        content_type=content_type,
        filename=safe_filename(artefact.filename),
    )
