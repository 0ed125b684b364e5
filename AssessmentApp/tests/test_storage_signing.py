from datetime import datetime, timezone
from unittest import mock

import httpx
import pytest
from model_bakery import baker

from AssessmentApp.content.models import Artefact, Question
from AssessmentApp.domain.services import storage_service
from AssessmentApp.modules.models import ModuleStudent

STORAGE = {
    "ACCESS_KEY_ID": "AKIDEXAMPLE",
    "SECRET_ACCESS_KEY": "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
    "BUCKET": "assessments",
    "ENDPOINT": "https://account.r2.example.com",
    "REGION": "auto",
    "TIMEOUT": 5,
}


def test_signing_key_matches_published_vector():
    key = storage_service.signing_key(
        "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY", "20120215", "us-east-1", "iam"
    )
    assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"


@pytest.mark.parametrize("key,expected", [
    ("modules/1/facts.pdf", "/assessments/modules/1/facts.pdf"),
    ("modules/1/case notes.pdf", "/assessments/modules/1/case%20notes.pdf"),
    ("a+b/ünï.txt", "/assessments/a%2Bb/%C3%BCn%C3%AF.txt"),
])
def test_canonical_uri_encodes_each_segment(key, expected):
    assert storage_service.canonical_uri("assessments", key) == expected


def test_sign_get_builds_sigv4_headers():
    config = storage_service.StorageConfig(
        access_key_id="AKIDEXAMPLE",
        secret_access_key="secret",
        bucket="assessments",
        endpoint="https://account.r2.example.com",
    )
    url, headers = storage_service.sign_get(config, "k/file.pdf", now=datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc))
    assert url == "https://account.r2.example.com/assessments/k/file.pdf"
    assert headers["X-Amz-Date"] == "20260301T123000Z"
    assert headers["X-Amz-Content-Sha256"] == storage_service.EMPTY_PAYLOAD_HASH
    auth = headers["Authorization"]
    assert auth.startswith(
        "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20260301/auto/s3/aws4_request, "
        "SignedHeaders=host;x-amz-content-sha256;x-amz-date, Signature="
    )
    assert len(auth.rsplit("Signature=", 1)[1]) == 64


def test_sign_get_is_deterministic_for_a_fixed_clock():
    config = storage_service.StorageConfig("id", "secret", "bucket", "https://storage.example.com")
    moment = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert storage_service.sign_get(config, "x", now=moment) == storage_service.sign_get(config, "x", now=moment)


def test_safe_filename_replaces_quotes():
    assert storage_service.safe_filename('brief "final".pdf') == "brief _final_.pdf"


@pytest.fixture
def artefact(published_module, instructor):
    question = Question.objects.get(module=published_module)
    return baker.make(
        Artefact,
        question=question,
        filename='scenario "v2".pdf',
        file_type="application/pdf",
        storage_key="modules/facts.pdf",
        uploaded_by=instructor,
    )


def _storage_client(handler):
    return mock.patch.object(
        storage_service.httpx, "Client", return_value=httpx.Client(transport=httpx.MockTransport(handler))
    )


@pytest.mark.django_db
def test_download_streams_bytes_with_attachment_header(login, settings, student, artefact):
    settings.OBJECT_STORAGE = STORAGE
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, content=b"%PDF-1.7 body")

    with _storage_client(handler):
        resp = login(student).get(f"/api/artefacts/{artefact.id}/download")
        body = b"".join(resp.streaming_content)

    assert resp.status_code == 200
    assert body == b"%PDF-1.7 body"
    assert resp["Content-Type"] == "application/pdf"
    assert resp["Content-Disposition"] == 'attachment; filename="scenario _v2_.pdf"'
    assert seen["url"] == "https://account.r2.example.com/assessments/modules/facts.pdf"
    assert seen["auth"].startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")


@pytest.mark.django_db
def test_download_sniffs_type_when_unknown(login, settings, instructor, artefact):
    settings.OBJECT_STORAGE = STORAGE
    Artefact.objects.filter(pk=artefact.pk).update(file_type="")

    with _storage_client(lambda request: httpx.Response(200, content=b"\x89PNG\r\n\x1a\n....")), \
            mock.patch.object(storage_service, "sniff_mime", return_value="image/png") as sniff:
        resp = login(instructor).get(f"/api/artefacts/{artefact.id}/download")
        b"".join(resp.streaming_content)

    assert resp["Content-Type"] == "image/png"
    assert sniff.call_args.args[0].startswith(b"\x89PNG")


@pytest.mark.django_db
def test_download_without_storage_config_is_503(login, settings, student, artefact):
    settings.OBJECT_STORAGE = {}
    resp = login(student).get(f"/api/artefacts/{artefact.id}/download")
    assert resp.status_code == 503
    assert resp.data == {"error": "Storage not configured"}


@pytest.mark.django_db
def test_download_upstream_error_is_500(login, settings, student, artefact):
    settings.OBJECT_STORAGE = STORAGE
    with _storage_client(lambda request: httpx.Response(404, content=b"NoSuchKey")):
        resp = login(student).get(f"/api/artefacts/{artefact.id}/download")
    assert resp.status_code == 500
    assert resp.data == {"error": "Internal server error"}


@pytest.mark.django_db
def test_download_network_error_is_500(login, settings, student, artefact):
    settings.OBJECT_STORAGE = STORAGE

    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with _storage_client(handler):
        resp = login(student).get(f"/api/artefacts/{artefact.id}/download")
    assert resp.status_code == 500


@pytest.mark.django_db
def test_download_requires_module_access(login, settings, other_student, other_instructor, artefact):
    settings.OBJECT_STORAGE = STORAGE
    assert login(other_student).get(f"/api/artefacts/{artefact.id}/download").status_code == 403
    assert login(other_instructor).get(f"/api/artefacts/{artefact.id}/download").status_code == 403


@pytest.mark.django_db
def test_enrolled_student_cannot_download_from_unpublished_module(login, settings, draft_module, student, instructor):
    settings.OBJECT_STORAGE = STORAGE
    baker.make(ModuleStudent, module=draft_module, student=student)
    question = baker.make(Question, module=draft_module, order_index=1)
    artefact = baker.make(Artefact, question=question, filename="x.pdf", storage_key="x.pdf")
    resp = login(student).get(f"/api/artefacts/{artefact.id}/download")
    assert resp.status_code == 403
    assert resp.data == {"error": "Forbidden"}


class StalledStream(httpx.SyncByteStream):
    def __iter__(self):
        raise httpx.ReadTimeout("storage stalled")


@pytest.mark.django_db
def test_download_read_timeout_on_first_chunk_is_500_and_closes_client(login, settings, student, artefact):
    settings.OBJECT_STORAGE = STORAGE
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, stream=StalledStream())))
    with mock.patch.object(storage_service.httpx, "Client", return_value=client):
        resp = login(student).get(f"/api/artefacts/{artefact.id}/download")
    assert resp.status_code == 500
    assert resp.data == {"error": "Internal server error"}
    assert client.is_closed
