from datetime import timedelta

import pytest
from django.core.management import call_command
from django.utils import timezone

from AssessmentApp.domain.services import session_service
from AssessmentApp.users.models import UserSession

pytestmark = pytest.mark.django_db


def test_login_sets_http_only_strict_cookie(anon_client, student, password):
    resp = anon_client.post("/api/login", {"email": student.email, "password": password}, format="json")
    assert resp.status_code == 200
    assert resp.data["email"] == student.email
    assert resp.data["role"] == "student"
    cookie = resp.cookies["session"]
    assert cookie["httponly"]
    assert cookie["samesite"] == "Strict"
    assert int(cookie["max-age"]) == 7 * 24 * 3600
    assert UserSession.objects.filter(pk=cookie.value, user=student).exists()


@pytest.mark.parametrize("email,correct_password", [
    ("student@example.com", False),
    ("nobody@example.com", True),
])
def test_login_rejects_bad_credentials(anon_client, student, password, email, correct_password):
    attempt = password if correct_password else "wrong-password"
    resp = anon_client.post("/api/login", {"email": email, "password": attempt}, format="json")
    assert resp.status_code == 401
    assert resp.data == {"error": "Invalid credentials"}
    assert not UserSession.objects.exists()


def test_login_requires_fields(anon_client):
    resp = anon_client.post("/api/login", {"email": "a@example.com"}, format="json")
    assert resp.status_code == 400
    assert resp.data["error"].startswith("password:")


def test_me_after_login_then_logout_clears_session(anon_client, instructor, password):
    anon_client.post("/api/login", {"email": instructor.email, "password": password}, format="json")
    me = anon_client.get("/api/me")
    assert me.status_code == 200
    assert me.data["id"] == instructor.id
    assert set(me.data) == {"id", "email", "full_name", "role", "created_at"}

    out = anon_client.post("/api/logout")
    assert out.status_code == 200
    assert not UserSession.objects.filter(user=instructor).exists()
    assert anon_client.get("/api/me").status_code == 401


def test_logout_without_session_still_succeeds(anon_client):
    assert anon_client.post("/api/logout").status_code == 200


def test_unauthenticated_body_is_generic(anon_client):
    resp = anon_client.get("/api/me")
    assert resp.status_code == 401
    assert resp.data == {"error": "Unauthenticated"}


def test_expired_session_is_unauthenticated(login, student):
    client = login(student)
    UserSession.objects.filter(user=student).update(expires_at=timezone.now() - timedelta(seconds=1))
    assert client.get("/api/me").status_code == 401


def test_unknown_cookie_is_unauthenticated(anon_client):
    anon_client.cookies["session"] = "not-a-real-session"
    assert anon_client.get("/api/me").status_code == 401


def test_resolve_ignores_inactive_users(student):
    session = session_service.create_session(student)
    student.is_active = False
    student.save(update_fields=["is_active"])
    assert session_service.resolve(session.pk) is None


def test_purge_sessions_command_removes_only_expired(student, instructor):
    live = session_service.create_session(student)
    stale = session_service.create_session(instructor)
    UserSession.objects.filter(pk=stale.pk).update(expires_at=timezone.now() - timedelta(days=1))
    call_command("purge_sessions")
    assert UserSession.objects.filter(pk=live.pk).exists()
    assert not UserSession.objects.filter(pk=stale.pk).exists()


def test_bootstrap_admin_command_creates_admin():
    call_command("bootstrap_admin", "root@example.com", "s3cret-pass")
    resp = session_service.authenticate_credentials("root@example.com", "s3cret-pass")
    assert resp.role == "admin"


def test_health_is_public(anon_client):
    resp = anon_client.get("/api/health")
    assert resp.status_code == 200
    assert resp.data == {"status": "ok"}
