import pytest
from django.contrib.auth import get_user_model

from AssessmentApp.domain.services import session_service

pytestmark = pytest.mark.django_db

User = get_user_model()


def test_admin_creates_user_with_hashed_password(login, admin):
    resp = login(admin).post("/api/users", {
        "email": "New.Student@Example.com", "password": "longenough", "full_name": "New Student", "role": "student",
    }, format="json")
    assert resp.status_code == 201
    assert resp.data["email"] == "new.student@example.com"
    assert "password" not in resp.data
    user = User.objects.get(pk=resp.data["id"])
    assert user.password != "longenough"
    assert session_service.authenticate_credentials("NEW.student@example.com", "longenough") == user


def test_duplicate_email_is_rejected(login, admin, student):
    resp = login(admin).post("/api/users", {
        "email": student.email.upper(), "password": "longenough", "role": "student",
    }, format="json")
    assert resp.status_code == 400
    assert resp.data["error"] == "email: A user with this email already exists"


def test_invalid_role_is_rejected(login, admin):
    resp = login(admin).post("/api/users", {
        "email": "x@example.com", "password": "longenough", "role": "superuser",
    }, format="json")
    assert resp.status_code == 400
    assert resp.data["error"] == "role: Role must be 'student', 'instructor', or 'admin'"


def test_short_password_is_rejected(login, admin):
    resp = login(admin).post("/api/users", {"email": "x@example.com", "password": "short", "role": "student"}, format="json")
    assert resp.status_code == 400
    assert resp.data["error"].startswith("password:")


def test_list_filters_by_role(login, admin, instructor, student):
    client = login(admin)
    everyone = {row["id"] for row in client.get("/api/users").data["results"]}
    assert everyone == {admin.id, instructor.id, student.id}
    students = client.get("/api/users?role=student").data["results"]
    assert [row["id"] for row in students] == [student.id]


def test_role_change_updates_staff_flag(login, admin, instructor):
    resp = login(admin).patch(f"/api/users/{instructor.id}", {"role": "admin"}, format="json")
    assert resp.status_code == 200
    instructor.refresh_from_db()
    assert instructor.role == "admin"
    assert instructor.is_staff


def test_admin_cannot_delete_self(login, admin, student):
    client = login(admin)
    assert client.delete(f"/api/users/{admin.id}").status_code == 400
    assert client.delete(f"/api/users/{student.id}").status_code == 204
    assert not User.objects.filter(pk=student.id).exists()


def test_non_admin_cannot_manage_users(login, instructor, student):
    client = login(instructor)
    assert client.post("/api/users", {
        "email": "x@example.com", "password": "longenough",
    }, format="json").status_code == 403
    assert client.delete(f"/api/users/{student.id}").status_code == 403
