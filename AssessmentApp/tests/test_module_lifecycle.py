import pytest
from model_bakery import baker
from rest_framework.exceptions import PermissionDenied

from AssessmentApp.content.models import Question, Part, SubQuestion
from AssessmentApp.core.choices import ModuleStatus, PartLabel, SubmissionStatus
from AssessmentApp.domain.services import content_service, module_service
from AssessmentApp.modules.models import Module, ModuleStudent

pytestmark = pytest.mark.django_db


def test_admin_creates_draft_module(login, admin):
    resp = login(admin).post("/api/modules", {"title": "Torts", "description": "Negligence"}, format="json")
    assert resp.status_code == 201
    assert resp.data["status"] == "draft"
    assert resp.data["ready_for_publish"] is False
    assert Module.objects.get(pk=resp.data["id"]).created_by == admin


def test_create_module_rejects_inverted_window(login, admin):
    resp = login(admin).post("/api/modules", {
        "title": "Torts",
        "submission_start": "2026-05-02T00:00:00Z",
        "submission_end": "2026-05-01T00:00:00Z",
    }, format="json")
    assert resp.status_code == 400
    assert resp.data["error"].startswith("submission_end:")


def test_non_admin_cannot_create_or_list_modules(login, instructor):
    client = login(instructor)
    assert client.post("/api/modules", {"title": "X"}, format="json").status_code == 403
    assert client.get("/api/modules").status_code == 403


def test_module_list_is_paginated(login, admin, draft_module):
    resp = login(admin).get("/api/modules")
    assert resp.status_code == 200
    assert [m["id"] for m in resp.data["results"]] == [draft_module.id]


def test_ready_fails_without_questions(login, draft_module, instructor):
    resp = login(instructor).patch(f"/api/modules/{draft_module.id}/ready")
    assert resp.status_code == 403
    assert resp.data["error"] == "Module must have at least one question"
    draft_module.refresh_from_db()
    assert draft_module.ready_for_publish is False


def test_ready_fails_when_a_part_has_no_sub_question_then_succeeds_once_fixed(login, authored_module, instructor):
    question = Question.objects.get(module=authored_module)
    part_b = content_service.upsert_part(instructor, question, PartLabel.B)
    client = login(instructor)

    resp = client.patch(f"/api/modules/{authored_module.id}/ready")
    assert resp.status_code == 403
    assert resp.data["error"] == "All parts must have at least one sub-question"

    content_service.create_sub_question(instructor, part_b, "Remedies?", 5)
    resp = client.patch(f"/api/modules/{authored_module.id}/ready")
    assert resp.status_code == 200
    assert resp.data["ready_for_publish"] is True


def test_ready_fails_when_a_question_has_no_part(authored_module, instructor):
    content_service.create_question(instructor, authored_module, "Q2", "Bare scenario")
    with pytest.raises(PermissionDenied, match="All questions must have at least one part"):
        module_service.mark_ready(instructor, authored_module)


def test_ready_requires_assigned_instructor(login, authored_module, other_instructor, admin):
    assert login(other_instructor).patch(f"/api/modules/{authored_module.id}/ready").status_code == 403
    assert login(admin).patch(f"/api/modules/{authored_module.id}/ready").status_code == 403


def test_publish_requires_ready_flag(login, authored_module, admin):
    resp = login(admin).patch(f"/api/modules/{authored_module.id}/publish")
    assert resp.status_code == 403
    assert resp.data["error"] == "Module must be marked as ready before publishing"


def test_publish_requires_an_assigned_instructor(login, admin):
    module = baker.make(Module, status=ModuleStatus.DRAFT, ready_for_publish=True)
    resp = login(admin).patch(f"/api/modules/{module.id}/publish")
    assert resp.status_code == 403
    assert resp.data["error"] == "Module must have an assigned instructor"


def test_publish_then_archive(login, authored_module, admin, instructor):
    module_service.mark_ready(instructor, authored_module)
    client = login(admin)

    resp = client.patch(f"/api/modules/{authored_module.id}/publish")
    assert resp.status_code == 200
    assert resp.data["status"] == "published"
    assert resp.data["published_at"] is not None

    again = client.patch(f"/api/modules/{authored_module.id}/publish")
    assert again.status_code == 403
    assert again.data["error"] == "Module must be in draft status to publish"

    resp = client.patch(f"/api/modules/{authored_module.id}/archive")
    assert resp.status_code == 200
    assert resp.data["status"] == "archived"


def test_archive_requires_published(login, draft_module, admin):
    resp = login(admin).patch(f"/api/modules/{draft_module.id}/archive")
    assert resp.status_code == 403
    assert resp.data["error"] == "Only published modules can be archived"


def test_delete_only_draft_modules(login, published_module, admin):
    resp = login(admin).delete(f"/api/modules/{published_module.id}")
    assert resp.status_code == 403
    assert Module.objects.filter(pk=published_module.id).exists()


def test_delete_draft_module_cascades_content(login, authored_module, admin):
    resp = login(admin).delete(f"/api/modules/{authored_module.id}")
    assert resp.status_code == 204
    assert not Module.objects.filter(pk=authored_module.id).exists()
    assert not Question.objects.exists()
    assert not Part.objects.exists()
    assert not SubQuestion.objects.exists()


def test_delete_draft_module_with_enrollment_is_refused(login, draft_module, admin, student):
    baker.make(ModuleStudent, module=draft_module, student=student)
    resp = login(admin).delete(f"/api/modules/{draft_module.id}")
    assert resp.status_code == 403
    assert Module.objects.filter(pk=draft_module.id).exists()


def test_enroll_and_duplicate_enroll(login, draft_module, admin, student):
    client = login(admin)
    resp = client.post(f"/api/modules/{draft_module.id}/enroll", {"student_id": student.id}, format="json")
    assert resp.status_code == 201
    dup = client.post(f"/api/modules/{draft_module.id}/enroll", {"student_id": student.id}, format="json")
    assert dup.status_code == 400
    assert dup.data["error"] == "Student is already enrolled in this module"
    assert ModuleStudent.objects.filter(module=draft_module, student=student).count() == 1


def test_enroll_checks_target_user(login, draft_module, admin, instructor):
    client = login(admin)
    missing = client.post(f"/api/modules/{draft_module.id}/enroll", {"student_id": 999999}, format="json")
    assert missing.status_code == 404
    wrong_role = client.post(f"/api/modules/{draft_module.id}/enroll", {"student_id": instructor.id}, format="json")
    assert wrong_role.status_code == 400


def test_enroll_into_archived_module_is_forbidden(login, published_module, admin, other_student):
    module_service.archive(admin, published_module)
    resp = login(admin).post(
        f"/api/modules/{published_module.id}/enroll", {"student_id": other_student.id}, format="json"
    )
    assert resp.status_code == 403


def test_duplicate_instructor_assignment(login, draft_module, admin, instructor, other_instructor):
    client = login(admin)
    dup = client.post(f"/api/modules/{draft_module.id}/instructor", {"instructor_id": instructor.id}, format="json")
    assert dup.status_code == 400
    assert dup.data["error"] == "Instructor is already assigned to this module"
    ok = client.post(f"/api/modules/{draft_module.id}/instructor", {"instructor_id": other_instructor.id}, format="json")
    assert ok.status_code == 201


def test_module_detail_shape_by_role(login, published_module, admin, instructor, student, other_student):
    admin_view = login(admin).get(f"/api/modules/{published_module.id}").data
    assert [u["id"] for u in admin_view["instructors"]] == [instructor.id]
    assert [u["id"] for u in admin_view["students"]] == [student.id]
    assert admin_view["submission_counts"][SubmissionStatus.DRAFT] == 0

    instructor_view = login(instructor).get(f"/api/modules/{published_module.id}").data
    assert "submission_counts" in instructor_view
    assert "students" not in instructor_view

    student_view = login(student).get(f"/api/modules/{published_module.id}").data
    assert [q["title"] for q in student_view["questions"]] == ["Q1"]

    assert login(other_student).get(f"/api/modules/{published_module.id}").status_code == 403


def test_enrolled_student_cannot_see_draft_module(login, draft_module, student):
    baker.make(ModuleStudent, module=draft_module, student=student)
    assert login(student).get(f"/api/modules/{draft_module.id}").status_code == 403


def test_module_questions_tree_for_assigned_instructor(login, authored_module, instructor, other_instructor):
    resp = login(instructor).get(f"/api/modules/{authored_module.id}/questions")
    assert resp.status_code == 200
    tree = resp.data
    assert tree[0]["parts"][0]["label"] == "A"
    assert tree[0]["parts"][0]["sub_questions"][0]["max_marks"] == 10
    assert login(other_instructor).get(f"/api/modules/{authored_module.id}/questions").status_code == 403
