from decimal import Decimal

import pytest
from rest_framework.exceptions import PermissionDenied

from AssessmentApp.assessments.models import Submission, Answer, Grade
from AssessmentApp.domain.services import grading_service, module_service, submission_service

pytestmark = pytest.mark.django_db


@pytest.fixture
def submitted(published_module, student, sub_question) -> Submission:
    submission_service.save_answer(student, sub_question, "There is a contract.")
    return submission_service.submit(student, published_module)


def _grade(client, submission, sub_question, score, feedback=""):
    return client.post("/api/grades", {
        "submission_id": submission.id,
        "sub_question_id": sub_question.id,
        "score": score,
        "feedback": feedback,
    }, format="json")


def test_first_grade_moves_submission_to_graded(login, instructor, submitted, sub_question):
    resp = _grade(login(instructor), submitted, sub_question, 7, "Solid")
    assert resp.status_code == 200
    assert resp.data["marks_awarded"] == Decimal("7")
    assert resp.data["submission_status"] == "graded"
    submitted.refresh_from_db()
    assert submitted.status == "graded"
    assert submitted.graded_at is not None


def test_regrade_overwrites_single_row(login, instructor, submitted, sub_question):
    client = login(instructor)
    _grade(client, submitted, sub_question, 4, "First pass")
    resp = _grade(client, submitted, sub_question, 9, "Second pass")
    assert resp.status_code == 200
    assert Grade.objects.count() == 1
    grade = Grade.objects.get()
    assert grade.marks_awarded == Decimal("9")
    assert grade.feedback == "Second pass"
    assert grade.history.count() == 2


def test_negative_score_rejected(login, instructor, submitted, sub_question):
    resp = _grade(login(instructor), submitted, sub_question, -1)
    assert resp.status_code == 400
    assert resp.data["error"] == "score: Score must be a non-negative number"
    assert not Grade.objects.exists()


def test_grading_a_draft_is_forbidden(login, instructor, published_module, student, sub_question):
    submission_service.save_answer(student, sub_question, "Still thinking")
    draft = Submission.objects.get(student=student)
    resp = _grade(login(instructor), draft, sub_question, 5)
    assert resp.status_code == 403
    assert not Grade.objects.exists()


def test_grading_unanswered_sub_question_is_forbidden(instructor, submitted, sub_question):
    Answer.objects.filter(submission=submitted).delete()
    with pytest.raises(PermissionDenied, match="Submission answer not found"):
        grading_service.record_grade(instructor, submitted, sub_question.id, 5)


def test_unassigned_instructor_cannot_grade(login, other_instructor, submitted, sub_question):
    assert _grade(login(other_instructor), submitted, sub_question, 5).status_code == 403


def test_admin_may_grade(login, admin, submitted, sub_question):
    assert _grade(login(admin), submitted, sub_question, 5).status_code == 200


def test_finalise_requires_graded(login, instructor, submitted):
    resp = login(instructor).post("/api/grades/finalise", {"submission_id": submitted.id}, format="json")
    assert resp.status_code == 403
    submitted.refresh_from_db()
    assert submitted.status == "submitted"


def test_finalised_grades_are_immutable(login, instructor, submitted, sub_question):
    client = login(instructor)
    _grade(client, submitted, sub_question, 6)
    resp = client.post("/api/grades/finalise", {"submission_id": submitted.id}, format="json")
    assert resp.status_code == 200
    assert resp.data["finalised_at"] is not None

    assert _grade(client, submitted, sub_question, 10).status_code == 403
    assert Grade.objects.get().marks_awarded == Decimal("6")
    again = client.post("/api/grades/finalise", {"submission_id": submitted.id}, format="json")
    assert again.status_code == 403


def test_student_cannot_grade(login, student, submitted, sub_question):
    assert _grade(login(student), submitted, sub_question, 10).status_code == 403


def test_instructor_listing_hides_drafts(login, instructor, published_module, student, other_student, sub_question, admin):
    module_service.enroll_student(admin, published_module, other_student.pk)
    submission_service.save_answer(student, sub_question, "Done")
    submitted = submission_service.submit(student, published_module)
    submission_service.save_answer(other_student, sub_question, "Half done")
    draft = Submission.objects.get(student=other_student)

    client = login(instructor)
    listing = client.get(f"/api/instructor/modules/{published_module.id}/submissions")
    assert listing.status_code == 200
    assert [row["id"] for row in listing.data["results"]] == [submitted.id]
    assert listing.data["results"][0]["student"]["email"] == student.email

    hidden = client.get(f"/api/instructor/modules/{published_module.id}/submissions/{draft.id}")
    assert hidden.status_code == 404


def test_submission_detail_includes_answers_and_grades(login, instructor, student, submitted, sub_question):
    _grade(login(instructor), submitted, sub_question, 8, "Nice")
    detail = login(student).get(f"/api/submissions/{submitted.id}")
    assert detail.status_code == 200
    row = detail.data["questions"][0]["parts"][0]["sub_questions"][0]
    assert row["answer_text"] == "There is a contract."
    assert row["grade"] == {"marks_awarded": Decimal("8"), "feedback": "Nice"}


def test_instructor_module_detail_counts(login, instructor, published_module, submitted):
    resp = login(instructor).get(f"/api/instructor/modules/{published_module.id}")
    assert resp.status_code == 200
    assert resp.data["submission_counts"]["submitted"] == 1
