"""Domain service functions for student submissions and answers.

Submission lifecycle (see ``AssessmentApp.domain.lifecycle``):
    DRAFT -> SUBMITTED -> GRADED -> FINALISED

- Exactly one submission exists per (module, student); the draft is created
  lazily on first touch (explicit start or first answer save).
- Answers are upserted while the submission is a draft and frozen afterwards.
- Submitting requires a non-blank answer for every sub-question of the module.
- Grades (and feedback) become visible on reads once the submission has left draft.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from AssessmentApp.assessments.models import Submission, Answer
from AssessmentApp.content.models import Question, SubQuestion
from AssessmentApp.core.access import ensure_enrolled
from AssessmentApp.core.choices import ModuleStatus, SubmissionStatus
from AssessmentApp.domain import lifecycle
from AssessmentApp.modules.models import Module

logger = logging.getLogger(__name__)

User = get_user_model()


def get_or_create_draft(student: User, module: Module) -> tuple[Submission, bool]:
    """Return the student's submission for ``module``, creating a draft if none exists.

    ``get_or_create`` inserts inside a savepoint and re-reads the winning row on
    a uniqueness conflict, so concurrent first touches end with one row.
    """
    submission, created = Submission.objects.get_or_create(
        module=module,
        student=student,
        defaults={"status": SubmissionStatus.DRAFT},
    )
    if created:
        logger.info("Draft submission %s created for student %s in module %s",
                    submission.pk, student.pk, module.pk)
    return submission, created


@transaction.atomic
def start(student: User, module: Module) -> tuple[Submission, bool]:
    """Explicitly open (or fetch) the student's submission for a published module."""
    ensure_enrolled(student, module)
    return get_or_create_draft(student, module)


def find(student: User, module: Module) -> Submission | None:
    """Read-only lookup; never creates a submission."""
    return Submission.objects.filter(module=module, student=student).first()


def current_status(student: User, module: Module) -> str:
    """Status of the student's submission, reported as draft when none exists yet."""
    ensure_enrolled(student, module, require_published=False)
    submission = find(student, module)
    return submission.status if submission else SubmissionStatus.DRAFT


@transaction.atomic
def save_answer(student: User, sub_question: SubQuestion, answer_text: str) -> Answer:
    """Upsert the answer for one sub-question (latest write wins).

    The submission row is locked first so an answer cannot slip in after a
    concurrent submit has committed.

    Raises:
        PermissionDenied: Not enrolled, module not published, or submission not in draft.
    """
    module = sub_question.part.question.module
    ensure_enrolled(student, module)
    submission, _ = get_or_create_draft(student, module)
    submission = Submission.objects.select_for_update().get(pk=submission.pk)
    lifecycle.ensure_answers_editable(submission.status)
    answer, _ = Answer.objects.update_or_create(
        submission=submission,
        sub_question=sub_question,
        defaults={"answer_text": answer_text},
    )
    return answer


def _module_sub_questions(module: Module):
    return SubQuestion.objects.filter(part__question__module=module)


def unanswered_count(submission: Submission) -> int:
    """Sub-questions of the module lacking a non-blank answer in ``submission``."""
    answered = {
        a.sub_question_id
        for a in submission.answers.all()
        if not a.is_blank
    }
    return sum(1 for sq_id in _module_sub_questions(submission.module).values_list("id", flat=True)
               if sq_id not in answered)


@transaction.atomic
def submit(student: User, module: Module) -> Submission:
    """draft -> submitted (owning student only).

    Raises:
        PermissionDenied: Not enrolled, module not published, or already submitted.
        ValidationError: No submission yet, or some sub-question is unanswered.
    """
    ensure_enrolled(student, module)
    submission = Submission.objects.select_for_update().filter(module=module, student=student).first()
    if submission is None:
        raise ValidationError("No draft submission found")
    new_status = lifecycle.submit(submission.status)
    if unanswered_count(submission):
        raise ValidationError("All questions must be answered before submission")
    now = timezone.now()
    updated = Submission.objects.filter(pk=submission.pk, status=SubmissionStatus.DRAFT).update(
        status=new_status, submitted_at=now, updated_at=now
    )
    if not updated:
        lifecycle.submit(SubmissionStatus.SUBMITTED)
    submission.refresh_from_db()
    logger.info("Submission %s submitted by student %s", submission.pk, student.pk)
    return submission


def progress(student: User, module: Module) -> dict[str, int]:
    """Answered vs. total sub-questions for the student's submission, as counts and a percentage."""
    ensure_enrolled(student, module, require_published=False)
    total = _module_sub_questions(module).count()
    submission = find(student, module)
    answered = 0
    if submission is not None:
        answered = total - unanswered_count(submission)
    percentage = int(answered * 100 / total + 0.5) if total else 0
    return {"total": total, "answered": answered, "percentage": percentage}


def answers_view(student: User, module: Module, question: Question | None = None) -> dict:
    """The student's answers for a module (or one question), with grades once submitted.

    Never creates a submission: with no row yet the result is an empty draft view.
    Archived modules stay readable so finalised marks remain visible.
    """
    ensure_enrolled(student, module, require_published=False)
    if module.status == ModuleStatus.DRAFT:
        raise PermissionDenied("Module is not published")
    submission = find(student, module)
    if submission is None:
        return {"submission_id": None, "status": SubmissionStatus.DRAFT, "answers": []}

    answers = submission.answers.select_related("grade", "sub_question").order_by(
        "sub_question__part__question__order_index",
        "sub_question__part__label",
        "sub_question__order_index",
        "sub_question_id",
    )
    if question is not None:
        answers = answers.filter(sub_question__part__question=question)

    show_grades = lifecycle.grades_visible(submission.status)
    rows = []
    for answer in answers:
        row = {"sub_question_id": answer.sub_question_id, "answer_text": answer.answer_text}
        if show_grades:
            grade = getattr(answer, "grade", None)
            row["marks_awarded"] = grade.marks_awarded if grade else None
            row["feedback"] = grade.feedback if grade else None
        rows.append(row)
    return {"submission_id": submission.pk, "status": submission.status, "answers": rows}
