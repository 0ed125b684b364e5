"""Grading Engine: per-sub-question scores and the grade-driven submission transitions.

- A grade targets one (submission, sub-question) pair through its Answer row
  and is upserted: regrading overwrites, never duplicates.
- Grading is allowed while the submission is SUBMITTED or GRADED. The first
  grade on a SUBMITTED submission moves it to GRADED.
- Finalising is an explicit GRADED -> FINALISED step; afterwards every grade
  is immutable.
"""

import logging
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from AssessmentApp.assessments.models import Submission, Answer, Grade
from AssessmentApp.core.access import ensure_assigned
from AssessmentApp.core.choices import SubmissionStatus
from AssessmentApp.domain import lifecycle

logger = logging.getLogger(__name__)

User = get_user_model()


def _lock(submission: Submission) -> Submission:
    return Submission.objects.select_for_update().select_related("module").get(pk=submission.pk)


def apply_grade_transition(submission: Submission) -> Submission:
    """Move SUBMITTED -> GRADED after a grade write; GRADED stays GRADED."""
    new_status = lifecycle.status_after_grade(submission.status)
    if new_status == submission.status:
        return submission
    now = timezone.now()
    updated = Submission.objects.filter(pk=submission.pk, status=SubmissionStatus.SUBMITTED).update(
        status=new_status, graded_at=now, updated_at=now
    )
    submission.refresh_from_db()
    if updated:
        logger.info("Submission %s moved to graded", submission.pk)
    return submission


@transaction.atomic
def record_grade(
    instructor: User,
    submission: Submission,
    sub_question_id: int,
    score: Decimal | int | float,
    feedback: str = "",
) -> Grade:
    """Create or overwrite the grade for one sub-question of a submission.

    Raises:
        PermissionDenied: Caller not assigned (admins bypass), submission not
            gradable, or no answer exists for the sub-question.
        ValidationError: Negative score.
    """
    ensure_assigned(instructor, submission.module)
    if Decimal(str(score)) < 0:
        raise ValidationError({"score": "Score must be a non-negative number"})
    submission = _lock(submission)
    lifecycle.ensure_gradable(submission.status)

    answer = Answer.objects.filter(submission=submission, sub_question_id=sub_question_id).first()
    if answer is None:
        raise PermissionDenied("Submission answer not found")

    grade, created = Grade.objects.update_or_create(
        answer=answer,
        defaults={
            "instructor": instructor,
            "marks_awarded": Decimal(str(score)),
            "feedback": feedback or "",
        },
    )
    logger.info("Grade %s %s for submission %s sub-question %s",
                grade.pk, "created" if created else "updated", submission.pk, sub_question_id)
    apply_grade_transition(submission)
    return grade


@transaction.atomic
def finalise(instructor: User, submission: Submission) -> Submission:
    """graded -> finalised (assigned instructor or admin). Irreversible."""
    ensure_assigned(instructor, submission.module)
    submission = _lock(submission)
    new_status = lifecycle.finalise(submission.status)
    now = timezone.now()
    Submission.objects.filter(pk=submission.pk, status=SubmissionStatus.GRADED).update(
        status=new_status, finalised_at=now, updated_at=now
    )
    submission.refresh_from_db()
    logger.info("Submission %s finalised by %s", submission.pk, instructor.pk)
    return submission
