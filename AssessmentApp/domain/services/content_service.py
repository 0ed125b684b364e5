"""Domain service functions for the content hierarchy.

Module -> Question -> Part (A/B) -> SubQuestion, plus Artefact links on questions.

Every mutation requires the caller to be an instructor assigned to the owning
module and the module to still be in draft; both are checked before any row
is touched. New questions and sub-questions without an explicit order get
``max(sibling order_index) + 1`` computed while the module row is locked.
"""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Max
from rest_framework.exceptions import ValidationError

from AssessmentApp.core.access import ensure_assigned_instructor
from AssessmentApp.content.models import Question, Part, SubQuestion, Artefact
from AssessmentApp.domain import lifecycle
from AssessmentApp.modules.models import Module

logger = logging.getLogger(__name__)

User = get_user_model()


def _ensure_can_edit(user: User, module: Module) -> None:
    """Assigned instructor + draft module, checked against the current module row."""
    ensure_assigned_instructor(user, module)
    current = Module.objects.select_for_update().get(pk=module.pk)
    lifecycle.ensure_content_editable(current.status)


def _next_order(queryset) -> int:
    highest = queryset.aggregate(m=Max("order_index"))["m"]
    return (highest or 0) + 1


# ---------- Questions ----------
@transaction.atomic
def create_question(
    instructor: User,
    module: Module,
    title: str,
    scenario_text: str,
    order_index: int | None = None,
) -> Question:
    _ensure_can_edit(instructor, module)
    if order_index is None:
        order_index = _next_order(Question.objects.filter(module=module))
    question = Question.objects.create(
        module=module, title=title, scenario_text=scenario_text, order_index=order_index
    )
    logger.info("Question %s created in module %s", question.pk, module.pk)
    return question


@transaction.atomic
def update_question(instructor: User, question: Question, data: dict[str, Any]) -> Question:
    _ensure_can_edit(instructor, question.module)
    if not data:
        raise ValidationError("At least one field is required")
    for attr in ("title", "scenario_text", "order_index"):
        if attr in data:
            setattr(question, attr, data[attr])
    question.save()
    return question


@transaction.atomic
def delete_question(instructor: User, question: Question) -> None:
    """Delete a question; parts, sub-questions and artefacts go with it in one transaction."""
    _ensure_can_edit(instructor, question.module)
    logger.info("Question %s deleted from module %s", question.pk, question.module_id)
    question.delete()


# ---------- Parts ----------
@transaction.atomic
def upsert_part(instructor: User, question: Question, label: str) -> Part:
    """Create the (question, label) part, or return the existing one.

    Implemented as INSERT ... ON CONFLICT DO UPDATE on the unique constraint,
    followed by a re-read so concurrent callers observe the same row.
    """
    _ensure_can_edit(instructor, question.module)
    Part.objects.bulk_create(
        [Part(question=question, label=label)],
        update_conflicts=True,
        unique_fields=["question", "label"],
        update_fields=["label"],
    )
    return Part.objects.get(question=question, label=label)


@transaction.atomic
def relabel_part(instructor: User, part: Part, label: str) -> Part:
    _ensure_can_edit(instructor, part.question.module)
    if part.label == label:
        return part
    if Part.objects.filter(question_id=part.question_id, label=label).exists():
        raise ValidationError({"label": f"Part {label} already exists for this question"})
    part.label = label
    try:
        with transaction.atomic():
            part.save(update_fields=["label"])
    except IntegrityError as exc:
        raise ValidationError({"label": f"Part {label} already exists for this question"}) from exc
    return part


@transaction.atomic
def delete_part(instructor: User, part: Part) -> None:
    _ensure_can_edit(instructor, part.question.module)
    part.delete()


# ---------- Sub-questions ----------
@transaction.atomic
def create_sub_question(
    instructor: User,
    part: Part,
    prompt: str,
    max_marks: int,
    order_index: int | None = None,
) -> SubQuestion:
    _ensure_can_edit(instructor, part.question.module)
    if order_index is None:
        order_index = _next_order(SubQuestion.objects.filter(part=part))
    sub_question = SubQuestion.objects.create(
        part=part, prompt=prompt, max_marks=max_marks, order_index=order_index
    )
    logger.info("Sub-question %s created in part %s", sub_question.pk, part.pk)
    return sub_question


@transaction.atomic
def update_sub_question(instructor: User, sub_question: SubQuestion, data: dict[str, Any]) -> SubQuestion:
    _ensure_can_edit(instructor, sub_question.part.question.module)
    if not data:
        raise ValidationError("At least one field is required")
    for attr in ("prompt", "max_marks", "order_index"):
        if attr in data:
            setattr(sub_question, attr, data[attr])
    sub_question.save()
    return sub_question


@transaction.atomic
def delete_sub_question(instructor: User, sub_question: SubQuestion) -> None:
    _ensure_can_edit(instructor, sub_question.part.question.module)
    sub_question.delete()


# ---------- Artefacts ----------
@transaction.atomic
def add_artefact(instructor: User, question: Question, data: dict[str, Any]) -> Artefact:
    """Record a link to a file already placed in object storage."""
    _ensure_can_edit(instructor, question.module)
    artefact = Artefact.objects.create(question=question, uploaded_by=instructor, **data)
    logger.info("Artefact %s attached to question %s", artefact.pk, question.pk)
    return artefact


@transaction.atomic
def delete_artefact(instructor: User, artefact: Artefact) -> None:
    _ensure_can_edit(instructor, artefact.question.module)
    artefact.delete()
