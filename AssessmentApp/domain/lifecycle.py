"""State machines for module and submission lifecycles.

Module:
    DRAFT -> PUBLISHED -> ARCHIVED
Submission:
    DRAFT -> SUBMITTED -> GRADED -> FINALISED

Transitions are only ever one step forward. Every function here is pure: it
inspects a (current, requested) pair and either returns the resulting status or
raises PermissionDenied with a human-readable reason. Persisting the change is
the caller's job (see the domain services).
"""

from rest_framework.exceptions import PermissionDenied

from AssessmentApp.core.choices import ModuleStatus, SubmissionStatus


MODULE_TRANSITIONS: dict[str, frozenset[str]] = {
    ModuleStatus.DRAFT: frozenset({ModuleStatus.PUBLISHED}),
    ModuleStatus.PUBLISHED: frozenset({ModuleStatus.ARCHIVED}),
    ModuleStatus.ARCHIVED: frozenset(),
}

SUBMISSION_TRANSITIONS: dict[str, frozenset[str]] = {
    SubmissionStatus.DRAFT: frozenset({SubmissionStatus.SUBMITTED}),
    SubmissionStatus.SUBMITTED: frozenset({SubmissionStatus.GRADED}),
    SubmissionStatus.GRADED: frozenset({SubmissionStatus.FINALISED}),
    SubmissionStatus.FINALISED: frozenset(),
}

SUBMISSION_ORDER: tuple[str, ...] = (
    SubmissionStatus.DRAFT,
    SubmissionStatus.SUBMITTED,
    SubmissionStatus.GRADED,
    SubmissionStatus.FINALISED,
)

GRADABLE_STATES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED})
GRADES_VISIBLE_STATES = frozenset(
    {SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED, SubmissionStatus.FINALISED}
)

_MODULE_REASONS = {
    ModuleStatus.PUBLISHED: "Module must be in draft status to publish",
    ModuleStatus.ARCHIVED: "Only published modules can be archived",
}

_SUBMISSION_REASONS = {
    SubmissionStatus.SUBMITTED: "Submission already submitted",
    SubmissionStatus.GRADED: "Submission is not gradable",
    SubmissionStatus.FINALISED: "Submission is not finalisable",
}


def can_transition_module(current: str, target: str) -> bool:
    return target in MODULE_TRANSITIONS.get(current, frozenset())


def can_transition_submission(current: str, target: str) -> bool:
    return target in SUBMISSION_TRANSITIONS.get(current, frozenset())


def module_transition(current: str, target: str) -> ModuleStatus:
    """Validate a module transition and return the new status."""
    if not can_transition_module(current, target):
        raise PermissionDenied(_MODULE_REASONS.get(target, "Invalid module transition"))
    return ModuleStatus(target)


def submission_transition(current: str, target: str) -> SubmissionStatus:
    """Validate a submission transition and return the new status."""
    if not can_transition_submission(current, target):
        raise PermissionDenied(_SUBMISSION_REASONS.get(target, "Invalid submission transition"))
    return SubmissionStatus(target)


def submit(current: str) -> SubmissionStatus:
    """draft -> submitted (student action)."""
    return submission_transition(current, SubmissionStatus.SUBMITTED)


def status_after_grade(current: str) -> SubmissionStatus:
    """Status a submission ends up in after a grade write.

    The first grade on a SUBMITTED submission moves it to GRADED; further grades
    on a GRADED submission keep it there. Anything else is not gradable.
    """
    if current == SubmissionStatus.GRADED:
        return SubmissionStatus.GRADED
    if current == SubmissionStatus.SUBMITTED:
        return submission_transition(current, SubmissionStatus.GRADED)
    raise PermissionDenied("Submission is not gradable")


def finalise(current: str) -> SubmissionStatus:
    """graded -> finalised (explicit instructor action, irreversible)."""
    return submission_transition(current, SubmissionStatus.FINALISED)


def ensure_answers_editable(status: str) -> None:
    if status != SubmissionStatus.DRAFT:
        raise PermissionDenied("Submission locked")


def ensure_gradable(status: str) -> None:
    if status not in GRADABLE_STATES:
        raise PermissionDenied("Submission is not gradable")


def grades_visible(status: str) -> bool:
    return status in GRADES_VISIBLE_STATES


def ensure_content_editable(module_status: str) -> None:
    if module_status != ModuleStatus.DRAFT:
        raise PermissionDenied("Module must be draft to modify content")
