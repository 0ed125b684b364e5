"""QuerySet helpers for filtering submissions by role and lifecycle state."""

from django.db.models import QuerySet, Count, Q
from typing import Self

from AssessmentApp.core.choices import SubmissionStatus


class SubmissionQuerySet(QuerySet):

    def visible_to_instructors(self) -> Self:
        """In-progress (draft) work is private to the student."""
        return self.exclude(status=SubmissionStatus.DRAFT)

    def status_counts(self) -> dict[str, int]:
        """Number of submissions per status, zero-filled for every status."""
        counts = self.aggregate(**{
            status.value: Count("id", filter=Q(status=status.value))
            for status in SubmissionStatus
        })
        return {key: value or 0 for key, value in counts.items()}
