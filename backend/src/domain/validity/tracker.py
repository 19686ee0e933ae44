"""ValidityTracker - expiration status of documents for underwriting use."""

from collections import Counter
from dataclasses import replace
from datetime import date, timedelta
from typing import Iterable, Optional

from domain.lifecycle.evaluator import age_in_days, coerce_received_date, require_category
from domain.lifecycle.models import (
    Clock,
    TrackedDocument,
    ValidityAssessment,
    ValidityStatus,
    utc_now,
)
from .rules import ValidityRuleTable


EXPIRING_SOON_DAYS = 30


class ValidityTracker:
    """Assesses document validity against a ValidityRuleTable.

    ``assess`` has no side effects. The validity state machine is orthogonal
    to the retention lifecycle; callers surface both side by side.
    """

    def __init__(
        self,
        rules: ValidityRuleTable,
        clock: Clock = utc_now,
        expiring_soon_days: int = EXPIRING_SOON_DAYS,
    ):
        self._rules = rules
        self._clock = clock
        self._expiring_soon_days = expiring_soon_days

    @property
    def rules(self) -> ValidityRuleTable:
        return self._rules

    def assess(self, document: TrackedDocument, as_of: Optional[date] = None) -> ValidityAssessment:
        """Compute the validity assessment for one document.

        Status rules:
        - Expired when days until expiration < 0
        - ExpiringSoon when 0 <= days until expiration <= 30
        - Valid otherwise, and always when the category has no rule

        Raises:
            EvaluationError: If the category is unknown or the received
                date is missing or malformed
        """
        category = require_category(document)
        today = as_of or self._clock().date()
        days_since = age_in_days(document, today)
        window = self._rules.window_for(category)

        if window is None:
            return ValidityAssessment(
                document=document,
                days_since_received=days_since,
                expiration_date=None,
                days_until_expiration=None,
                status=ValidityStatus.VALID,
            )

        expiration = coerce_received_date(document) + timedelta(days=window)
        days_until = (expiration - today).days

        if days_until < 0:
            status = ValidityStatus.EXPIRED
        elif days_until <= self._expiring_soon_days:
            status = ValidityStatus.EXPIRING_SOON
        else:
            status = ValidityStatus.VALID

        return ValidityAssessment(
            document=document,
            days_since_received=days_since,
            expiration_date=expiration,
            days_until_expiration=days_until,
            status=status,
        )

    def mark_renewed(self, document: TrackedDocument, as_of: Optional[date] = None) -> TrackedDocument:
        """Return a copy of the document received today (status becomes Valid)."""
        today = as_of or self._clock().date()
        return replace(document, received_date=today)

    @staticmethod
    def summarize(assessments: Iterable[ValidityAssessment]) -> dict[str, int]:
        """Count assessments per status (every status is present)."""
        counts = Counter(a.status for a in assessments)
        return {status.value: counts.get(status, 0) for status in ValidityStatus}

    @staticmethod
    def filter_by_status(
        assessments: Iterable[ValidityAssessment],
        status: Optional[ValidityStatus],
    ) -> list[ValidityAssessment]:
        if status is None:
            return list(assessments)
        return [a for a in assessments if a.status == status]
