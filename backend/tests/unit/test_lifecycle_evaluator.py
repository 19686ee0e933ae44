"""Unit tests for LifecycleEvaluator.

Tests state derivation, due dates, legal holds and invalid document data.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from domain.lifecycle.errors import EvaluationError
from domain.lifecycle.evaluator import (
    LifecycleEvaluator,
    age_in_days,
    archive_due_date,
    coerce_received_date,
    delete_due_date,
    retention_elapsed,
)
from domain.lifecycle.models import (
    ActionType,
    DocumentCategory,
    EvaluationReason,
    LifecycleState,
)

FIVE_YEARS = 5 * 365


@pytest.fixture
def evaluator(clock):
    return LifecycleEvaluator(clock)


class TestArchiveThreshold:

    def test_document_past_archive_threshold_becomes_archive_pending(self, evaluator, make_policy, make_document, today):
        """Bank statement received 200 days ago under a 5y / 180d policy"""
        policy = make_policy()
        document = make_document(received_days_ago=200)

        evaluation = evaluator.evaluate(document, policy, today)

        assert evaluation.target_state == LifecycleState.ARCHIVE_PENDING
        assert evaluation.reason == EvaluationReason.ARCHIVE_DUE
        assert evaluation.due_action == ActionType.ARCHIVE
        assert evaluation.next_action_date == today - timedelta(days=20)
        assert evaluation.is_transition is True

    def test_document_before_archive_threshold_stays_active(self, evaluator, make_policy, make_document, today):
        evaluation = evaluator.evaluate(make_document(received_days_ago=179), make_policy(), today)

        assert evaluation.target_state == LifecycleState.ACTIVE
        assert evaluation.reason == EvaluationReason.NOT_DUE
        assert evaluation.due_action is None
        assert evaluation.next_action_date == today + timedelta(days=1)

    def test_archive_threshold_is_inclusive(self, evaluator, make_policy, make_document, today):
        evaluation = evaluator.evaluate(make_document(received_days_ago=180), make_policy(), today)
        assert evaluation.target_state == LifecycleState.ARCHIVE_PENDING

    def test_archive_pending_stays_pending(self, evaluator, make_policy, make_document, today):
        document = make_document(received_days_ago=200, state=LifecycleState.ARCHIVE_PENDING)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.ARCHIVE_PENDING
        assert evaluation.reason == EvaluationReason.AWAITING_ARCHIVE
        assert evaluation.is_transition is False

    def test_active_document_past_retention_is_archived_first(self, evaluator, make_policy, make_document, today):
        """Deletion never fires before archival has been recorded"""
        document = make_document(received_days_ago=FIVE_YEARS + 1)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.ARCHIVE_PENDING
        assert evaluation.due_action == ActionType.ARCHIVE


class TestRetentionThreshold:

    def test_archived_document_past_retention_becomes_delete_pending(self, evaluator, make_policy, make_document, today):
        """Received 5 years + 1 day ago, no hold"""
        document = make_document(received_days_ago=FIVE_YEARS + 1, state=LifecycleState.ARCHIVED)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.DELETE_PENDING
        assert evaluation.reason == EvaluationReason.DELETE_DUE
        assert evaluation.due_action == ActionType.DELETE
        assert evaluation.requires_confirmation is False
        assert evaluation.next_action_date == today - timedelta(days=1)

    def test_archived_document_within_retention_stays_archived(self, evaluator, make_policy, make_document, today):
        document = make_document(received_days_ago=400, state=LifecycleState.ARCHIVED)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.ARCHIVED
        assert evaluation.reason == EvaluationReason.RETENTION_RUNNING
        assert evaluation.due_action is None
        assert evaluation.next_action_date == today + timedelta(days=FIVE_YEARS - 400)

    def test_manual_policy_requires_confirmation(self, evaluator, make_policy, make_document, today):
        policy = make_policy(auto_delete=False)
        document = make_document(received_days_ago=FIVE_YEARS + 1, state=LifecycleState.ARCHIVED)

        evaluation = evaluator.evaluate(document, policy, today)

        assert evaluation.target_state == LifecycleState.ARCHIVED
        assert evaluation.reason == EvaluationReason.MANUAL_DELETE_REVIEW
        assert evaluation.due_action == ActionType.DELETE
        assert evaluation.requires_confirmation is True

    def test_extension_pushes_thresholds(self, evaluator, make_policy, make_document, today):
        document = make_document(
            received_days_ago=FIVE_YEARS + 1,
            state=LifecycleState.ARCHIVED,
            retention_extension_days=30,
        )

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.ARCHIVED
        assert evaluation.reason == EvaluationReason.RETENTION_RUNNING
        assert evaluation.next_action_date == today + timedelta(days=29)

    def test_deleted_document_is_terminal(self, evaluator, make_policy, make_document, today):
        document = make_document(received_days_ago=FIVE_YEARS * 2, state=LifecycleState.DELETED)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.DELETED
        assert evaluation.reason == EvaluationReason.DELETED
        assert evaluation.due_action is None


class TestLegalHold:

    def test_hold_with_override_freezes_document(self, evaluator, make_policy, make_document, today):
        document = make_document(received_days_ago=FIVE_YEARS + 1, state=LifecycleState.ARCHIVED, legal_hold=True)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.ARCHIVED
        assert evaluation.reason == EvaluationReason.HOLD
        assert evaluation.reason.value == "hold"
        assert evaluation.due_action is None
        assert evaluation.next_action_date is None

    def test_hold_with_override_blocks_archival(self, evaluator, make_policy, make_document, today):
        document = make_document(received_days_ago=200, legal_hold=True)

        evaluation = evaluator.evaluate(document, make_policy(), today)

        assert evaluation.target_state == LifecycleState.ACTIVE
        assert evaluation.reason == EvaluationReason.HOLD

    def test_hold_without_override_allows_archival(self, evaluator, make_policy, make_document, today):
        policy = make_policy(legal_hold_override=False)
        document = make_document(received_days_ago=200, legal_hold=True)

        evaluation = evaluator.evaluate(document, policy, today)

        assert evaluation.target_state == LifecycleState.ARCHIVE_PENDING

    def test_hold_without_override_still_blocks_deletion(self, evaluator, make_policy, make_document, today):
        policy = make_policy(legal_hold_override=False)
        document = make_document(received_days_ago=FIVE_YEARS + 1, state=LifecycleState.ARCHIVED, legal_hold=True)

        evaluation = evaluator.evaluate(document, policy, today)

        assert evaluation.target_state == LifecycleState.ARCHIVED
        assert evaluation.reason == EvaluationReason.HOLD
        assert evaluation.due_action is None


class TestUnpolicedAndInvalidDocuments:

    def test_no_policy_leaves_state_unchanged(self, evaluator, make_document, today):
        document = make_document(category=DocumentCategory.APPRAISAL, received_days_ago=5000)

        evaluation = evaluator.evaluate(document, None, today)

        assert evaluation.target_state == LifecycleState.ACTIVE
        assert evaluation.reason == EvaluationReason.UNPOLICED
        assert evaluation.due_action is None

    def test_missing_received_date_is_an_error(self, evaluator, make_policy, make_document, today):
        document = make_document(received_days_ago=None)

        with pytest.raises(EvaluationError) as exc:
            evaluator.evaluate(document, make_policy(), today)

        assert exc.value.document_id == "doc-1"
        assert "no received date" in exc.value.message

    def test_malformed_received_date_is_an_error(self, evaluator, make_policy, make_document, today):
        document = make_document(received_date="31/02/2024")

        with pytest.raises(EvaluationError) as exc:
            evaluator.evaluate(document, make_policy(), today)

        assert "Malformed received date" in exc.value.message

    def test_future_received_date_is_an_error(self, evaluator, make_policy, make_document, today):
        document = make_document(received_date=today + timedelta(days=3))

        with pytest.raises(EvaluationError):
            evaluator.evaluate(document, make_policy(), today)

    def test_unknown_category_is_an_error(self, evaluator, make_policy, make_document, today):
        document = make_document(category="mortgage_note", received_days_ago=400)

        with pytest.raises(EvaluationError) as exc:
            evaluator.evaluate(document, make_policy(DocumentCategory.OTHER), today)

        assert "Unknown document category" in exc.value.message

    def test_evaluation_defaults_to_clock_date(self, evaluator, make_policy, make_document):
        evaluation = evaluator.evaluate(make_document(received_days_ago=200), make_policy())
        assert evaluation.target_state == LifecycleState.ARCHIVE_PENDING


class TestDateHelpers:

    def test_coerce_accepts_iso_strings_and_datetimes(self, make_document):
        assert coerce_received_date(make_document(received_date="2024-01-15")) == date(2024, 1, 15)
        assert coerce_received_date(make_document(received_date="2024-01-15T10:30:00Z")) == date(2024, 1, 15)
        received = datetime(2024, 1, 15, 23, 0, tzinfo=timezone.utc)
        assert coerce_received_date(make_document(received_date=received)) == date(2024, 1, 15)

    def test_coerce_rejects_other_types(self, make_document):
        with pytest.raises(EvaluationError):
            coerce_received_date(make_document(received_date=20240115))

    def test_due_dates(self, make_policy, make_document):
        policy = make_policy()
        document = make_document(received_date=date(2020, 1, 1), retention_extension_days=10)

        assert archive_due_date(document, policy) == date(2020, 1, 1) + timedelta(days=190)
        assert delete_due_date(document, policy) == date(2020, 1, 1) + timedelta(days=FIVE_YEARS + 10)

    def test_retention_elapsed_boundary(self, make_policy, make_document, today):
        policy = make_policy()
        assert retention_elapsed(make_document(received_days_ago=FIVE_YEARS), policy, today) is True
        assert retention_elapsed(make_document(received_days_ago=FIVE_YEARS - 1), policy, today) is False

    def test_age_in_days(self, make_document, today):
        assert age_in_days(make_document(received_days_ago=42), today) == 42
