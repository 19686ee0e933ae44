"""Unit tests for the LifecycleState state machine"""

import pytest

from domain.lifecycle.models import ActionType, DocumentCategory, LifecycleState
from domain.lifecycle.states import (
    ACTION_TRANSITIONS,
    ALLOWED_TRANSITIONS,
    can_transition,
)


class TestLifecycleStateMachine:
    """Test LifecycleState enum and state transition validation"""

    def test_lifecycle_state_values(self):
        """State values are the names stored in the database"""
        assert LifecycleState.ACTIVE.value == "Active"
        assert LifecycleState.ARCHIVE_PENDING.value == "ArchivePending"
        assert LifecycleState.ARCHIVED.value == "Archived"
        assert LifecycleState.DELETE_PENDING.value == "DeletePending"
        assert LifecycleState.DELETED.value == "Deleted"

    def test_forward_transitions(self):
        """Test Active → ArchivePending → Archived → DeletePending → Deleted"""
        assert can_transition(LifecycleState.ACTIVE, LifecycleState.ARCHIVE_PENDING) is True
        assert can_transition(LifecycleState.ARCHIVE_PENDING, LifecycleState.ARCHIVED) is True
        assert can_transition(LifecycleState.ARCHIVED, LifecycleState.DELETE_PENDING) is True
        assert can_transition(LifecycleState.DELETE_PENDING, LifecycleState.DELETED) is True

    def test_pending_states_may_be_skipped(self):
        """Manual actions may go straight to Archived / Deleted"""
        assert can_transition(LifecycleState.ACTIVE, LifecycleState.ARCHIVED) is True
        assert can_transition(LifecycleState.ARCHIVED, LifecycleState.DELETED) is True

    def test_active_never_jumps_to_deletion(self):
        assert can_transition(LifecycleState.ACTIVE, LifecycleState.DELETE_PENDING) is False
        assert can_transition(LifecycleState.ACTIVE, LifecycleState.DELETED) is False

    def test_no_backward_transitions(self):
        assert can_transition(LifecycleState.ARCHIVED, LifecycleState.ACTIVE) is False
        assert can_transition(LifecycleState.DELETE_PENDING, LifecycleState.ARCHIVED) is False
        assert can_transition(LifecycleState.ARCHIVE_PENDING, LifecycleState.ACTIVE) is False

    def test_deleted_is_terminal(self):
        """Test DELETED has no outgoing transitions"""
        assert ALLOWED_TRANSITIONS[LifecycleState.DELETED] == []
        for state in LifecycleState:
            assert can_transition(LifecycleState.DELETED, state) is False

    def test_self_transitions_not_allowed(self):
        for state in LifecycleState:
            assert can_transition(state, state) is False

    def test_every_state_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(LifecycleState)


class TestActionTransitions:
    """Source and target states of each action"""

    def test_archive_sources_and_target(self):
        sources, target = ACTION_TRANSITIONS[ActionType.ARCHIVE]
        assert set(sources) == {LifecycleState.ACTIVE, LifecycleState.ARCHIVE_PENDING}
        assert target == LifecycleState.ARCHIVED

    def test_delete_sources_and_target(self):
        sources, target = ACTION_TRANSITIONS[ActionType.DELETE]
        assert set(sources) == {LifecycleState.ARCHIVED, LifecycleState.DELETE_PENDING}
        assert target == LifecycleState.DELETED

    def test_action_sources_are_allowed_transitions(self):
        for sources, target in ACTION_TRANSITIONS.values():
            for source in sources:
                assert can_transition(source, target)


class TestDocumentCategory:

    @pytest.mark.parametrize("raw,expected", [
        ("bank_statements", DocumentCategory.BANK_STATEMENTS),
        ("bank_statement", DocumentCategory.BANK_STATEMENTS),
        ("Tax_Return", DocumentCategory.TAX_RETURNS),
        (" pay_stub ", DocumentCategory.PAY_STUB),
        ("id", DocumentCategory.IDENTIFICATION),
        (DocumentCategory.TITLE, DocumentCategory.TITLE),
    ])
    def test_parse_accepts_aliases(self, raw, expected):
        assert DocumentCategory.parse(raw) == expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            DocumentCategory.parse("recipes")
