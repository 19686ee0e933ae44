"""Unit tests for retention policy validation.

Tests the RetentionPolicy domain invariant, PolicySnapshot construction and
the API schemas.
"""

import pytest
from pydantic import ValidationError

from domain.lifecycle.errors import ConfigError
from domain.lifecycle.models import DocumentCategory
from domain.validity.rules import ValidityRuleTable
from retention.policy_store import DEFAULT_POLICIES, PolicySnapshot, policy_to_dict
from retention.schemas import ActionResultResponse, PolicyCreate, PolicyUpdate


class TestRetentionPolicy:

    def test_retention_days(self, make_policy):
        assert make_policy(retention_years=7).retention_days == 7 * 365

    def test_valid_policy_passes(self, make_policy):
        make_policy(retention_years=5, archive_after_days=5 * 365).validate()

    def test_archive_after_retention_is_rejected(self, make_policy):
        with pytest.raises(ConfigError) as exc:
            make_policy(retention_years=1, archive_after_days=400).validate()

        assert "exceeds retention period" in str(exc.value)

    @pytest.mark.parametrize("years,days", [(-1, 0), (5, -1)])
    def test_negative_periods_are_rejected(self, make_policy, years, days):
        with pytest.raises(ConfigError):
            make_policy(retention_years=years, archive_after_days=days).validate()

    def test_policy_to_dict_uses_category_value(self, make_policy):
        data = policy_to_dict(make_policy())
        assert data["document_category"] == "bank_statements"
        assert data["retention_years"] == 5


class TestPolicySnapshot:

    def test_active_for_returns_active_policy(self, make_policy):
        policy = make_policy()
        snapshot = PolicySnapshot([policy])

        assert snapshot.active_for(DocumentCategory.BANK_STATEMENTS) == policy
        assert snapshot.active_for(DocumentCategory.TAX_RETURNS) is None
        assert len(snapshot) == 1

    def test_inactive_policies_are_ignored(self, make_policy):
        snapshot = PolicySnapshot([make_policy(is_active=False)])

        assert snapshot.active_for(DocumentCategory.BANK_STATEMENTS) is None
        assert snapshot.active_policies == []

    def test_two_active_policies_for_one_category_is_fatal(self, make_policy):
        with pytest.raises(ConfigError) as exc:
            PolicySnapshot([make_policy(policy_id="p1"), make_policy(policy_id="p2")])

        assert "both active" in str(exc.value)

    def test_active_and_inactive_for_one_category_is_fine(self, make_policy):
        snapshot = PolicySnapshot([
            make_policy(policy_id="old", is_active=False),
            make_policy(policy_id="new"),
        ])
        assert snapshot.active_for(DocumentCategory.BANK_STATEMENTS).id == "new"

    def test_malformed_policy_is_fatal(self, make_policy):
        with pytest.raises(ConfigError):
            PolicySnapshot([make_policy(retention_years=0, archive_after_days=30)])

    def test_defaults_validity_rules(self, make_policy):
        snapshot = PolicySnapshot([make_policy()])
        assert snapshot.validity_rules.window_for(DocumentCategory.PAY_STUB) == 30

        custom = PolicySnapshot([], validity_rules=ValidityRuleTable({"pay_stub": 10}))
        assert custom.validity_rules.window_for(DocumentCategory.PAY_STUB) == 10

    def test_default_policies_form_a_valid_snapshot(self, make_policy):
        policies = [
            make_policy(
                category=template["document_category"],
                retention_years=template["retention_years"],
                archive_after_days=template["archive_after_days"],
                auto_delete=template["auto_delete"],
                legal_hold_override=template["legal_hold_override"],
            )
            for template in DEFAULT_POLICIES
        ]
        snapshot = PolicySnapshot(policies)
        assert len(snapshot.active_policies) == len(DEFAULT_POLICIES)


class TestPolicySchemas:

    def _payload(self, **overrides):
        payload = {
            "name": "Bank Statements",
            "document_category": "bank_statements",
            "retention_years": 5,
            "archive_after_days": 180,
        }
        payload.update(overrides)
        return payload

    def test_defaults(self):
        policy = PolicyCreate(**self._payload())

        assert policy.document_category == DocumentCategory.BANK_STATEMENTS
        assert policy.auto_delete is False
        assert policy.legal_hold_override is True
        assert policy.is_active is True

    def test_category_alias_is_accepted(self):
        policy = PolicyCreate(**self._payload(document_category="Bank_Statement"))
        assert policy.document_category == DocumentCategory.BANK_STATEMENTS

    def test_unknown_category_is_rejected(self):
        with pytest.raises(ValidationError):
            PolicyCreate(**self._payload(document_category="memes"))

    def test_archive_after_retention_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            PolicyCreate(**self._payload(retention_years=1, archive_after_days=366))

        assert "must not exceed" in str(exc.value)

    def test_negative_values_are_rejected(self):
        with pytest.raises(ValidationError) as exc:
            PolicyCreate(**self._payload(archive_after_days=-1))

        assert "greater than or equal to 0" in str(exc.value)

    def test_update_checks_pair_only_when_both_given(self):
        assert PolicyUpdate(archive_after_days=9999).archive_after_days == 9999
        with pytest.raises(ValidationError):
            PolicyUpdate(retention_years=1, archive_after_days=9999)

    def test_update_exclude_unset(self):
        update = PolicyUpdate(auto_delete=True)
        assert update.model_dump(exclude_unset=True) == {"auto_delete": True}


class TestActionResultResponse:

    def test_precondition_error_is_reported_by_reason(self):
        from domain.lifecycle.errors import PreconditionError, PreconditionReason
        from domain.lifecycle.models import ActionResult, ActionType, LifecycleState

        result = ActionResult(
            success=False,
            document_id="doc-1",
            action=ActionType.DELETE,
            from_state=LifecycleState.ARCHIVED,
            to_state=LifecycleState.ARCHIVED,
            error=PreconditionError(PreconditionReason.HOLD_ACTIVE, "Document doc-1 is under legal hold"),
        )

        response = ActionResultResponse.from_domain(result)

        assert response.success is False
        assert response.error == "HoldActive"
        assert response.from_state == "Archived"
        assert response.action == "delete"
