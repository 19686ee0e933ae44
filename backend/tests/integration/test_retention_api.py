"""Integration tests for the retention and validity HTTP API."""

from datetime import datetime, timedelta, timezone

import pytest

from domain.lifecycle.models import DocumentCategory, LifecycleState
from infrastructure.repositories.document_repository import SqlDocumentStore

API = "/api/v1"
FIVE_YEARS = 5 * 365


def utc_today():
    return datetime.now(timezone.utc).date()


@pytest.fixture
def bank_policy(client):
    response = client.post(f"{API}/retention/policies", json={
        "name": "Bank Statements",
        "document_category": "bank_statements",
        "retention_years": 5,
        "archive_after_days": 180,
        "auto_delete": True,
    })
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def add_document(db_session):
    store = SqlDocumentStore(db_session)

    def _add(document_id, days_ago, category=DocumentCategory.BANK_STATEMENTS, **kwargs):
        document = store.add_document(
            f"{document_id}.pdf", category, utc_today() - timedelta(days=days_ago),
            document_id=document_id, loan_id="loan-1", **kwargs,
        )
        db_session.commit()
        return document

    return _add


class TestPolicyEndpoints:

    def test_create_policy(self, client, bank_policy):
        assert bank_policy["document_category"] == "bank_statements"
        assert bank_policy["is_active"] is True
        assert bank_policy["legal_hold_override"] is True

        response = client.get(f"{API}/retention/policies/{bank_policy['id']}")
        assert response.status_code == 200
        assert response.json() == bank_policy

    def test_archive_after_retention_is_422(self, client):
        response = client.post(f"{API}/retention/policies", json={
            "name": "Broken",
            "document_category": "tax_returns",
            "retention_years": 1,
            "archive_after_days": 400,
        })

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    def test_duplicate_active_policy_is_422(self, client, bank_policy):
        response = client.post(f"{API}/retention/policies", json={
            "name": "Duplicate",
            "document_category": "bank_statement",
            "retention_years": 3,
            "archive_after_days": 90,
        })

        assert response.status_code == 422
        assert response.json()["error"] == "config_error"

    def test_patch_policy(self, client, bank_policy):
        response = client.patch(
            f"{API}/retention/policies/{bank_policy['id']}",
            json={"archive_after_days": 90},
        )

        assert response.status_code == 200
        assert response.json()["archive_after_days"] == 90
        assert response.json()["retention_years"] == 5

    def test_patch_that_breaks_invariant_is_422(self, client, bank_policy):
        response = client.patch(
            f"{API}/retention/policies/{bank_policy['id']}",
            json={"archive_after_days": 5000},
        )
        assert response.status_code == 422

    def test_toggle_policy(self, client, bank_policy):
        response = client.post(f"{API}/retention/policies/{bank_policy['id']}/toggle")

        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get(f"{API}/retention/policies", params={"include_inactive": False}).json() == []

    def test_unknown_policy_is_404(self, client):
        assert client.get(f"{API}/retention/policies/nope").status_code == 404

    def test_seed_defaults(self, client):
        first = client.post(f"{API}/retention/policies/seed-defaults")
        second = client.post(f"{API}/retention/policies/seed-defaults")

        assert first.json()["policies_created"] == 5
        assert second.json() == {"policies_created": 0, "validity_rules_created": 0}
        assert len(client.get(f"{API}/retention/policies").json()) == 5

    def test_validity_rules(self, client):
        assert client.get(f"{API}/retention/validity-rules").json()["pay_stub"] == 30

        response = client.put(f"{API}/retention/validity-rules/pay_stub", json={"validity_days": 45})

        assert response.status_code == 200
        assert response.json()["pay_stub"] == 45
        assert client.put(f"{API}/retention/validity-rules/pay_stub", json={"validity_days": 0}).status_code == 422
        assert client.put(f"{API}/retention/validity-rules/memes", json={"validity_days": 10}).status_code == 422


class TestScanAndActionEndpoints:

    def test_scan_returns_worklist(self, client, bank_policy, add_document):
        add_document("doc-archive", 200)
        add_document("doc-young", 10)
        add_document("doc-appraisal", 10, category=DocumentCategory.APPRAISAL)

        response = client.post(f"{API}/retention/scan")

        assert response.status_code == 200
        report = response.json()
        assert report["documents_scanned"] == 3
        assert report["pending_archive"] == 1
        assert report["partial"] is False
        assert [e["document_id"] for e in report["worklist"]] == ["doc-archive"]
        assert report["worklist"][0]["to_state"] == "ArchivePending"
        assert report["worklist"][0]["policy_id"] == bank_policy["id"]
        assert [d["id"] for d in report["unpoliced"]] == ["doc-appraisal"]

    def test_scan_with_conflicting_configuration_is_422(self, client, db_session, add_document):
        from models.retention_policy import RetentionPolicyModel

        for policy_id in ("p1", "p2"):
            db_session.add(RetentionPolicyModel(
                id=policy_id, name=policy_id, document_category="title",
                retention_years=1, archive_after_days=10,
            ))
        db_session.commit()

        response = client.post(f"{API}/retention/scan")

        assert response.status_code == 422
        assert response.json()["error"] == "config_error"

    def test_archive_document(self, client, bank_policy, add_document):
        add_document("doc-1", 200)

        response = client.post(f"{API}/retention/documents/doc-1/archive")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["from_state"] == "Active"
        assert body["to_state"] == "Archived"
        assert body["audit_record_id"]

    def test_archive_under_hold_is_409(self, client, bank_policy, add_document):
        add_document("doc-1", 200, legal_hold=True)

        response = client.post(f"{API}/retention/documents/doc-1/archive")

        assert response.status_code == 409
        assert response.json()["error"] == "HoldActive"

    def test_unknown_document_is_404(self, client, bank_policy):
        response = client.post(f"{API}/retention/documents/nope/archive")

        assert response.status_code == 404
        assert response.json()["error"] == "DocumentNotFound"

    def test_delete_before_retention_is_409(self, client, bank_policy, add_document):
        add_document("doc-1", 400, current_state=LifecycleState.ARCHIVED)

        response = client.post(f"{API}/retention/documents/doc-1/delete")

        assert response.status_code == 409
        assert response.json()["error"] == "RetentionNotElapsed"

    def test_delete_after_retention(self, client, bank_policy, add_document):
        add_document("doc-1", FIVE_YEARS + 1, current_state=LifecycleState.ARCHIVED)

        response = client.post(f"{API}/retention/documents/doc-1/delete", json={"confirmed": False})

        assert response.status_code == 200
        assert response.json()["to_state"] == "Deleted"

    def test_extend_retention(self, client, bank_policy, add_document):
        add_document("doc-1", 400, current_state=LifecycleState.ARCHIVED)

        response = client.post(f"{API}/retention/documents/doc-1/extend", json={"days": 30})

        assert response.status_code == 200
        assert response.json()["to_state"] == "Archived"
        assert client.post(f"{API}/retention/documents/doc-1/extend", json={"days": 0}).status_code == 422

    def test_legal_hold_toggle(self, client, bank_policy, add_document):
        add_document("doc-1", 200)

        response = client.put(
            f"{API}/retention/documents/doc-1/legal-hold",
            json={"legal_hold": True, "reason": "Subpoena"},
        )

        assert response.status_code == 200
        assert response.json()["legal_hold"] is True
        assert client.post(f"{API}/retention/documents/doc-1/archive").status_code == 409


class TestValidityEndpoints:

    def test_validity_report_and_filter(self, client, add_document):
        add_document("doc-stub", 35, category=DocumentCategory.PAY_STUB)
        add_document("doc-tax", 3, category=DocumentCategory.TAX_RETURNS)

        everything = client.get(f"{API}/retention/validity").json()
        expired = client.get(f"{API}/retention/validity", params={"status": "Expired"}).json()

        assert everything["summary"] == {"Valid": 1, "ExpiringSoon": 0, "Expired": 1}
        assert [a["document_id"] for a in expired["assessments"]] == ["doc-stub"]
        assert expired["assessments"][0]["days_until_expiration"] == -5
        assert client.get(f"{API}/retention/validity/summary").json()["Expired"] == 1

    def test_renew_and_reminder(self, client, add_document):
        add_document("doc-stub", 35, category=DocumentCategory.PAY_STUB)

        reminder = client.post(f"{API}/retention/documents/doc-stub/renewal-reminder")
        renewed = client.post(f"{API}/retention/documents/doc-stub/renew")
        second_reminder = client.post(f"{API}/retention/documents/doc-stub/renewal-reminder")

        assert reminder.status_code == 200
        assert reminder.json()["status"] == "Expired"
        assert renewed.status_code == 200
        assert renewed.json()["days_since_received"] == 0
        assert second_reminder.status_code == 200  # 30-day window: ExpiringSoon right away


class TestObservabilityEndpoints:

    def test_ready(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_metrics(self, client, bank_policy):
        client.post(f"{API}/retention/scan")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "doclifecycle_scans_total" in response.text

    def test_request_id_is_echoed(self, client):
        response = client.get("/ready", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_not_ready_with_conflicting_policies(self, client, db_session):
        from models.retention_policy import RetentionPolicyModel

        for policy_id in ("p1", "p2"):
            db_session.add(RetentionPolicyModel(
                id=policy_id, name=policy_id, document_category="credit_report",
                retention_years=2, archive_after_days=60,
            ))
        db_session.commit()

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["component"] == "policies"
