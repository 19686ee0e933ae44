"""PolicyStore - retention policies and validity rules, with audited changes.

Scans and actions never read the tables directly. They take a
``PolicySnapshot`` once and work from it, so an edit made while a scan is
running only affects the next scan.
"""

import logging
import uuid
from dataclasses import asdict, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from audit.service import record_audit_event
from database import transaction_factory
from domain.audit.models import AuditAction
from domain.lifecycle.errors import ConfigError, NotFoundError
from domain.lifecycle.models import Clock, DocumentCategory, RetentionPolicy, utc_now
from domain.lifecycle.ports import AuditLogStorePort
from domain.validity.rules import DEFAULT_VALIDITY_WINDOWS, ValidityRuleTable
from infrastructure.repositories.audit_log_repository import SqlAuditLogStore
from models.retention_policy import RetentionPolicyModel
from models.validity_rule import ValidityRuleModel

logger = logging.getLogger(__name__)


# Policies installed by ``seed_defaults`` (mortgage / SBA lending defaults)
DEFAULT_POLICIES: tuple = (
    {
        "name": "SBA Loan Documents",
        "document_category": DocumentCategory.SBA_FORMS,
        "retention_years": 7,
        "archive_after_days": 365,
        "auto_delete": False,
        "legal_hold_override": True,
    },
    {
        "name": "Tax Returns",
        "document_category": DocumentCategory.TAX_RETURNS,
        "retention_years": 7,
        "archive_after_days": 365,
        "auto_delete": False,
        "legal_hold_override": True,
    },
    {
        "name": "Bank Statements",
        "document_category": DocumentCategory.BANK_STATEMENTS,
        "retention_years": 5,
        "archive_after_days": 180,
        "auto_delete": True,
        "legal_hold_override": True,
    },
    {
        "name": "ID Documents",
        "document_category": DocumentCategory.IDENTIFICATION,
        "retention_years": 5,
        "archive_after_days": 90,
        "auto_delete": True,
        "legal_hold_override": True,
    },
    {
        "name": "General Correspondence",
        "document_category": DocumentCategory.CORRESPONDENCE,
        "retention_years": 3,
        "archive_after_days": 90,
        "auto_delete": True,
        "legal_hold_override": False,
    },
)

POLICY_FIELDS = (
    "name",
    "document_category",
    "retention_years",
    "archive_after_days",
    "auto_delete",
    "legal_hold_override",
    "is_active",
)


class PolicySnapshot:
    """Immutable view of the configuration at one point in time.

    Construction validates every policy and rejects two active policies for
    the same category, so a bad configuration fails before any document is
    looked at.

    Raises:
        ConfigError: If any policy is malformed or categories collide
    """

    def __init__(
        self,
        policies: Iterable[RetentionPolicy],
        validity_rules: Optional[ValidityRuleTable] = None,
        taken_at: Optional[datetime] = None,
    ):
        self.policies = tuple(sorted(policies, key=lambda p: p.id))
        self.validity_rules = validity_rules or ValidityRuleTable.defaults()
        self.taken_at = taken_at or utc_now()

        active: Dict[DocumentCategory, RetentionPolicy] = {}
        for policy in self.policies:
            policy.validate()
            if not policy.is_active:
                continue
            existing = active.get(policy.document_category)
            if existing is not None:
                raise ConfigError(
                    f"Policies {existing.id} and {policy.id} are both active "
                    f"for category {policy.document_category.value}"
                )
            active[policy.document_category] = policy
        self._active = active

    def active_for(self, category: DocumentCategory) -> Optional[RetentionPolicy]:
        return self._active.get(category)

    @property
    def active_policies(self) -> List[RetentionPolicy]:
        return [self._active[c] for c in sorted(self._active, key=lambda c: c.value)]

    def __len__(self) -> int:
        return len(self.policies)


def policy_to_dict(policy: RetentionPolicy) -> Dict[str, Any]:
    data = asdict(policy)
    data["document_category"] = policy.document_category.value
    return data


def _to_domain(row: RetentionPolicyModel) -> RetentionPolicy:
    try:
        category = DocumentCategory.parse(row.document_category)
    except ValueError:
        raise ConfigError(f"Policy {row.id} has unknown category {row.document_category!r}")
    return RetentionPolicy(
        id=row.id,
        name=row.name,
        document_category=category,
        retention_years=row.retention_years,
        archive_after_days=row.archive_after_days,
        auto_delete=bool(row.auto_delete),
        legal_hold_override=bool(row.legal_hold_override),
        is_active=bool(row.is_active),
    )


class PolicyStore:
    """Administers retention policies and validity rules.

    Every change is validated, written together with its audit record in one
    transaction, and committed before the method returns.
    """

    def __init__(
        self,
        db: Session,
        audit_store: Optional[AuditLogStorePort] = None,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.audit_store = audit_store or SqlAuditLogStore(db)
        self._clock = clock
        self._transaction = transaction_factory(db)

    # ---- reads ---------------------------------------------------------

    def list_policies(self, include_inactive: bool = True) -> List[RetentionPolicy]:
        query = select(RetentionPolicyModel)
        if not include_inactive:
            query = query.where(RetentionPolicyModel.is_active.is_(True))
        query = query.order_by(RetentionPolicyModel.document_category, RetentionPolicyModel.id)
        return [_to_domain(row) for row in self.db.execute(query).scalars().all()]

    def get_policy(self, policy_id: str) -> RetentionPolicy:
        """Raises NotFoundError if the policy does not exist."""
        return _to_domain(self._get_row(policy_id))

    def validity_table(self) -> ValidityRuleTable:
        """Validity windows from the validity_rule table (defaults when empty)."""
        rows = self.db.execute(select(ValidityRuleModel)).scalars().all()
        if not rows:
            return ValidityRuleTable.defaults()
        return ValidityRuleTable({row.category: row.validity_days for row in rows})

    def snapshot(self) -> PolicySnapshot:
        """Load every policy and validity rule once.

        Raises:
            ConfigError: If the stored configuration is unusable
        """
        snapshot = PolicySnapshot(
            self.list_policies(include_inactive=True),
            validity_rules=self.validity_table(),
            taken_at=self._clock(),
        )
        logger.debug(
            f"Configuration snapshot with {len(snapshot)} policies",
            extra={"record_count": len(snapshot)},
        )
        return snapshot

    # ---- writes --------------------------------------------------------

    def create_policy(
        self,
        name: str,
        document_category: "DocumentCategory | str",
        retention_years: int,
        archive_after_days: int,
        auto_delete: bool = False,
        legal_hold_override: bool = True,
        is_active: bool = True,
        actor_id: Optional[str] = None,
    ) -> RetentionPolicy:
        """Create a policy.

        Raises:
            ConfigError: If the policy is invalid or another active policy
                already covers the category
        """
        category = self._parse_category(document_category)
        policy = RetentionPolicy(
            id=str(uuid.uuid4()),
            name=name,
            document_category=category,
            retention_years=retention_years,
            archive_after_days=archive_after_days,
            auto_delete=auto_delete,
            legal_hold_override=legal_hold_override,
            is_active=is_active,
        )
        policy.validate()

        with self._transaction():
            if policy.is_active:
                self._ensure_single_active(policy)
            self.db.add(RetentionPolicyModel(
                id=policy.id,
                name=name,
                document_category=category.value,
                retention_years=retention_years,
                archive_after_days=archive_after_days,
                auto_delete=auto_delete,
                legal_hold_override=legal_hold_override,
                is_active=is_active,
            ))
            self.db.flush()
            record_audit_event(
                self.audit_store,
                action=AuditAction.INSERT,
                table_name="retention_policy",
                record_id=policy.id,
                actor_id=actor_id,
                new_values=policy_to_dict(policy),
                risk_score=30,
                timestamp=self._clock(),
            )

        logger.info(
            f"Created retention policy {policy.id} for {category.value}",
            extra={"policy_id": policy.id, "category": category.value, "actor_id": actor_id},
        )
        return policy

    def update_policy(
        self,
        policy_id: str,
        changes: Dict[str, Any],
        actor_id: Optional[str] = None,
    ) -> RetentionPolicy:
        """Apply a partial update (None values are ignored).

        Raises:
            NotFoundError: If the policy does not exist
            ConfigError: If the result would be invalid
        """
        unknown = set(changes) - set(POLICY_FIELDS)
        if unknown:
            raise ConfigError(f"Unknown policy fields: {sorted(unknown)}")
        changes = {key: value for key, value in changes.items() if value is not None}
        if "document_category" in changes:
            changes["document_category"] = self._parse_category(changes["document_category"])

        with self._transaction():
            row = self._get_row(policy_id)
            before = _to_domain(row)
            after = replace(before, **changes)
            after.validate()
            if after.is_active:
                self._ensure_single_active(after)

            for key, value in changes.items():
                setattr(row, key, value.value if isinstance(value, DocumentCategory) else value)
            self.db.flush()

            record_audit_event(
                self.audit_store,
                action=AuditAction.UPDATE,
                table_name="retention_policy",
                record_id=policy_id,
                actor_id=actor_id,
                old_values=policy_to_dict(before),
                new_values=policy_to_dict(after),
                risk_score=50 if before.auto_delete != after.auto_delete else 30,
                timestamp=self._clock(),
            )

        logger.info(
            f"Updated retention policy {policy_id}",
            extra={"policy_id": policy_id, "actor_id": actor_id},
        )
        return after

    def set_active(self, policy_id: str, is_active: bool, actor_id: Optional[str] = None) -> RetentionPolicy:
        """Activate or deactivate a policy (audited as an UPDATE)."""
        return self.update_policy(policy_id, {"is_active": is_active}, actor_id=actor_id)

    def set_validity_window(
        self,
        category: "DocumentCategory | str",
        validity_days: int,
        actor_id: Optional[str] = None,
    ) -> ValidityRuleTable:
        """Create or change the validity window of one category.

        Raises:
            ConfigError: If the category is unknown or days < 1
        """
        parsed = self._parse_category(category)
        if validity_days < 1:
            raise ConfigError(f"Validity window for {parsed.value} must be at least 1 day")

        with self._transaction():
            self._materialize_validity_defaults()
            row = self.db.get(ValidityRuleModel, parsed.value)
            old_days = row.validity_days if row else None
            if row is None:
                row = ValidityRuleModel(category=parsed.value, validity_days=validity_days)
                self.db.add(row)
            else:
                row.validity_days = validity_days
            self.db.flush()

            record_audit_event(
                self.audit_store,
                action=AuditAction.INSERT if old_days is None else AuditAction.UPDATE,
                table_name="validity_rule",
                record_id=parsed.value,
                actor_id=actor_id,
                old_values={"validity_days": old_days} if old_days is not None else None,
                new_values={"validity_days": validity_days},
                risk_score=20,
                timestamp=self._clock(),
            )

        return self.validity_table()

    def seed_defaults(self, actor_id: Optional[str] = None) -> Dict[str, int]:
        """Install the default policies and validity windows where missing.

        Categories that already have any policy (active or not) are left
        alone, so seeding is idempotent.

        Returns:
            Dict with policies_created and validity_rules_created counts
        """
        existing = {p.document_category for p in self.list_policies(include_inactive=True)}
        created = 0
        for template in DEFAULT_POLICIES:
            if template["document_category"] in existing:
                continue
            self.create_policy(actor_id=actor_id, **template)
            created += 1

        with self._transaction():
            rules_created = self._materialize_validity_defaults()

        logger.info(
            f"Seeded {created} retention policies and {rules_created} validity rules",
            extra={"actor_id": actor_id},
        )
        return {"policies_created": created, "validity_rules_created": rules_created}

    # ---- helpers -------------------------------------------------------

    def _get_row(self, policy_id: str) -> RetentionPolicyModel:
        row = self.db.get(RetentionPolicyModel, policy_id)
        if row is None:
            raise NotFoundError(f"Retention policy {policy_id} not found")
        return row

    @staticmethod
    def _parse_category(value: "DocumentCategory | str") -> DocumentCategory:
        try:
            return DocumentCategory.parse(value)
        except ValueError:
            raise ConfigError(f"Unknown document category: {value!r}")

    def _ensure_single_active(self, policy: RetentionPolicy) -> None:
        query = select(RetentionPolicyModel.id).where(
            RetentionPolicyModel.document_category == policy.document_category.value,
            RetentionPolicyModel.is_active.is_(True),
            RetentionPolicyModel.id != policy.id,
        )
        other = self.db.execute(query).scalars().first()
        if other is not None:
            raise ConfigError(
                f"Category {policy.document_category.value} already has active policy {other}"
            )

    def _materialize_validity_defaults(self) -> int:
        """Write the default windows the first time the table is touched."""
        if self.db.execute(select(ValidityRuleModel.category)).first() is not None:
            return 0
        for category, days in DEFAULT_VALIDITY_WINDOWS.items():
            self.db.add(ValidityRuleModel(category=category.value, validity_days=days))
        self.db.flush()
        return len(DEFAULT_VALIDITY_WINDOWS)
