"""Pydantic schemas for the retention API.

This module defines request/response contracts for:
- Retention policy administration (create, partial update, toggle)
- Scan reports and worklist entries
- Lifecycle actions (archive, delete, extend) and legal holds
- Validity assessments and the validity summary
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from domain.lifecycle.models import (
    DAYS_PER_YEAR,
    ActionResult,
    DocumentCategory,
    RetentionPolicy,
    ScanResult,
    TrackedDocument,
    ValidityAssessment,
    WorklistEntry,
)


def _check_archive_within_retention(archive_after_days: int, retention_years: int) -> None:
    if archive_after_days > retention_years * DAYS_PER_YEAR:
        raise ValueError(
            f"archive_after_days ({archive_after_days}) must not exceed "
            f"retention_years * {DAYS_PER_YEAR} ({retention_years * DAYS_PER_YEAR})"
        )


class PolicyCreate(BaseModel):
    """Schema for creating a retention policy.

    archive_after_days may not exceed the retention period; such a policy
    would archive documents that must still be kept for underwriting review.
    """

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    document_category: DocumentCategory = Field(..., description="Document category the policy covers")
    retention_years: int = Field(..., ge=0, le=100, description="Minimum retention before deletion (years)")
    archive_after_days: int = Field(..., ge=0, description="Age at which documents become eligible for archival")
    auto_delete: bool = Field(False, description="Delete automatically once retention expires")
    legal_hold_override: bool = Field(True, description="A legal hold suspends all archive/delete actions")
    is_active: bool = Field(True, description="Inactive policies are ignored by scans")

    @field_validator("document_category", mode="before")
    @classmethod
    def parse_category(cls, v: Any) -> DocumentCategory:
        return DocumentCategory.parse(v)

    @model_validator(mode="after")
    def archive_within_retention(self) -> "PolicyCreate":
        _check_archive_within_retention(self.archive_after_days, self.retention_years)
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Bank Statements",
                "document_category": "bank_statements",
                "retention_years": 5,
                "archive_after_days": 180,
                "auto_delete": True,
                "legal_hold_override": True,
                "is_active": True,
            }
        }
    )


class PolicyUpdate(BaseModel):
    """Schema for updating a policy (partial updates allowed).

    The archive/retention ordering is checked against the merged policy by
    the PolicyStore, since either field may be omitted here.
    """

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    document_category: Optional[DocumentCategory] = None
    retention_years: Optional[int] = Field(None, ge=0, le=100)
    archive_after_days: Optional[int] = Field(None, ge=0)
    auto_delete: Optional[bool] = None
    legal_hold_override: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("document_category", mode="before")
    @classmethod
    def parse_category(cls, v: Any) -> Optional[DocumentCategory]:
        return DocumentCategory.parse(v) if v is not None else None

    @model_validator(mode="after")
    def archive_within_retention(self) -> "PolicyUpdate":
        if self.archive_after_days is not None and self.retention_years is not None:
            _check_archive_within_retention(self.archive_after_days, self.retention_years)
        return self


class PolicyResponse(BaseModel):
    id: str
    name: str
    document_category: DocumentCategory
    retention_years: int
    archive_after_days: int
    auto_delete: bool
    legal_hold_override: bool
    is_active: bool

    @classmethod
    def from_domain(cls, policy: RetentionPolicy) -> "PolicyResponse":
        return cls(
            id=policy.id,
            name=policy.name,
            document_category=policy.document_category,
            retention_years=policy.retention_years,
            archive_after_days=policy.archive_after_days,
            auto_delete=policy.auto_delete,
            legal_hold_override=policy.legal_hold_override,
            is_active=policy.is_active,
        )


class SeedResult(BaseModel):
    policies_created: int = Field(ge=0)
    validity_rules_created: int = Field(ge=0)


class ValidityRuleUpdate(BaseModel):
    validity_days: int = Field(..., ge=1, le=3650, description="Days a document stays fresh")


class DocumentResponse(BaseModel):
    id: str
    name: str
    category: str
    loan_id: Optional[str] = None
    received_date: Optional[date] = None
    current_state: str
    legal_hold: bool
    retention_extension_days: int
    version: int

    @classmethod
    def from_domain(cls, document: TrackedDocument) -> "DocumentResponse":
        return cls(
            id=document.id,
            name=document.name,
            category=document.category_name,
            loan_id=document.loan_id,
            received_date=document.received_date,
            current_state=document.current_state.value,
            legal_hold=document.legal_hold,
            retention_extension_days=document.retention_extension_days,
            version=document.version,
        )


class WorklistEntryResponse(BaseModel):
    document_id: str
    document_name: str
    category: str
    loan_id: Optional[str] = None
    from_state: str
    to_state: str
    due_date: date
    action: str
    reason: str
    policy_id: str
    requires_confirmation: bool
    validity_status: Optional[str] = None

    @classmethod
    def from_domain(cls, entry: WorklistEntry) -> "WorklistEntryResponse":
        return cls(
            document_id=entry.document.id,
            document_name=entry.document.name,
            category=entry.document.category_name,
            loan_id=entry.document.loan_id,
            from_state=entry.from_state.value,
            to_state=entry.to_state.value,
            due_date=entry.due_date,
            action=entry.action.value,
            reason=entry.reason.value,
            policy_id=entry.policy_id,
            requires_confirmation=entry.requires_confirmation,
            validity_status=entry.validity_status.value if entry.validity_status else None,
        )


class IssueResponse(BaseModel):
    document_id: Optional[str] = None
    message: str


class ScanReport(BaseModel):
    """Summary and worklist of one scan run.

    pending_delete counts automatic deletions only; deletions awaiting a
    manual decision are counted in manual_review.
    """

    scan_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    as_of: date
    documents_scanned: int = Field(ge=0)
    pending_archive: int = Field(ge=0)
    pending_delete: int = Field(ge=0)
    manual_review: int = Field(ge=0)
    cancelled: bool = False
    partial: bool = False
    worklist: List[WorklistEntryResponse] = Field(default_factory=list)
    unpoliced: List[DocumentResponse] = Field(default_factory=list)
    errors: List[IssueResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ScanResult) -> "ScanReport":
        return cls(
            scan_id=result.scan_id,
            started_at=result.started_at,
            completed_at=result.completed_at,
            as_of=result.as_of,
            documents_scanned=result.documents_scanned,
            pending_archive=result.pending_archive,
            pending_delete=result.pending_delete,
            manual_review=result.manual_review,
            cancelled=result.cancelled,
            partial=result.is_partial,
            worklist=[WorklistEntryResponse.from_domain(e) for e in result.worklist],
            unpoliced=[DocumentResponse.from_domain(d) for d in result.unpoliced],
            errors=[IssueResponse(document_id=i.document_id, message=i.message) for i in result.errors],
        )


class ScanQueued(BaseModel):
    task_id: str
    status: str = "queued"


class DeleteRequest(BaseModel):
    confirmed: bool = Field(False, description="Confirms a deletion the policy does not automate")


class ExtendRequest(BaseModel):
    days: Optional[int] = Field(None, ge=1, le=3650, description="Days to extend (default DEFAULT_EXTENSION_DAYS)")


class LegalHoldRequest(BaseModel):
    legal_hold: bool
    reason: Optional[str] = Field(None, max_length=500)


class ActionResultResponse(BaseModel):
    success: bool
    document_id: str
    action: str
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None
    audit_record_id: Optional[str] = None

    @classmethod
    def from_domain(cls, result: ActionResult) -> "ActionResultResponse":
        return cls(
            success=result.success,
            document_id=result.document_id,
            action=result.action.value,
            from_state=result.from_state.value if result.from_state else None,
            to_state=result.to_state.value if result.to_state else None,
            error=result.error_reason,
            message=str(result.error) if result.error else None,
            audit_record_id=result.audit_record_id,
        )


class ValidityAssessmentResponse(BaseModel):
    document_id: str
    document_name: str
    category: str
    loan_id: Optional[str] = None
    lifecycle_state: str
    days_since_received: int
    expiration_date: Optional[date] = None
    days_until_expiration: Optional[int] = None
    status: str

    @classmethod
    def from_domain(cls, assessment: ValidityAssessment) -> "ValidityAssessmentResponse":
        document = assessment.document
        return cls(
            document_id=document.id,
            document_name=document.name,
            category=document.category_name,
            loan_id=document.loan_id,
            lifecycle_state=document.current_state.value,
            days_since_received=assessment.days_since_received,
            expiration_date=assessment.expiration_date,
            days_until_expiration=assessment.days_until_expiration,
            status=assessment.status.value,
        )


class ValidityReport(BaseModel):
    summary: Dict[str, int]
    assessments: List[ValidityAssessmentResponse] = Field(default_factory=list)
    errors: List[IssueResponse] = Field(default_factory=list)
