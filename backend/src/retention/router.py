"""Retention and lifecycle API endpoints.

Policies:
- GET/POST /retention/policies, GET/PATCH /retention/policies/{id}
- POST /retention/policies/{id}/toggle
- POST /retention/policies/seed-defaults
- GET /retention/validity-rules, PUT /retention/validity-rules/{category}

Scans and actions:
- POST /retention/scan (synchronous) and /retention/scan/async (Celery)
- POST /retention/documents/{id}/archive | delete | extend
- PUT /retention/documents/{id}/legal-hold

Validity:
- GET /retention/validity, GET /retention/validity/summary
- POST /retention/documents/{id}/renew | renewal-reminder

Rejected actions surface as 409 responses carrying the typed reason (see
the exception handlers in main.py).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from config import settings
from dependencies import get_actor_id, get_retention_service
from domain.lifecycle.models import ActionRequest, ActionType, DocumentCategory, ValidityStatus
from .schemas import (
    ActionResultResponse,
    DeleteRequest,
    DocumentResponse,
    ExtendRequest,
    IssueResponse,
    LegalHoldRequest,
    PolicyCreate,
    PolicyResponse,
    PolicyUpdate,
    ScanQueued,
    ScanReport,
    SeedResult,
    ValidityAssessmentResponse,
    ValidityReport,
    ValidityRuleUpdate,
)
from .service import RetentionService

router = APIRouter(prefix="/retention", tags=["Retention"])


# =============================================================================
# POLICIES
# =============================================================================

@router.get("/policies", response_model=List[PolicyResponse])
def list_policies(
    include_inactive: bool = Query(True, description="Include deactivated policies"),
    service: RetentionService = Depends(get_retention_service),
) -> List[PolicyResponse]:
    return [
        PolicyResponse.from_domain(p)
        for p in service.policies.list_policies(include_inactive=include_inactive)
    ]


@router.post("/policies", response_model=PolicyResponse, status_code=status.HTTP_201_CREATED)
def create_policy(
    data: PolicyCreate,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> PolicyResponse:
    """Create a retention policy (audited as INSERT on retention_policy)."""
    policy = service.policies.create_policy(actor_id=actor_id, **data.model_dump())
    return PolicyResponse.from_domain(policy)


@router.post("/policies/seed-defaults", response_model=SeedResult)
def seed_default_policies(
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> SeedResult:
    """Install default policies and validity windows for categories that have none."""
    return SeedResult(**service.policies.seed_defaults(actor_id=actor_id))


@router.get("/policies/{policy_id}", response_model=PolicyResponse)
def get_policy(
    policy_id: str,
    service: RetentionService = Depends(get_retention_service),
) -> PolicyResponse:
    return PolicyResponse.from_domain(service.policies.get_policy(policy_id))


@router.patch("/policies/{policy_id}", response_model=PolicyResponse)
def update_policy(
    policy_id: str,
    data: PolicyUpdate,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> PolicyResponse:
    """Partially update a policy; the merged result must stay valid."""
    policy = service.policies.update_policy(
        policy_id,
        data.model_dump(exclude_unset=True),
        actor_id=actor_id,
    )
    return PolicyResponse.from_domain(policy)


@router.post("/policies/{policy_id}/toggle", response_model=PolicyResponse)
def toggle_policy(
    policy_id: str,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> PolicyResponse:
    """Flip a policy between active and inactive."""
    current = service.policies.get_policy(policy_id)
    policy = service.policies.set_active(policy_id, not current.is_active, actor_id=actor_id)
    return PolicyResponse.from_domain(policy)


@router.get("/validity-rules")
def list_validity_rules(service: RetentionService = Depends(get_retention_service)) -> dict:
    """Validity window in days per category (categories not listed never expire)."""
    return service.policies.validity_table().as_dict()


@router.put("/validity-rules/{category}")
def set_validity_rule(
    category: str,
    data: ValidityRuleUpdate,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> dict:
    return service.policies.set_validity_window(category, data.validity_days, actor_id=actor_id).as_dict()


# =============================================================================
# SCANS
# =============================================================================

@router.post("/scan", response_model=ScanReport)
def run_scan(
    category: Optional[DocumentCategory] = Query(None, description="Restrict the scan to one category"),
    service: RetentionService = Depends(get_retention_service),
) -> ScanReport:
    """Run a scan now and return the worklist. Scans never change documents."""
    return ScanReport.from_result(service.run_scan(category=category))


@router.post("/scan/async", response_model=ScanQueued, status_code=status.HTTP_202_ACCEPTED)
def queue_scan(
    category: Optional[DocumentCategory] = Query(None),
) -> ScanQueued:
    """Queue a scan on the Celery workers."""
    from .tasks import lifecycle_scan_task

    task = lifecycle_scan_task.delay(category=category.value if category else None)
    return ScanQueued(task_id=task.id)


# =============================================================================
# ACTIONS
# =============================================================================

def _apply(service: RetentionService, request: ActionRequest) -> ActionResultResponse:
    result = service.apply_action(request)
    if not result.success:
        raise result.error
    return ActionResultResponse.from_domain(result)


@router.post("/documents/{document_id}/archive", response_model=ActionResultResponse)
def archive_document(
    document_id: str,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ActionResultResponse:
    return _apply(service, ActionRequest(document_id, ActionType.ARCHIVE, actor_id=actor_id))


@router.post("/documents/{document_id}/delete", response_model=ActionResultResponse)
def delete_document(
    document_id: str,
    data: Optional[DeleteRequest] = None,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ActionResultResponse:
    """Delete an archived document. Irreversible."""
    confirmed = data.confirmed if data else False
    return _apply(
        service,
        ActionRequest(document_id, ActionType.DELETE, actor_id=actor_id, confirmed=confirmed),
    )


@router.post("/documents/{document_id}/extend", response_model=ActionResultResponse)
def extend_retention(
    document_id: str,
    data: Optional[ExtendRequest] = None,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ActionResultResponse:
    days = (data.days if data else None) or settings.DEFAULT_EXTENSION_DAYS
    return _apply(
        service,
        ActionRequest(document_id, ActionType.EXTEND_RETENTION, actor_id=actor_id, days=days),
    )


@router.put("/documents/{document_id}/legal-hold", response_model=DocumentResponse)
def set_legal_hold(
    document_id: str,
    data: LegalHoldRequest,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> DocumentResponse:
    document = service.set_legal_hold(document_id, data.legal_hold, actor_id=actor_id, reason=data.reason)
    return DocumentResponse.from_domain(document)


# =============================================================================
# VALIDITY
# =============================================================================

@router.get("/validity", response_model=ValidityReport)
def list_validity(
    status_filter: Optional[ValidityStatus] = Query(None, alias="status"),
    category: Optional[DocumentCategory] = Query(None),
    service: RetentionService = Depends(get_retention_service),
) -> ValidityReport:
    report = service.assess_validity(status=status_filter, category=category)
    return ValidityReport(
        summary=report["summary"],
        assessments=[ValidityAssessmentResponse.from_domain(a) for a in report["assessments"]],
        errors=[IssueResponse(document_id=i.document_id, message=i.message) for i in report["errors"]],
    )


@router.get("/validity/summary")
def validity_summary(service: RetentionService = Depends(get_retention_service)) -> dict:
    return service.assess_validity()["summary"]


@router.post("/documents/{document_id}/renew", response_model=ValidityAssessmentResponse)
def renew_document(
    document_id: str,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ValidityAssessmentResponse:
    """Mark a document renewed: received today, validity restarts."""
    return ValidityAssessmentResponse.from_domain(service.renew_document(document_id, actor_id=actor_id))


@router.post("/documents/{document_id}/renewal-reminder", response_model=ValidityAssessmentResponse)
def send_renewal_reminder(
    document_id: str,
    service: RetentionService = Depends(get_retention_service),
    actor_id: Optional[str] = Depends(get_actor_id),
) -> ValidityAssessmentResponse:
    return ValidityAssessmentResponse.from_domain(service.request_renewal(document_id, actor_id=actor_id))
