"""SQLAlchemy Models for DocLifecycle"""

from .base import Base, PortableJSONB, UTCDateTime
from .audit_log import AuditLog
from .retention_policy import RetentionPolicyModel
from .tracked_document import TrackedDocumentModel
from .validity_rule import ValidityRuleModel

__all__ = [
    "Base",
    "PortableJSONB",
    "UTCDateTime",
    "AuditLog",
    "RetentionPolicyModel",
    "TrackedDocumentModel",
    "ValidityRuleModel",
]
