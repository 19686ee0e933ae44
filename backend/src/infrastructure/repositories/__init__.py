"""SQLAlchemy repositories."""

from .audit_log_repository import SqlAuditLogStore
from .document_repository import SqlDocumentStore

__all__ = ["SqlAuditLogStore", "SqlDocumentStore"]
