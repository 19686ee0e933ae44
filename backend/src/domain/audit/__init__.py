"""Audit trail domain module."""

from .models import AuditAction, AuditFilter, AuditRecord

__all__ = ["AuditAction", "AuditFilter", "AuditRecord"]
