"""Observability module -- audit trail of vault events."""

from .audit_log import AuditEntry, VaultAuditLog

__all__ = [
    "AuditEntry",
    "VaultAuditLog",
]
