"""
Audit Log Module for Invoice Scan Core.

Append-only, bounded trail of create/update/delete operations on
stored records.
"""

from .audit_entry import (
    Actor,
    AuditAction,
    AuditFilter,
    AuditLogEntry,
    TargetType,
    detect_changed_fields,
)
from .audit_log import AUDIT_LOG_CAPACITY, AuditLog

__all__ = [
    'AUDIT_LOG_CAPACITY',
    'AuditLog',
    'AuditLogEntry',
    'AuditFilter',
    'AuditAction',
    'TargetType',
    'Actor',
    'detect_changed_fields',
]
