# Models module
from raas.models.audit_log import AuditLog, AuditAction, AuditStatus

__all__ = [
    "AuditLog",
    "AuditAction",
    "AuditStatus",
]
