"""
Request Context Module

This module provides a context variable to store request-scoped audit information
such as request_id, username, ip_address, user_agent and session_id.

Uses Python's contextvars to provide thread-safe, async-safe request context.
"""
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass
class AuditContext:
    """
    Request context for audit logging.

    This context is populated by AuditMiddleware and read by
    AuditEventBuilder.from_context() to fill the actor fields of an event.
    """
    request_id: UUID
    username: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None


# Context variable to store audit context per request
audit_context_var: ContextVar[Optional[AuditContext]] = ContextVar(
    "audit_context",
    default=None
)


def get_audit_context() -> Optional[AuditContext]:
    """
    Get the current audit context.

    Returns:
        The current AuditContext if set, None otherwise
    """
    return audit_context_var.get()


def set_audit_context(context: AuditContext) -> None:
    """
    Set the audit context for the current request.

    Args:
        context: The AuditContext to set
    """
    audit_context_var.set(context)


def clear_audit_context() -> None:
    """
    Clear the audit context.

    This is typically called at the end of request processing.
    """
    audit_context_var.set(None)
