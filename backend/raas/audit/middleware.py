"""
Audit Middleware

This middleware captures request context and stores it in a context variable
for use by the audit logging system.
"""
import logging
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from raas.audit.context import AuditContext, set_audit_context, clear_audit_context
from raas.core.config import settings

logger = logging.getLogger(__name__)


def _peer_address(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def is_trusted_proxy(request: Request) -> bool:
    """Whether the socket peer is a configured proxy allowed to set audit headers."""
    peer = _peer_address(request)
    return peer is not None and peer in settings.audit_trusted_proxies_set


def get_client_ip_address(request: Request) -> Optional[str]:
    """
    Resolve the client IP address of a request.

    Behind a trusted proxy the first entry of X-Forwarded-For is used, then
    X-Real-IP. Otherwise, and when neither header is present, the socket
    peer address is returned.
    """
    if is_trusted_proxy(request):
        forwarded_for = request.headers.get("x-forwarded-for", "")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first

        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    return _peer_address(request)


class AuditMiddleware(BaseHTTPMiddleware):
    """
    Middleware to capture request context for audit logging.

    This middleware extracts:
    - request_id (generated UUID)
    - ip_address (proxy headers from trusted peers, then request.client.host)
    - user_agent (User-Agent header)
    - session_id (AUDIT_SESSION_HEADER, trusted peers only)
    - username (AUDIT_USER_HEADER, set by the authenticating gateway; trusted peers only)

    The context is stored in a context variable and cleared after request processing.
    """

    async def dispatch(self, request: Request, call_next):
        username = None
        session_id = None
        if is_trusted_proxy(request):
            username = request.headers.get(settings.AUDIT_USER_HEADER) or None
            session_id = request.headers.get(settings.AUDIT_SESSION_HEADER) or None
        elif request.headers.get(settings.AUDIT_USER_HEADER):
            logger.warning(
                f"Ignoring {settings.AUDIT_USER_HEADER} header from untrusted peer {_peer_address(request)}"
            )

        context = AuditContext(
            request_id=uuid4(),
            username=username,
            ip_address=get_client_ip_address(request),
            user_agent=request.headers.get("user-agent"),
            session_id=session_id,
        )
        set_audit_context(context)
        logger.debug(f"Audit context set for request {context.request_id} user={username}")

        try:
            response = await call_next(request)
            return response
        finally:
            # Always clear context after request
            clear_audit_context()
