"""
Audit Logger Service

This module provides the audit recorder: a fluent builder that assembles an
audit event and a recorder that commits it in its own session, independent of
the caller's transaction. Audit logging failures never break business logic.
"""
import dataclasses
import json
import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from raas.audit.context import get_audit_context
from raas.core.database import async_session_maker
from raas.models.audit_log import AuditAction, AuditLog, AuditStatus
from raas.services.logging import audit_event_logger

logger = logging.getLogger(__name__)


# Fields that must be set before an event can be built
REQUIRED_FIELDS = ("entity_name", "entity_id", "action", "status")

# Keys whose values are never written to the audit trail
SENSITIVE_KEYS = {
    # Authentication & Authorization
    "password",
    "hashed_password",
    "new_password",
    "token",
    "authorization",
    "refresh_token",
    "access_token",
    "session_token",
    "secret",
    "api_key",
    "private_key",
    "client_secret",
    # Document content (large blobs)
    "document_content",
    "file_content",
    "file_data",
    "binary_data",
}

# Keys that should be masked instead of removed
MASK_KEYS = {
    "iban",
    "bank_account",
}


def sanitize_value(value: Any) -> Any:
    """
    Sanitize a single value (recursive for nested structures).

    Args:
        value: The value to sanitize

    Returns:
        The sanitized value
    """
    if isinstance(value, dict):
        return sanitize_payload(value)
    elif isinstance(value, list):
        return [sanitize_value(item) for item in value]
    elif isinstance(value, str) and len(value) > 1000:
        # Truncate very long strings (likely document content)
        return f"{value[:100]}... [TRUNCATED {len(value)} chars]"
    else:
        return value


def sanitize_payload(payload: dict) -> dict:
    """
    Sanitize a payload dictionary by redacting or masking sensitive fields.

    This function:
    - Redacts keys like password, token, secret, etc.
    - Masks bank account values (shows only first 4 and last 4 chars)
    - Truncates large text fields
    - Works recursively for nested dictionaries and lists

    Args:
        payload: The payload dictionary to sanitize

    Returns:
        A sanitized copy of the payload
    """
    if not isinstance(payload, dict):
        return payload

    sanitized = {}

    for key, value in payload.items():
        key_lower = str(key).lower()

        if key_lower in SENSITIVE_KEYS:
            sanitized[key] = "**REDACTED**"
            continue

        if key_lower in MASK_KEYS:
            if isinstance(value, str) and len(value) > 8:
                sanitized[key] = f"{value[:4]}**MASKED**{value[-4:]}"
            else:
                sanitized[key] = "**MASKED**"
            continue

        sanitized[key] = sanitize_value(value)

    return sanitized


def _serialize_value(value: Any) -> Any:
    """
    Convert a value to a JSON-serializable format.

    Used as the ``default`` hook of json.dumps, so it is only called for
    objects the json module cannot handle natively.

    Raises:
        TypeError: If the value has no JSON representation
    """
    if isinstance(value, Enum):
        return value.value
    elif isinstance(value, UUID):
        return str(value)
    elif isinstance(value, Decimal):
        return float(value)
    elif isinstance(value, (datetime, date, time)):
        return value.isoformat()
    elif isinstance(value, bytes):
        return f"<binary data {len(value)} bytes>"
    elif isinstance(value, (set, frozenset, tuple)):
        return list(value)
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    elif hasattr(value, "model_dump"):
        # Pydantic models
        return value.model_dump(mode="json")

    # SQLAlchemy mapped instances: snapshot their column attributes
    try:
        insp = inspect(value)
    except NoInspectionAvailable:
        insp = None
    if insp is not None and hasattr(insp, "mapper"):
        return {
            attr.key: getattr(value, attr.key, None)
            for attr in insp.mapper.column_attrs
        }

    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialize_payload(value: Any) -> str:
    """
    Serialize a payload object to its stored JSON text form.

    The object is first reduced to plain JSON types so that dataclasses,
    pydantic models and mapped instances are sanitized like dicts.

    Raises:
        TypeError, ValueError: If the object cannot be serialized
    """
    plain = json.loads(json.dumps(value, default=_serialize_value))
    return json.dumps(sanitize_value(plain), ensure_ascii=False)


def parse_payload(payload: Optional[str]) -> dict:
    """
    Parse a stored JSON payload back into a string-keyed dict.

    Empty, absent, malformed and non-object payloads all yield an empty dict.
    """
    if not payload:
        return {}
    try:
        parsed = json.loads(payload)
    except (TypeError, ValueError):
        logger.debug("Could not parse audit payload, returning empty map")
        return {}
    return parsed if isinstance(parsed, dict) else {}


class AuditEventBuilder:
    """
    Fluent builder for audit events.

    Example:
        event = (
            AuditEventBuilder.create()
            .from_context()
            .entity_name("Contract")
            .entity_id(42)
            .action(AuditAction.UPDATE)
            .old_values(before)
            .new_values(after)
            .status(AuditStatus.SUCCESS)
        )
        await audit_recorder.log_audit_event(event)

    Payload setters serialize their argument immediately; a value that
    cannot be serialized is logged and the field is left unset. Sensitive
    keys are redacted before serialization.
    """

    def __init__(self):
        self._fields: dict[str, Any] = {}

    @classmethod
    def create(cls) -> "AuditEventBuilder":
        return cls()

    def get(self, name: str) -> Any:
        """Return the value set for a field, or None."""
        return self._fields.get(name)

    def _set(self, name: str, value: Any) -> "AuditEventBuilder":
        self._fields[name] = value
        return self

    def _set_payload(self, name: str, value: Any) -> "AuditEventBuilder":
        try:
            self._fields[name] = serialize_payload(value)
        except Exception as e:
            logger.warning(f"Failed to serialize audit {name}: {e}")
            audit_event_logger.serialization_failed(
                field=name,
                value_type=type(value).__name__,
                error=str(e),
            )
        return self

    def from_context(self) -> "AuditEventBuilder":
        """Fill the actor fields from the current request audit context."""
        context = get_audit_context()
        if context is None:
            return self
        self._fields["username"] = context.username
        self._fields["ip_address"] = context.ip_address
        self._fields["user_agent"] = context.user_agent
        self._fields["session_id"] = context.session_id
        return self

    def entity_name(self, entity_name: str) -> "AuditEventBuilder":
        return self._set("entity_name", entity_name)

    def entity_id(self, entity_id: int) -> "AuditEventBuilder":
        return self._set("entity_id", entity_id)

    def action(self, action: AuditAction) -> "AuditEventBuilder":
        return self._set("action", action)

    def username(self, username: Optional[str]) -> "AuditEventBuilder":
        return self._set("username", username)

    def ip_address(self, ip_address: Optional[str]) -> "AuditEventBuilder":
        return self._set("ip_address", ip_address)

    def user_agent(self, user_agent: Optional[str]) -> "AuditEventBuilder":
        return self._set("user_agent", user_agent)

    def session_id(self, session_id: Optional[str]) -> "AuditEventBuilder":
        return self._set("session_id", session_id)

    def method_name(self, method_name: Optional[str]) -> "AuditEventBuilder":
        return self._set("method_name", method_name)

    def old_values(self, old_values: Any) -> "AuditEventBuilder":
        return self._set_payload("old_values", old_values)

    def new_values(self, new_values: Any) -> "AuditEventBuilder":
        return self._set_payload("new_values", new_values)

    def parameters(self, parameters: Any) -> "AuditEventBuilder":
        return self._set_payload("parameters", parameters)

    def metadata(self, metadata: Any) -> "AuditEventBuilder":
        return self._set_payload("metadata_", metadata)

    def description(self, description: Optional[str]) -> "AuditEventBuilder":
        return self._set("description", description)

    def status(self, status: AuditStatus) -> "AuditEventBuilder":
        return self._set("status", status)

    def error_message(self, error_message: Optional[str]) -> "AuditEventBuilder":
        return self._set("error_message", error_message)

    def duration(self, duration: Optional[int]) -> "AuditEventBuilder":
        return self._set("duration", duration)

    def module(self, module: Optional[str]) -> "AuditEventBuilder":
        return self._set("module", module)

    def business_process(self, business_process: Optional[str]) -> "AuditEventBuilder":
        return self._set("business_process", business_process)

    def parent_audit_id(self, parent_audit_id: Optional[int]) -> "AuditEventBuilder":
        return self._set("parent_audit_id", parent_audit_id)

    def build(self) -> AuditLog:
        """
        Build an unsaved AuditLog.

        The timestamp is left unset; the recorder stamps it inside its own
        session, immediately before the insert.

        Raises:
            ValueError: If a required field is missing or action/status is
                not a known value
        """
        missing = [name for name in REQUIRED_FIELDS if self._fields.get(name) is None]
        if missing:
            raise ValueError(f"Audit event is missing required fields: {', '.join(missing)}")

        fields = dict(self._fields)
        fields["action"] = AuditAction(fields["action"])
        fields["status"] = AuditStatus(fields["status"])

        return AuditLog(**fields)


class AuditRecorder:
    """
    Records audit events in a session of their own.

    The recorder opens a fresh session from its session factory for every
    event and commits it immediately, so the entry survives a rollback of the
    caller's transaction. Every failure is caught and logged; nothing is
    raised or returned to the caller. The recorder keeps no state between
    calls and is safe to share across concurrent requests.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def log_audit_event(self, event: AuditEventBuilder) -> None:
        """
        Log an audit event to the audit_log table.

        Best-effort: validation and persistence errors are logged at error
        level and emitted as an ``audit.dropped`` structured event. The entry
        is not retried.

        Args:
            event: The populated AuditEventBuilder
        """
        try:
            audit_entry = event.build()

            async with self._session_factory() as session:
                audit_entry.timestamp = datetime.now(timezone.utc)
                session.add(audit_entry)
                await session.commit()

            logger.debug(
                f"Audit event saved: {audit_entry.action.value} {audit_entry.status.value} "
                f"for entity {audit_entry.entity_name}:{audit_entry.entity_id}"
            )

        except Exception as e:
            # Never let audit logging failures break business logic
            logger.error(
                f"Failed to save audit log for {event.get('entity_name')}:{event.get('entity_id')} "
                f"action={event.get('action')}: {e}",
                exc_info=True
            )
            audit_event_logger.audit_dropped(
                entity_name=event.get("entity_name"),
                entity_id=event.get("entity_id"),
                action=event.get("action"),
                error=str(e),
                username=event.get("username"),
            )


# Recorder bound to the application database
audit_recorder = AuditRecorder(async_session_maker)


async def log_audit_event(event: AuditEventBuilder) -> None:
    """Record an event with the application-wide recorder."""
    await audit_recorder.log_audit_event(event)
