"""
Structured Logging Service

Provides structured logging for audit subsystem events:
- Audit entry dropped (persistence or validation failure)
- Audit payload serialization failure

Each log entry includes:
- event name
- severity (INFO/WARN/ERROR)
- entity_name / entity_id of the audited subject (when known)
- action (when known)

These events are the secondary failure signal of the best-effort audit
recorder: a dropped entry never reaches the audit_log table, so the log
stream is the only place it is visible.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Any
from enum import Enum


class LogSeverity(str, Enum):
    """Log severity levels."""
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class StructuredLogger:
    """
    Structured logging service for audit events.

    Logs are emitted in JSON format suitable for:
    - Application logs
    - Log-based alerting on dropped audit entries
    """

    def __init__(self, logger_name: str = "audit"):
        self.logger = logging.getLogger(logger_name)
        self._ensure_handler()

    def _ensure_handler(self):
        """Ensure logger has a proper handler configured."""
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _serialize(self, value: Any) -> Any:
        """Serialize enum values to their plain value."""
        if isinstance(value, Enum):
            return value.value
        return value

    def _create_log_entry(
        self,
        event: str,
        severity: LogSeverity,
        entity_name: Optional[str] = None,
        entity_id: Optional[int] = None,
        action: Optional[Any] = None,
        message: Optional[str] = None,
        **extra
    ) -> dict:
        """Create a structured log entry."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            "severity": severity.value,
        }

        if entity_name:
            entry["entity_name"] = entity_name
        if entity_id is not None:
            entry["entity_id"] = entity_id
        if action is not None:
            entry["action"] = self._serialize(action)
        if message:
            entry["message"] = message

        for key, value in extra.items():
            entry[key] = self._serialize(value)

        return entry

    def _log(self, entry: dict, severity: LogSeverity):
        """Emit the log entry at the appropriate level."""
        log_str = json.dumps(entry, default=str)
        if severity == LogSeverity.ERROR:
            self.logger.error(log_str)
        elif severity == LogSeverity.WARN:
            self.logger.warning(log_str)
        else:
            self.logger.info(log_str)

    def audit_dropped(
        self,
        entity_name: Optional[str],
        entity_id: Optional[int],
        action: Optional[Any],
        error: str,
        username: Optional[str] = None,
    ):
        """Log an audit entry that could not be persisted."""
        entry = self._create_log_entry(
            event="audit.dropped",
            severity=LogSeverity.ERROR,
            entity_name=entity_name,
            entity_id=entity_id,
            action=action,
            message="Audit entry dropped",
            username=username,
            error=error,
        )
        self._log(entry, LogSeverity.ERROR)

    def serialization_failed(
        self,
        field: str,
        value_type: str,
        error: str,
    ):
        """Log an audit payload field that could not be serialized."""
        entry = self._create_log_entry(
            event="audit.serialization_failed",
            severity=LogSeverity.WARN,
            message=f"Audit payload field '{field}' omitted",
            field=field,
            value_type=value_type,
            error=error,
        )
        self._log(entry, LogSeverity.WARN)


# Global logger instance
audit_event_logger = StructuredLogger()
