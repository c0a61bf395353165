"""
Audit Log Schemas

Pydantic schemas for the audit trail query API. AuditLogEntry mirrors the
audit_log row and adds read-only presentation values derived from it.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, computed_field

from raas.audit.audit_logger import parse_payload
from raas.core.config import settings
from raas.models.audit_log import AuditAction, AuditStatus


ACTION_DESCRIPTIONS = {
    AuditAction.CREATE: "Created",
    AuditAction.UPDATE: "Updated",
    AuditAction.DELETE: "Deleted",
    AuditAction.READ: "Retrieved",
    AuditAction.APPROVE: "Approved",
    AuditAction.REJECT: "Rejected",
    AuditAction.SUBMIT: "Submitted",
    AuditAction.CANCEL: "Cancelled",
    AuditAction.ARCHIVE: "Archived",
    AuditAction.RESTORE: "Restored",
}

STATUS_DESCRIPTIONS = {
    AuditStatus.SUCCESS: "Successful",
    AuditStatus.FAILED: "Failed",
    AuditStatus.PARTIAL: "Partially Completed",
}


def format_duration(duration: Optional[int]) -> str:
    """Render a millisecond duration as 'Nms', 'N.NNs' or 'Xm Ys'."""
    if duration is None:
        return "N/A"
    if duration < 1000:
        return f"{duration}ms"
    if duration < 60000:
        # Truncated, not rounded, to hundredths
        return f"{duration // 10 / 100:.2f}s"
    minutes = duration // 60000
    seconds = (duration % 60000) // 1000
    return f"{minutes}m {seconds}s"


def format_time_since(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Render the age of a timestamp ('Just now', '5 minutes ago', '2 days ago')."""
    if timestamp.tzinfo is None:
        # Stored values are UTC
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    seconds = int((now - timestamp).total_seconds())

    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    if seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    days = seconds // 86400
    return f"{days} day{'s' if days > 1 else ''} ago"


class AuditLogEntry(BaseModel):
    """Schema for an audit log entry with derived display values."""
    id: int
    entity_name: str
    entity_id: int
    action: AuditAction
    username: Optional[str] = None
    timestamp: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    method_name: Optional[str] = None
    old_values: Optional[str] = None
    new_values: Optional[str] = None
    parameters: Optional[str] = None
    description: Optional[str] = None
    status: AuditStatus
    error_message: Optional[str] = None
    duration: Optional[int] = None
    session_id: Optional[str] = None
    module: Optional[str] = None
    business_process: Optional[str] = None
    parent_audit_id: Optional[int] = None
    metadata: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
    )

    class Config:
        from_attributes = True

    def _is_critical_entity(self) -> bool:
        return self.entity_name.lower() in settings.audit_critical_entities_set

    @computed_field
    @property
    def formatted_timestamp(self) -> str:
        return self.timestamp.strftime("%d/%m/%Y %H:%M:%S")

    @computed_field
    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    @computed_field
    @property
    def action_description(self) -> str:
        return ACTION_DESCRIPTIONS[self.action]

    @computed_field
    @property
    def status_description(self) -> str:
        return STATUS_DESCRIPTIONS[self.status]

    @computed_field
    @property
    def is_success(self) -> bool:
        return self.status == AuditStatus.SUCCESS

    @computed_field
    @property
    def is_critical_operation(self) -> bool:
        if self.action in (AuditAction.DELETE, AuditAction.APPROVE, AuditAction.REJECT):
            return True
        return self.action == AuditAction.UPDATE and self._is_critical_entity()

    @computed_field
    @property
    def risk_level(self) -> str:
        if (
            self.action in (AuditAction.DELETE, AuditAction.APPROVE)
            or (self.action == AuditAction.UPDATE and self._is_critical_entity())
        ):
            return "HIGH"
        if self.action == AuditAction.READ:
            return "LOW"
        return "MEDIUM"

    @computed_field
    @property
    def performance_category(self) -> str:
        if self.duration is None:
            return "UNKNOWN"
        if self.duration < 100:
            return "FAST"
        if self.duration < 1000:
            return "NORMAL"
        if self.duration < 5000:
            return "SLOW"
        return "VERY_SLOW"

    @computed_field
    @property
    def operation_summary(self) -> str:
        return f"{self.action_description} {self.entity_name.lower()} (ID: {self.entity_id})"

    @computed_field
    @property
    def user_display(self) -> str:
        if self.username is None:
            return "Anonymous"
        if self.ip_address:
            return f"{self.username} ({self.ip_address})"
        return self.username

    @computed_field
    @property
    def module_process_display(self) -> str:
        parts = [part for part in (self.module, self.business_process) if part]
        return " / ".join(parts) if parts else "N/A"

    @computed_field
    @property
    def has_changes(self) -> bool:
        return (
            self.old_values is not None
            and self.new_values is not None
            and self.old_values != self.new_values
        )

    @computed_field
    @property
    def has_error(self) -> bool:
        return self.status == AuditStatus.FAILED and bool(self.error_message)

    @computed_field
    @property
    def time_since(self) -> str:
        return format_time_since(self.timestamp)

    def old_values_as_map(self) -> dict:
        return parse_payload(self.old_values)

    def new_values_as_map(self) -> dict:
        return parse_payload(self.new_values)

    def parameters_as_map(self) -> dict:
        return parse_payload(self.parameters)

    def metadata_as_map(self) -> dict:
        return parse_payload(self.metadata)


class AuditLogListResponse(BaseModel):
    """Schema for a page of audit log entries."""
    entries: List[AuditLogEntry]
    total_count: int
    page: int
    page_size: int


class UserActivitySummary(BaseModel):
    """Activity of one user over the last period_days days."""
    username: str
    period_days: int
    total_operations: int
    activity_breakdown: Dict[AuditAction, int]


class SystemActivityStatistic(BaseModel):
    """Number of audited operations for one (entity_name, action) pair."""
    entity_name: str
    action: AuditAction
    count: int
