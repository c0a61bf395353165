"""
Audit Query Service

Read-side access to the audit trail:
- Entity history (full, newest first)
- User history, date range, failed operations, action and module listings (paginated)
- User activity summary and system activity statistics (recomputed per call)

All operations are read-only; records are written only by the AuditRecorder.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from raas.models.audit_log import AuditAction, AuditStatus
from raas.repositories.audit_log_repository import (
    AuditLogPageResult,
    AuditLogRepository,
    PageParams,
)
from raas.schemas.audit import (
    AuditLogEntry,
    AuditLogListResponse,
    SystemActivityStatistic,
    UserActivitySummary,
)

logger = logging.getLogger(__name__)


class AuditService:
    """Query service over committed audit records."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = AuditLogRepository(db)

    @staticmethod
    def _to_response(result: AuditLogPageResult) -> AuditLogListResponse:
        return AuditLogListResponse(
            entries=[AuditLogEntry.model_validate(entry) for entry in result.entries],
            total_count=result.total_count,
            page=result.page,
            page_size=result.page_size,
        )

    @staticmethod
    def _since(days: int) -> datetime:
        return datetime.now(timezone.utc) - timedelta(days=days)

    async def get_entity_audit_history(self, entity_name: str, entity_id: int) -> list[AuditLogEntry]:
        """All records for one entity instance, newest first."""
        entries = await self.repository.find_by_entity(entity_name, entity_id)
        return [AuditLogEntry.model_validate(entry) for entry in entries]

    async def get_user_audit_history(self, username: str, page: PageParams) -> AuditLogListResponse:
        result = await self.repository.find_by_username(username, page)
        return self._to_response(result)

    async def get_audit_logs_by_date_range(
        self,
        start_date: datetime,
        end_date: datetime,
        page: PageParams,
    ) -> AuditLogListResponse:
        """Records with start_date <= timestamp <= end_date, newest first."""
        result = await self.repository.find_by_timestamp_between(start_date, end_date, page)
        return self._to_response(result)

    async def get_failed_operations(self, page: PageParams) -> AuditLogListResponse:
        result = await self.repository.find_by_status(AuditStatus.FAILED, page)
        return self._to_response(result)

    async def get_audit_logs_by_action(self, action: AuditAction, page: PageParams) -> AuditLogListResponse:
        result = await self.repository.find_by_action(action, page)
        return self._to_response(result)

    async def get_audit_logs_by_module(self, module: str, page: PageParams) -> AuditLogListResponse:
        result = await self.repository.find_by_module(module, page)
        return self._to_response(result)

    async def get_user_activity_summary(self, username: str, days: int) -> UserActivitySummary:
        """
        Count a user's operations over the last ``days`` days.

        The total is the sum of the per-action breakdown, both taken from a
        single grouped query.
        """
        since = self._since(days)
        rows = await self.repository.get_user_activity_summary(username, since)
        breakdown = {AuditAction(action): count for action, count in rows}

        logger.debug(f"Activity summary for {username} over {days} days: {breakdown}")

        return UserActivitySummary(
            username=username,
            period_days=days,
            total_operations=sum(breakdown.values()),
            activity_breakdown=breakdown,
        )

    async def get_system_activity_statistics(self, days: int) -> list[SystemActivityStatistic]:
        """Operation counts per (entity_name, action) over the last ``days`` days."""
        rows = await self.repository.get_system_activity_statistics(self._since(days))
        return [
            SystemActivityStatistic(entity_name=entity_name, action=AuditAction(action), count=count)
            for entity_name, action, count in rows
        ]
