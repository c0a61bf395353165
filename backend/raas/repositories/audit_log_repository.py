from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from raas.models.audit_log import AuditAction, AuditLog, AuditStatus


@dataclass(frozen=True)
class PageParams:
    """1-indexed page request, applied as LIMIT/OFFSET."""
    page: int = 1
    page_size: int = 50

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class AuditLogPageResult:
    entries: list[AuditLog]
    total_count: int
    page: int
    page_size: int


# Newest first; id breaks timestamp ties in insertion order
NEWEST_FIRST = (AuditLog.timestamp.desc(), AuditLog.id.desc())


class AuditLogRepository:
    """Read access to the append-only audit_log table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find_page(self, conditions: Sequence, page: PageParams) -> AuditLogPageResult:
        count_result = await self.db.execute(
            select(func.count(AuditLog.id)).where(*conditions)
        )
        total_count = count_result.scalar() or 0

        result = await self.db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(*NEWEST_FIRST)
            .limit(page.page_size)
            .offset(page.offset)
        )
        return AuditLogPageResult(
            entries=list(result.scalars().all()),
            total_count=total_count,
            page=page.page,
            page_size=page.page_size,
        )

    async def find_by_entity(self, entity_name: str, entity_id: int) -> list[AuditLog]:
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_name == entity_name)
            .where(AuditLog.entity_id == entity_id)
            .order_by(*NEWEST_FIRST)
        )
        return list(result.scalars().all())

    async def find_by_username(self, username: str, page: PageParams) -> AuditLogPageResult:
        return await self._find_page([AuditLog.username == username], page)

    async def find_by_action(self, action: AuditAction, page: PageParams) -> AuditLogPageResult:
        return await self._find_page([AuditLog.action == action], page)

    async def find_by_module(self, module: str, page: PageParams) -> AuditLogPageResult:
        return await self._find_page([AuditLog.module == module], page)

    async def find_by_status(self, status: AuditStatus, page: PageParams) -> AuditLogPageResult:
        return await self._find_page([AuditLog.status == status], page)

    async def find_by_timestamp_between(
        self,
        start: datetime,
        end: datetime,
        page: PageParams,
    ) -> AuditLogPageResult:
        """Records with start <= timestamp <= end."""
        return await self._find_page(
            [AuditLog.timestamp >= start, AuditLog.timestamp <= end],
            page,
        )

    async def get_user_activity_summary(
        self,
        username: str,
        since: datetime,
    ) -> list[tuple[AuditAction, int]]:
        """Count of a user's records per action since the given instant."""
        result = await self.db.execute(
            select(AuditLog.action, func.count(AuditLog.id))
            .where(AuditLog.username == username)
            .where(AuditLog.timestamp >= since)
            .group_by(AuditLog.action)
        )
        return [(row[0], row[1]) for row in result.all()]

    async def get_system_activity_statistics(
        self,
        since: datetime,
    ) -> list[tuple[str, AuditAction, int]]:
        """Count of records per (entity_name, action) since the given instant."""
        result = await self.db.execute(
            select(AuditLog.entity_name, AuditLog.action, func.count(AuditLog.id))
            .where(AuditLog.timestamp >= since)
            .group_by(AuditLog.entity_name, AuditLog.action)
            .order_by(AuditLog.entity_name, AuditLog.action)
        )
        return [(row[0], row[1], row[2]) for row in result.all()]
