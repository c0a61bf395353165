"""
Audit Trail API Endpoints

Read-only endpoints for reporting and administration tooling:
- Entity history
- User history and activity summary
- Date range, failed operation, action and module listings
- System activity statistics
"""
import logging
from datetime import datetime, timezone
from typing import Annotated, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from raas.core.database import get_db
from raas.models.audit_log import AuditAction
from raas.repositories.audit_log_repository import PageParams
from raas.schemas.audit import (
    AuditLogEntry,
    AuditLogListResponse,
    SystemActivityStatistic,
    UserActivitySummary,
)
from raas.services.audit_service import AuditService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_audit_service(db: Annotated[AsyncSession, Depends(get_db)]) -> AuditService:
    return AuditService(db)


def get_page_params(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(50, ge=1, le=100, description="Results per page"),
) -> PageParams:
    return PageParams(page=page, page_size=page_size)


AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]
PageDep = Annotated[PageParams, Depends(get_page_params)]


def _as_utc(value: datetime) -> datetime:
    # Naive query parameters are interpreted as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@router.get("/entity/{entity_name}/{entity_id}", response_model=List[AuditLogEntry])
async def get_entity_audit_history(
    entity_name: str,
    entity_id: int,
    service: AuditServiceDep,
):
    """Get the full audit history of one entity instance, newest first."""
    logger.debug(f"Getting audit history for entity {entity_name}:{entity_id}")
    return await service.get_entity_audit_history(entity_name, entity_id)


@router.get("/user/{username}", response_model=AuditLogListResponse)
async def get_user_audit_history(
    username: str,
    service: AuditServiceDep,
    page: PageDep,
):
    """Get a page of one user's audit records, newest first."""
    logger.debug(f"Getting audit history for user: {username}")
    return await service.get_user_audit_history(username, page)


@router.get("/user/{username}/summary", response_model=UserActivitySummary)
async def get_user_activity_summary(
    username: str,
    service: AuditServiceDep,
    days: int = Query(30, ge=1, le=3650, description="Lookback window in days"),
):
    """
    Get a user's activity summary.

    Returns the total number of operations in the window and the count per action.
    """
    logger.debug(f"Getting activity summary for user {username} over {days} days")
    return await service.get_user_activity_summary(username, days)


@router.get("/date-range", response_model=AuditLogListResponse)
async def get_audit_logs_by_date_range(
    service: AuditServiceDep,
    page: PageDep,
    start_date: datetime = Query(..., description="Range start (inclusive)"),
    end_date: datetime = Query(..., description="Range end (inclusive)"),
):
    """Get a page of audit records with a timestamp inside [start_date, end_date]."""
    start_date = _as_utc(start_date)
    end_date = _as_utc(end_date)

    if start_date > end_date:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_DATE_RANGE",
                "message": "start_date must not be after end_date",
            }
        )

    logger.debug(f"Getting audit logs between {start_date} and {end_date}")
    return await service.get_audit_logs_by_date_range(start_date, end_date, page)


@router.get("/failed", response_model=AuditLogListResponse)
async def get_failed_operations(
    service: AuditServiceDep,
    page: PageDep,
):
    """Get a page of failed operations, newest first."""
    logger.debug("Getting failed operations")
    return await service.get_failed_operations(page)


@router.get("/action/{action}", response_model=AuditLogListResponse)
async def get_audit_logs_by_action(
    action: AuditAction,
    service: AuditServiceDep,
    page: PageDep,
):
    """Get a page of audit records for one action, newest first."""
    return await service.get_audit_logs_by_action(action, page)


@router.get("/module/{module}", response_model=AuditLogListResponse)
async def get_audit_logs_by_module(
    module: str,
    service: AuditServiceDep,
    page: PageDep,
):
    """Get a page of audit records for one functional module, newest first."""
    return await service.get_audit_logs_by_module(module, page)


@router.get("/statistics", response_model=List[SystemActivityStatistic])
async def get_system_activity_statistics(
    service: AuditServiceDep,
    days: int = Query(30, ge=1, le=3650, description="Lookback window in days"),
):
    """Get operation counts per entity type and action over the last N days."""
    return await service.get_system_activity_statistics(days)
