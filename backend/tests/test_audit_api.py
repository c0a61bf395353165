"""
Tests for the Audit Trail API

Exercises the read-only /api/v1/audit endpoints and /health over HTTP.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from httpx import AsyncClient

from raas.models.audit_log import AuditAction, AuditStatus


NOW = datetime.now(timezone.utc)


@pytest.mark.asyncio
class TestAuditEndpoints:
    """Test suite for the audit query endpoints."""

    async def test_entity_history(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(
            entity_id=42, action=AuditAction.UPDATE, username="alice",
            ip_address="10.1.1.1", duration=250,
            timestamp=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        await audit_log_factory(
            entity_id=42, action=AuditAction.DELETE, status=AuditStatus.FAILED,
            username="bob", error_message="locked",
        )

        response = await async_client.get("/api/v1/audit/entity/Contract/42")

        assert response.status_code == 200
        data = response.json()
        assert [entry["action"] for entry in data] == ["DELETE", "UPDATE"]

        delete_entry, update_entry = data
        assert delete_entry["status"] == "FAILED"
        assert delete_entry["error_message"] == "locked"
        assert delete_entry["has_error"] is True
        assert delete_entry["risk_level"] == "HIGH"
        assert update_entry["user_display"] == "alice (10.1.1.1)"
        assert update_entry["formatted_duration"] == "250ms"
        assert update_entry["performance_category"] == "NORMAL"
        assert update_entry["operation_summary"] == "Updated contract (ID: 42)"
        assert update_entry["time_since"] == "5 minutes ago"

    async def test_entity_history_invalid_id(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/audit/entity/Contract/not-a-number")

        assert response.status_code == 422

    async def test_user_history_pagination(self, async_client: AsyncClient, audit_log_factory):
        for i in range(3):
            await audit_log_factory(entity_id=i, username="alice", timestamp=NOW - timedelta(hours=i))

        response = await async_client.get(
            "/api/v1/audit/user/alice", params={"page": 2, "page_size": 2}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 3
        assert data["page"] == 2
        assert data["page_size"] == 2
        assert [entry["entity_id"] for entry in data["entries"]] == [2]

    @pytest.mark.parametrize("params", [
        {"page": 0},
        {"page_size": 0},
        {"page_size": 101},
    ])
    async def test_invalid_pagination(self, async_client: AsyncClient, params):
        response = await async_client.get("/api/v1/audit/user/alice", params=params)

        assert response.status_code == 422

    async def test_user_activity_summary(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(username="alice", action=AuditAction.SUBMIT, timestamp=NOW - timedelta(days=1))
        await audit_log_factory(username="alice", action=AuditAction.SUBMIT, timestamp=NOW - timedelta(days=2))
        await audit_log_factory(username="alice", action=AuditAction.CANCEL, timestamp=NOW - timedelta(days=3))
        await audit_log_factory(username="alice", action=AuditAction.CANCEL, timestamp=NOW - timedelta(days=20))

        response = await async_client.get("/api/v1/audit/user/alice/summary", params={"days": 7})

        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "alice"
        assert data["period_days"] == 7
        assert data["total_operations"] == 3
        assert data["activity_breakdown"] == {"SUBMIT": 2, "CANCEL": 1}

    async def test_user_activity_summary_default_window(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/audit/user/nobody/summary")

        assert response.status_code == 200
        assert response.json()["period_days"] == 30
        assert response.json()["total_operations"] == 0

    async def test_user_activity_summary_invalid_days(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/audit/user/alice/summary", params={"days": 0})

        assert response.status_code == 422

    async def test_date_range(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(entity_id=1, timestamp=datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc))
        await audit_log_factory(entity_id=2, timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))

        response = await async_client.get(
            "/api/v1/audit/date-range",
            params={
                "start_date": "2026-02-01T00:00:00+00:00",
                "end_date": "2026-02-28T23:59:59+00:00",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 1
        assert data["entries"][0]["entity_id"] == 1

    async def test_date_range_naive_params_are_utc(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(entity_id=1, timestamp=datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc))

        response = await async_client.get(
            "/api/v1/audit/date-range",
            params={"start_date": "2026-02-01T12:00:00", "end_date": "2026-02-01T12:00:00"},
        )

        assert response.status_code == 200
        assert response.json()["total_count"] == 1

    async def test_date_range_start_after_end(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/audit/date-range",
            params={"start_date": "2026-03-01T00:00:00Z", "end_date": "2026-02-01T00:00:00Z"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_DATE_RANGE"

    async def test_date_range_missing_params(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/audit/date-range", params={"start_date": "2026-03-01T00:00:00Z"}
        )

        assert response.status_code == 422

    async def test_failed_operations(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(entity_id=1, status=AuditStatus.FAILED, error_message="timeout")
        await audit_log_factory(entity_id=2, status=AuditStatus.SUCCESS)
        await audit_log_factory(entity_id=3, status=AuditStatus.PARTIAL)

        response = await async_client.get("/api/v1/audit/failed")

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 1
        assert data["page"] == 1
        assert data["page_size"] == 50
        assert data["entries"][0]["entity_id"] == 1
        assert data["entries"][0]["status_description"] == "Failed"

    async def test_by_action(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(entity_id=1, action=AuditAction.REJECT)
        await audit_log_factory(entity_id=2, action=AuditAction.APPROVE)

        response = await async_client.get("/api/v1/audit/action/REJECT")

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 1
        assert data["entries"][0]["action"] == "REJECT"
        assert data["entries"][0]["is_critical_operation"] is True

    async def test_by_unknown_action(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/audit/action/FROBNICATE")

        assert response.status_code == 422

    async def test_by_module(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(entity_id=1, module="CONSULTATION", business_process="MARKET_CONSULTATION")
        await audit_log_factory(entity_id=2, module="CONTRACT")

        response = await async_client.get("/api/v1/audit/module/CONSULTATION")

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 1
        assert data["entries"][0]["module_process_display"] == "CONSULTATION / MARKET_CONSULTATION"

    async def test_statistics(self, async_client: AsyncClient, audit_log_factory):
        await audit_log_factory(entity_name="Contract", action=AuditAction.CREATE)
        await audit_log_factory(entity_name="Contract", action=AuditAction.CREATE)
        await audit_log_factory(entity_name="Approval", action=AuditAction.APPROVE)

        response = await async_client.get("/api/v1/audit/statistics", params={"days": 7})

        assert response.status_code == 200
        assert response.json() == [
            {"entity_name": "Approval", "action": "APPROVE", "count": 1},
            {"entity_name": "Contract", "action": "CREATE", "count": 2},
        ]


@pytest.mark.asyncio
class TestHealthEndpoint:
    """Test suite for the health check."""

    async def test_health_response_structure(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["components"]["database"]["status"] == "healthy"

    async def test_health_unhealthy_when_db_fails(self, async_client: AsyncClient):
        broken_engine = MagicMock()
        broken_engine.begin.side_effect = ConnectionError("database unreachable")

        with patch("raas.main.engine", broken_engine):
            response = await async_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["components"]["database"]["status"] == "unhealthy"
        assert "database unreachable" in data["components"]["database"]["message"]
