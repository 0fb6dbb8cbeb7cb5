"""Integration tests for scheduled-job routes."""

import asyncio
import time
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from storefront.app import build_app
from storefront.carrier import register_carrier
from storefront.carrier.fake_adapter import FakeCarrier
from storefront.config import reset_settings
from storefront.order.lookup import get_order
from storefront.order.order import OrderStatus


class TestCronGuard:
    def test_missing_token_is_401(self, client):
        assert client.post("/jobs/tracking-refresh").status_code == 401

    def test_admin_token_is_not_a_cron_token(self, client, admin_headers):
        assert client.post("/jobs/tracking-refresh", headers=admin_headers).status_code == 401

    def test_jobs_are_disabled_without_a_configured_token(self, client, cron_headers, monkeypatch):
        monkeypatch.delenv("CRON_SECRET_TOKEN")
        reset_settings()
        assert client.post("/jobs/tracking-refresh", headers=cron_headers).status_code == 403


class TestTrackingRefreshJob:
    def test_refresh_polls_pull_carriers(self, client, cron_headers, polled_carrier, shipped_order):
        order_id = shipped_order("ref-1", carrier_code="pollex", tracking_code="PX-1")
        polled_carrier.schedule_event("PX-1", "delivered")

        response = client.post("/jobs/tracking-refresh", headers=cron_headers)

        assert response.status_code == 200
        assert response.json() == {"checked": 1, "recorded": 1, "failed": 0, "skipped": 0, "timed_out": False}
        assert get_order(order_id).current_status == OrderStatus.DELIVERED


class SlowPollCarrier(FakeCarrier):
    def poll_tracking(self, order_reference, tracking_code=None):
        time.sleep(1.0)
        return super().poll_tracking(order_reference, tracking_code)


class TestJobsRunOffTheEventLoop:
    @pytest.fixture()
    def anyio_backend(self):
        return "asyncio"

    @pytest.mark.anyio
    async def test_health_answers_while_refresh_polls(self, cron_headers, shipped_order):
        register_carrier(SlowPollCarrier(code="slowpoll", secret="slowpoll-secret", supports_push=False))
        shipped_order("ref-1", carrier_code="slowpoll", tracking_code="SP-1")

        transport = httpx.ASGITransport(app=build_app())
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
            job = asyncio.create_task(ac.post("/jobs/tracking-refresh", headers=cron_headers))
            await asyncio.sleep(0.2)
            started = time.monotonic()
            health = await ac.get("/health")
            latency = time.monotonic() - started
            refresh = await job

        assert health.status_code == 200
        assert latency < 0.5
        assert refresh.status_code == 200
        assert refresh.json()["checked"] == 1


class TestReconciliationJob:
    def test_defaults_to_previous_day(self, client, cron_headers, gateway):
        yesterday = datetime.now(UTC).date() - timedelta(days=1)
        gateway.record_settlement("old-ref", "5.00", "approved", settled_at=datetime.now(UTC) - timedelta(days=1))

        response = client.post("/jobs/reconciliation", headers=cron_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["records"][0]["kind"] == "missing_internally"
        assert body["records"][0]["window_start"] == yesterday.isoformat()

    @pytest.mark.parametrize("params", [{"start": "2026-01-01"}, {"end": "2026-01-01"}])
    def test_half_open_window_is_400(self, client, cron_headers, gateway, params):
        response = client.post("/jobs/reconciliation", params=params, headers=cron_headers)
        assert response.status_code == 400
