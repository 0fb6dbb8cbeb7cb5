"""Scheduled-job routes, invoked by an external scheduler with the cron token."""

from datetime import UTC, date, datetime, timedelta

from fastapi import APIRouter, Depends

from storefront.api.dependencies import require_cron, run_blocking
from storefront.api.schemas import ReconciliationRunResponse, TrackingRefreshResponse
from storefront.api.views import reconciliation_list
from storefront.config import get_settings
from storefront.reconciliation.engine import run_reconciliation
from storefront.tracking.refresh import refresh_tracking

jobs_router = APIRouter(prefix="/jobs", tags=["jobs"], dependencies=[Depends(require_cron)])


@jobs_router.post("/tracking-refresh", response_model=TrackingRefreshResponse)
async def tracking_refresh() -> TrackingRefreshResponse:
    """Poll carriers without push webhooks for every shipped order."""
    summary = await run_blocking(refresh_tracking, get_settings().job_time_budget_seconds)
    return TrackingRefreshResponse(**summary.to_dict())


@jobs_router.post("/reconciliation", response_model=ReconciliationRunResponse)
async def scheduled_reconciliation(start: date | None = None, end: date | None = None) -> ReconciliationRunResponse:
    """Reconcile a window; the previous UTC day when none is given."""
    if start is None and end is None:
        start = end = datetime.now(UTC).date() - timedelta(days=1)
    run = await run_blocking(run_reconciliation, start, end)
    return ReconciliationRunResponse(**reconciliation_list(run.records).model_dump(), run_id=run.run_id)
