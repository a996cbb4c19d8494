"""
Scheduled task endpoints.

Cloud Scheduler sends HTTP POST requests to these endpoints on the baseline
and peak windows.
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request

from tracksync.models.task import ReconciliationReport, TrackingRefreshTask

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tracking-refresh", response_model=ReconciliationReport)
async def tracking_refresh_task(
    task: TrackingRefreshTask, request: Request
) -> ReconciliationReport:
    """
    Run one tracking reconciliation pass.

    Args:
        task: Tracking refresh task payload

    Returns:
        ReconciliationReport: Counts for the pass

    Flow:
        1. Fetch pending tracking records
        2. Look up each one at Correios
        3. Save changed records and notify customers
        4. Report counts

    The pass runs in a worker thread; overlapping calls are independent.
    """
    job = getattr(request.app.state, "reconciliation_job", None)
    if job is None:
        raise HTTPException(status_code=503, detail="Reconciliation job not configured")

    logger.info("Processing tracking refresh task: window=%s", task.window.value)

    report = await asyncio.to_thread(job.run, task.window)

    if report.aborted:
        logger.error("Tracking refresh aborted: %s", report.error)
    else:
        logger.info(
            "Tracking refresh completed: %d updated, %d skipped, %d failed",
            report.updated,
            report.temporarily_skipped,
            report.permanently_failed,
        )

    return report
