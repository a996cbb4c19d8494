"""
Worker task payload and job report models.

Cloud Scheduler posts a TrackingRefreshTask to the worker service, which runs
one reconciliation pass and answers with its ReconciliationReport.
"""

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class RunWindow(StrEnum):
    """Which schedule triggered a reconciliation pass"""

    BASELINE = "baseline"  # Every 15 minutes across the operating day
    PEAK = "peak"  # Extra runs during the afternoon peak
    MANUAL = "manual"  # Operator or script


class TrackingRefreshTask(BaseModel):
    """Tracking refresh task payload"""

    window: RunWindow = Field(
        default=RunWindow.BASELINE, description="Schedule window that fired"
    )


class ReconciliationReport(BaseModel):
    """Counts for one reconciliation pass"""

    window: RunWindow = Field(description="Schedule window that fired")
    started_at: datetime = Field(description="When the pass started")
    finished_at: Optional[datetime] = Field(
        default=None, description="When the pass finished"
    )
    duration_seconds: float = Field(default=0.0, description="Wall-clock duration")
    attempted: int = Field(default=0, description="Pending records fetched")
    succeeded: int = Field(default=0, description="Records processed successfully")
    permanently_failed: int = Field(
        default=0, description="Records that failed with a non-temporary error"
    )
    temporarily_skipped: int = Field(
        default=0, description="Records skipped after temporary errors"
    )
    updated: int = Field(default=0, description="Records persisted with changes")
    notified: int = Field(default=0, description="Notifications published")
    aborted: bool = Field(
        default=False, description="True when the batch itself could not be processed"
    )
    error: Optional[str] = Field(default=None, description="Batch-level error message")
