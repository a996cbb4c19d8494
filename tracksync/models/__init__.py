"""
Tracksync data models.

This package contains all Pydantic models for the tracking reconciliation service.
"""

# Notification models
from tracksync.models.notification import StatusChangeEvent

# Task models
from tracksync.models.task import ReconciliationReport, RunWindow, TrackingRefreshTask

# Tracking models
from tracksync.models.tracking import (
    SYNTHETIC_STATUSES,
    TERMINAL_STATUSES,
    DeliveryChannel,
    Product,
    ShipmentRecord,
    TrackingCategory,
    TrackingEvent,
    TrackingResult,
    TrackingStatus,
    UnitAddress,
    is_valid_tracking_code,
)

__all__ = [
    # Tracking models
    "SYNTHETIC_STATUSES",
    "TERMINAL_STATUSES",
    "DeliveryChannel",
    "Product",
    "ShipmentRecord",
    "TrackingCategory",
    "TrackingEvent",
    "TrackingResult",
    "TrackingStatus",
    "UnitAddress",
    "is_valid_tracking_code",
    # Notification models
    "StatusChangeEvent",
    # Task models
    "ReconciliationReport",
    "RunWindow",
    "TrackingRefreshTask",
]
