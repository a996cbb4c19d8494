"""
Tracking event comparison.

Carrier responses do not keep order or object identity between polls, so
events are compared by normalized content.
"""

from datetime import datetime, timezone
from typing import Sequence

from tracksync.models.tracking import TrackingEvent


def _normalize_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.isoformat()


def _clean(value: str | None) -> str:
    return (value or "").strip()


def event_signature(event: TrackingEvent) -> str:
    """
    Build a deterministic signature for an event.

    Args:
        event: Tracking event

    Returns:
        Pipe-separated normalized fields
    """
    return "|".join(
        [
            _clean(event.description),
            _normalize_timestamp(event.occurred_at),
            _clean(event.location),
            _clean(event.detail),
            _clean(event.unit_type),
            _clean(event.origin_unit),
            _clean(event.destination_unit),
        ]
    )


def has_new_events(
    old_events: Sequence[TrackingEvent], new_events: Sequence[TrackingEvent]
) -> bool:
    """
    Check whether the fresh event list carries information the stored one lacks.

    Args:
        old_events: Events currently stored
        new_events: Events just returned by the carrier

    Returns:
        True if lengths differ or any new event signature is missing from the old set
    """
    if len(old_events) != len(new_events):
        return True

    if not old_events:
        return False

    old_signatures = {event_signature(e) for e in old_events}
    return any(event_signature(e) not in old_signatures for e in new_events)
