"""Rules for when a tracking change is worth telling the customer about."""

from tracksync.models.tracking import DeliveryChannel, TrackingStatus

# Informational or internal carrier messages that update the record but never
# reach the customer
SILENT_STATUSES: frozenset[TrackingStatus] = frozenset(
    {
        TrackingStatus.DISREGARD_PREVIOUS,
        TrackingStatus.RETURN_REQUESTED_BY_SENDER,
        TrackingStatus.LABEL_EXPIRED,
        TrackingStatus.DELIVERED_TO_SENDER,
        TrackingStatus.DELIVERY_SUSPENSION_REQUESTED,
        TrackingStatus.NOT_YET_ARRIVED_AT_UNIT,
        TrackingStatus.COURIER_LEFT_FOR_PICKUP,
    }
)


def should_notify(delivery_channel: DeliveryChannel, new_status: TrackingStatus) -> bool:
    """
    Decide whether a status change should produce a customer notification.

    Pickup-in-point customers never get automatic notifications.
    """
    if delivery_channel == DeliveryChannel.PICKUP_IN_POINT:
        return False
    return new_status not in SILENT_STATUSES
