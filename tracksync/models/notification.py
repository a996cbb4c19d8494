from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from tracksync.models.tracking import (
    DeliveryChannel,
    ShipmentRecord,
    TrackingEvent,
    TrackingStatus,
)


class StatusChangeEvent(BaseModel):
    """
    Payload published when a shipment receives new tracking information.

    Unit details come from the most recent event so any email template can
    show where the parcel is (or where to pick it up).
    """

    tracking_id: str = Field(description="Shipment record ID")
    tracking_code: str = Field(description="Correios tracking code")
    customer_name: str = Field(description="Recipient name")
    customer_email: str = Field(description="Recipient email")
    products: list[str] = Field(default_factory=list, description="Product names")
    previous_status: TrackingStatus = Field(description="Status before the update")
    new_status: TrackingStatus = Field(description="Status after the update")
    delivery_channel: DeliveryChannel = Field(description="Delivery channel")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the change was detected",
    )
    detail: Optional[str] = Field(default=None, description="Latest event detail")
    origin_unit: Optional[str] = Field(default=None, description="Latest origin unit")
    destination_unit: Optional[str] = Field(
        default=None, description="Latest destination unit"
    )
    unit_address: Optional[str] = Field(
        default=None, description="Formatted address of the latest unit"
    )
    unit_postal_code: Optional[str] = Field(
        default=None, description="Postal code of the latest unit"
    )

    @classmethod
    def from_record(
        cls,
        record: ShipmentRecord,
        new_status: TrackingStatus,
        new_events: list[TrackingEvent] | None = None,
    ) -> "StatusChangeEvent":
        """
        Build the event from the record as it was before the update.

        Args:
            record: Stored shipment record (previous state)
            new_status: Status reported by the carrier
            new_events: Events reported by the carrier; falls back to the stored ones

        Returns:
            StatusChangeEvent ready to publish
        """
        events = new_events if new_events is not None else record.events
        latest = events[0] if events else None

        unit_address = None
        unit_postal_code = None
        if latest is not None and latest.unit_address is not None:
            unit_address = latest.unit_address.format_lines() or None
            unit_postal_code = latest.unit_address.postal_code

        products = [p.name for p in record.products if p.name]

        return cls(
            tracking_id=record.id,
            tracking_code=record.tracking_code,
            customer_name=record.customer_name,
            customer_email=record.customer_email,
            products=products or ["N/A"],
            previous_status=record.status,
            new_status=new_status,
            delivery_channel=record.delivery_channel,
            detail=latest.detail if latest else None,
            origin_unit=latest.origin_unit if latest else None,
            destination_unit=latest.destination_unit if latest else None,
            unit_address=unit_address,
            unit_postal_code=unit_postal_code,
        )
