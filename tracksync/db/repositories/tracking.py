"""
Tracking repository for database operations.

Handles shipment tracking records with JSONB events and products.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Table, select, update

from tracksync.db.repositories.base import (
    BaseRepository,
    jsonb_to_models,
    models_to_jsonb,
)
from tracksync.db.tables import trackings
from tracksync.models.tracking import (
    TERMINAL_STATUSES,
    DeliveryChannel,
    Product,
    ShipmentRecord,
    TrackingCategory,
    TrackingEvent,
    TrackingStatus,
)


class TrackingNotFoundError(LookupError):
    """No tracking record with the given tracking code."""

    def __init__(self, tracking_code: str):
        super().__init__(f"Tracking not found: {tracking_code}")
        self.tracking_code = tracking_code


class TrackingRepository(BaseRepository[ShipmentRecord]):
    """Repository for shipment tracking records."""

    @property
    def table(self) -> Table:
        return trackings

    def _row_to_model(self, row: Any) -> ShipmentRecord:
        """Convert database row to ShipmentRecord model."""
        return ShipmentRecord(
            id=str(row.id),
            order_id=row.order_id,
            customer_name=row.customer_name,
            customer_email=row.customer_email,
            tracking_code=row.tracking_code,
            status=TrackingStatus(row.current_status),
            category=TrackingCategory(row.category) if row.category else TrackingCategory.PAC,
            delivery_channel=(
                DeliveryChannel(row.delivery_channel)
                if row.delivery_channel
                else DeliveryChannel.DELIVERY
            ),
            products=jsonb_to_models(row.products, Product),
            events=jsonb_to_models(row.events, TrackingEvent),
            expected_delivery=row.dt_expected,
            sender=row.sender,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def get_by_tracking_code(self, tracking_code: str) -> ShipmentRecord | None:
        """
        Get a record by its Correios tracking code.

        Args:
            tracking_code: Correios tracking code

        Returns:
            ShipmentRecord or None
        """
        stmt = select(self.table).where(
            self.table.c.tracking_code == tracking_code.upper()
        )
        result = self.session.execute(stmt)
        row = result.fetchone()

        if row is None:
            return None

        return self._row_to_model(row)

    def find_pending(self) -> list[ShipmentRecord]:
        """
        Get records that still need polling.

        Pending means any status outside the terminal set (delivered,
        cancelled, returned). Lookup errors and not-found records stay pending
        so they are retried on the next pass.

        Returns:
            Pending records, most recently updated first
        """
        terminal = [status.value for status in TERMINAL_STATUSES]
        stmt = (
            select(self.table)
            .where(self.table.c.tracking_code.is_not(None))
            .where(self.table.c.current_status.not_in(terminal))
            .order_by(self.table.c.updated_at.desc())
        )

        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def update_status(
        self,
        tracking_code: str,
        status: TrackingStatus,
        events: list[TrackingEvent],
        expected_delivery: datetime | None = None,
    ) -> ShipmentRecord:
        """
        Replace status and events of a record.

        Args:
            tracking_code: Correios tracking code
            status: New status
            events: Full event list, most recent first
            expected_delivery: Expected delivery date; kept unchanged when None

        Returns:
            Updated ShipmentRecord

        Raises:
            TrackingNotFoundError: No record with this tracking code
        """
        update_fields = {
            "current_status": status.value,
            "events": models_to_jsonb(events),
            "updated_at": datetime.now(timezone.utc),
        }

        if expected_delivery is not None:
            update_fields["dt_expected"] = expected_delivery

        stmt = (
            update(self.table)
            .where(self.table.c.tracking_code == tracking_code.upper())
            .values(**update_fields)
            .returning(self.table)
        )
        result = self.session.execute(stmt)
        row = result.fetchone()

        if row is None:
            raise TrackingNotFoundError(tracking_code)

        return self._row_to_model(row)
