"""
pytest configuration and fixtures.

Loads environment variables from .env file for all tests and provides
sample tracking records and events.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

from tracksync.models.tracking import (
    DeliveryChannel,
    Product,
    ShipmentRecord,
    TrackingEvent,
    TrackingStatus,
    UnitAddress,
)

BASE_TIME = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


def pytest_configure(config):
    """Load .env file before running tests"""
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"

    if env_file.exists():
        load_dotenv(env_file)


def make_event(
    description: str = TrackingStatus.IN_TRANSIT.value,
    hours: int = 0,
    location: str = "Curitiba/PR",
    **kwargs,
) -> TrackingEvent:
    """Build a tracking event BASE_TIME + hours."""
    return TrackingEvent(
        description=description,
        status=description,
        occurred_at=BASE_TIME + timedelta(hours=hours),
        location=location,
        **kwargs,
    )


@pytest.fixture
def transit_event() -> TrackingEvent:
    return make_event(
        TrackingStatus.IN_TRANSIT.value,
        hours=0,
        unit_type="Unidade de Tratamento",
        origin_unit="Unidade de Tratamento, CURITIBA - PR",
        destination_unit="Unidade de Tratamento, SAO PAULO - SP",
    )


@pytest.fixture
def out_for_delivery_event() -> TrackingEvent:
    return make_event(
        TrackingStatus.OUT_FOR_DELIVERY.value,
        hours=20,
        location="São Paulo/SP",
        unit_type="Unidade de Distribuição",
        origin_unit="Unidade de Distribuição, SAO PAULO - SP",
        unit_address=UnitAddress(
            postal_code="01310-100",
            street="Avenida Paulista",
            number="1000",
            district="Bela Vista",
            city="SAO PAULO",
            state="SP",
        ),
    )


@pytest.fixture
def sample_record(transit_event: TrackingEvent) -> ShipmentRecord:
    """In-transit home delivery record with one event."""
    return ShipmentRecord(
        id="6f1c2b7e-3c1e-4f57-9a8e-0b8c1d2e3f40",
        order_id=1042,
        customer_name="Maria Souza",
        customer_email="maria@example.com",
        tracking_code="AA123456789BR",
        status=TrackingStatus.IN_TRANSIT,
        delivery_channel=DeliveryChannel.DELIVERY,
        products=[Product(id="p-1", name="Caneca Azul", quantity=2)],
        events=[transit_event],
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
