import re
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

TRACKING_CODE_PATTERN = re.compile(r"^[A-Z]{2}\d{9}[A-Z]{2}$")


class TrackingStatus(StrEnum):
    """Tracking status as reported by Correios"""

    # Initial
    LABEL_ISSUED = "Etiqueta emitida"
    LABEL_CANCELLED = "Etiqueta cancelada pelo emissor"
    LABEL_EXPIRED = "Etiqueta expirada"
    COURIER_LEFT_FOR_PICKUP = "Carteiro saiu para coleta do objeto"
    COLLECTED = "Objeto coletado"
    POSTED = "Objeto postado"
    POSTED_AFTER_CUTOFF = "Objeto postado após o horário limite da unidade"

    # In transit
    IN_TRANSIT = "Objeto em transferência - por favor aguarde"
    ROUTE_CORRECTION = "Objeto em correção de rota"
    NOT_YET_ARRIVED_AT_UNIT = "Objeto ainda não chegou à unidade"

    # Out for delivery
    OUT_FOR_DELIVERY = "Objeto saiu para entrega ao destinatário"
    OUT_FOR_DELIVERY_TO_SENDER = "Objeto saiu para entrega ao remetente"

    # Pickup
    AWAITING_PICKUP = "Objeto aguardando retirada no endereço indicado"
    FORWARDED_FOR_PICKUP = "Objeto encaminhado para retirada no endereço indicado"
    REDIRECTED_TO_UNIT = (
        "Direcionado para entrega em unidade dos Correios a pedido do cliente"
    )

    # Not delivered
    NOT_DELIVERED = "Objeto não entregue"
    NOT_DELIVERED_WRONG_ADDRESS = "Objeto não entregue - endereço incorreto"
    NOT_DELIVERED_INSUFFICIENT_ADDRESS = "Objeto não entregue - endereço insuficiente"
    NOT_DELIVERED_NO_ONE_HOME = "Objeto não entregue - carteiro não atendido"
    NOT_DELIVERED_PICKUP_EXPIRED = "Objeto não entregue - prazo de retirada encerrado"
    DELIVERY_ATTEMPT_FAILED = "Tentativa de entrega não efetuada"

    # Informational
    ADDRESS_INCONSISTENCY = "Inconsistências no endereçamento do objeto"
    DISREGARD_PREVIOUS = "Favor desconsiderar a informação anterior"
    DELIVERY_SUSPENSION_REQUESTED = (
        "Solicitação de suspensão de entrega ao destinatário"
    )

    # Cancellation and return
    DELIVERY_RUN_CANCELLED = "Saída para entrega cancelada"
    CANCELLED = "Cancelado"
    RETURNED = "Devolvido"
    RETURN_REQUESTED_BY_SENDER = (
        "Objeto será devolvido por solicitação do contratante/remetente"
    )

    # Delivered
    DELIVERED_TO_RECIPIENT = "Objeto entregue ao destinatário"
    DELIVERED_TO_SENDER = "Objeto entregue ao remetente"
    DELIVERED_TO_SMART_LOCKER = "Objeto entregue na Caixa de Correios Inteligente"

    # Synthetic, produced by this service
    LOOKUP_ERROR = "Erro na consulta"
    NOT_FOUND = "Objeto não encontrado"


# Statuses after which polling is not expected to change the outcome
TERMINAL_STATUSES: frozenset[TrackingStatus] = frozenset(
    {
        TrackingStatus.DELIVERED_TO_RECIPIENT,
        TrackingStatus.DELIVERED_TO_SENDER,
        TrackingStatus.DELIVERED_TO_SMART_LOCKER,
        TrackingStatus.LABEL_CANCELLED,
        TrackingStatus.LABEL_EXPIRED,
        TrackingStatus.CANCELLED,
        TrackingStatus.RETURNED,
    }
)

# Produced by this service when a lookup yields no carrier events; their
# event timestamps are the lookup time, not a carrier event time
SYNTHETIC_STATUSES: frozenset[TrackingStatus] = frozenset(
    {TrackingStatus.LOOKUP_ERROR, TrackingStatus.NOT_FOUND}
)


class DeliveryChannel(StrEnum):
    """How the customer receives the parcel"""

    DELIVERY = "delivery"  # Home delivery
    PICKUP_IN_POINT = "pickup-in-point"  # Customer collects at a pickup point


class TrackingCategory(StrEnum):
    """Correios service category"""

    SEDEX = "sedex"  # Express
    PAC = "pac"  # Economy


def is_valid_tracking_code(value: str | None) -> bool:
    """Check the Correios format: 2 letters + 9 digits + 2 letters (AA123456789BR)."""
    if not value or not isinstance(value, str):
        return False
    return bool(TRACKING_CODE_PATTERN.match(value.upper()))


class UnitAddress(BaseModel):
    """Postal address of a Correios unit"""

    postal_code: Optional[str] = Field(default=None, description="CEP")
    street: Optional[str] = Field(default=None, description="Street (logradouro)")
    number: Optional[str] = Field(default=None, description="Street number")
    district: Optional[str] = Field(default=None, description="District (bairro)")
    city: Optional[str] = Field(default=None, description="City")
    state: Optional[str] = Field(default=None, description="State code (UF)")

    model_config = ConfigDict(frozen=True)

    def format_lines(self) -> str:
        """Format as a multi-line address, skipping missing parts."""
        if self.street and self.number:
            street_line = f"{self.street}, {self.number}"
        else:
            street_line = self.street

        if self.city and self.state:
            city_line = f"{self.city} - {self.state}"
        else:
            city_line = self.city or self.state

        return "\n".join(part for part in (street_line, self.district, city_line) if part)


class TrackingEvent(BaseModel):
    """Single tracking event reported by the carrier"""

    description: str = Field(description="Event description")
    status: str = Field(description="Event status text (copy of the description)")
    occurred_at: datetime = Field(description="When the event happened")
    location: str = Field(description="Where the event happened, e.g. 'Curitiba/PR'")
    detail: Optional[str] = Field(default=None, description="Additional detail")
    unit_type: Optional[str] = Field(
        default=None, description="Unit type, e.g. 'Unidade de Tratamento'"
    )
    origin_unit: Optional[str] = Field(
        default=None, description="Origin unit, e.g. 'Unidade de Tratamento, CURITIBA - PR'"
    )
    destination_unit: Optional[str] = Field(
        default=None, description="Destination unit for transfers"
    )
    unit_address: Optional[UnitAddress] = Field(
        default=None, description="Full address of the unit when available"
    )

    model_config = ConfigDict(frozen=True)


class Product(BaseModel):
    """Product shipped in a parcel"""

    id: str = Field(description="Product identifier")
    name: str = Field(description="Product name")
    quantity: int = Field(default=1, description="Quantity")
    price: Optional[Decimal] = Field(default=None, description="Unit price")


class ShipmentRecord(BaseModel):
    """
    Tracked shipment, keyed by its Correios tracking code.

    Events are kept most-recent-first, exactly as the carrier returns them.
    """

    id: str = Field(description="Internal record identifier (UUID)")
    order_id: Optional[int] = Field(default=None, description="Sales order number")
    customer_name: str = Field(description="Recipient name")
    customer_email: str = Field(description="Recipient email for notifications")
    tracking_code: str = Field(description="Correios tracking code")
    status: TrackingStatus = Field(
        default=TrackingStatus.LABEL_ISSUED, description="Current status"
    )
    category: TrackingCategory = Field(
        default=TrackingCategory.PAC, description="Correios service category"
    )
    delivery_channel: DeliveryChannel = Field(
        default=DeliveryChannel.DELIVERY, description="Delivery channel"
    )
    products: list[Product] = Field(default_factory=list, description="Products")
    events: list[TrackingEvent] = Field(
        default_factory=list, description="Tracking events, most recent first"
    )
    expected_delivery: Optional[datetime] = Field(
        default=None, description="Expected delivery date reported by the carrier"
    )
    sender: Optional[str] = Field(default=None, description="Sender name")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )

    @field_validator("tracking_code")
    @classmethod
    def _validate_tracking_code(cls, value: str) -> str:
        if not is_valid_tracking_code(value):
            raise ValueError(
                "Invalid tracking code: expected 2 letters, 9 digits and 2 letters"
            )
        return value.upper()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "6f1c2b7e-3c1e-4f57-9a8e-0b8c1d2e3f40",
                "order_id": 1042,
                "customer_name": "Maria Souza",
                "customer_email": "maria@example.com",
                "tracking_code": "AA123456789BR",
                "status": "Objeto em transferência - por favor aguarde",
                "category": "sedex",
                "delivery_channel": "delivery",
                "events": [
                    {
                        "description": "Objeto em transferência - por favor aguarde",
                        "status": "Objeto em transferência - por favor aguarde",
                        "occurred_at": "2026-01-15T10:30:00-03:00",
                        "location": "Curitiba/PR",
                        "origin_unit": "Unidade de Tratamento, CURITIBA - PR",
                        "destination_unit": "Unidade de Tratamento, SAO PAULO - SP",
                    }
                ],
            }
        }
    )


class TrackingResult(BaseModel):
    """Normalized result of a carrier lookup"""

    status: TrackingStatus = Field(description="Current status")
    events: list[TrackingEvent] = Field(
        default_factory=list, description="Tracking events, most recent first"
    )
    expected_delivery: Optional[datetime] = Field(
        default=None, description="Expected delivery date"
    )
