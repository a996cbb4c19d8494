"""
Correios event description to TrackingStatus classification.

Rules are evaluated top to bottom and the first substring match wins, so
more specific phrases must come before the generic ones they contain
(e.g. "Objeto não entregue - prazo de retirada encerrado" before
"Objeto não entregue").
"""

import logging
from typing import NamedTuple

from tracksync.models.tracking import TrackingStatus

logger = logging.getLogger(__name__)

DEFAULT_STATUS = TrackingStatus.IN_TRANSIT


class StatusRule(NamedTuple):
    pattern: str
    status: TrackingStatus


STATUS_RULES: tuple[StatusRule, ...] = (
    # Delivered
    StatusRule("Objeto entregue ao destinatário", TrackingStatus.DELIVERED_TO_RECIPIENT),
    StatusRule("Objeto entregue ao remetente", TrackingStatus.DELIVERED_TO_SENDER),
    StatusRule(
        "Objeto entregue na Caixa de Correios Inteligente",
        TrackingStatus.DELIVERED_TO_SMART_LOCKER,
    ),
    # Not delivered, specific reasons first
    StatusRule(
        "Objeto não entregue - prazo de retirada encerrado",
        TrackingStatus.NOT_DELIVERED_PICKUP_EXPIRED,
    ),
    StatusRule(
        "Objeto não entregue - carteiro não atendido",
        TrackingStatus.NOT_DELIVERED_NO_ONE_HOME,
    ),
    StatusRule(
        "Objeto não entregue - endereço insuficiente",
        TrackingStatus.NOT_DELIVERED_INSUFFICIENT_ADDRESS,
    ),
    StatusRule(
        "Objeto não entregue - endereço incorreto",
        TrackingStatus.NOT_DELIVERED_WRONG_ADDRESS,
    ),
    StatusRule("Tentativa de entrega não efetuada", TrackingStatus.DELIVERY_ATTEMPT_FAILED),
    StatusRule("Objeto não entregue", TrackingStatus.NOT_DELIVERED),
    # Out for delivery
    StatusRule("Objeto saiu para entrega ao destinatário", TrackingStatus.OUT_FOR_DELIVERY),
    StatusRule(
        "Objeto saiu para entrega ao remetente",
        TrackingStatus.OUT_FOR_DELIVERY_TO_SENDER,
    ),
    StatusRule("Saída para entrega cancelada", TrackingStatus.DELIVERY_RUN_CANCELLED),
    # Pickup
    StatusRule(
        "Objeto encaminhado para retirada no endereço indicado",
        TrackingStatus.FORWARDED_FOR_PICKUP,
    ),
    StatusRule(
        "Objeto aguardando retirada no endereço indicado",
        TrackingStatus.AWAITING_PICKUP,
    ),
    StatusRule(
        "Direcionado para entrega em unidade dos Correios a pedido do cliente",
        TrackingStatus.REDIRECTED_TO_UNIT,
    ),
    # Transit: route correction and not-yet-arrived before the generic transfer
    StatusRule("Objeto em correção de rota", TrackingStatus.ROUTE_CORRECTION),
    StatusRule("Objeto ainda não chegou à unidade", TrackingStatus.NOT_YET_ARRIVED_AT_UNIT),
    StatusRule("Objeto em transferência", TrackingStatus.IN_TRANSIT),
    # Initial
    StatusRule(
        "Objeto postado após o horário limite da unidade",
        TrackingStatus.POSTED_AFTER_CUTOFF,
    ),
    StatusRule("Objeto postado", TrackingStatus.POSTED),
    StatusRule("Objeto coletado", TrackingStatus.COLLECTED),
    StatusRule(
        "Carteiro saiu para coleta do objeto", TrackingStatus.COURIER_LEFT_FOR_PICKUP
    ),
    StatusRule("Etiqueta cancelada pelo emissor", TrackingStatus.LABEL_CANCELLED),
    StatusRule("Etiqueta expirada", TrackingStatus.LABEL_EXPIRED),
    StatusRule("Etiqueta emitida", TrackingStatus.LABEL_ISSUED),
    # Informational
    StatusRule(
        "Inconsistências no endereçamento do objeto",
        TrackingStatus.ADDRESS_INCONSISTENCY,
    ),
    StatusRule(
        "Favor desconsiderar a informação anterior", TrackingStatus.DISREGARD_PREVIOUS
    ),
    StatusRule(
        "Solicitação de suspensão de entrega ao destinatário",
        TrackingStatus.DELIVERY_SUSPENSION_REQUESTED,
    ),
    # Returns and cancellation
    StatusRule(
        "Objeto será devolvido por solicitação do contratante/remetente",
        TrackingStatus.RETURN_REQUESTED_BY_SENDER,
    ),
    StatusRule("Cancelado", TrackingStatus.CANCELLED),
    StatusRule("Devolvido", TrackingStatus.RETURNED),
)


def match_status(description: str) -> TrackingStatus | None:
    """Return the status of the first matching rule, or None."""
    for rule in STATUS_RULES:
        if rule.pattern in description:
            return rule.status
    return None


def classify_status(description: str | None, tracking_code: str | None = None) -> TrackingStatus:
    """
    Classify the most recent event description.

    Unknown descriptions are logged for investigation and treated as in transit.

    Args:
        description: Description of the most recent carrier event
        tracking_code: Only used for the diagnostic log

    Returns:
        Matching TrackingStatus, or IN_TRANSIT when nothing matches
    """
    if not description:
        return DEFAULT_STATUS

    status = match_status(description)
    if status is None:
        logger.warning(
            "Unknown Correios status: %r",
            description,
            extra={"json_fields": {"tracking_code": tracking_code}},
        )
        return DEFAULT_STATUS

    return status
