"""
Status change notification publishing.

Publishers are a fail-safe boundary: a failed email is logged and dropped,
it never interrupts the reconciliation job.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

from tracksync import config
from tracksync.models.notification import StatusChangeEvent

logger = logging.getLogger(__name__)


class EventPublisher(ABC):
    """Receives status change events."""

    @abstractmethod
    def publish(self, event: StatusChangeEvent) -> None:
        """Publish an event. Implementations must not raise."""
        pass


class Mailer(ABC):
    """Outbound email transport."""

    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        pass


class SmtpMailer(Mailer):
    """Sends email through an SMTP server with STARTTLS."""

    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        user: str | None = config.SMTP_USER,
        password: str | None = config.SMTP_PASSWORD,
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.user and self.password:
                smtp.login(self.user, self.password)
            smtp.send_message(message)


def build_status_email(event: StatusChangeEvent, sender: str) -> EmailMessage:
    """
    Build the plain-text status update email.

    Args:
        event: Status change event
        sender: From address

    Returns:
        EmailMessage addressed to the customer
    """
    lines = [
        f"Olá, {event.customer_name}!",
        "",
        f"Seu pedido com código de rastreamento {event.tracking_code} foi atualizado.",
        "",
        f"Status: {event.new_status.value}",
    ]
    if event.detail:
        lines.append(f"Detalhe: {event.detail}")
    if event.origin_unit:
        lines.append(f"Origem: {event.origin_unit}")
    if event.destination_unit:
        lines.append(f"Destino: {event.destination_unit}")
    if event.unit_address:
        lines.extend(["", "Endereço da unidade:", event.unit_address])
        if event.unit_postal_code:
            lines.append(f"CEP: {event.unit_postal_code}")

    lines.extend(["", "Produtos:"])
    lines.extend(f"- {name}" for name in event.products)

    message = EmailMessage()
    message["Subject"] = f"Atualização do pedido {event.tracking_code}: {event.new_status.value}"
    message["From"] = sender
    message["To"] = event.customer_email
    message.set_content("\n".join(lines))
    return message


class EmailEventPublisher(EventPublisher):
    """Emails the customer about a status change."""

    def __init__(self, mailer: Mailer | None = None, sender: str = config.SMTP_SENDER):
        self.mailer = mailer or SmtpMailer()
        self.sender = sender

    def publish(self, event: StatusChangeEvent) -> None:
        try:
            self.mailer.send(build_status_email(event, self.sender))
            logger.info(
                "Status email sent for %s: %s",
                event.tracking_code,
                event.new_status.value,
            )
        except Exception:
            logger.exception(
                "Failed to send status change email",
                extra={
                    "json_fields": {
                        "tracking_id": event.tracking_id,
                        "tracking_code": event.tracking_code,
                        "delivery_channel": event.delivery_channel.value,
                    }
                },
            )
