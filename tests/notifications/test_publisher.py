"""Tests for status change emails and the email publisher."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from tracksync.models.notification import StatusChangeEvent
from tracksync.models.tracking import ShipmentRecord, TrackingEvent, TrackingStatus
from tracksync.notifications.publisher import (
    EmailEventPublisher,
    SmtpMailer,
    build_status_email,
)


@pytest.fixture
def status_event(sample_record: ShipmentRecord, out_for_delivery_event: TrackingEvent) -> StatusChangeEvent:
    return StatusChangeEvent.from_record(
        sample_record,
        TrackingStatus.OUT_FOR_DELIVERY,
        [out_for_delivery_event, *sample_record.events],
    )


class TestBuildStatusEmail:
    def test_headers(self, status_event: StatusChangeEvent):
        message = build_status_email(status_event, "rastreio@loja.com.br")

        assert message["To"] == "maria@example.com"
        assert message["From"] == "rastreio@loja.com.br"
        assert "AA123456789BR" in message["Subject"]

    def test_body_contains_status_unit_and_products(self, status_event: StatusChangeEvent):
        body = build_status_email(status_event, "rastreio@loja.com.br").get_content()

        assert "Olá, Maria Souza!" in body
        assert TrackingStatus.OUT_FOR_DELIVERY.value in body
        assert "Avenida Paulista, 1000" in body
        assert "CEP: 01310-100" in body
        assert "- Caneca Azul" in body


class TestEmailEventPublisher:
    def test_sends_email(self, status_event: StatusChangeEvent):
        mailer = MagicMock()
        publisher = EmailEventPublisher(mailer=mailer, sender="rastreio@loja.com.br")

        publisher.publish(status_event)

        mailer.send.assert_called_once()
        assert mailer.send.call_args.args[0]["To"] == "maria@example.com"

    def test_mailer_failure_is_swallowed_and_logged(self, status_event: StatusChangeEvent, caplog):
        mailer = MagicMock()
        mailer.send.side_effect = smtplib.SMTPServerDisconnected("gone")
        publisher = EmailEventPublisher(mailer=mailer, sender="rastreio@loja.com.br")

        publisher.publish(status_event)

        assert "Failed to send status change email" in caplog.text


class TestSmtpMailer:
    @patch("tracksync.notifications.publisher.smtplib.SMTP")
    def test_logs_in_and_sends(self, mock_smtp: MagicMock, status_event: StatusChangeEvent):
        smtp = mock_smtp.return_value.__enter__.return_value
        mailer = SmtpMailer(host="smtp.test", port=587, user="u", password="p")
        message = build_status_email(status_event, "rastreio@loja.com.br")

        mailer.send(message)

        mock_smtp.assert_called_once_with("smtp.test", 587, timeout=30)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("u", "p")
        smtp.send_message.assert_called_once_with(message)

    @patch("tracksync.notifications.publisher.smtplib.SMTP")
    def test_skips_login_without_credentials(self, mock_smtp: MagicMock, status_event: StatusChangeEvent):
        smtp = mock_smtp.return_value.__enter__.return_value
        mailer = SmtpMailer(host="smtp.test", port=25, user=None, password=None)

        mailer.send(build_status_email(status_event, "rastreio@loja.com.br"))

        smtp.login.assert_not_called()
