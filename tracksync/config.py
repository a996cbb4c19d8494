"""
Runtime configuration for Tracksync.

Values are read from the environment (loaded from .env by the service entry
points). Defaults match the Correios SRO Rastro v1 production API.
"""

import os

from pydantic import BaseModel, Field

# Correios API
CORREIOS_API_BASE_URL = os.getenv(
    "CORREIOS_API_BASE_URL", "https://api.correios.com.br"
).rstrip("/")
CORREIOS_TOKEN_TTL_SECONDS = int(os.getenv("CORREIOS_TOKEN_TTL_SECONDS", "3600"))
CORREIOS_REQUEST_TIMEOUT_SECONDS = float(
    os.getenv("CORREIOS_REQUEST_TIMEOUT_SECONDS", "15")
)

# Retry policy for tracking lookups
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_INITIAL_DELAY_SECONDS = float(os.getenv("RETRY_INITIAL_DELAY_SECONDS", "1"))
RETRY_MAX_DELAY_SECONDS = float(os.getenv("RETRY_MAX_DELAY_SECONDS", "10"))
RETRY_BACKOFF_MULTIPLIER = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", "2"))

# Cross-record backoff in the reconciliation job
MAX_CONSECUTIVE_FAILURES = int(os.getenv("MAX_CONSECUTIVE_FAILURES", "3"))
FAILURE_WAIT_SECONDS = float(os.getenv("FAILURE_WAIT_SECONDS", "60"))
FAILURE_WAIT_MAX_MULTIPLIER = int(os.getenv("FAILURE_WAIT_MAX_MULTIPLIER", "5"))

# Outbound email
SMTP_HOST = os.getenv("MAIL_HOST", "localhost")
SMTP_PORT = int(os.getenv("MAIL_PORT", "587"))
SMTP_USER = os.getenv("MAIL_USER")
SMTP_PASSWORD = os.getenv("MAIL_PASS")
SMTP_SENDER = os.getenv("MAIL_FROM") or SMTP_USER or "rastreio@localhost"

# Cloud Scheduler windows (Monday to Saturday, no runs on Sundays).
# Peak minutes are interleaved with the baseline ones so the two never fire together.
SCHEDULE_TIME_ZONE = os.getenv("SCHEDULE_TIME_ZONE", "America/Sao_Paulo")
BASELINE_SCHEDULE = "*/15 5-22 * * 1-6"
PEAK_SCHEDULE = "7,22,37,52 15-17 * * 1-6"


class CorreiosCredentials(BaseModel):
    """Credentials used to obtain a bearer token from the Correios auth API."""

    api_key: str | None = Field(default=None, description="Correios API access code")
    username: str | None = Field(default=None, description="Correios portal username")
    postal_card: str | None = Field(
        default=None, description="Postage card number (cartão de postagem)"
    )

    @classmethod
    def from_env(cls) -> "CorreiosCredentials":
        return cls(
            api_key=os.getenv("CORREIOS_API_KEY"),
            username=os.getenv("CORREIOS_USERNAME"),
            postal_card=os.getenv("CORREIOS_POSTAL_CARD"),
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key and self.username and self.postal_card)
