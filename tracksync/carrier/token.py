"""
Bearer token cache for the Correios API.

Tokens are obtained from the postage-card auth endpoint and cached until
they expire. Concurrent callers hitting a cache miss share one upstream
request.
"""

import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from typing import Callable

import requests
from pydantic import BaseModel, Field

from tracksync import config
from tracksync.config import CorreiosCredentials
from tracksync.utils.retry import ClassifiedError, ErrorType

logger = logging.getLogger(__name__)

AUTH_PATH = "/token/v1/autentica/cartaopostagem"


class CredentialError(ClassifiedError):
    """Token could not be obtained. Always PERMANENT."""

    def __init__(self, message: str, original_error: BaseException | None = None):
        super().__init__(message, ErrorType.PERMANENT, original_error=original_error)


class CachedCredential(BaseModel):
    """Bearer token with its absolute expiry"""

    token: str = Field(description="Bearer token")
    expires_at: datetime = Field(description="Instant after which the token is unusable")

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialBroker:
    """
    Hands out a valid Correios bearer token.

    At most one acquisition is in flight at any time: the first caller on a
    cache miss performs the request, every other caller waits for its result.

    Usage:
        broker = CredentialBroker(CorreiosCredentials.from_env())
        token = broker.get_valid_token()
    """

    def __init__(
        self,
        credentials: CorreiosCredentials,
        session: requests.Session | None = None,
        base_url: str = config.CORREIOS_API_BASE_URL,
        token_ttl: timedelta = timedelta(seconds=config.CORREIOS_TOKEN_TTL_SECONDS),
        timeout: float = config.CORREIOS_REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.credentials = credentials
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.token_ttl = token_ttl
        self.timeout = timeout
        self._clock = clock

        self._lock = threading.Lock()
        self._cached: CachedCredential | None = None
        self._inflight: Future[str] | None = None

    def get_valid_token(self) -> str:
        """
        Get a cached token or acquire a new one.

        Returns:
            Bearer token

        Raises:
            CredentialError: Missing configuration or rejected authentication
        """
        with self._lock:
            cached = self._cached
            if cached is not None and cached.is_valid(self._clock()):
                return cached.token

            pending = self._inflight
            is_owner = pending is None
            if is_owner:
                pending = Future()
                self._inflight = pending

        if not is_owner:
            return pending.result()

        try:
            credential = self._acquire()
        except BaseException as e:
            with self._lock:
                self._inflight = None
            pending.set_exception(e)
            raise

        with self._lock:
            self._cached = credential
            self._inflight = None
        pending.set_result(credential.token)
        return credential.token

    def invalidate(self):
        """Drop the cached token so the next call re-authenticates."""
        with self._lock:
            self._cached = None

    def _acquire(self) -> CachedCredential:
        """Call the auth endpoint. Raises CredentialError on any failure."""
        creds = self.credentials
        if not creds.is_complete:
            logger.error(
                "Correios credentials not configured",
                extra={
                    "json_fields": {
                        "has_api_key": bool(creds.api_key),
                        "has_username": bool(creds.username),
                        "has_postal_card": bool(creds.postal_card),
                    }
                },
            )
            raise CredentialError(
                "Correios credentials not configured. "
                "Check CORREIOS_API_KEY, CORREIOS_USERNAME and CORREIOS_POSTAL_CARD"
            )

        issued_at = self._clock()
        try:
            response = self.session.post(
                f"{self.base_url}{AUTH_PATH}",
                auth=(creds.username, creds.api_key),
                json={"numero": creds.postal_card},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Correios token request failed: %s", e)
            raise CredentialError(f"Token request failed: {e}", original_error=e) from e

        if not response.ok:
            logger.error(
                "Correios rejected token request",
                extra={
                    "json_fields": {
                        "status": response.status_code,
                        "reason": response.reason,
                        "body": response.text,
                    }
                },
            )
            raise CredentialError(
                f"Token request failed: {response.status_code} - {response.reason}. "
                f"Details: {response.text}"
            )

        try:
            token = response.json().get("token")
        except ValueError as e:
            raise CredentialError("Invalid token response body", original_error=e) from e

        if not token:
            raise CredentialError("Token missing from Correios response")

        logger.info("New Correios token acquired")
        return CachedCredential(token=token, expires_at=issued_at + self.token_ttl)
