"""
Correios SRO Rastro v1 tracking client.

Looks up a tracking code, retries temporary failures with exponential
backoff and normalizes the carrier response into a TrackingResult.

Error handling:
- TEMPORARY failures that survive every retry are re-raised so the caller
  can skip the record without saving anything.
- PERMANENT failures (invalid code, not found, bad request) become a
  LOOKUP_ERROR result that can be stored and re-polled later.
- CredentialError is re-raised: without a token no record can be processed.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tracksync import config
from tracksync.carrier.status import classify_status
from tracksync.carrier.token import CredentialBroker, CredentialError
from tracksync.models.tracking import (
    TrackingEvent,
    TrackingResult,
    TrackingStatus,
    UnitAddress,
)
from tracksync.utils.retry import (
    AUTH_HTTP_STATUSES,
    ClassifiedError,
    RetryExecutor,
    RetryOptions,
    classify_http_error,
    classify_network_error,
)

logger = logging.getLogger(__name__)

TRACKING_PATH = "/srorastro/v1/objetos/{code}"
UNKNOWN_LOCATION = "Local não informado"


# =============================================================================
# Carrier response schema
# =============================================================================


class _CarrierModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CarrierAddress(_CarrierModel):
    cep: Optional[str] = None
    logradouro: Optional[str] = None
    numero: Optional[str] = None
    bairro: Optional[str] = None
    cidade: Optional[str] = None
    uf: Optional[str] = None

    def to_unit_address(self) -> UnitAddress:
        return UnitAddress(
            postal_code=self.cep,
            street=self.logradouro,
            number=self.numero,
            district=self.bairro,
            city=self.cidade,
            state=self.uf,
        )


class CarrierUnit(_CarrierModel):
    tipo: Optional[str] = None
    endereco: Optional[CarrierAddress] = None


class CarrierEvent(_CarrierModel):
    descricao: str
    dtHrCriado: datetime
    detalhe: Optional[str] = None
    unidade: Optional[CarrierUnit] = None
    unidadeDestino: Optional[CarrierUnit] = None


class CarrierObject(_CarrierModel):
    codObjeto: Optional[str] = None
    dtPrevista: Optional[datetime] = None
    mensagem: Optional[str] = None
    eventos: list[CarrierEvent] = Field(default_factory=list)


class CarrierTrackingResponse(_CarrierModel):
    versao: Optional[str] = None
    quantidade: Optional[int] = None
    objetos: list[CarrierObject] = Field(default_factory=list)
    tipoResultado: Optional[str] = None


# =============================================================================
# Normalization
# =============================================================================


def format_location(address: CarrierAddress | None) -> str:
    """'Cidade/UF', falling back to whichever part is present."""
    if address is None:
        return UNKNOWN_LOCATION
    if address.cidade and address.uf:
        return f"{address.cidade}/{address.uf}"
    return address.uf or address.cidade or UNKNOWN_LOCATION


def format_unit(unit: CarrierUnit | None) -> str | None:
    """'Tipo, CIDADE - UF' with missing parts left out."""
    if unit is None:
        return None

    parts = [unit.tipo]
    address = unit.endereco
    if address is not None:
        if address.cidade and address.uf:
            parts.append(f"{address.cidade} - {address.uf}")
        else:
            parts.append(address.cidade or address.uf)

    return ", ".join(p for p in parts if p)


def to_tracking_event(event: CarrierEvent) -> TrackingEvent:
    unit = event.unidade
    address = unit.endereco if unit is not None else None

    return TrackingEvent(
        description=event.descricao,
        status=event.descricao,
        occurred_at=event.dtHrCriado,
        location=format_location(address),
        detail=event.detalhe,
        unit_type=unit.tipo if unit is not None else None,
        origin_unit=format_unit(unit),
        destination_unit=format_unit(event.unidadeDestino),
        unit_address=address.to_unit_address() if address is not None else None,
    )


def _synthetic_event(description: str, status: str, location: str) -> TrackingEvent:
    return TrackingEvent(
        description=description,
        status=status,
        occurred_at=datetime.now(timezone.utc),
        location=location,
    )


def normalize_response(
    tracking_code: str, response: CarrierTrackingResponse
) -> TrackingResult:
    """
    Convert a carrier response into a TrackingResult.

    Args:
        tracking_code: Code that was looked up (for diagnostics)
        response: Parsed carrier response

    Returns:
        TrackingResult with events most-recent-first
    """
    if not response.objetos:
        logger.info("Correios returned no object for %s", tracking_code)
        return TrackingResult(
            status=TrackingStatus.NOT_FOUND,
            events=[
                _synthetic_event(
                    "Objeto não encontrado na base de dados dos Correios",
                    "Não encontrado",
                    "Correios",
                )
            ],
        )

    obj = response.objetos[0]

    if obj.mensagem:
        logger.info("Object %s not found at Correios: %s", tracking_code, obj.mensagem)
        return TrackingResult(
            status=TrackingStatus.NOT_FOUND,
            events=[_synthetic_event(obj.mensagem, "Não encontrado", "Correios")],
        )

    if not obj.eventos:
        logger.warning("Object %s has no tracking events yet", tracking_code)
        return TrackingResult(
            status=TrackingStatus.LABEL_ISSUED,
            events=[],
            expected_delivery=obj.dtPrevista,
        )

    events = [to_tracking_event(e) for e in obj.eventos]
    status = classify_status(events[0].description, tracking_code)

    return TrackingResult(
        status=status,
        events=events,
        expected_delivery=obj.dtPrevista,
    )


def lookup_error_result(message: str) -> TrackingResult:
    """Storable result for a lookup that failed permanently."""
    return TrackingResult(
        status=TrackingStatus.LOOKUP_ERROR,
        events=[
            _synthetic_event(
                f"Erro ao consultar os Correios: {message}. "
                "Verifique o código de rastreamento.",
                "Erro",
                "Sistema",
            )
        ],
    )


# =============================================================================
# Client
# =============================================================================


class CarrierClient:
    """
    Correios tracking client.

    Usage:
        broker = CredentialBroker(CorreiosCredentials.from_env())
        client = CarrierClient(broker)
        result = client.track("AA123456789BR")
    """

    def __init__(
        self,
        credential_broker: CredentialBroker,
        session: requests.Session | None = None,
        retry_executor: RetryExecutor | None = None,
        base_url: str = config.CORREIOS_API_BASE_URL,
        timeout: float = config.CORREIOS_REQUEST_TIMEOUT_SECONDS,
    ):
        self.credential_broker = credential_broker
        self.session = session or requests.Session()
        self.retry_executor = retry_executor or RetryExecutor(
            RetryOptions(
                max_attempts=config.RETRY_MAX_ATTEMPTS,
                initial_delay=config.RETRY_INITIAL_DELAY_SECONDS,
                max_delay=config.RETRY_MAX_DELAY_SECONDS,
                backoff_multiplier=config.RETRY_BACKOFF_MULTIPLIER,
            )
        )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def track(self, tracking_code: str) -> TrackingResult:
        """
        Look up a tracking code.

        Args:
            tracking_code: Correios tracking code (13 characters)

        Returns:
            Normalized TrackingResult (LOOKUP_ERROR on permanent failures)

        Raises:
            ClassifiedError: TEMPORARY failure after all retries
            CredentialError: Token could not be obtained
        """
        max_attempts = self.retry_executor.options.max_attempts

        def on_retry(attempt: int, error: BaseException):
            logger.warning(
                "Retry %d/%d for %s: %s", attempt, max_attempts, tracking_code, error
            )

        options = RetryOptions(
            max_attempts=max_attempts,
            initial_delay=self.retry_executor.options.initial_delay,
            max_delay=self.retry_executor.options.max_delay,
            backoff_multiplier=self.retry_executor.options.backoff_multiplier,
            on_retry=on_retry,
        )

        try:
            payload = self.retry_executor.run(lambda: self._fetch(tracking_code), options)
            response = CarrierTrackingResponse.model_validate(payload)
            return normalize_response(tracking_code, response)
        except CredentialError:
            raise
        except ClassifiedError as e:
            self._log_failure(tracking_code, e, e.error_type.value)
            if e.is_temporary:
                raise
            return lookup_error_result(str(e))
        except ValidationError as e:
            self._log_failure(tracking_code, e, "invalid_response")
            return lookup_error_result(str(e))
        except Exception as e:
            self._log_failure(tracking_code, e, "unknown")
            return lookup_error_result(str(e))

    def _fetch(self, tracking_code: str) -> dict:
        """Single lookup attempt. Raises ClassifiedError on failure."""
        token = self.credential_broker.get_valid_token()
        url = f"{self.base_url}{TRACKING_PATH.format(code=tracking_code)}"

        try:
            response = self.session.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    "Accept-Language": "pt-BR",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise classify_network_error(e) from e

        if not response.ok:
            if response.status_code in AUTH_HTTP_STATUSES:
                self.credential_broker.invalidate()

            error = classify_http_error(
                response.status_code,
                f"Tracking lookup failed: {response.status_code} - {response.text}",
            )
            logger.error(
                "Tracking lookup failed (%s)",
                error.error_type.value,
                extra={
                    "json_fields": {
                        "status": response.status_code,
                        "reason": response.reason,
                        "url": url,
                        "body": response.text,
                    }
                },
            )
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise classify_network_error(e) from e

    @staticmethod
    def _log_failure(tracking_code: str, error: BaseException, error_type: str):
        logger.error(
            "Correios lookup failed for %s (%s): %s",
            tracking_code,
            error_type,
            error,
            extra={"json_fields": {"tracking_code": tracking_code, "error_type": error_type}},
        )
