"""
Correios integration.

Token management, tracking lookups and status classification for the
Correios SRO Rastro v1 API.
"""

from tracksync.carrier.client import CarrierClient
from tracksync.carrier.status import classify_status
from tracksync.carrier.token import CredentialBroker, CredentialError

__all__ = [
    "CarrierClient",
    "CredentialBroker",
    "CredentialError",
    "classify_status",
]
