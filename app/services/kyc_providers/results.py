import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import requests

from ...utils.enums import ResultStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Success:
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"status": ResultStatus.SUCCESS.value, "payload": self.payload}


@dataclass(frozen=True)
class Failure:
    provider: str
    message: str
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": ResultStatus.ERROR.value,
            "provider": self.provider,
            "httpStatus": self.status,
            "message": self.message,
        }


@dataclass(frozen=True)
class Skipped:
    """Marca explícita de un paso cuyas precondiciones no se cumplieron."""
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"status": ResultStatus.SKIPPED.value, "message": self.reason}


ProviderResult = Union[Success, Failure, Skipped]


def normalize_response(provider: str, response: requests.Response) -> ProviderResult:
    """Map a provider HTTP response to Success/Failure.

    Non-2xx statuses, bodies that are not JSON and JSON bodies that are not
    objects all become a Failure carrying the status and raw body.
    """
    if not response.ok:
        logger.error(f"[NUBARIUM] {provider} failed: {response.status_code}")
        logger.error(f"[NUBARIUM] {provider} body: {response.text}")
        return Failure(provider=provider, status=response.status_code, message=response.text)

    try:
        body = response.json()
    except ValueError:
        body = None

    if not isinstance(body, dict):
        logger.error(f"[NUBARIUM] {provider} returned a non-object body: {response.status_code}")
        return Failure(
            provider=provider,
            status=response.status_code,
            message=f"Invalid response from Nubarium: {response.status_code} - {response.text}",
        )

    logger.info(f"[NUBARIUM] {provider} success: {response.status_code}")
    return Success(payload=body)


def transport_failure(provider: str, exc: Exception) -> Failure:
    if isinstance(exc, requests.Timeout):
        message = f"Timeout calling Nubarium: {exc}"
    else:
        message = f"Error calling Nubarium: {exc}"
    logger.error(f"[NUBARIUM] {provider} transport error: {exc}")
    return Failure(provider=provider, status=None, message=message)
