import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

import requests
from starlette.concurrency import run_in_threadpool

from ..metrics import record
from .base import IneValidationRequest, KYCProvider, full_name
from .credentials import Credential, CredentialManager
from .results import Failure, ProviderResult, Success, normalize_response, transport_failure

logger = logging.getLogger(__name__)

BASE_URL_API = os.getenv("NUBARIUM_API_URL", "https://api.nubarium.com")
BASE_URL_CURP = os.getenv("NUBARIUM_CURP_URL", "https://curp.nubarium.com")
BASE_URL_INE = os.getenv("NUBARIUM_INE_URL", "https://ine.nubarium.com")
BASE_URL_OCR = os.getenv("NUBARIUM_OCR_URL", "https://ocr.nubarium.com")
BASE_URL_BIO = os.getenv("NUBARIUM_BIO_URL", "https://biometrics.nubarium.com")
BASE_URL_SDK = os.getenv("NUBARIUM_SDK_URL", "https://api.sdk.nubarium.com")

TOKEN_EXPIRY = int(os.getenv("NUBARIUM_TOKEN_EXPIRY", "3600"))
REQUEST_TIMEOUT = float(os.getenv("NUBARIUM_TIMEOUT", "30"))

# Umbral fijo de similitud para la consulta de listas negras
BLOCKLIST_SIMILARITY = 100


class NubariumKYCProvider(KYCProvider):
    """Cliente HTTP para los servicios de Nubarium.

    Every capability issues exactly one request and returns a ProviderResult;
    transport errors, timeouts and malformed bodies come back as Failure.
    """

    name = "nubarium"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("NUBARIUM_API_KEY", "")
        self.api_secret = api_secret if api_secret is not None else os.getenv("NUBARIUM_API_SECRET", "")
        self.timeout = timeout
        self.http = session or requests.Session()

    def close(self) -> None:
        self.http.close()

    # --- Transport ---

    def _send(
        self,
        service: str,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        auth: Optional[Tuple[str, str]] = None,
    ) -> Union[requests.Response, Failure]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return self.http.request(method, url, json=json, headers=headers, auth=auth, timeout=self.timeout)
        except requests.RequestException as e:
            return transport_failure(service, e)

    async def _request(self, service: str, url: str, **kwargs) -> Union[requests.Response, Failure]:
        # requests es bloqueante: se ejecuta fuera del event loop;
        # las métricas se registran en el hilo del loop
        record(f"provider_calls:{service}")
        response = await run_in_threadpool(self._send, service, "POST", url, **kwargs)
        if isinstance(response, Failure):
            record(f"provider_failures:{service}")
        return response

    async def _call(self, ctx: CredentialManager, service: str, url: str, body: Dict[str, Any]) -> ProviderResult:
        credential = await ctx.ensure_token()
        if isinstance(credential, Failure):
            return credential

        response = await self._request(service, url, json=body, token=credential.token)
        if isinstance(response, Failure):
            return response
        result = normalize_response(service, response)
        if isinstance(result, Failure):
            record(f"provider_failures:{service}")
        return result

    # --- Authentication ---

    async def generate_token(self) -> Union[Credential, Failure]:
        url = f"{BASE_URL_SDK}/jwt/v1/generate"
        response = await self._request(
            "token",
            url,
            json={"expireAfter": TOKEN_EXPIRY},
            auth=(self.api_key, self.api_secret),
        )
        if isinstance(response, Failure):
            return response

        result = normalize_response("token", response)
        if isinstance(result, Success) and result.payload.get("bearer_token"):
            logger.info("[NUBARIUM] token generated successfully")
            return Credential(token=result.payload["bearer_token"], obtained_at=datetime.now(timezone.utc))

        record("provider_failures:token")
        logger.error(f"[NUBARIUM] token error: status={response.status_code}, body={response.text}")
        return Failure(provider="token", status=response.status_code, message=response.text)

    # --- Biometrics ---

    async def face_match(self, ctx: CredentialManager, document_image: str, selfie_image: str) -> ProviderResult:
        logger.info(
            f"[NUBARIUM] face match for {len(document_image)} bytes vs {len(selfie_image)} bytes"
        )
        return await self._call(
            ctx,
            "face_match",
            f"{BASE_URL_BIO}/antifraude/reconocimiento_facial",
            {"credencial": document_image, "captura": selfie_image, "tipo": "imagen"},
        )

    # --- OCR ---

    async def extract_document_data(
        self, ctx: CredentialManager, front_image: str, back_image: Optional[str] = None
    ) -> ProviderResult:
        logger.info("[NUBARIUM] extracting ID data (OCR)")
        body = {"id": front_image}
        if back_image:
            body["idReverso"] = back_image
        return await self._call(ctx, "ocr", f"{BASE_URL_OCR}/ocr/v1/obtener_datos_id", body)

    # --- CURP (RENAPO) ---

    async def validate_curp(self, ctx: CredentialManager, curp: str) -> ProviderResult:
        logger.info(f"[NUBARIUM] validating CURP {curp}")
        return await self._call(ctx, "curp", f"{BASE_URL_CURP}/renapo/v3/valida_curp", {"curp": curp})

    # --- INE lista nominal ---

    async def validate_ine(self, ctx: CredentialManager, ocr_data: Dict[str, Any]) -> ProviderResult:
        request = IneValidationRequest.from_ocr(ocr_data)
        logger.info(f"[NUBARIUM] validating INE with OCR data (CIC: {request.cic})")
        return await self._call(ctx, "ine_validation", f"{BASE_URL_INE}/ine/v2/valida_ine", request.to_payload())

    # --- Listas negras ---

    async def check_blocklist(
        self,
        ctx: CredentialManager,
        first_name: str,
        last_name: str,
        second_last_name: Optional[str] = None,
    ) -> ProviderResult:
        name = full_name(first_name, last_name, second_last_name)
        logger.info(f"[NUBARIUM] checking blocklist for {name}")
        return await self._call(
            ctx,
            "blocklist",
            f"{BASE_URL_API}/blacklists/v1/consulta",
            {"nombreCompleto": name, "similitud": BLOCKLIST_SIMILARITY},
        )
