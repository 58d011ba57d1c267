import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .base import IneValidationRequest, KYCProvider, full_name
from .credentials import Credential, CredentialManager
from .results import Failure, Success

SANDBOX_OCR = {
    "estatus": "OK",
    "tipo": "C",
    "curp": "PEJU800101HDFRRN09",
    "nombres": "JUAN",
    "primerApellido": "PEREZ",
    "segundoApellido": "LOPEZ",
    "cic": "123456789",
    "identificadorCiudadano": "987654321",
    "claveElector": "PRLPJN80010109H100",
    "numeroEmision": "01",
}


class MockKYCProvider(KYCProvider):
    """Proveedor en memoria para modo sandbox (DEBUG/TESTING)."""

    name = "mock"

    async def generate_token(self):
        return Credential(token=f"mock_token_{uuid.uuid4()}", obtained_at=datetime.now(timezone.utc))

    async def _authorized(self, ctx: CredentialManager, payload: Dict[str, Any]):
        credential = await ctx.ensure_token()
        if isinstance(credential, Failure):
            return credential
        return Success(payload=payload)

    async def face_match(self, ctx, document_image, selfie_image):
        return await self._authorized(ctx, {"estatus": "OK", "similitud": 0.97, "resultado": "Match"})

    async def extract_document_data(self, ctx, front_image, back_image: Optional[str] = None):
        if back_image:
            return await self._authorized(ctx, dict(SANDBOX_OCR))
        passport = {k: SANDBOX_OCR[k] for k in ("estatus", "curp", "nombres", "primerApellido", "segundoApellido")}
        passport["tipo"] = "P"
        return await self._authorized(ctx, passport)

    async def validate_curp(self, ctx, curp):
        return await self._authorized(ctx, {"estatus": "OK", "curp": curp, "estatusCurp": "RCN"})

    async def validate_ine(self, ctx, ocr_data):
        request = IneValidationRequest.from_ocr(ocr_data)
        return await self._authorized(
            ctx, {"estatus": "OK", "mensaje": "La credencial es vigente", "consulta": request.to_payload()}
        )

    async def check_blocklist(self, ctx, first_name, last_name, second_last_name=None):
        return await self._authorized(
            ctx,
            {"estatus": "OK", "nombreCompleto": full_name(first_name, last_name, second_last_name), "coincidencias": []},
        )
