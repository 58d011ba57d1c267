import logging
from functools import lru_cache
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from starlette.concurrency import run_in_threadpool

from sqlalchemy.ext.asyncio import AsyncSession
from ...db import get_session
from ...services.image_encoding import encode_upload
from ...services.kyc_providers.base import KYCProvider
from ...services.kyc_providers.factory import get_kyc_provider
from ...services.kyc_providers.results import Failure
from ...services.verification_service import VerificationInput, VerificationOrchestrator
from ..repositories.verifications import VerificationRepository
from ..schemas.verifications import TokenResponse, VerificationCreate, VerificationOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/verifications", tags=["Verifications"])  # parent /v1 is added by app/v1/api.py


@lru_cache
def get_provider() -> KYCProvider:
    """Un proveedor (y su sesión HTTP) por proceso; el estado por corrida vive en CredentialManager."""
    return get_kyc_provider()


async def _run_and_store(data: VerificationInput, provider: KYCProvider, db: AsyncSession) -> VerificationOut:
    report = await VerificationOrchestrator(provider).run(data)

    repo = VerificationRepository(db)
    ver = await repo.create({
        "email": data.email,
        "phone": data.phone,
        "provider": provider.name,
        "document_type": report.document_type.value,
        "status": report.status.value,
        "error": report.error,
        "results": report.to_dict(),
    })
    await db.commit()
    await db.refresh(ver)

    logger.info(f"[VERIFICATION] stored id={ver.id} status={ver.status} document_type={ver.document_type}")
    return VerificationOut.from_orm_row(ver)


@router.post("", response_model=VerificationOut, status_code=status.HTTP_201_CREATED)
async def create_verification(
    payload: VerificationCreate,
    provider: KYCProvider = Depends(get_provider),
    db: AsyncSession = Depends(get_session),
):
    data = VerificationInput(
        face_image=payload.face_image,
        front_image=payload.front_image,
        back_image=payload.back_image,
        email=payload.email,
        phone=payload.phone,
    )
    return await _run_and_store(data, provider, db)


async def _encode(upload: Optional[UploadFile]) -> Optional[str]:
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    # la conversión HEIC es bloqueante: se ejecuta fuera del event loop
    return await run_in_threadpool(encode_upload, upload.filename, upload.content_type, data)


@router.post("/upload", response_model=VerificationOut, status_code=status.HTTP_201_CREATED)
async def upload_verification(
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    face_image: Optional[UploadFile] = File(None),
    front_image: Optional[UploadFile] = File(None),
    back_image: Optional[UploadFile] = File(None),
    provider: KYCProvider = Depends(get_provider),
    db: AsyncSession = Depends(get_session),
):
    """Same as POST /verifications but with raw image files (JPG / PNG / HEIC)."""
    data = VerificationInput(
        face_image=await _encode(face_image),
        front_image=await _encode(front_image),
        back_image=await _encode(back_image),
        email=email,
        phone=phone,
    )
    return await _run_and_store(data, provider, db)


@router.post("/token", response_model=TokenResponse)
async def issue_token(provider: KYCProvider = Depends(get_provider)):
    credential = await provider.new_session().obtain_token()
    if isinstance(credential, Failure):
        raise HTTPException(status_code=502, detail=f"Token generation failed: {credential.message}")
    return TokenResponse(token=credential.token)


@router.get("", response_model=list[VerificationOut])
async def list_verifications(
    email: str = Query(...),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    repo = VerificationRepository(db)
    items = await repo.list_for_email(email, limit)
    return [VerificationOut.from_orm_row(i) for i in items]


@router.get("/{verification_id}", response_model=VerificationOut)
async def get_verification(verification_id: str, db: AsyncSession = Depends(get_session)):
    repo = VerificationRepository(db)
    ver = await repo.get_by_id(verification_id)
    if not ver:
        raise HTTPException(status_code=404, detail="Verificación no encontrada")
    return VerificationOut.from_orm_row(ver)
