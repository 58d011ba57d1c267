from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from ...utils.enums import DocumentType, VerificationStatus


class VerificationCreate(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None

    # imágenes en base64 (capturadas por los componentes del SDK)
    face_image: Optional[str] = None
    front_image: Optional[str] = None
    back_image: Optional[str] = None


class ContactInfo(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    documentType: DocumentType


class VerificationOut(BaseModel):
    id: str
    status: VerificationStatus
    contact: ContactInfo
    results: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_orm_row(cls, row):
        return cls(
            id=row.id,
            status=row.status,
            contact=ContactInfo(email=row.email, phone=row.phone, documentType=row.document_type),
            results=row.results or {},
            error=row.error,
            created_at=row.created_at,
        )


class TokenResponse(BaseModel):
    token: str
