from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .credentials import Credential, CredentialManager
from .results import Failure, ProviderResult


@dataclass(frozen=True)
class IneValidationRequest:
    """Campos opcionales para validar contra la lista nominal.

    Los campos ausentes se omiten del cuerpo, nunca se envían como null.
    """
    cic: Optional[str] = None
    identificador_ciudadano: Optional[str] = None
    ocr: Optional[str] = None
    clave_elector: Optional[str] = None
    numero_emision: Optional[str] = None

    _WIRE_NAMES = {
        "cic": "cic",
        "identificador_ciudadano": "identificadorCiudadano",
        "ocr": "ocr",
        "clave_elector": "claveElector",
        "numero_emision": "numeroEmision",
    }

    @classmethod
    def from_ocr(cls, ocr_data: Dict[str, Any]) -> "IneValidationRequest":
        values = {}
        for attr, wire in cls._WIRE_NAMES.items():
            value = ocr_data.get(wire)
            if value is not None and str(value).strip():
                values[attr] = str(value).strip()
        return cls(**values)

    def to_payload(self) -> Dict[str, str]:
        return {
            wire: getattr(self, attr)
            for attr, wire in self._WIRE_NAMES.items()
            if getattr(self, attr)
        }


def full_name(*parts: Optional[str]) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


class KYCProvider(ABC):
    name = "base"

    @abstractmethod
    async def generate_token(self) -> Union[Credential, Failure]:
        pass

    @abstractmethod
    async def face_match(self, ctx: CredentialManager, document_image: str, selfie_image: str) -> ProviderResult:
        pass

    @abstractmethod
    async def extract_document_data(
        self, ctx: CredentialManager, front_image: str, back_image: Optional[str] = None
    ) -> ProviderResult:
        pass

    @abstractmethod
    async def validate_curp(self, ctx: CredentialManager, curp: str) -> ProviderResult:
        pass

    @abstractmethod
    async def validate_ine(self, ctx: CredentialManager, ocr_data: Dict[str, Any]) -> ProviderResult:
        pass

    @abstractmethod
    async def check_blocklist(
        self,
        ctx: CredentialManager,
        first_name: str,
        last_name: str,
        second_last_name: Optional[str] = None,
    ) -> ProviderResult:
        pass

    def close(self) -> None:
        pass

    def new_session(self) -> CredentialManager:
        """Credential context for one verification run."""
        return CredentialManager(self)
