import os
import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .kyc_providers.base import KYCProvider
from .kyc_providers.credentials import CredentialManager
from .kyc_providers.results import Failure, ProviderResult, Skipped, Success
from .metrics import record
from ..utils.enums import DocumentType, ReportKey, VerificationStatus

logger = logging.getLogger(__name__)

PARALLEL_STEPS = os.getenv("KYC_PARALLEL_STEPS", "0") == "1"

MISSING_INPUT_ERROR = "Missing biometric data"
OCR_FAILED_PREFIX = "OCR Failed: "
SKIP_OCR_FAILED = "OCR failed"
SKIP_NO_CURP = "CURP not found in OCR data"
SKIP_PASSPORT = "Passport detected (no back image)"
SKIP_NO_NAME = "Name not found in OCR data"


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class VerificationInput:
    face_image: Optional[str] = None
    front_image: Optional[str] = None
    back_image: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.INE if _present(self.back_image) else DocumentType.PASSPORT

    @property
    def has_biometrics(self) -> bool:
        return _present(self.face_image) and _present(self.front_image)


@dataclass(frozen=True)
class VerificationReport:
    document_type: DocumentType
    results: Mapping[str, ProviderResult] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def status(self) -> VerificationStatus:
        if self.error:
            return VerificationStatus.FAILED
        if any(isinstance(r, Failure) for r in self.results.values()):
            return VerificationStatus.INCOMPLETE
        return VerificationStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {key: result.to_dict() for key, result in self.results.items()}
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class _Run:
    """Estado mutable de una sola corrida; no sobrevive a run()."""
    data: VerificationInput
    document_type: DocumentType
    ctx: CredentialManager
    ocr: Dict[str, Any] = field(default_factory=dict)

    def ocr_field(self, name: str) -> Optional[str]:
        value = self.ocr.get(name)
        if value is None:
            return None
        value = str(value).strip()
        return value or None


@dataclass(frozen=True)
class Step:
    key: ReportKey
    action: Callable[[KYCProvider, _Run], Awaitable[ProviderResult]]
    # devuelve el motivo para omitir el paso, o None si debe ejecutarse
    precondition: Callable[[_Run], Optional[str]] = lambda run: None


def _face_match(provider: KYCProvider, run: _Run):
    return provider.face_match(run.ctx, run.data.front_image, run.data.face_image)


def _ocr(provider: KYCProvider, run: _Run):
    back = run.data.back_image if run.document_type == DocumentType.INE else None
    return provider.extract_document_data(run.ctx, run.data.front_image, back)


def _curp(provider: KYCProvider, run: _Run):
    return provider.validate_curp(run.ctx, run.ocr_field("curp"))


def _ine(provider: KYCProvider, run: _Run):
    return provider.validate_ine(run.ctx, run.ocr)


def _blocklist(provider: KYCProvider, run: _Run):
    return provider.check_blocklist(
        run.ctx,
        run.ocr_field("nombres"),
        run.ocr_field("primerApellido"),
        run.ocr_field("segundoApellido"),
    )


def _needs_curp(run: _Run) -> Optional[str]:
    return None if run.ocr_field("curp") else SKIP_NO_CURP


def _needs_ine(run: _Run) -> Optional[str]:
    return None if run.document_type == DocumentType.INE else SKIP_PASSPORT


def _needs_names(run: _Run) -> Optional[str]:
    if run.ocr_field("nombres") and run.ocr_field("primerApellido"):
        return None
    return SKIP_NO_NAME


# Pasos que siempre corren una vez validada la entrada
LEADING_STEPS = (
    Step(ReportKey.FACE_MATCH, _face_match),
    Step(ReportKey.OCR, _ocr),
)

# Pasos que leen el resultado del OCR; independientes entre sí
OCR_DEPENDENT_STEPS = (
    Step(ReportKey.CURP, _curp, _needs_curp),
    Step(ReportKey.INE_VALIDATION, _ine, _needs_ine),
    Step(ReportKey.BLOCKLIST, _blocklist, _needs_names),
)


def ocr_failure_message(result: ProviderResult) -> Optional[str]:
    """Return the error message when OCR did not succeed, else None.

    The provider may answer HTTP 200 with ``estatus == "ERROR"``; that counts
    as a failure just like a transport or HTTP error.
    """
    if isinstance(result, Success):
        if str(result.payload.get("estatus", "")).upper() == "ERROR":
            return str(result.payload.get("mensaje") or "")
        return None
    if isinstance(result, Failure):
        return result.message
    return result.reason


class VerificationOrchestrator:
    def __init__(
        self,
        provider: KYCProvider,
        *,
        parallel: bool = PARALLEL_STEPS,
        leading_steps=LEADING_STEPS,
        dependent_steps=OCR_DEPENDENT_STEPS,
    ):
        self.provider = provider
        self.parallel = parallel
        self.leading_steps = tuple(leading_steps)
        self.dependent_steps = tuple(dependent_steps)

    async def run(self, data: VerificationInput) -> VerificationReport:
        document_type = data.document_type
        record("verifications_total")

        if not data.has_biometrics:
            logger.info("[VERIFICATION] rejected: missing face or front image")
            record("verifications_failed")
            return VerificationReport(document_type=document_type, error=MISSING_INPUT_ERROR)

        logger.info(f"[VERIFICATION] started document_type={document_type.value}")
        run = _Run(data=data, document_type=document_type, ctx=self.provider.new_session())
        results: Dict[str, ProviderResult] = {}

        for step in self.leading_steps:
            results[step.key.value] = await step.action(self.provider, run)

        ocr_error = ocr_failure_message(results[ReportKey.OCR.value])
        if ocr_error is not None:
            logger.error(f"[VERIFICATION] OCR failed: {ocr_error}")
            for step in self.dependent_steps:
                results[step.key.value] = Skipped(SKIP_OCR_FAILED)
            record("verifications_failed")
            return VerificationReport(
                document_type=document_type,
                results=MappingProxyType(results),
                error=f"{OCR_FAILED_PREFIX}{ocr_error}",
            )

        run.ocr = results[ReportKey.OCR.value].payload
        if self.parallel:
            outcomes = await asyncio.gather(*(self._run_step(step, run) for step in self.dependent_steps))
        else:
            outcomes = [await self._run_step(step, run) for step in self.dependent_steps]
        for step, outcome in zip(self.dependent_steps, outcomes):
            results[step.key.value] = outcome

        report = VerificationReport(document_type=document_type, results=MappingProxyType(results))
        logger.info(f"[VERIFICATION] finished status={report.status.value}")
        return report

    async def _run_step(self, step: Step, run: _Run) -> ProviderResult:
        reason = step.precondition(run)
        if reason is not None:
            logger.info(f"[VERIFICATION] {step.key.value} skipped: {reason}")
            return Skipped(reason)
        return await step.action(self.provider, run)
