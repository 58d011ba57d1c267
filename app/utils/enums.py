from enum import Enum


class DocumentType(str, Enum):
    """Tipo de documento inferido a partir de las imágenes recibidas."""
    INE = "ine"
    PASSPORT = "passport"


class ReportKey(str, Enum):
    """Llaves de paso dentro del reporte de verificación."""
    FACE_MATCH = "faceMatch"
    OCR = "ocr"
    CURP = "curp"
    INE_VALIDATION = "ineValidation"
    BLOCKLIST = "blocklist"


class ResultStatus(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


class VerificationStatus(str, Enum):
    """Estado final de una corrida de verificación."""
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    FAILED = "failed"
