import base64
import logging
from io import BytesIO
from typing import Optional

from PIL import Image
import pillow_heif

pillow_heif.register_heif_opener()

logger = logging.getLogger(__name__)

HEIF_EXTS = (".heic", ".heif")
HEIF_CONTENT_TYPES = {"image/heic", "image/heif"}


def is_heif(filename: Optional[str], content_type: Optional[str]) -> bool:
    name = (filename or "").lower()
    return name.endswith(HEIF_EXTS) or (content_type or "").lower() in HEIF_CONTENT_TYPES


def convert_to_jpeg(data: bytes) -> bytes:
    img = Image.open(BytesIO(data)).convert("RGB")
    out = BytesIO()
    img.save(out, "JPEG", quality=95)
    return out.getvalue()


def encode_upload(filename: Optional[str], content_type: Optional[str], data: bytes) -> Optional[str]:
    """
    Base64-encode an uploaded image for the provider.
    HEIC/HEIF images are converted to JPEG first; if conversion fails the
    original bytes are encoded unchanged.
    """
    if not data:
        return None

    blob = data
    if is_heif(filename, content_type):
        logger.info("[IMAGES] converting HEIC image to JPEG")
        try:
            blob = convert_to_jpeg(data)
        except Exception as e:
            logger.error(f"[IMAGES] image conversion error: {e}")
            blob = data

    return base64.b64encode(blob).decode("ascii")
