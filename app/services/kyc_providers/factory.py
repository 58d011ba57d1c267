import os
from .base import KYCProvider
from .mock import MockKYCProvider
from .nubarium import NubariumKYCProvider


def get_kyc_provider(name: str | None = None) -> KYCProvider:
    name = (name or os.getenv("KYC_PROVIDER") or "nubarium").lower()
    debug = os.getenv("DEBUG", "0") == "1" or os.getenv("TESTING", "0") == "1"
    if name == "mock" or debug:
        return MockKYCProvider()
    if name == "nubarium":
        return NubariumKYCProvider()
    # fallback
    return MockKYCProvider()
