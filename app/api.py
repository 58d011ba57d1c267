from fastapi import APIRouter

from .services.metrics import snapshot

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "OK"}


@router.get("/metrics")
def metrics():
    return snapshot()
