from fastapi import APIRouter
from .routers.verifications import router as verifications_router

v1 = APIRouter(prefix="/v1")

v1.include_router(verifications_router)
