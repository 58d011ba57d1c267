import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api import router
from .db import init_db
from .v1.api import v1
from .v1.routers.verifications import get_provider

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(title="KYC Verification Backend")

# CORS for local frontends
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    await init_db()


# Cierra la sesión HTTP del proveedor compartido
@app.on_event("shutdown")
async def shutdown_event():
    if get_provider.cache_info().currsize:
        get_provider().close()
        get_provider.cache_clear()


app.include_router(router)
app.include_router(v1)

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
