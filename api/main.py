import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.factory import AdapterFactory
from core import db
from core.vault import vault_from_env
from google_oauth import router as google_oauth_router
from onboarding import router as onboarding_router
from records import router as records_router

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


def cors_origins() -> list[str]:
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Vault first: a missing ENCRYPTION_KEY should stop startup before the pool opens.
    vault = vault_from_env()
    await db.init_pool()
    app.state.vault = vault
    app.state.adapter_factory = AdapterFactory(vault=vault)
    logger.info("app_started")
    try:
        yield
    finally:
        app.state.adapter_factory.clear_cache()
        await db.close_pool()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(records_router.router, tags=["records"])
app.include_router(onboarding_router.router, tags=["onboarding"])
app.include_router(google_oauth_router.router, tags=["google-oauth"])


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/")
def root() -> dict:
    return {"message": "geo data-source api"}
