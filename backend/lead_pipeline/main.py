import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lead_pipeline.shared.core.config import settings
from lead_pipeline.shared.core.logging import setup_logging
from lead_pipeline.shared.middleware.correlation import CorrelationIdMiddleware
from lead_pipeline.shared.utils.http_client import (
    http_client_manager,
    shutdown_http_client,
    startup_http_client,
)
from lead_pipeline.modules.enrichment.api import pipeline_endpoints


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    await startup_http_client()
    yield
    await shutdown_http_client()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

# Enrichment pipeline router
app.include_router(
    pipeline_endpoints.router,
    prefix=f"{settings.API_V1_STR}/pipeline",
    tags=["Enrichment Pipeline"]
)


@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} API is running"}


@app.get("/health")
def health():
    return {"status": "ok", "http_client": http_client_manager.get_status()}
