from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from compliance_console.core.config import get_settings
from compliance_console.core.logging import configure_logging, request_id_middleware
from compliance_console.processing.poller import shutdown_poller
from compliance_console.processing.router import router as monitoring_router

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.ENV)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} (env: {settings.ENV})")
    logger.info(
        f"Status client: {settings.STATUS_CLIENT_TYPE} "
        f"({settings.STATUS_API_BASE_URL})"
    )

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await shutdown_poller()
    logger.info("Status monitor stopped")


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(monitoring_router)


@app.get("/")
def health_check():
    logger.debug("Health check endpoint called")
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return {"status": "healthy", "env": settings.ENV}
