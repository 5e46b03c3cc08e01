"""Academy automation service - FastAPI application."""

import logging

from fastapi import FastAPI

from academy.core.config import settings
from academy.routers import internal

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(
    title="Academy Automation API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url=None,
)

app.include_router(internal.router)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "version": settings.VERSION}
