"""
FastAPI application for browsing and bulk-editing BIM360 issues.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .integrations import BIM360APIError
from .routes import (
    docs_router,
    hubs_router,
    issues_router,
    locations_router,
    spreadsheets_router,
    users_router,
)

# Initialize structured logging
logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info(
        "Starting BIM360 Issue Editor",
        environment=settings.environment,
        region=settings.forge_region,
        app_credentials=bool(settings.forge_client_id),
    )
    yield
    logger.info("Shutting down BIM360 Issue Editor")


app = FastAPI(
    title=settings.app_name,
    description="Browse BIM360 issues and edit them in bulk through spreadsheets",
    version=importlib.metadata.version("bim360-issue-editor"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(hubs_router)
app.include_router(issues_router)
app.include_router(locations_router)
app.include_router(users_router)
app.include_router(docs_router)
app.include_router(spreadsheets_router)


@app.exception_handler(BIM360APIError)
async def bim360_error_handler(request: Request, exc: BIM360APIError) -> JSONResponse:
    """Pass remote failures through with the remote status code."""
    logger.warning(
        "remote_request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        message=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "response": exc.response},
    )


@app.exception_handler(httpx.HTTPError)
async def transport_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    logger.error("remote_unreachable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"message": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": str(exc)})


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("bim360-issue-editor")}
