"""
Org Task Core - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from orgtask.api.router import api_router
from orgtask.core.config import settings
from orgtask.core.errors import (
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from orgtask.core.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging."""
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite") or not parsed.password:
        return url
    netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=netloc))


app = FastAPI(
    title="Org Task Core",
    description="Department-scoped authorization and task lifecycle",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

app.include_router(api_router, prefix="/api/v1")

logger.info("DATABASE_URL (app): %s", _mask_database_url(settings.DATABASE_URL))
