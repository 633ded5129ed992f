from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import settings
from .db import init_db
from .middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from .routers import auth, contact, forum, notifications, system
from .seed import ensure_seed_data

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def run_startup_tasks() -> None:
    """Create both schemas and seed the episode catalog."""
    try:
        init_db()
        ensure_seed_data()
    except Exception as e:
        logger.error(f"Schema setup or seeding failed: {e}", exc_info=True)
        raise
    logger.info("Database schema and episode catalog ready")


@asynccontextmanager
async def lifespan(app: FastAPI):
    run_startup_tasks()
    logger.info(f"Medicoz API up ({settings.ENVIRONMENT})")
    yield
    logger.info("Medicoz API stopping")


app = FastAPI(
    title="Medicoz API",
    version="1.0.0",
    description="Medicoz Infosystems site API: The XXperiment forum and contact intake",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed requests as 400 with the first problem found."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


# The session cookie needs credentialed CORS, which rules out a "*" origin
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip() and o.strip() != "*"]
if not cors_origins:
    logger.warning("No usable CORS_ORIGINS configured; cross-origin requests will be refused")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


app.include_router(system.router)
app.include_router(auth.router)
app.include_router(forum.router)
app.include_router(notifications.router)
app.include_router(contact.router)
