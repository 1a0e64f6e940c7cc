"""
api/main.py -- FastAPI application entry point for authstore.

Exposes a store over HTTP so non-Python callers can register users, delete
them and check credentials.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Lifespan opens the store from Settings on startup and closes it on shutdown,
symmetrically.

Error responses are governed by the debug toggle (AUTHSTORE_DEBUG):
  debug on  -- HTTP 500 with the error text in the body, error logged
  debug off -- HTTP 200 with an empty body
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.exc import SQLAlchemyError

from api.models import HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthError
from auth.factory import open_store
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authstore.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the store on startup and close it on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Route handlers read the store from app.state.user_store.
    """
    settings = get_settings()
    logger.info("authstore API starting up (backend=%s)", settings.backend)
    app.state.user_store = open_store(settings)
    app.state.debug = settings.debug
    logger.info("Store initialized (%d user(s), debug=%s)", len(app.state.user_store), settings.debug)

    yield

    app.state.user_store.close()
    logger.info("authstore API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authstore API",
    description="User registry and session store.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time before and after call_next gives the latency.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Parse errors, store errors and backend errors all go through the same debug
# gate. Any other exception is a bug and is left to Starlette's 500 handling.
# ---------------------------------------------------------------------------


def _error_response(request: Request, message: str) -> Response:
    if getattr(request.app.state, "debug", False):
        logger.error("%s %s failed: %s", request.method, request.url.path, message)
        return PlainTextResponse(message, status_code=500)
    return Response(content=b"", status_code=200)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    """Malformed JSON or a body missing username/password."""
    return _error_response(request, str(exc.errors()))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> Response:
    return _error_response(request, str(exc))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> Response:
    return _error_response(request, str(exc))


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
