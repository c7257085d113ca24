"""
api/main.py -- FastAPI application factory for the location catalog API.

Run with:      uvicorn asgi:app --reload

create_app() takes one immutable Settings object (core/config.py) and wires
everything that depends on it in the lifespan: the Database, both stores and
the TokenCodec. Nothing reads configuration at import time, and tests build
their own app with their own Settings.

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces the per-route limits of app.state.limiter

Every error leaves through one of the handlers below and has the same
{"error": {code, message, detail}} envelope -- except POST /api/v1/auth,
which keeps its {success, message} body.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from api.limiter import build_limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.locations import router as locations_router
from api.routes.v1.users import router as users_router
from auth.credentials import new_credential
from auth.models import PermissionLevel
from auth.store import UserStore
from auth.tokens import TokenCodec
from catalog.store import LocationStore
from core.config import Settings, get_settings
from core.database import Database
from core.errors import AuthError, CatalogError, DataAccessError

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("catalog.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def _bootstrap_admin(user_store: UserStore, settings: Settings) -> None:
    """Create the first admin from ADMIN_* settings when the users table is empty.

    Without it a fresh database has no account able to call POST /user.
    """
    if user_store.has_users():
        return
    if not (settings.admin_username and settings.admin_email and settings.admin_password):
        logger.warning("No users exist and ADMIN_* settings are empty -- nobody can sign in yet")
        return
    credential = new_credential(
        settings.admin_username,
        settings.admin_email,
        settings.admin_password,
        PermissionLevel.ADMIN,
    )
    try:
        user_id = user_store.create_user(credential)
    except IntegrityError:
        # Another worker created it first.
        return
    logger.info("Bootstrap admin created (user_id=%s)", user_id)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build per-process resources from app.state.settings; dispose them on shutdown."""
    settings: Settings = app.state.settings
    logger.info("Catalog API starting up")
    db = Database(settings.database_url)
    app.state.db = db
    app.state.user_store = UserStore(db)
    app.state.location_store = LocationStore(db)
    app.state.token_codec = TokenCodec(settings.secret_key)
    _bootstrap_admin(app.state.user_store, settings)
    logger.info("Stores initialized")

    yield

    db.close()
    logger.info("Catalog API shutdown complete")


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


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
# Exception handlers
# ---------------------------------------------------------------------------


async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    """Render ValidationError / AuthError / ParseError / DataAccessError.

    DataAccessError.detail holds raw driver text. It goes to the log only;
    the client sees the generic message.
    """
    if isinstance(exc, DataAccessError):
        logger.error("Data access failure on %s %s: %s", request.method, request.url.path, exc.detail)
    elif isinstance(exc, AuthError):
        logger.info("Auth rejected on %s %s: %s", request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(**exc.to_dict())).model_dump(),
    )


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Synchronous: SlowAPIMiddleware calls it without awaiting the result.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with detail=ErrorDetail(...).model_dump()
    (a dict). When detail is already a structured dict, use it directly as the
    error field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a database probe. No auth, no rate limit."""
    db: Database = request.app.state.db
    return HealthResponse(
        version=__version__,
        components={"app": "ok", "database": "ok" if db.ping() else "error"},
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Assemble the ASGI app. Uses get_settings() when no Settings are given."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Location Catalog API",
        description="Location catalog with token-based access and filterable listings.",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings

    # Register in the order the request should encounter them:
    # TrustedHost -> CORS -> SlowAPI.
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Content-Type", "Authorization", "X-Access-Token"],
        max_age=3600,
    )
    app.add_middleware(SlowAPIMiddleware)
    app.middleware("http")(log_requests)

    # SlowAPI looks for app.state.limiter by convention. Built per app so the
    # login limit comes from these settings.
    app.state.limiter = build_limiter(settings)

    app.add_exception_handler(CatalogError, catalog_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
    app.include_router(users_router, prefix="/api/v1", tags=["Users"])
    app.include_router(locations_router, prefix="/api/v1", tags=["Locations"])
    app.add_api_route("/api/v1/health", health, methods=["GET"], tags=["Health"])

    return app
