"""
api/main.py -- FastAPI application factory for the credential service.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests       -- one access-log line per request
  2. SlowAPIMiddleware  -- hands non-decorated routes to the app's limiter
  3. CORSMiddleware     -- adds CORS headers for allowed browser origins

create_app() takes the Settings instance and, optionally, pre-built stores.
Production passes nothing but Settings and the lifespan opens SQLAlchemy
stores on settings.database_url; tests inject their own stores. Either way
the SessionManager receives its collaborators explicitly -- there is no
module-level database handle.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import create_limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import create_router
from auth.errors import ErrorKind, ServiceError, ValidationError
from auth.session import SessionManager
from auth.store import CredentialStore, RefreshTokenStore, TokenStore, UserStore, create_store_engine
from auth.tokens import BcryptHasher, TokenSigner
from core.config import Settings, get_settings

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("credsvc.api")

# ---------------------------------------------------------------------------
# Error kind -> HTTP status. The only place transport codes are decided.
# ---------------------------------------------------------------------------

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.conflict: 409,
    ErrorKind.bad_credentials: 401,
    ErrorKind.unauthenticated: 401,
    ErrorKind.invalid_token: 403,
    ErrorKind.token_expired: 403,
    ErrorKind.internal: 500,
}


def _error_response(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, **extra)).model_dump(exclude_none=True),
    )


def _public_errors(exc: RequestValidationError) -> list[dict]:
    """Location, type and message of each validation error. Submitted values
    (pydantic's input and ctx) are never echoed back: they may be passwords."""
    return [{key: err[key] for key in ("loc", "type", "msg") if key in err} for err in exc.errors()]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    user_store: CredentialStore | None = None,
    token_store: TokenStore | None = None,
) -> FastAPI:
    """Build the ASGI app around one Settings instance.

    If either store is omitted, the lifespan opens SQLAlchemy stores on
    settings.database_url and disposes the engine on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open stores and wire the SessionManager; dispose on shutdown.

        Everything before yield runs on startup, everything after on
        shutdown, even if a request handler raised.
        """
        logger.info("Credential service starting up")
        engine = None
        users, tokens = user_store, token_store
        if users is None or tokens is None:
            engine = create_store_engine(settings.database_url)
            users = users or UserStore(engine)
            tokens = tokens or RefreshTokenStore(engine)
            logger.info("Stores opened on %s", engine.url.render_as_string(hide_password=True))

        app.state.signer = TokenSigner(settings)
        app.state.session_manager = SessionManager(
            users,
            tokens,
            BcryptHasher(settings.bcrypt_rounds),
            app.state.signer,
        )

        yield

        if engine is not None:
            engine.dispose()
        logger.info("Credential service shutdown complete")

    app = FastAPI(
        title="Credential Service",
        description="User signup, password login, and access/refresh token issuance.",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    # Each add_middleware() wraps everything registered before it, so the
    # last registration is the outermost layer.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )
    app.add_middleware(SlowAPIMiddleware)

    # SlowAPI looks for app.state.limiter by convention. The same instance
    # wraps the login route, so counters and the enabled flag are per app.
    limiter = create_limiter(enabled=settings.rate_limit_enabled)
    app.state.limiter = limiter

    _register_middleware(app)
    _register_exception_handlers(app)

    app.include_router(create_router(limiter), prefix="/api/auth", tags=["Auth"])

    @app.get("/health", tags=["Health"])
    async def health() -> HealthResponse:
        """Liveness only. No store round-trip; not rate limited."""
        return HealthResponse(version=__version__)

    return app


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


def _register_middleware(app: FastAPI) -> None:
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
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        """Render a classified failure. Context is logged, never returned,
        except a validation error's list of missing fields."""
        status_code = STATUS_BY_KIND[exc.kind]
        if status_code >= 500:
            logger.error("%s %s -> %r", request.method, request.url.path, exc)
        else:
            logger.info("%s %s -> %s", request.method, request.url.path, exc.kind.value)
        fields = exc.context.get("fields") if isinstance(exc, ValidationError) else None
        return _error_response(status_code, exc.kind.value, exc.message, fields=fields)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error when a rate limit is exceeded."""
        retry_after = int(getattr(exc, "retry_after", 60))
        response = _error_response(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed JSON or wrongly typed fields are a plain 400, like a missing field."""
        return _error_response(
            400,
            ErrorKind.validation.value,
            "Request validation failed.",
            detail=str(_public_errors(exc)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Return a structured error for framework-raised HTTP exceptions (404, 405)."""
        return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for anything that escaped the session boundary.

        The raw exception goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error_response(500, ErrorKind.internal.value, "Internal server error")
