"""
api/main.py -- FastAPI application entry point for AuthGate.

Run with:  python main.py
           uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for the configured browser origins
  2. SlowAPIMiddleware -- rate-limit bookkeeping for api.limiter

Lifespan builds every collaborator of AuthService exactly once -- store,
hasher, secret generator, session issuer, notifier -- and stores the service
on app.state. Nothing holds a module-level connection, so tests swap in
their own service by replacing the lifespan.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthError, DeliveryFailedError
from auth.notifier import build_notifier
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import PasswordHasher, SecretGenerator, SessionIssuer
from core.config import get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authgate.api")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Service assembly
# ---------------------------------------------------------------------------


def build_auth_service(settings) -> AuthService:
    """Construct AuthService and its collaborators from Settings."""
    return AuthService(
        store=UserStore(settings.database_url),
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        secrets=SecretGenerator(),
        sessions=SessionIssuer(settings.secret_key, expire_seconds=settings.token_expire_seconds),
        notifier=build_notifier(settings),
        two_fa_ttl=settings.two_fa_ttl_seconds,
        reset_ttl=settings.reset_ttl_seconds,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth service on startup; dispose the store engine on shutdown."""
    settings = get_settings()
    logger.info("AuthGate API starting up (debug=%s)", settings.debug)
    app.state.auth_service = build_auth_service(settings)
    logger.info("Credential store ready")

    yield

    app.state.auth_service.store.close()
    logger.info("AuthGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AuthGate API",
    description="Password login with emailed second factor and self-service password reset.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
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
# Security headers middleware
# ---------------------------------------------------------------------------

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude={"result"}
        ),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map service errors to their status code and error code.

    delivery_failed also carries the committed result, so the client knows
    the account or challenge exists and must not blindly retry.
    """
    if isinstance(exc, DeliveryFailedError):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=exc.code, message=exc.message),
                result=exc.result,
            ).model_dump(),
        )
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests, slow down.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are client errors like missing fields: 400, not 422.

    Only field locations and error types are echoed back -- the rejected
    input values may be passwords.
    """
    detail = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['type']}" for e in exc.errors())
    return _error_response(400, "validation_error", "Request validation failed.", detail)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception type is logged, never the message or traceback -- either
    can carry request values. The client receives only a generic message.
    """
    logger.error("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
    response = _error_response(500, "internal_error", "An unexpected error occurred.")
    # Unhandled errors are answered outside the http middleware stack.
    response.headers.update(_SECURITY_HEADERS)
    return response


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit applied -- health checks from load balancers and monitoring
# systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Return {ok: true} when the credential store answers."""
    ok = request.app.state.auth_service.store.ping()
    return JSONResponse(status_code=200 if ok else 503, content=HealthResponse(ok=ok).model_dump())
