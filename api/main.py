"""
api/main.py -- FastAPI application entry point for TicketDesk.

Run with:      uvicorn asgi:app --reload

Middleware, in registration order (Starlette wraps the last one registered
outermost, so log_requests sees every response, redirects included):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. navigation_gate       -- cookie-presence redirect for protected page paths
  5. log_requests          -- one log line per request

Lifespan builds the credential store and the auth services once and stores
them on app.state; request handlers reach them through auth.dependencies.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.groups import router as groups_router
from api.routes.v1.locations import router as locations_router
from api.routes.v1.users import router as users_router
from auth.errors import AuthError
from auth.gate import LOGIN_PATH, needs_login_redirect
from auth.hierarchy import HierarchyAuthorizer
from auth.memberships import MembershipResolver
from auth.sessions import SessionResolver
from auth.store import CredentialStore
from auth.tokens import get_token_service
from core.config import get_settings

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ticketdesk.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def install_services(app: FastAPI, store: CredentialStore) -> None:
    """Build the auth services around a store and publish them on app.state.

    Shared by the real lifespan and the test lifespan so both wire the same
    object graph.
    """
    tokens = get_token_service()
    memberships = MembershipResolver(store)
    sessions = SessionResolver(tokens, store)
    app.state.credential_store = store
    app.state.tokens = tokens
    app.state.sessions = sessions
    app.state.authorizer = HierarchyAuthorizer(sessions, memberships, store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the credential store on startup and dispose of it on shutdown."""
    logger.info("TicketDesk API starting up")
    store = CredentialStore(_settings.database_url)
    install_services(app, store)
    logger.info("Auth initialized (token lifetime=%ds)", app.state.tokens.expire_seconds)

    yield

    store.close()
    logger.info("TicketDesk API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TicketDesk API",
    description="Session and group-scoped authorization endpoints for the TicketDesk helpdesk.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Navigation gate
#
# Cheap edge check for browser page loads: a protected path without any
# accessToken cookie is sent to the login page. The cookie is NOT verified
# here -- the API routes behind each page do that through SessionResolver.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def navigation_gate(request: Request, call_next):
    if needs_login_redirect(request.url.path, request.cookies):
        return RedirectResponse(LOGIN_PATH, status_code=302)
    return await call_next(request)


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
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(groups_router, prefix="/api/v1", tags=["Groups"])
app.include_router(locations_router, prefix="/api/v1", tags=["Locations"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every failure leaves as {"error": {"code", "message", "detail"?}} so the
# browser client has one shape to parse.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the auth core's outcome taxonomy onto HTTP.

    Only the generic message travels to the client. Transient failures were
    already logged with a traceback by the store.
    """
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s from %s", request.url.path, request.client.host if request.client else "?")
    response = _error_response(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
    response.headers["Retry-After"] = "60"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or invalid input is a 400 bad_request, same as auth.errors.Malformed."""
    return _error_response(400, "bad_request", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Router-level errors (unknown path, wrong method) in the same envelope."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort. The exception goes to the log, never to the response body."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    store: CredentialStore = request.app.state.credential_store
    database = "ok" if store.ping() else "error"
    return HealthResponse(version=_VERSION, components={"app": "ok", "database": database})
