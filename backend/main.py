# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS, request-logging, session and rate-limit middleware.
* Mount the feature routers (auth, two-factor, settings, admin).
* Expose a /health endpoint for container liveness checks.

Middleware order (outermost first)
----------------------------------
request log → CORS → session → rate limit → routers

The session middleware runs before the rate limiter so that authenticated
clients are counted per user rather than per IP address.
"""

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from admin.router import router as admin_router
from auth.policy import resolve_security_settings
from auth.router import router as auth_router
from auth.sessions import is_exempt, refresh_session_token, validate_session_token
from auth.two_factor_router import router as two_factor_router
from core.config import settings
from core.logger import logger
from core.rate_limit import DEFAULT_API_RATE_LIMIT, SKIP_PATHS, rate_limit_key, rate_limiter
from core.result import Failure
from core.security import get_client_ip
from database import SessionLocal
from system_settings.router import public_router as settings_public_router
from system_settings.router import router as settings_admin_router
from system_settings.store import SettingStore

app = FastAPI(title="Whisky Club", version="1.0.0")


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------
# Budget per window is the ``api_rate_limit`` setting.  Any failure inside
# the limiter lets the request through: an outage of the limiter must never
# become an outage of the API.


class _RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or request.url.path in SKIP_PATHS:
            return await call_next(request)

        try:
            async with SessionLocal() as db:
                limit = await SettingStore(db).get("api_rate_limit", DEFAULT_API_RATE_LIMIT)
            if isinstance(limit, bool) or not isinstance(limit, (int, float)) or limit < 1:
                limit = DEFAULT_API_RATE_LIMIT
            claims = getattr(request.state, "session", None)
            key = rate_limit_key(claims.user_id if claims else None, get_client_ip(request))
            decision = await rate_limiter.hit(key, int(limit), settings.rate_limit_window_seconds, time.time())
        except Exception:
            logger.exception("Rate limiter failed; request allowed through")
            return await call_next(request)

        headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(int(decision.reset_at)),
        }
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s on %s", key, request.url.path)
            headers["Retry-After"] = str(max(int(decision.reset_at - time.time()), 1))
            return JSONResponse(
                status_code=429,
                content={"detail": {"code": "RATE_LIMITED", "message": "Too many requests, please try again later."}},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response


# ---------------------------------------------------------------------------
# Session validation
# ---------------------------------------------------------------------------
# Validates the bearer token against the *current* session and idle
# timeouts.  Requests without a token pass through; endpoints that need a
# user reject them in ``get_current_user``.


class _SessionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.session = None
        if request.method == "OPTIONS" or is_exempt(request.url.path):
            return await call_next(request)

        scheme, _, token = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() != "bearer" or not token:
            return await call_next(request)

        async with SessionLocal() as db:
            snapshot = await resolve_security_settings(db)
        result = validate_session_token(token.strip(), snapshot)
        if isinstance(result, Failure):
            error = result.error
            logger.info("Rejected session on %s: %s", request.url.path, error.code)
            return JSONResponse(status_code=error.status_code, content={"detail": error.detail()})

        claims = result.value
        request.state.session = claims
        response = await call_next(request)
        if claims.last_activity is not None:
            response.headers["X-Session-Token"] = refresh_session_token(claims)
            response.headers["X-Session-Updated"] = "true"
        return response


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Sensitive paths (login payload, password fields) are NOT echoed – only the
# URL and metadata are recorded.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            get_client_ip(request),
            response.status_code,
            elapsed_ms,
        )
        return response


# Last added runs first
app.add_middleware(_RateLimitMiddleware)
app.add_middleware(_SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
    expose_headers=["X-Session-Token", "X-Session-Updated", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
)
app.add_middleware(_RequestLogMiddleware)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router)
app.include_router(two_factor_router)
app.include_router(settings_public_router)
app.include_router(settings_admin_router)
app.include_router(admin_router)

# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


@app.on_event("startup")
async def _on_startup():
    logger.info("Whisky Club service starting up")


@app.on_event("shutdown")
async def _on_shutdown():
    logger.info("Whisky Club service shutting down")
    await rate_limiter.close()


@app.get("/health")
def health():
    return {"status": "ok"}
