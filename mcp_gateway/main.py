"""
MCP Gateway - Main FastAPI Application
"""
from fastapi import FastAPI, Request, Response
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

import asyncio
import logging

from mcp_gateway.config import settings, validate_signing_secret
from mcp_gateway.database import Database
from mcp_gateway.errors import AuthenticationError, AuthorizationError, GatewayError, TenantNotInstalledError
from mcp_gateway.services.authorization import AuthorizationFacade
from mcp_gateway.api.v1 import access

logger = logging.getLogger(__name__)

# Rate limiter instance (shared with route-level decorators)
limiter = Limiter(key_func=get_remote_address, default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"])


async def _sweep_periodically(facade: AuthorizationFacade, interval_seconds: float):
    """Sweep stale credentials every interval; runs until cancelled"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(facade.sweep_credentials)
        except Exception:
            logger.exception("Periodic credential sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup: a missing or weak signing secret aborts here
    logger.info("Starting up MCP Gateway...")
    validate_signing_secret(settings)

    database = Database(settings.DATABASE_URL)
    facade = AuthorizationFacade.build(database, settings)
    app.state.database = database
    app.state.facade = facade

    sweeper = None
    if settings.TOKEN_SWEEP_IN_PROCESS:
        await asyncio.to_thread(facade.sweep_credentials)
        sweeper = asyncio.create_task(
            _sweep_periodically(facade, settings.TOKEN_SWEEP_INTERVAL_HOURS * 3600)
        )

    yield

    # Shutdown
    logger.info("Shutting down...")
    if sweeper is not None:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    database.dispose()


app = FastAPI(
    title="MCP Gateway API",
    description="Authorization and credential lifecycle for multi-tenant agent access",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan
)

# Attach limiter to app state (required by slowapi)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Trusted Host Middleware — reject requests with spoofed Host headers
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)


# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"
    response.headers["Cache-Control"] = "no-store"
    return response


# Error mapping: typed denials keep their category, everything else is generic
@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    logger.info("Authentication failed on %s: %s", request.url.path, exc.reason)
    return JSONResponse(status_code=401, content={"detail": exc.message, "code": exc.reason})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message, "code": exc.reason})


@app.exception_handler(TenantNotInstalledError)
async def tenant_not_installed_handler(request: Request, exc: TenantNotInstalledError):
    return JSONResponse(status_code=404, content={"detail": exc.message, "code": exc.reason})


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    logger.error("Unhandled gateway error on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal_error"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unexpected error on %s", request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "internal_error"})


# Include routers
app.include_router(access.router, prefix="/api/v1/access", tags=["Access"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}
