"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from fertility_api.core.config import settings
from fertility_api.core.errors import AppError, ValidationError, format_validation_errors
from fertility_api.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Patient data must not reach Sentry
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from fertility_api.core.rate_limit import limiter


# ============================================================================
# Lifespan (payment client owned by the process)
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    from fertility_api.services.payment_service import build_client

    app.state.payment_client = build_client()
    yield
    app.state.payment_client = None


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Fertility Care API",
    description="Patient benefit verification, packages and admin console API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ============================================================================
# Error envelope
# ============================================================================

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError(errors=format_validation_errors(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


# ============================================================================
# Routers
# ============================================================================

from fertility_api.routers import auth
app.include_router(auth.router, prefix="/auth", tags=["auth"])

# Admin console (session + admin role)
from fertility_api.routers import admin_organizations, admin_packages, admin_users, admin_activity
app.include_router(admin_organizations.router)
app.include_router(admin_packages.router)
app.include_router(admin_users.router)
app.include_router(admin_activity.router)

# Benefit verification wizard (any signed-in user)
from fertility_api.routers import benefit_verification
app.include_router(benefit_verification.router)

# Payments (Stripe)
from fertility_api.routers import payments
app.include_router(payments.router)

# Provider roster
from fertility_api.routers import provider
app.include_router(provider.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
