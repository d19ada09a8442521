# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the DropAccess API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import DropAccessException, dropaccess_exception_handler
from app.routers import (
    access,
    drops,
    health,
    notifications,
    payments,
    stats,
    subscriptions,
    tasks,
    uploads,
    usage,
)
from app.auth import routes as auth_routes
from core.services.analytics_service import AnalyticsService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs which optional integrations are configured at startup.
    """
    logger.info(f"Starting DropAccess API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    if not settings.DODO_PAYMENTS_API_KEY:
        logger.warning("DODO_PAYMENTS_API_KEY not set - payments are disabled")
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set - notification emails are skipped")
    if not settings.POSTHOG_KEY:
        logger.info("POSTHOG_KEY not set - analytics events are skipped")

    yield

    logger.info("Shutting down DropAccess API")
    AnalyticsService.shutdown()


# Create FastAPI application
app = FastAPI(
    title="DropAccess API",
    description="""
## Time-gated, recipient-restricted sharing

Share a file or a masked URL with a list of email addresses. Recipients
verify their email to open the drop, and access expires either at a shared
deadline or on a personal timer that starts at verification.

### How It Works

1. **Upload** - `POST /uploads` stores the file (file drops only)
2. **Create a Drop** - `POST /drops` with recipients and a timer mode
3. **Recipients Verify** - `POST /access/{id}/verify` returns a session token
4. **View** - `GET /access/{id}/content` with the `X-Drop-Session` header

### Plans

| Plan | Drops / month | Recipients / drop | File size | Storage |
|------|---------------|-------------------|-----------|---------|
| **Free** | 3 | 3 | 10 MB | 30 MB |
| **Individual** | 15 | 20 | 300 MB | 4.5 GB |
| **Business** | Unlimited | Unlimited | Unlimited | Unlimited |
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Verify Supabase JWTs and read the current user"},
        {"name": "Drops", "description": "Create and manage drops"},
        {"name": "Stats", "description": "Dashboard counters"},
        {"name": "Uploads", "description": "Upload files for file drops"},
        {"name": "Access", "description": "Public recipient verification and content"},
        {"name": "Usage", "description": "Monthly and weekly usage counters"},
        {"name": "Subscriptions", "description": "Plan limit checks and upgrade prompts"},
        {"name": "Payments", "description": "Checkout, subscription management and webhooks"},
        {"name": "Notifications", "description": "Recipient notification emails"},
        {"name": "Tasks", "description": "Track background task progress"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(DropAccessException)
async def handle_dropaccess_exception(request: Request, exc: DropAccessException):
    """Handle custom DropAccess exceptions."""
    return await dropaccess_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# auth_routes.router carries its own /auth prefix
app.include_router(auth_routes.router, prefix="/api/v1", tags=["Auth"])

app.include_router(health.router, prefix="/api/v1", tags=["Health"])

app.include_router(drops.router, prefix="/api/v1/drops", tags=["Drops"])

app.include_router(stats.router, prefix="/api/v1/stats", tags=["Stats"])

app.include_router(uploads.router, prefix="/api/v1/uploads", tags=["Uploads"])

app.include_router(access.router, prefix="/api/v1/access", tags=["Access"])

app.include_router(usage.router, prefix="/api/v1/usage", tags=["Usage"])

app.include_router(subscriptions.router, prefix="/api/v1/subscriptions", tags=["Subscriptions"])

app.include_router(payments.router, prefix="/api/v1/payments", tags=["Payments"])

app.include_router(notifications.router, prefix="/api/v1/notifications", tags=["Notifications"])

app.include_router(tasks.router, prefix="/api/v1/tasks", tags=["Tasks"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "DropAccess API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
