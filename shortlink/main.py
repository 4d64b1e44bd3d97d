"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes (dashboard, admin, public)
- Middleware (logging, CORS, edge rate limiting)
- Application metadata

Route order matters: health checks and the /api routers are registered before
the public router, whose last route is the catch-all GET /{slug}.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from shortlink.api import admin, dashboard, endpoints
from shortlink.core.logging_config import configure_logging
from shortlink.core.rate_limit import limiter
from shortlink.core.setting import settings
from shortlink.db.session import db_adapter, engine, init_models
from shortlink.middleware.logging import add_logging_middleware

logger = logging.getLogger(__name__)

app = FastAPI(
    title="shortlink",
    description="URL shortener with click analytics and a keyed creation API",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI documentation
    redoc_url="/redoc",  # ReDoc documentation
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health endpoints defined before router to match before catch-all route
@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "shortlink",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "healthy"}


app.include_router(dashboard.router)
app.include_router(admin.router)
app.include_router(endpoints.router, tags=["Public"])


@app.on_event("startup")
async def startup_event():
    """Configure logging and create missing tables on startup."""
    configure_logging()
    if settings.AUTO_CREATE_TABLES:
        await init_models()
    logger.info(
        f"{settings.SERVICE_NAME or 'shortlink'} started "
        f"(env={settings.ENV_SETTING.value}, db={db_adapter.get_dialect_name()}, base_url={settings.BASE_URL})"
    )


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await engine.dispose()
