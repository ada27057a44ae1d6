"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from bizgov.core.config import get_settings
from bizgov.core.database import async_session_factory, init_db
from bizgov.core.limiter import limiter
from bizgov.routers import audit, auth, compliance, evidence, health, transfer
from bizgov.services.users import ensure_admin_user

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    await init_db()
    async with async_session_factory() as session:
        await ensure_admin_user(session, settings.admin_username, settings.admin_password)
    logger.info(f"{settings.app_name} started")
    yield


app = FastAPI(
    title=settings.app_name,
    description="Compliance tracking with evidence and database export/import",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix=settings.api_prefix, tags=["auth"])
app.include_router(transfer.router, prefix=settings.api_prefix, tags=["transfer"])
app.include_router(evidence.router, prefix=settings.api_prefix, tags=["evidence"])
app.include_router(compliance.router, prefix=settings.api_prefix, tags=["compliance"])
app.include_router(audit.router, prefix=settings.api_prefix, tags=["audit"])
