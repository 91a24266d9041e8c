"""FastAPI application for AgentCRM."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .agents.cache import AnalysisCache
from .config import settings
from .errors import register_exception_handlers

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); other databases use Alembic migrations
    if "sqlite" in settings.database_url and not settings.is_production:
        from .database import create_schema
        await create_schema()
    logger.info("AgentCRM started (llm configured: %s)", settings.llm_configured)
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)
app.state.analysis_cache = AnalysisCache(
    ttl_seconds=settings.cache_ttl_seconds,
    max_entries=settings.cache_max_entries,
)
register_exception_handlers(app)

# Import and register routers
from .routers import agents, health, oauth, sync, test_data  # noqa: E402

app.include_router(agents.router)
app.include_router(oauth.router)
app.include_router(sync.router)
app.include_router(test_data.router)
app.include_router(health.router)
