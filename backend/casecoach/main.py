"""CaseCoach API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map CaseCoachError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and runtime initialized on startup via lifespan context manager
    - Shutdown drains queued analyses before cancelling room timers

Design Decisions:
    - Lifespan over @app.on_event: cleaner startup/teardown pairing
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from casecoach.api.error_handlers import register_error_handlers
from casecoach.api.routes import auth, health, interviews, livekit
from casecoach.config import get_settings
from casecoach.infrastructure.database import init_db
import casecoach.infrastructure.database as db_module
from casecoach.infrastructure.observability import setup_logging
from casecoach.services.runtime import init_runtime, shutdown_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    init_runtime(settings)
    logger.info("CaseCoach API started")
    yield
    logger.info("CaseCoach API shutting down")
    await shutdown_runtime()
    if db_module.db_manager:
        await db_module.db_manager.dispose()


app = FastAPI(title="CaseCoach API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(interviews.router)
app.include_router(livekit.router)

register_error_handlers(app)
