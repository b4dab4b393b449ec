"""FastAPI application factory and lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from episodic.config import settings
from episodic.db.engine import create_db_engine, create_session_factory
from episodic.logging_config import configure_logging
from episodic.services.engine import build_engine
from episodic.workers.outbox import run_outbox_worker

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=not settings.local_mode)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no Alembic migrations)
    if "sqlite" in db_url:
        from episodic.db.base import Base
        import episodic.db.models  # noqa: F401  register all ORM models

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    # Redis is optional: it backs the shared cooldown store
    app.state.redis = None
    if not settings.local_mode:
        try:
            import redis.asyncio as aioredis
            app.state.redis = aioredis.from_url(settings.redis_url, decode_responses=True)
        except Exception:
            logger.warning("Redis not available, cooldown state stays per process")

    app.state.engine = build_engine(app.state.db_session_factory, settings, redis=app.state.redis)

    worker_task = asyncio.create_task(
        run_outbox_worker(
            app.state.engine.outbox,
            poll_interval=settings.outbox_poll_seconds,
            retention=timedelta(hours=settings.outbox_retention_hours),
            claim_timeout=timedelta(minutes=settings.outbox_claim_timeout_minutes),
        )
    )

    logger.info("Episodic API started (db=%s)", "sqlite" if "sqlite" in db_url else "postgresql")
    yield

    # Shutdown
    worker_task.cancel()
    try:
        await worker_task
    except asyncio.CancelledError:
        pass
    if app.state.redis:
        await app.state.redis.aclose()
    await engine.dispose()
    logger.info("Episodic API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Episodic Interaction API",
        version="0.1.0",
        description="Reactions, notification fan-out and grouped notification feeds.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Order matters: last added = first executed
    from episodic.api.middleware.auth import AuthMiddleware
    from episodic.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(AuthMiddleware)
    app.add_middleware(TraceIdMiddleware)

    from episodic.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from episodic.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
