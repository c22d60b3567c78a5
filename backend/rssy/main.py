from fastapi import FastAPI
from contextlib import asynccontextmanager
from typing import Optional
from rssy import __version__
from rssy.api.deps import limiter
from rssy.api.endpoints import actions, articles, feeds, preferences
from rssy.container import Services, build_services
from rssy.core.config import settings
from rssy.core.database import init_db
from rssy.core.logging_config import CorrelationIdMiddleware, setup_logging
from rssy.services.scheduler import FeedScheduler
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    if app.state.services is None:
        setup_logging(settings.LOG_LEVEL, settings.JSON_LOGS)
        logger.info("Starting rssy...")
        init_db()
        app.state.services = build_services()

    scheduler = None
    if app.state.start_scheduler:
        scheduler = FeedScheduler(app.state.services)
        scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down rssy...")
    if scheduler is not None:
        scheduler.shutdown()


def create_app(services: Optional[Services] = None, start_scheduler: bool = True) -> FastAPI:
    """Build the application; passing `services` skips logging and database setup."""
    app = FastAPI(
        title="rssy",
        description="RSS aggregator with daily digests and AI summaries",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services
    app.state.start_scheduler = start_scheduler

    # Add correlation ID middleware (first, so all logs have correlation IDs)
    app.add_middleware(CorrelationIdMiddleware)

    # Add rate limiting
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.include_router(feeds.router, prefix="/api/feeds", tags=["feeds"])
    app.include_router(articles.router, prefix="/api/articles", tags=["articles"])
    app.include_router(preferences.router, prefix="/api/preferences", tags=["preferences"])
    app.include_router(actions.router, prefix="/api", tags=["actions"])

    @app.get("/health")
    def health_check():
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()
