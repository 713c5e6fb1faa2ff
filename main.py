"""
crmsync - HubSpot → Analytics Incremental Sync
==============================================
Version: 1.0.0

FastAPI application entry point. The API only triggers runs; the sync
itself executes on the Dramatiq worker (worker.py) or the cron CLI
(crmsync/services/jobs/run_hubspot_sync.py).

Architecture:
- crmsync/core/: Configuration, dependencies, security, retry, errors
- crmsync/middleware/: Error handling
- crmsync/models/: Pydantic schemas
- crmsync/services/sync/: OAuth, pagination, associations, buffer, orchestration
- crmsync/services/jobs/: Dramatiq broker, tasks, cron entry point
- crmsync/api/v1/routes/: API endpoints
"""
import sys
import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI

# Startup error handling
try:
    from crmsync.core.config import settings
    from crmsync.core.dependencies import initialize_clients, shutdown_clients
    from crmsync.middleware.error_handler import ErrorHandlerMiddleware
    from crmsync.api.v1.routes.health import router as health_router
    from crmsync.api.v1.routes.sync import router as sync_router

except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# SENTRY ERROR TRACKING
# ============================================================================

if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        logger.info("✅ Sentry error tracking initialized")
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry: {e}")
else:
    logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")

# ============================================================================
# LIFECYCLE MANAGEMENT
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    logger.info("=" * 80)
    logger.info("Starting crmsync API")
    logger.info(f"Environment: {settings.environment}")
    logger.info("=" * 80)

    await initialize_clients()

    yield

    logger.info("Shutting down crmsync API...")
    await shutdown_clients()


# ============================================================================
# APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="crmsync API",
    description="Incremental HubSpot → analytics sync",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
    lifespan=lifespan
)

app.add_middleware(ErrorHandlerMiddleware)

app.include_router(health_router)
app.include_router(sync_router)

logger.info("✅ All routes registered")

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
