"""
Dramatiq Background Worker
Processes HubSpot sync runs asynchronously

Usage:
    dramatiq worker -p 1 -t 1

One process and one thread: accounts are synced strictly one at a time.
"""
import logging

from crmsync.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking (if configured)
if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        logger.info("✅ Sentry initialized in worker")
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry in worker: {e}")
else:
    logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")

# Import tasks (this registers them with Dramatiq)
try:
    from crmsync.services.jobs.broker import broker
    from crmsync.services.jobs.tasks import sync_hubspot_task

    logger.info("✅ crmsync worker initialized")
    logger.info("📋 Registered tasks: sync_hubspot_task")

except Exception as e:
    logger.error(f"❌ Failed to initialize worker: {e}", exc_info=True)
    raise
