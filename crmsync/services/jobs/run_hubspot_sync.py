"""
CLI Entry Point for HubSpot Sync
Called by cron job (e.g. every 15 minutes) to sync all connected accounts inline

Usage:
    python -m crmsync.services.jobs.run_hubspot_sync [--account HUB_ID]
"""
import argparse
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main(argv=None):
    """
    Run one sync over every configured account (or a single one).
    Exits non-zero when the run cannot start (no account, store unreachable).
    """
    from crmsync.services.jobs.tasks import get_sync_dependencies, _run_hubspot_sync_with_cleanup

    parser = argparse.ArgumentParser(description="Incremental HubSpot → analytics sync")
    parser.add_argument("--account", dest="account_id", default=None, help="HubSpot portal id to sync")
    args = parser.parse_args(argv)

    logger.info(f"🔄 HubSpot Sync Cron Job Started (account: {args.account_id or 'all'})")

    try:
        http_client, supabase = get_sync_dependencies()
        result = asyncio.run(_run_hubspot_sync_with_cleanup(http_client, supabase, args.account_id))

        logger.info(f"✅ HubSpot sync cron job finished: {result['status']}")
        for error in result.get("errors", []):
            logger.warning(f"   - {error}")
        sys.exit(0)

    except Exception as e:
        logger.error(f"❌ HubSpot sync cron job failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
