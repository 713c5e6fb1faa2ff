"""
Unified Configuration
All environment variables and settings in one place

SECURITY:
- All secrets loaded from environment variables
- No hardcoded credentials
- HubSpot client id/secret are only read by the OAuth refresh exchange
"""
from typing import Optional
import logging
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings.
    Validates all environment variables at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ============================================================================
    # SERVER
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # HUBSPOT (OAuth app + API)
    # ============================================================================

    hubspot_client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HUBSPOT_CID", "HUBSPOT_CLIENT_ID"),
        description="HubSpot OAuth app client id"
    )
    hubspot_client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("HUBSPOT_CS", "HUBSPOT_CLIENT_SECRET"),
        description="HubSpot OAuth app client secret"
    )
    hubspot_api_base: str = Field(default="https://api.hubapi.com", description="HubSpot API base URL")

    # ============================================================================
    # ACCOUNT STORE (Supabase)
    # ============================================================================

    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_key: Optional[str] = Field(default=None, description="Supabase service key (backend uses this)")
    accounts_table: str = Field(default="hubspot_accounts", description="Table holding HubSpot accounts and watermarks")

    # ============================================================================
    # ANALYTICS SINK
    # ============================================================================

    sink_url: Optional[str] = Field(default=None, description="Analytics ingestion endpoint")
    sink_api_key: Optional[str] = Field(default=None, description="Analytics ingestion API key")

    # ============================================================================
    # SYNC TUNING
    # ============================================================================

    search_page_limit: int = Field(default=100, description="Records requested per search page")
    cursor_depth_limit: int = Field(default=9900, description="Largest search cursor offset before the window is narrowed")
    fetch_max_retries: int = Field(default=4, description="Retries after the first failed search request")
    fetch_backoff_base_ms: int = Field(default=5000, description="Backoff base; retry n waits base * 2^n ms")
    action_flush_threshold: int = Field(default=2000, description="Buffered actions before a background flush")
    http_timeout_seconds: float = Field(default=60.0, description="Timeout for HubSpot and sink HTTP calls")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    # Redis (job queue)
    redis_url: Optional[str] = Field(default=None, description="Redis connection URL")

    # Error tracking (Sentry)
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    # ============================================================================
    # API KEYS
    # ============================================================================

    sync_api_key: Optional[str] = Field(default=None, description="X-API-Key required by the sync trigger endpoint")

    # ============================================================================
    # OPTIONAL SETTINGS
    # ============================================================================

    save_jsonl: bool = Field(default=False, description="Append delivered actions to JSONL for debugging")
    jsonl_path: str = Field(default="./outbox.jsonl", description="JSONL debug output path")

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate critical settings at startup.

        - Warn if OAuth credentials are missing (token refresh will fail)
        - Warn if the sink is not configured (actions are dropped)
        - Warn if debug mode enabled in production
        """
        if self.environment == "production" and self.debug:
            logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION! This is insecure.")

        if not self.hubspot_client_id or not self.hubspot_client_secret:
            logger.warning("⚠️  HUBSPOT_CID / HUBSPOT_CS not set. Token refresh will fail.")

        if not self.sink_url:
            logger.warning("⚠️  SINK_URL not set. Actions will not be delivered.")

        logger.info("=" * 80)
        logger.info("crmsync Configuration Loaded")
        logger.info("=" * 80)
        logger.info(f"Environment: {self.environment}")
        logger.info(f"HubSpot API: {self.hubspot_api_base}")
        logger.info(f"Supabase: {'✅ Configured' if self.supabase_url else '❌ Not configured'}")
        logger.info(f"Sink: {'✅ Configured' if self.sink_url else '❌ Not configured'}")
        logger.info(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.info(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.info(f"Flush threshold: {self.action_flush_threshold}")
        logger.info("=" * 80)

        return self


# Global settings instance
settings = Settings()
