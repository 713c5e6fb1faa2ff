"""
Account store
Loads and saves HubSpot accounts (tokens + watermarks) in Supabase
"""
import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from crmsync.core.config import settings
from crmsync.models.schemas import Account, EntityKind, parse_timestamp

logger = logging.getLogger(__name__)


# ============================================================================
# ROW MAPPING
# ============================================================================

def account_from_row(row: Dict[str, Any]) -> Account:
    """Build an Account from a `hubspot_accounts` row."""
    pulled = row.get("last_pulled_dates") or {}
    watermarks = {kind: parse_timestamp(pulled.get(kind.value)) for kind in EntityKind}

    return Account(
        external_id=str(row["hub_id"]),
        api_key=row.get("api_key"),
        access_token=row.get("access_token"),
        refresh_token=row.get("refresh_token"),
        watermarks=watermarks,
    )


def account_to_row(account: Account) -> Dict[str, Any]:
    """Serialize an Account for upsert."""
    return {
        "hub_id": account.external_id,
        "api_key": account.api_key,
        "access_token": account.access_token,
        "refresh_token": account.refresh_token,
        "last_pulled_dates": {
            kind.value: value.isoformat() if value else None
            for kind, value in account.watermarks.items()
        },
    }


# ============================================================================
# STORE
# ============================================================================

class SupabaseAccountStore:
    """find/save contract over the accounts table."""

    def __init__(self, supabase: Client, table: Optional[str] = None):
        self.supabase = supabase
        self.table = table or settings.accounts_table

    async def list_accounts(self) -> List[Account]:
        result = self.supabase.table(self.table).select("*").execute()
        return [account_from_row(row) for row in (result.data or [])]

    async def find(self, external_id: Optional[str] = None) -> Optional[Account]:
        """
        Load one account.

        Args:
            external_id: HubSpot portal id. If not provided, returns the first account found.

        Returns:
            Account if found, None otherwise
        """
        query = self.supabase.table(self.table).select("*")
        if external_id:
            query = query.eq("hub_id", external_id)

        result = query.limit(1).execute()
        if result.data:
            return account_from_row(result.data[0])
        return None

    async def save(self, account: Account) -> None:
        self.supabase.table(self.table).upsert(
            account_to_row(account),
            on_conflict="hub_id"
        ).execute()
        logger.info(f"Saved account {account.external_id}")
