"""
Sync Schemas
Accounts, remote records, output actions and sync summaries
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# TIME HELPERS
# ============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Epoch milliseconds, the unit HubSpot search filters compare against."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def parse_timestamp(value: Union[str, int, float, datetime, None]) -> Optional[datetime]:
    """
    Parse a HubSpot timestamp.

    HubSpot returns ISO 8601 strings ("2024-01-01T00:00:00.000Z") for
    createdAt/updatedAt and most date properties, and epoch-millisecond
    strings for a few legacy properties. Both are accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class EntityKind(str, Enum):
    """HubSpot object types synced per account (organizations, people, events)."""
    COMPANIES = "companies"
    CONTACTS = "contacts"
    MEETINGS = "meetings"


class PassState(str, Enum):
    """Lifecycle of one entity pass."""
    PENDING = "pending"
    FETCHING = "fetching"
    RESOLVING = "resolving"
    TRANSFORMING = "transforming"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


# ============================================================================
# ACCOUNT
# ============================================================================

class Account(BaseModel):
    """
    One connected HubSpot portal.

    Token fields are written by the CredentialManager. Watermarks change only
    through commit_watermark(), called after a pass completes.
    """
    external_id: str
    api_key: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    watermarks: Dict[EntityKind, Optional[datetime]] = Field(
        default_factory=lambda: {kind: None for kind in EntityKind}
    )

    def watermark(self, kind: EntityKind) -> Optional[datetime]:
        return self.watermarks.get(kind)

    def commit_watermark(self, kind: EntityKind, value: datetime) -> None:
        self.watermarks[kind] = value


# ============================================================================
# REMOTE RECORDS
# ============================================================================

class RemoteRecord(BaseModel):
    """A CRM object exactly as returned by the search API."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    properties: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    def prop(self, name: str) -> Any:
        return (self.properties or {}).get(name)


class SyncCursor(BaseModel):
    """
    Transient pagination state for one pass.

    window_end is the pass's captured "now" and stays fixed. window_start
    only moves forward, and only when the cursor depth is exhausted.
    """
    after: Optional[str] = None
    window_start: Optional[datetime] = None
    window_end: datetime

    def narrow(self, new_start: datetime) -> bool:
        """Restart the cursor from new_start. Returns False if that would not advance the window."""
        if self.window_start is not None and new_start <= self.window_start:
            return False
        self.window_start = new_start
        self.after = None
        return True


# ============================================================================
# OUTPUT
# ============================================================================

class OutputAction(BaseModel):
    """The unit delivered to the analytics sink."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action_name: str = Field(alias="actionName")
    action_date: datetime = Field(alias="actionDate")
    include_in_analytics: int = Field(default=0, alias="includeInAnalytics")
    identity: Optional[str] = None
    user_properties: Optional[Dict[str, Any]] = Field(default=None, alias="userProperties")
    company_properties: Optional[Dict[str, Any]] = Field(default=None, alias="companyProperties")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# SUMMARIES
# ============================================================================

class PassResult(BaseModel):
    """Outcome of one entity pass."""
    kind: EntityKind
    status: PassState
    records_fetched: int = 0
    records_skipped: int = 0
    records_repeated: int = 0
    actions_emitted: int = 0
    pages: int = 0
    window_resets: int = 0
    watermark: Optional[datetime] = None
    error: Optional[str] = None


class AccountSyncResult(BaseModel):
    """Outcome of all passes for one account."""
    status: str  # "success", "partial_success", "error"
    account_id: str
    passes: List[PassResult] = []
    actions_flushed: int = 0
    actions_dropped: int = 0
    errors: List[str] = []


class SyncRunResult(BaseModel):
    """Outcome of one run over every configured account."""
    status: str
    accounts: List[AccountSyncResult] = []
    errors: List[str] = []


class SyncJobResponse(BaseModel):
    """Response for the sync trigger endpoint."""
    job_id: str
    status: str  # "queued"
    account_id: Optional[str] = None
    tracked: bool = False
