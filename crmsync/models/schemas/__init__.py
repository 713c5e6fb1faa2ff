"""
Pydantic Schemas
Sync domain models and run summaries
"""

from .sync import (
    Account,
    AccountSyncResult,
    EntityKind,
    OutputAction,
    PassResult,
    PassState,
    RemoteRecord,
    SyncCursor,
    SyncJobResponse,
    SyncRunResult,
    parse_timestamp,
    to_epoch_ms,
    utc_now,
)

__all__ = [
    "Account",
    "AccountSyncResult",
    "EntityKind",
    "OutputAction",
    "PassResult",
    "PassState",
    "RemoteRecord",
    "SyncCursor",
    "SyncJobResponse",
    "SyncRunResult",
    "parse_timestamp",
    "to_epoch_ms",
    "utc_now",
]
