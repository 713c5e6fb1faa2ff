"""
Sync Error Taxonomy
Every failure the sync engine raises or logs derives from SyncError
"""
from typing import Optional


class SyncError(Exception):
    """Base class for sync engine errors."""


class ConfigurationError(SyncError):
    """No account configured, or a required setting is missing. Aborts the run."""


class CredentialError(SyncError):
    """Token refresh failed or the grant was rejected. Logged, never fatal."""

    def __init__(self, message: str, account_id: Optional[str] = None):
        super().__init__(message)
        self.account_id = account_id


class TransientFetchError(SyncError):
    """Network error or non-2xx response from a HubSpot endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FatalPassError(SyncError):
    """
    An entity pass cannot continue (retries exhausted or window cannot be narrowed).
    Aborts only the current pass; its watermark is not committed.
    """

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message)
        self.kind = kind


class AssociationLookupError(SyncError):
    """Batch association or batch read failed. Degrades to empty associations."""


class SinkDeliveryError(SyncError):
    """The analytics sink rejected a batch of actions."""

    def __init__(self, message: str, batch_size: int = 0):
        super().__init__(message)
        self.batch_size = batch_size
