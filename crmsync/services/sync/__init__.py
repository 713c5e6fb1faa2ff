"""
HubSpot Sync System
Incremental sync of companies, contacts and meetings into the analytics sink
"""
from crmsync.services.sync.oauth import CredentialManager
from crmsync.services.sync.database import SupabaseAccountStore
from crmsync.services.sync.buffer import ActionBuffer
from crmsync.services.sync.persistence import HttpActionSink, append_jsonl
from crmsync.services.sync.orchestration.orchestrator import SyncOrchestrator

__all__ = [
    "CredentialManager",
    "SupabaseAccountStore",
    "ActionBuffer",
    "HttpActionSink",
    "append_jsonl",
    "SyncOrchestrator",
]
