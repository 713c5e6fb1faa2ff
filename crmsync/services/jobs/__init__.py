"""
Background Job Queue
Dramatiq-based async task processing
"""
from crmsync.services.jobs.broker import broker
from crmsync.services.jobs.tasks import sync_hubspot_task

__all__ = ["broker", "sync_hubspot_task"]
