"""
Data Source Providers
HTTP adapters for external CRM APIs
"""
from crmsync.services.sync.providers.hubspot import HubSpotClient

__all__ = [
    "HubSpotClient",
]
