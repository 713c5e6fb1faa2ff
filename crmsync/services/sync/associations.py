"""
Association resolution
Joins a page of child records to related records via HubSpot batch endpoints

A failed lookup never aborts the page: it degrades to an empty map, so the
dependent records lose their linkage (or, for meetings, their identity) for
that page only.
"""
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List

from crmsync.core.exceptions import AssociationLookupError
from crmsync.services.sync.providers.hubspot import HubSpotClient

logger = logging.getLogger(__name__)


def _unique(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(str(i) for i in ids if i))


class AssociationResolver:
    """Batch association and identity lookups for one page of records."""

    def __init__(self, client: HubSpotClient):
        self.client = client
        self.failures = 0

    async def _degrade_on_error(self, description: str, call: Callable[[], Awaitable[List[Dict[str, Any]]]]) -> List[Dict[str, Any]]:
        try:
            return await call()
        except Exception as e:
            error = AssociationLookupError(f"Error fetching {description}: {e}")
            self.failures += 1
            logger.error(f"{error} (continuing without it)")
            return []

    # ========================================================================
    # CONTACT → COMPANY
    # ========================================================================

    async def resolve_companies_for_contacts(self, contact_ids: List[str]) -> Dict[str, str]:
        """
        Map contact id → first associated company id.

        Contacts without a company are absent from the result.
        """
        contact_ids = _unique(contact_ids)
        if not contact_ids:
            return {}

        results = await self._degrade_on_error(
            "contact-company associations",
            lambda: self.client.read_associations("contacts", "companies", contact_ids)
        )

        companies: Dict[str, str] = {}
        for association in results:
            source = association.get("from") or {}
            targets = association.get("to") or []
            if source.get("id") and targets and targets[0].get("id"):
                companies[str(source["id"])] = str(targets[0]["id"])
        return companies

    # ========================================================================
    # MEETING → CONTACTS → EMAIL
    # ========================================================================

    async def resolve_contacts_for_meetings(self, meeting_ids: List[str]) -> Dict[str, List[str]]:
        """Map meeting id → associated contact ids."""
        meeting_ids = _unique(meeting_ids)
        if not meeting_ids:
            return {}

        results = await self._degrade_on_error(
            "meeting-contact associations",
            lambda: self.client.read_associations("meetings", "contacts", meeting_ids)
        )

        meeting_contacts: Dict[str, List[str]] = {}
        for association in results:
            source = association.get("from") or {}
            targets = association.get("to")
            if not source.get("id") or not targets:
                continue
            # one entry per association type, so the same contact can be listed twice
            meeting_id = str(source["id"])
            meeting_contacts[meeting_id] = _unique(
                meeting_contacts.get(meeting_id, []) + [target.get("id") for target in targets]
            )
        return meeting_contacts

    async def resolve_emails(self, contact_ids: List[str]) -> Dict[str, str]:
        """Map contact id → email, for contacts that have one."""
        contact_ids = _unique(contact_ids)
        if not contact_ids:
            return {}

        results = await self._degrade_on_error(
            "contacts for meetings",
            lambda: self.client.batch_read("contacts", contact_ids, ["email"])
        )

        emails: Dict[str, str] = {}
        for contact in results:
            email = (contact.get("properties") or {}).get("email")
            if contact.get("id") and email:
                emails[str(contact["id"])] = email
        return emails

    async def resolve_meeting_attendees(self, meeting_ids: List[str]) -> Dict[str, List[str]]:
        """
        Map meeting id → attendee emails.

        Two levels: meeting → contacts association, then one batch read of
        `email` for the union of all related contacts. Meetings whose
        contacts have no email are absent.
        """
        meeting_contacts = await self.resolve_contacts_for_meetings(meeting_ids)
        all_contact_ids = [cid for contact_ids in meeting_contacts.values() for cid in contact_ids]
        emails = await self.resolve_emails(all_contact_ids)

        attendees: Dict[str, List[str]] = {}
        for meeting_id, contact_ids in meeting_contacts.items():
            meeting_emails = _unique(emails[cid] for cid in contact_ids if cid in emails)
            if meeting_emails:
                attendees[meeting_id] = meeting_emails
        return attendees
