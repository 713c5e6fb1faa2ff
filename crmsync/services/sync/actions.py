"""
HubSpot record → analytics action normalization

Converts one search result into the OutputAction(s) the sink ingests.
Records without a usable identity return nothing; they are skipped, not errors.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from crmsync.models.schemas import OutputAction, RemoteRecord, parse_timestamp

logger = logging.getLogger(__name__)


# ============================================================================
# PROPERTY SETS (requested from the search API)
# ============================================================================

COMPANY_PROPERTIES = [
    "name",
    "domain",
    "country",
    "industry",
    "description",
    "annualrevenue",
    "numberofemployees",
    "hs_lead_status",
]

CONTACT_PROPERTIES = [
    "firstname",
    "lastname",
    "jobtitle",
    "email",
    "hubspotscore",
    "hs_lead_status",
    "hs_analytics_source",
    "hs_latest_source",
]

MEETING_PROPERTIES = [
    "hs_meeting_title",
    "hs_meeting_start_time",
    "hs_meeting_end_time",
    "hs_createdate",
    "hs_lastmodifieddate",
]


# ============================================================================
# HELPERS
# ============================================================================

def filter_null_values(properties: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in properties.items() if value is not None}


def is_created(created_at: Optional[datetime], watermark: Optional[datetime]) -> bool:
    """
    A record is "created" when it was created strictly after the pass-start
    watermark. Equal timestamps count as updates. Without a watermark
    (first sync) everything is a creation.
    """
    if watermark is None:
        return True
    if created_at is None:
        return False
    return created_at > watermark


def _action_timing(
    created_at: Optional[datetime],
    updated_at: Optional[datetime],
    watermark: Optional[datetime]
) -> Optional[tuple]:
    created = is_created(created_at, watermark)
    action_date = created_at if created else updated_at
    if action_date is None:
        return None
    return created, action_date


def _parse_score(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


# ============================================================================
# COMPANIES
# ============================================================================

def normalize_company(record: RemoteRecord, watermark: Optional[datetime]) -> Optional[OutputAction]:
    """Company → "Company Created"/"Company Updated" keyed by company id."""
    if not record.properties:
        return None

    timing = _action_timing(record.created_at, record.updated_at, watermark)
    if timing is None:
        logger.debug(f"Skipping company {record.id}: no usable timestamp")
        return None
    created, action_date = timing

    company_properties = {
        "company_id": record.id,
        "company_domain": record.prop("domain"),
        "company_industry": record.prop("industry"),
    }

    return OutputAction(
        action_name="Company Created" if created else "Company Updated",
        action_date=action_date,
        company_properties=filter_null_values(company_properties),
    )


# ============================================================================
# CONTACTS
# ============================================================================

def normalize_contact(
    record: RemoteRecord,
    watermark: Optional[datetime],
    company_id: Optional[str] = None
) -> Optional[OutputAction]:
    """
    Contact → "Contact Created"/"Contact Updated" identified by email.

    Contacts without an email are skipped.
    """
    email = record.prop("email")
    if not record.properties or not email:
        return None

    timing = _action_timing(record.created_at, record.updated_at, watermark)
    if timing is None:
        logger.debug(f"Skipping contact {record.id}: no usable timestamp")
        return None
    created, action_date = timing

    full_name = f"{record.prop('firstname') or ''} {record.prop('lastname') or ''}".strip()

    user_properties = {
        "company_id": company_id,
        "contact_name": full_name,
        "contact_title": record.prop("jobtitle"),
        "contact_source": record.prop("hs_analytics_source"),
        "contact_status": record.prop("hs_lead_status"),
        "contact_score": _parse_score(record.prop("hubspotscore")),
    }

    return OutputAction(
        action_name="Contact Created" if created else "Contact Updated",
        action_date=action_date,
        identity=email,
        user_properties=filter_null_values(user_properties),
    )


# ============================================================================
# MEETINGS
# ============================================================================

def normalize_meeting(
    record: RemoteRecord,
    watermark: Optional[datetime],
    attendee_emails: List[str]
) -> List[OutputAction]:
    """
    Meeting → one "Meeting Created"/"Meeting Updated" action per attendee email.

    Meetings with no resolvable attendee produce no actions.
    """
    if not record.properties or not attendee_emails:
        return []

    created_at = parse_timestamp(record.prop("hs_createdate")) or record.created_at
    updated_at = parse_timestamp(record.prop("hs_lastmodifieddate")) or record.updated_at

    timing = _action_timing(created_at, updated_at, watermark)
    if timing is None:
        logger.debug(f"Skipping meeting {record.id}: no usable timestamp")
        return []
    created, action_date = timing

    user_properties = filter_null_values({
        "meeting_title": record.prop("hs_meeting_title"),
        "meeting_start_time": record.prop("hs_meeting_start_time"),
        "meeting_end_time": record.prop("hs_meeting_end_time"),
    })

    return [
        OutputAction(
            action_name="Meeting Created" if created else "Meeting Updated",
            action_date=action_date,
            identity=email,
            user_properties=dict(user_properties),
        )
        for email in attendee_emails
    ]
