"""
Shared pytest fixtures for the crmsync test suite.

Provides record factories, an in-memory account store, a recording sink,
and a scripted HubSpot search function so passes can run without a network.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from crmsync.models.schemas import Account, EntityKind, OutputAction, parse_timestamp, to_epoch_ms


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
NOW = datetime(2024, 1, 2, 12, 0, 0, tzinfo=timezone.utc)


def iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def hubspot_record(
    record_id: Any,
    created_at: datetime,
    updated_at: Optional[datetime] = None,
    **properties: Any
) -> Dict[str, Any]:
    """A search result item shaped like HubSpot's v3 API."""
    return {
        "id": str(record_id),
        "properties": properties,
        "createdAt": iso(created_at),
        "updatedAt": iso(updated_at or created_at),
        "archived": False,
    }


def search_response(results: List[Dict[str, Any]], after: Optional[str] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"total": len(results), "results": results}
    if after is not None:
        response["paging"] = {"next": {"after": after, "link": "https://api.hubapi.com/..."}}
    return response


class RecordingSink:
    """Sink that remembers every batch it receives."""

    def __init__(self, fail: bool = False):
        self.batches: List[List[OutputAction]] = []
        self.fail = fail

    async def deliver(self, actions: List[OutputAction]) -> None:
        if self.fail:
            raise RuntimeError("sink down")
        self.batches.append(list(actions))

    @property
    def actions(self) -> List[OutputAction]:
        return [action for batch in self.batches for action in batch]


class InMemoryAccountStore:
    """find/save contract backed by a dict."""

    def __init__(self, accounts: Optional[List[Account]] = None):
        self.accounts = {account.external_id: account for account in accounts or []}
        self.saved: List[Dict[str, Any]] = []

    async def list_accounts(self) -> List[Account]:
        return list(self.accounts.values())

    async def find(self, external_id: Optional[str] = None) -> Optional[Account]:
        if external_id is None:
            return next(iter(self.accounts.values()), None)
        return self.accounts.get(external_id)

    async def save(self, account: Account) -> None:
        self.saved.append(account.model_dump())
        self.accounts[account.external_id] = account


class ScriptedSearch:
    """
    Stand-in for HubSpotClient.search.

    Each call pops the next scripted item: a response dict is returned,
    an exception instance is raised.
    """

    def __init__(self, script: List[Any]):
        self.script = list(script)
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, object_type: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"object_type": object_type, "body": body})
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FilteringSearch:
    """
    Stand-in for HubSpotClient.search that behaves like the real endpoint.

    Applies the GTE/LTE filters on the sort property, sorts ascending and
    pages with an offset cursor, so window resets return boundary records
    the way HubSpot does.
    """

    def __init__(self, records: List[Dict[str, Any]]):
        self.records = list(records)
        self.calls: List[Dict[str, Any]] = []

    @staticmethod
    def _modified_ms(record: Dict[str, Any], prop: str) -> int:
        value = parse_timestamp((record.get("properties") or {}).get(prop)) or parse_timestamp(record["updatedAt"])
        return to_epoch_ms(value)

    async def __call__(self, object_type: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append({"object_type": object_type, "body": body})
        prop = body["sorts"][0]["propertyName"]

        matching = self.records
        for f in body["filterGroups"][0]["filters"]:
            bound = int(f["value"])
            if f["operator"] == "GTE":
                matching = [r for r in matching if self._modified_ms(r, prop) >= bound]
            elif f["operator"] == "LTE":
                matching = [r for r in matching if self._modified_ms(r, prop) <= bound]
        matching = sorted(matching, key=lambda r: self._modified_ms(r, prop))

        offset = int(body.get("after") or 0)
        limit = body["limit"]
        page = matching[offset:offset + limit]
        next_after = str(offset + limit) if offset + limit < len(matching) else None
        return search_response(page, after=next_after)


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def account():
    return Account(
        external_id="12345",
        api_key="workspace-key",
        access_token="old-token",
        refresh_token="refresh-1",
        watermarks={
            EntityKind.COMPANIES: T0,
            EntityKind.CONTACTS: T0,
            EntityKind.MEETINGS: T0,
        },
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: List[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def fixed_clock():
    return lambda: NOW


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)
