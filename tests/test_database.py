"""Tests for the Supabase account store."""

from unittest.mock import MagicMock

import pytest

from crmsync.models.schemas import Account, EntityKind
from crmsync.services.sync.database import SupabaseAccountStore, account_from_row, account_to_row
from tests.conftest import T0


ROW = {
    "hub_id": 12345,
    "api_key": "workspace-key",
    "access_token": "tok",
    "refresh_token": "ref",
    "last_pulled_dates": {"companies": "2024-01-01T12:00:00+00:00", "contacts": None},
}


class TestRowMapping:
    """Tests for account row conversion."""

    def test_from_row(self):
        account = account_from_row(ROW)

        assert account.external_id == "12345"
        assert account.refresh_token == "ref"
        assert account.watermark(EntityKind.COMPANIES) == T0
        assert account.watermark(EntityKind.CONTACTS) is None
        assert account.watermark(EntityKind.MEETINGS) is None

    def test_missing_watermarks_mean_first_sync(self):
        account = account_from_row({"hub_id": "1", "last_pulled_dates": None})
        assert all(account.watermark(kind) is None for kind in EntityKind)

    def test_to_row(self):
        account = Account(external_id="1", watermarks={EntityKind.MEETINGS: T0})

        row = account_to_row(account)

        assert row["hub_id"] == "1"
        assert row["last_pulled_dates"] == {"meetings": "2024-01-01T12:00:00+00:00"}


class TestSupabaseAccountStore:
    """Tests for SupabaseAccountStore."""

    @pytest.mark.asyncio
    async def test_find_by_id(self):
        supabase = MagicMock()
        query = supabase.table.return_value.select.return_value
        query.eq.return_value.limit.return_value.execute.return_value.data = [ROW]
        store = SupabaseAccountStore(supabase, table="accounts")

        account = await store.find("12345")

        assert account.external_id == "12345"
        supabase.table.assert_called_with("accounts")
        query.eq.assert_called_once_with("hub_id", "12345")

    @pytest.mark.asyncio
    async def test_find_returns_none_when_empty(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.limit.return_value.execute.return_value.data = []
        store = SupabaseAccountStore(supabase)

        assert await store.find() is None

    @pytest.mark.asyncio
    async def test_list_accounts(self):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.execute.return_value.data = [ROW, {**ROW, "hub_id": 2}]
        store = SupabaseAccountStore(supabase)

        accounts = await store.list_accounts()

        assert [a.external_id for a in accounts] == ["12345", "2"]

    @pytest.mark.asyncio
    async def test_save_upserts_on_hub_id(self):
        supabase = MagicMock()
        store = SupabaseAccountStore(supabase, table="accounts")
        account = Account(external_id="1", access_token="tok")

        await store.save(account)

        upsert = supabase.table.return_value.upsert
        args, kwargs = upsert.call_args
        assert args[0]["hub_id"] == "1"
        assert args[0]["access_token"] == "tok"
        assert kwargs == {"on_conflict": "hub_id"}
        upsert.return_value.execute.assert_called_once()
