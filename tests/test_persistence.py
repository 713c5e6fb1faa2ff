"""Tests for the HTTP analytics sink and JSONL debug output."""

import json

import httpx
import pytest

from crmsync.core.config import settings
from crmsync.core.exceptions import SinkDeliveryError
from crmsync.models.schemas import OutputAction
from crmsync.services.sync.persistence import HttpActionSink, append_jsonl
from tests.conftest import T0


SINK_URL = "https://ingest.example.test/v1/actions"


def actions(count=2):
    return [
        OutputAction(action_name="Contact Created", action_date=T0, identity=f"u{n}@example.com")
        for n in range(count)
    ]


def sink_client(requests, status=200):
    def handler(request):
        requests.append(request)
        return httpx.Response(status, json={"ok": status == 200})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpActionSink:
    """Tests for HttpActionSink.deliver."""

    @pytest.mark.asyncio
    async def test_posts_batch_with_account_key(self):
        requests = []
        sink = HttpActionSink(sink_client(requests), url=SINK_URL, api_key="ingest-key", account_api_key="workspace-key")

        await sink.deliver(actions())

        body = json.loads(requests[0].content)
        assert requests[0].headers["Authorization"] == "Bearer ingest-key"
        assert body["apiKey"] == "workspace-key"
        assert [a["identity"] for a in body["actions"]] == ["u0@example.com", "u1@example.com"]
        assert body["actions"][0]["actionName"] == "Contact Created"

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self):
        requests = []
        sink = HttpActionSink(sink_client(requests), url=SINK_URL)

        await sink.deliver([])

        assert requests == []

    @pytest.mark.asyncio
    async def test_rejected_batch_raises(self):
        sink = HttpActionSink(sink_client([], status=500), url=SINK_URL)

        with pytest.raises(SinkDeliveryError) as exc_info:
            await sink.deliver(actions(3))

        assert exc_info.value.batch_size == 3

    @pytest.mark.asyncio
    async def test_unconfigured_sink_rejects_batch(self, monkeypatch):
        monkeypatch.setattr(settings, "sink_url", None)
        requests = []
        sink = HttpActionSink(sink_client(requests))

        with pytest.raises(SinkDeliveryError) as exc_info:
            await sink.deliver(actions())

        assert requests == []
        assert exc_info.value.batch_size == 2


class TestAppendJsonl:
    """Tests for append_jsonl."""

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "save_jsonl", False)
        path = tmp_path / "out.jsonl"

        await append_jsonl([{"a": 1}], path=str(path))

        assert not path.exists()

    @pytest.mark.asyncio
    async def test_appends_one_line_per_payload(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "save_jsonl", True)
        path = tmp_path / "out.jsonl"

        await append_jsonl([{"a": 1}, {"b": 2}], path=str(path))
        await append_jsonl([{"c": 3}], path=str(path))

        lines = path.read_text().splitlines()
        assert [json.loads(line) for line in lines] == [{"a": 1}, {"b": 2}, {"c": 3}]
