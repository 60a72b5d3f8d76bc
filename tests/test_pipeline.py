"""Tests for the single-run pipeline."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest

from warnung_tracker.config import Settings
from warnung_tracker.ingestor.client import FeedClient
from warnung_tracker.ingestor.models import WarningMessage
from warnung_tracker.pipeline import Pipeline
from warnung_tracker.reconciler import Outcome
from warnung_tracker.storage.repos import (
    FileKeyValueStore,
    InMemoryKeyValueStore,
    StoreInitError,
    StoreWriteError,
)

SCENARIO_FEED = (
    b'[{"identifier":"A1","msgType":"Alert","sender":"x","scope":"Public",'
    b'"sent":"2024-01-01T00:00:00+00:00","status":"Actual","code":[],"info":[]}]'
)


def feed_client(settings: Settings, status: int = 200, body: bytes = SCENARIO_FEED) -> FeedClient:
    """Client answering every request with a fixed response."""
    transport = httpx.MockTransport(lambda request: httpx.Response(status, content=body))
    return FeedClient(settings.feed, transport=transport)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with the file store under a temporary directory."""
    base = Settings()
    return base.model_copy(
        update={"store": base.store.model_copy(update={"path": str(tmp_path / "DB")})}
    )


class TestPipelineScenario:
    """End-to-end runs against a mocked feed."""

    def test_first_run_reports_new(self, settings: Settings) -> None:
        """An empty store reports the entry as new and stores it."""
        store = InMemoryKeyValueStore()
        lines: list[str] = []

        result = Pipeline(
            settings, client=feed_client(settings), store=store, report=lines.append
        ).run()

        assert result.ok
        assert [r.outcome for r in result.results] == [Outcome.NEW]
        assert lines[0].startswith("Neue Meldung:\n")
        assert json.loads(lines[0].split("\n", 1)[1])["identifier"] == "A1"
        expected = WarningMessage(
            identifier="A1",
            msg_type="Alert",
            sender="x",
            scope="Public",
            sent="2024-01-01T00:00:00+00:00",
            status="Actual",
        )
        assert WarningMessage.from_dict(store.read("Meldungen", "A1")) == expected

    def test_second_run_reports_known(self, settings: Settings) -> None:
        """Running again with the same feed reports the entry as known."""
        store = InMemoryKeyValueStore()
        Pipeline(settings, client=feed_client(settings), store=store, report=lambda _: None).run()
        lines: list[str] = []

        result = Pipeline(
            settings, client=feed_client(settings), store=store, report=lines.append
        ).run()

        assert lines == ["Alte Meldung gefunden: A1"]
        assert result.stats.new_count == 0
        assert result.stats.known_count == 1

    def test_file_store_from_settings(self, settings: Settings) -> None:
        """Without an injected store the configured file store is used."""
        Pipeline(settings, client=feed_client(settings), report=lambda _: None).run()

        store = FileKeyValueStore(settings.store.path)
        assert store.read("Meldungen", "A1") is not None

    def test_reports_in_feed_order(self, settings: Settings) -> None:
        """Reports follow feed order."""
        body = json.dumps([{"identifier": i} for i in ["Z", "M", "A"]]).encode()
        store = InMemoryKeyValueStore()
        store.write("Meldungen", "M", {"identifier": "M"})
        lines: list[str] = []

        Pipeline(
            settings, client=feed_client(settings, body=body), store=store, report=lines.append
        ).run()

        assert lines[1] == "Alte Meldung gefunden: M"
        assert json.loads(lines[0].split("\n", 1)[1])["identifier"] == "Z"
        assert json.loads(lines[2].split("\n", 1)[1])["identifier"] == "A"

    def test_lone_surrogate_in_feed(self, settings: Settings) -> None:
        """A feed string with an unpaired surrogate is stored and reported."""
        body = b'[{"identifier":"A1","sender":"\\ud83d"}]'
        store = FileKeyValueStore(settings.store.path)
        lines: list[str] = []

        result = Pipeline(
            settings, client=feed_client(settings, body=body), store=store, report=lines.append
        ).run()

        assert [r.outcome for r in result.results] == [Outcome.NEW]
        assert store.read("Meldungen", "A1")["sender"] == "\ud83d"
        assert "�" in lines[0]
        assert lines[0].encode("utf-8")


class TestPipelineErrors:
    """Error propagation rules."""

    def test_status_error_reported_no_writes(self, settings: Settings) -> None:
        """A 503 is reported and nothing is written."""
        store = MagicMock()
        lines: list[str] = []

        result = Pipeline(
            settings, client=feed_client(settings, status=503), store=store, report=lines.append
        ).run()

        assert not result.ok
        assert result.results == []
        assert lines == ["Could not get data due to error 503 Service Unavailable"]
        store.write.assert_not_called()

    def test_decode_error_reported(self, settings: Settings) -> None:
        """A malformed body is reported and nothing is written."""
        store = MagicMock()
        lines: list[str] = []

        result = Pipeline(
            settings,
            client=feed_client(settings, body=b"<html>maintenance</html>"),
            store=store,
            report=lines.append,
        ).run()

        assert not result.ok
        assert lines[0].startswith("Could not get data due to error invalid JSON")
        store.read.assert_not_called()
        store.write.assert_not_called()

    def test_transport_error_reported(self, settings: Settings) -> None:
        """Network failures are reported, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        client = FeedClient(settings.feed, transport=httpx.MockTransport(handler))
        lines: list[str] = []

        result = Pipeline(
            settings, client=client, store=InMemoryKeyValueStore(), report=lines.append
        ).run()

        assert not result.ok
        assert "name resolution failed" in lines[0]

    def test_store_write_error_propagates(self, settings: Settings) -> None:
        """Store write failures escape the pipeline."""
        store = MagicMock()
        store.read.return_value = None
        store.write.side_effect = StoreWriteError("read-only file system")

        with pytest.raises(StoreWriteError):
            Pipeline(
                settings, client=feed_client(settings), store=store, report=lambda _: None
            ).run()

    def test_store_init_error_propagates(self, settings: Settings, tmp_path: Path) -> None:
        """An unusable store path escapes the pipeline before fetching."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        broken = settings.model_copy(
            update={"store": settings.store.model_copy(update={"path": str(blocker)})}
        )
        client = MagicMock()

        with pytest.raises(StoreInitError):
            Pipeline(broken, client=client, report=lambda _: None).run()

        client.fetch.assert_not_called()

    def test_injected_resources_left_open(self, settings: Settings) -> None:
        """Injected client and store are left open for the caller."""
        client = MagicMock()
        client.fetch.return_value = b"[]"
        store = MagicMock()

        Pipeline(settings, client=client, store=store, report=lambda _: None).run()

        client.close.assert_not_called()
        store.close.assert_not_called()
