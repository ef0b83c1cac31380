"""Tests for log formatting, the Supabase sink and the access log."""

import json
import logging
import time

import pytest
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from logging_config import (
    AccessLogMiddleware,
    JSONFormatter,
    PlainFormatter,
    SupabaseHandler,
    log_record,
    setup_logging,
    split_tag,
)


class FakeSupabase:
    """Records inserted rows: ``client.table(name).insert(rows).execute()``."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.inserts = []
        self._table = None
        self._rows = None

    def table(self, name):
        self._table = name
        return self

    def insert(self, rows):
        self._rows = rows
        return self

    def execute(self):
        if self.fail:
            raise RuntimeError("supabase unavailable")
        self.inserts.append((self._table, self._rows))


def make_record(message, level=logging.INFO):
    return logging.LogRecord("test", level, __file__, 10, message, None, None, func="handler")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredRecords:
    def test_tag_is_split_out(self):
        entry = json.loads(JSONFormatter().format(make_record("[OAUTH] Token issued for client abc")))

        assert entry["service"] == "featurebase-mcp"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "test"
        assert entry["tag"] == "OAUTH"
        assert entry["message"] == "Token issued for client abc"
        assert entry["extra"]["function"] == "handler"
        assert entry["timestamp"].endswith("+00:00")

    def test_untagged_message(self):
        entry = log_record(make_record("plain message", logging.WARNING))

        assert entry["tag"] is None
        assert entry["message"] == "plain message"
        assert entry["level"] == "WARNING"

    @pytest.mark.parametrize(
        "message, expected",
        [
            ("[TOOL] list_posts invoked", ("TOOL", "list_posts invoked")),
            ("[tool] lower case", (None, "[tool] lower case")),
            ("no tag [HTTP] later", (None, "no tag [HTTP] later")),
        ],
    )
    def test_split_tag(self, message, expected):
        assert split_tag(message) == expected


def wait_for(predicate, timeout: float = 2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        assert time.monotonic() < deadline, "condition not met in time"
        time.sleep(0.01)


class TestSupabaseHandler:
    def test_full_batch_wakes_worker(self):
        client = FakeSupabase()
        handler = SupabaseHandler(client, table="mcp_logs", batch_size=3, flush_interval=3600)
        try:
            handler.emit(make_record("[TOOL] one"))
            handler.emit(make_record("[TOOL] two"))
            time.sleep(0.05)
            assert client.inserts == []

            handler.emit(make_record("[TOOL] three"))

            wait_for(lambda: client.inserts)
            table, rows = client.inserts[0]
            assert table == "mcp_logs"
            assert [row["message"] for row in rows] == ["one", "two", "three"]
        finally:
            handler.close()

    def test_close_flushes_remaining(self):
        client = FakeSupabase()
        handler = SupabaseHandler(client, batch_size=10, flush_interval=3600)
        handler.emit(make_record("[HTTP] pending"))

        handler.close()

        assert client.inserts[0][1][0]["tag"] == "HTTP"

    def test_flush_splits_into_batches(self):
        client = FakeSupabase()
        handler = SupabaseHandler(client, batch_size=2, flush_interval=3600)
        try:
            handler._wake.set = lambda: None  # keep the worker asleep
            for n in range(5):
                handler.emit(make_record(f"[API] call {n}"))

            handler.flush()

            assert [len(rows) for _, rows in client.inserts] == [2, 2, 1]
        finally:
            handler.close()

    def test_insert_failure_reported_on_stderr(self, capsys):
        handler = SupabaseHandler(FakeSupabase(fail=True), batch_size=10, flush_interval=3600)
        handler.emit(make_record("[TOOL] lost"))

        handler.close()

        assert handler.dropped == 1
        assert "Failed to send 1 logs to Supabase" in capsys.readouterr().err


class TestSetupLogging:
    def test_stderr_only_by_default(self, restore_root_logger):
        root = setup_logging("DEBUG")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, PlainFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_format(self, restore_root_logger):
        root = setup_logging("INFO", fmt="json")

        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_supabase_handler_added(self, restore_root_logger):
        root = setup_logging("INFO", supabase_client=FakeSupabase(), supabase_table="mcp_logs")

        handlers = [handler for handler in root.handlers if isinstance(handler, SupabaseHandler)]
        assert len(handlers) == 1
        assert handlers[0].table == "mcp_logs"

    def test_reconfiguring_replaces_supabase_handler(self, restore_root_logger):
        first_client = FakeSupabase()
        setup_logging("INFO", supabase_client=first_client)
        logging.getLogger("test").info("[STARTUP] before reconfigure")

        root = setup_logging("INFO")

        assert not any(isinstance(handler, SupabaseHandler) for handler in root.handlers)
        # the old handler was closed, which flushed what it held
        assert any(row["message"] == "before reconfigure" for _, rows in first_client.inserts for row in rows)


async def test_access_log(make_client, caplog):
    async def hello(request):
        return PlainTextResponse("hi", status_code=201)

    app = AccessLogMiddleware(Starlette(routes=[Route("/hello", hello, methods=["POST"])]))
    http = make_client(app)

    with caplog.at_level(logging.INFO, logger="access"):
        response = await http.post("/hello")

    assert response.status_code == 201
    messages = [record.getMessage() for record in caplog.records if record.name == "access"]
    assert len(messages) == 1
    assert messages[0].startswith("[HTTP] POST /hello -> 201 (")
