"""Logging for featurebase-mcp-server.

Every line on stderr (stdout belongs to the stdio protocol stream). Messages
carry a ``[TAG]`` prefix naming the subsystem: STARTUP, SHUTDOWN, HTTP, OAUTH,
SESSION, TOKEN, AUTH, TOOL, API.

- log_record() turns a LogRecord into a flat dict, tag split out
- PlainFormatter / JSONFormatter for the stderr handler (LOG_FORMAT)
- SupabaseHandler ships the same dicts to a Supabase table in batches
- AccessLogMiddleware writes one [HTTP] line per request
"""

import atexit
import json
import logging
import re
import socket
import sys
import threading
import time
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send
from supabase import create_client

SERVICE_NAME = "featurebase-mcp"
INSTANCE = socket.gethostname()

_TAG_RE = re.compile(r"\[([A-Z_]+)\]\s*(.*)", re.DOTALL)


def split_tag(message: str) -> tuple[Optional[str], str]:
    """``"[OAUTH] Token issued"`` -> ``("OAUTH", "Token issued")``."""
    match = _TAG_RE.match(message)
    if match is None:
        return None, message
    return match.group(1), match.group(2)


def log_record(record: logging.LogRecord, formatter: logging.Formatter = None) -> dict:
    tag, message = split_tag(record.getMessage())
    entry = {
        "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "instance": INSTANCE,
        "level": record.levelname,
        "logger": record.name,
        "tag": tag,
        "message": message,
        "extra": {"module": record.module, "function": record.funcName, "line": record.lineno},
    }
    if record.exc_info:
        entry["extra"]["exception"] = (formatter or logging.Formatter()).formatException(record.exc_info)
    return entry


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log collectors reading stderr."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(log_record(record, self), default=str)


class PlainFormatter(logging.Formatter):
    """Plain text formatter for stderr output (local debugging)."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


class SupabaseHandler(logging.Handler):
    """Ships log records to a Supabase table in batches.

    emit() only queues; a worker thread inserts a batch every
    ``flush_interval`` seconds, or as soon as ``batch_size`` records are
    waiting. Insert failures are reported on stderr and the batch is dropped.
    """

    def __init__(
        self,
        supabase_client,
        table: str = "logs",
        batch_size: int = 20,
        flush_interval: float = 10.0,
    ):
        super().__init__()
        self.supabase = supabase_client
        self.table = table
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.dropped = 0
        self._flush_lock = threading.Lock()

        self._queue: Queue = Queue()
        self._wake = threading.Event()
        self._stopped = threading.Event()
        self._worker = threading.Thread(target=self._run, name="supabase-logs", daemon=True)
        self._worker.start()
        atexit.register(self.close)

    def emit(self, record: logging.LogRecord):
        try:
            self._queue.put(log_record(record))
        except Exception:
            self.handleError(record)
            return
        if self._queue.qsize() >= self.batch_size:
            self._wake.set()

    def _run(self):
        while not self._stopped.is_set():
            self._wake.wait(self.flush_interval)
            self._wake.clear()
            self.flush()

    def _take_batch(self) -> list:
        batch = []
        while len(batch) < self.batch_size:
            try:
                batch.append(self._queue.get_nowait())
            except Empty:
                break
        return batch

    def flush(self):
        """Insert everything queued so far, one batch at a time."""
        with self._flush_lock:
            batch = self._take_batch()
            while batch:
                try:
                    self.supabase.table(self.table).insert(batch).execute()
                except Exception as e:
                    # Not through logging: that would feed back into this handler
                    self.dropped += len(batch)
                    print(f"[WARNING] Failed to send {len(batch)} logs to Supabase: {e}", file=sys.stderr)
                batch = self._take_batch()

    def close(self):
        """Stop the worker and send whatever is still queued."""
        if not self._stopped.is_set():
            self._stopped.set()
            self._wake.set()
            self._worker.join(timeout=5)
            self.flush()
        super().close()


_supabase_handler: Optional[SupabaseHandler] = None


def create_supabase_client(url: Optional[str], key: Optional[str]):
    """Return a Supabase client, or None when not configured."""
    if not (url and key):
        return None
    return create_client(url, key)


def setup_logging(
    level: str = "INFO",
    fmt: str = "plain",
    supabase_client=None,
    supabase_table: str = "logs",
) -> logging.Logger:
    """Configure root logging.

    Args:
        level: Root log level name.
        fmt: ``plain`` or ``json`` for the stderr handler.
        supabase_client: Supabase client for remote logging, or None.
        supabase_table: Table the Supabase handler inserts into.

    Returns:
        Configured root logger.
    """
    global _supabase_handler

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    if _supabase_handler is not None:
        _supabase_handler.close()
        _supabase_handler = None

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(JSONFormatter() if fmt == "json" else PlainFormatter())
    root_logger.addHandler(stderr_handler)

    if supabase_client:
        try:
            _supabase_handler = SupabaseHandler(supabase_client, table=supabase_table)
        except Exception as e:
            print(f"[WARNING] Supabase logging setup failed: {e}", file=sys.stderr)
        else:
            root_logger.addHandler(_supabase_handler)

    # httpx logs every request at INFO; the Featurebase client logs its own
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if _supabase_handler:
        logger.info(f"[STARTUP] Supabase logging enabled (table: {supabase_table})")
    else:
        logger.debug("[STARTUP] Supabase logging disabled (no client)")

    return root_logger


def flush_logs():
    """Push pending records to Supabase now (e.g. before exiting)."""
    if _supabase_handler:
        _supabase_handler.flush()


class AccessLogMiddleware:
    """Log method, path, status and duration of every HTTP request.

    Wraps the downstream app and observes the messages it sends; the response
    itself is passed through untouched.
    """

    def __init__(self, app: ASGIApp, logger: logging.Logger = None):
        self.app = app
        self.logger = logger or logging.getLogger("access")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        status_code = None
        started = time.perf_counter()

        async def capture_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, capture_send)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.logger.info(
                f"[HTTP] {scope['method']} {scope['path']} -> {status_code or '-'} ({elapsed_ms:.1f} ms)"
            )
