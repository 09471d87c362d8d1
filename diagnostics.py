"""
Diagnostic sinks for retrieval events.

The retriever hands every notable event (phase boundaries, overwrites,
sequence mismatches, terminal errors) to a sink's record() method. Sinks are
fire-and-forget: record() never blocks on I/O.
"""

import collections
import json
import logging
import queue
import threading
import time
import traceback
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)

ERROR_KINDS = {
    "connection_failure",
    "incomplete_packet",
    "malformed_packet",
    "protocol_violation",
    "unrepresentable_sequence",
    "retrieval_error",
    "write_failure",
}
WARNING_KINDS = {"sequence_mismatch", "unresolved_gaps"}


@dataclass
class DiagnosticEvent:
    """A structured event emitted during retrieval."""
    kind: str
    message: str
    details: Dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_error(cls, error: BaseException, **details) -> "DiagnosticEvent":
        kind = getattr(error, "kind", type(error).__name__)
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return cls(kind=kind, message=str(error),
                   details=dict(details, error_type=type(error).__name__, traceback=trace))

    @property
    def is_error(self) -> bool:
        return self.kind in ERROR_KINDS


class LoggingDiagnosticSink:
    """Forwards events to the standard logger."""

    def __init__(self, name: str = __name__):
        self._logger = logging.getLogger(name)

    def record(self, event: DiagnosticEvent) -> None:
        if event.is_error:
            level = logging.ERROR
        elif event.kind in WARNING_KINDS:
            level = logging.WARNING
        else:
            level = logging.DEBUG
        self._logger.log(level, f"[{event.kind}] {event.message}")


class ErrorLogRecorder:
    """Appends error events to a log file from a background thread.

    ``record()`` only enqueues.  The background thread pulls events, counts
    them by kind, and appends error records to the log file.  ``stop()``
    drains the queue before returning.
    """

    def __init__(self, log_path: str, record_all: bool = False):
        self._log_path = log_path
        self._record_all = record_all
        self._queue: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.kind_counts: Dict[str, int] = collections.defaultdict(int)
        self.records_written = 0

    def start(self) -> "ErrorLogRecorder":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def record(self, event: DiagnosticEvent) -> None:
        self._queue.put_nowait(event)

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=10)
            self._thread = None
        # anything recorded after the thread exited
        self._drain()

    def __enter__(self) -> "ErrorLogRecorder":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # --- background thread ---

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                event = self._queue.get(timeout=0.1)
                self._process(event)
            except queue.Empty:
                continue
        self._drain()

    def _drain(self) -> None:
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            self._process(event)

    def _process(self, event: DiagnosticEvent) -> None:
        self.kind_counts[event.kind] += 1
        if not (event.is_error or self._record_all):
            return

        stamp = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(event.timestamp))
        details = {k: v for k, v in event.details.items() if k != "traceback"}
        lines = [f"{stamp}: {event.kind} - {event.message}"]
        if details:
            lines.append(json.dumps(details, default=str))
        if "traceback" in event.details:
            lines.append(event.details["traceback"].rstrip())

        try:
            with open(self._log_path, 'a', encoding='utf-8') as f:
                f.write("\n".join(lines) + "\n\n")
            self.records_written += 1
        except OSError as e:
            logger.error(f"Failed to write error log {self._log_path}: {e}")
