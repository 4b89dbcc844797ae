"""NDJSON event log for sheet activity.

Each event becomes one sorted-key JSON line in
``<directory>/logs/events.ndjson``.  Appends hold an exclusive
``fcntl.flock`` and reads a shared one, so several ``gridcalc`` processes
can log into the same directory.  Where ``fcntl`` is missing (Windows) no
locking is done.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from gridcalc.logging.events import GridcalcEvent

try:
    import fcntl
except ImportError:  # pragma: no cover - non-POSIX
    fcntl = None  # type: ignore[assignment]

LOG_FILENAME = "events.ndjson"
MAX_READ_LIMIT = 2000


@contextmanager
def _locked(fd: int, exclusive: bool) -> Iterator[None]:
    if fcntl is None:
        yield
        return
    fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield
    finally:
        fcntl.flock(fd, fcntl.LOCK_UN)


class EventSink:
    """Append-only event log rooted at *directory*.

    Args:
        directory: Directory that receives a ``logs/`` subdirectory.
        fsync: Flush every append to disk before returning.
        tail_bytes: How much of the end of the log :meth:`read_events`
            looks at.  Older events are not returned.
    """

    def __init__(self, directory: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        from gridcalc.config import DEFAULT_CONFIG

        self.logs_dir = Path(directory) / "logs"
        self.path = self.logs_dir / LOG_FILENAME
        self._fsync = fsync
        self._tail_bytes = tail_bytes or int(DEFAULT_CONFIG["logging_tail_bytes"])

    def write(self, event: GridcalcEvent) -> None:
        """Append *event* as a single line, creating ``logs/`` if needed."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        record = event.model_dump(mode="json")
        data = (json.dumps(record, sort_keys=True, default=str) + "\n").encode("utf-8")
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o644)
        try:
            with _locked(fd, exclusive=True):
                os.write(fd, data)
                if self._fsync:
                    os.fsync(fd)
        finally:
            os.close(fd)

    def read_events(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        cell: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Logged events, newest first, optionally filtered.

        Args:
            level: Keep only this level (``"info"``, ``"warning"``, ``"error"``).
            event_type: Keep only this event type.
            cell: Keep only events whose context names this cell.
            limit: Maximum number returned, capped at 2000.  Zero or less
                returns nothing.
        """
        cap = min(limit, MAX_READ_LIMIT)
        selected: list[dict[str, Any]] = []
        if cap <= 0:
            return selected
        for record in reversed(self._records()):
            if level and record.get("level") != level:
                continue
            if event_type and record.get("event_type") != event_type:
                continue
            if cell and record.get("context", {}).get("cell") != cell:
                continue
            selected.append(record)
            if len(selected) >= cap:
                break
        return selected

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _records(self) -> list[dict[str, Any]]:
        """Parse the tail of the log, skipping blank or corrupt lines."""
        if not self.path.exists():
            return []
        records = []
        for line in self._tail().splitlines():
            if not line.strip():
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return records

    def _tail(self) -> str:
        """The last ``tail_bytes`` of the log, starting on a line boundary."""
        with open(self.path, "rb") as f:
            with _locked(f.fileno(), exclusive=False):
                size = os.fstat(f.fileno()).st_size
                truncated = size > self._tail_bytes
                if truncated:
                    f.seek(size - self._tail_bytes)
                data = f.read()
        if truncated:
            # first line is probably cut short
            _, _, data = data.partition(b"\n")
        return data.decode("utf-8", errors="replace")
