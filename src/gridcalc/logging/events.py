"""Event model for sheet activity and the process-wide emit functions.

Timestamps are UTC ISO-8601 ending in ``Z``.  ``emit()`` and friends may be
called from anywhere: a failing sink only produces a throttled warning on
stderr, never an exception.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Cell lifecycle
    cell_updated = "cell_updated"
    cell_error = "cell_error"
    cycle_detected = "cycle_detected"

    # Sheet lifecycle
    sheet_loaded = "sheet_loaded"
    sheet_recalculated = "sheet_recalculated"


# ---------------------------------------------------------------------------
# Required context keys
# ---------------------------------------------------------------------------

_CELL_EVENT_REQUIRED = {"cell"}

_EVENT_REQUIRED_KEYS: dict[str, set[str]] = {
    EventType.cell_updated.value: _CELL_EVENT_REQUIRED,
    EventType.cell_error.value: _CELL_EVENT_REQUIRED,
    EventType.cycle_detected.value: _CELL_EVENT_REQUIRED,
    EventType.sheet_loaded.value: {"sheet"},
    EventType.sheet_recalculated.value: {"sheet"},
}


def _validate_attribution(event: GridcalcEvent) -> GridcalcEvent:
    """Tag events lacking their cell/sheet key and demote them to warning."""
    required = _EVENT_REQUIRED_KEYS.get(EventType(event.event_type).value, set())
    missing = required - set(event.context.keys())
    if not missing:
        return event
    ctx = dict(event.context)
    ctx["_missing_attribution"] = sorted(missing)
    return event.model_copy(update={"level": EventLevel.warning, "context": ctx})


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Current UTC time, microsecond precision, Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class GridcalcEvent(BaseModel):
    """One logged occurrence: what happened, where, and how bad."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_cell_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    cell: str,
    sheet: str | None = None,
    expression: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> GridcalcEvent:
    """Build an event with guaranteed cell attribution context."""
    ctx: dict[str, Any] = {"cell": cell}
    if sheet is not None:
        ctx["sheet"] = sheet
    if expression is not None:
        ctx["expression"] = expression
    if extra:
        ctx.update(extra)
    return GridcalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Process-wide sink
# ---------------------------------------------------------------------------

# Set by ``set_log_dir``.
_sink: Any = None  # EventSink | None


def set_log_dir(directory: Path | str | None) -> None:
    """Send events to ``<directory>/logs/events.ndjson`` from now on.

    Until this is called events are dropped.  ``None`` turns logging off
    again.  ``logging_fsync`` and ``logging_tail_bytes`` come from the
    directory's ``gridcalc.yaml``.

    Raises:
        ValueError: If ``gridcalc.yaml`` is invalid.
    """
    global _sink
    from gridcalc.config import load_config
    from gridcalc.logging.sink import EventSink

    if directory is None:
        _sink = None
        return

    cfg = load_config(Path(directory))
    _sink = EventSink(
        Path(directory),
        fsync=bool(cfg.get("logging_fsync", False)),
        tail_bytes=int(cfg["logging_tail_bytes"]),
    )


def get_sink() -> Any:
    """The sink configured by :func:`set_log_dir`, if any."""
    return _sink


# ---------------------------------------------------------------------------
# Throttled stderr fallback
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Write *msg* to stderr at most once a minute."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[gridcalc] {msg}", file=sys.stderr)
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Emitting
# ---------------------------------------------------------------------------


def emit(event: GridcalcEvent) -> None:
    """Write an event to the configured log.

    Swallows every error from the sink; see :func:`_stderr_warning`.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        sink.write(_validate_attribution(event))
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None,
) -> None:
    emit(GridcalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=dict(context or {}),
        error_code=error_code,
    ))


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    """Emit an info-level event."""
    _emit_at(EventLevel.info, event_type, message, context, None)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Emit a warning-level event."""
    _emit_at(EventLevel.warning, event_type, message, context, error_code)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Emit an error-level event."""
    _emit_at(EventLevel.error, event_type, message, context, error_code)
