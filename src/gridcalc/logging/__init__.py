"""Structured events for sheet activity.

The formula engine never logs; :class:`gridcalc.sheet.Sheet` emits one
event per evaluated cell plus load/recalculate events.  Nothing is written
until :func:`set_log_dir` points the sink at a directory.
"""

from gridcalc.logging.events import (
    EventLevel,
    EventType,
    GridcalcEvent,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    make_cell_event,
    set_log_dir,
)
from gridcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "GridcalcEvent",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "make_cell_event",
    "set_log_dir",
]
