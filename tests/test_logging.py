"""Tests for the gridcalc structured event logging system."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def sink(log_dir: Path):
    from gridcalc.logging.sink import EventSink

    return EventSink(log_dir)


@pytest.fixture
def enabled_sink(log_dir: Path):
    """Point the module-level sink at *log_dir*, restoring it afterwards."""
    import gridcalc.logging.events as mod

    old_sink = mod._sink
    mod.set_log_dir(log_dir)
    try:
        yield mod.get_sink()
    finally:
        mod._sink = old_sink


# ---------------------------------------------------------------------------
# A) Event schema
# ---------------------------------------------------------------------------


class TestGridcalcEvent:
    def test_event_defaults(self):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        evt = GridcalcEvent(
            level=EventLevel.info,
            event_type=EventType.cell_updated,
            message="hello",
        )
        assert evt.schema_version == 1
        assert evt.ts.endswith("Z")
        assert evt.level == "info"
        assert evt.event_type == "cell_updated"
        assert evt.context == {}
        assert evt.error_code is None

    def test_make_cell_event(self):
        from gridcalc.logging.events import EventLevel, EventType, make_cell_event

        evt = make_cell_event(
            EventType.cell_error,
            EventLevel.error,
            "Division by zero",
            cell="B2",
            sheet="Budget",
            expression="=1/0",
            error_code="division_by_zero",
            extra={"position": 2},
        )
        assert evt.context == {
            "cell": "B2",
            "sheet": "Budget",
            "expression": "=1/0",
            "position": 2,
        }
        assert evt.error_code == "division_by_zero"

    def test_all_event_types_exist(self):
        from gridcalc.logging.events import EventType

        assert {e.value for e in EventType} == {
            "cell_updated",
            "cell_error",
            "cycle_detected",
            "sheet_loaded",
            "sheet_recalculated",
        }

    def test_missing_attribution_downgrades(self):
        from gridcalc.logging.events import (
            EventLevel,
            EventType,
            GridcalcEvent,
            _validate_attribution,
        )

        evt = GridcalcEvent(
            level=EventLevel.error,
            event_type=EventType.cell_error,
            message="no cell",
        )
        checked = _validate_attribution(evt)
        assert checked.level == EventLevel.warning
        assert checked.context["_missing_attribution"] == ["cell"]
        assert evt.level == EventLevel.error


# ---------------------------------------------------------------------------
# B) Sink
# ---------------------------------------------------------------------------


class TestEventSink:
    def test_write_creates_log(self, sink, log_dir):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        sink.write(GridcalcEvent(
            level=EventLevel.info,
            event_type=EventType.sheet_loaded,
            message="loaded",
            context={"sheet": "S"},
        ))
        path = log_dir / "logs" / "events.ndjson"
        assert path.exists()
        lines = path.read_text().strip().splitlines()
        assert len(lines) == 1
        data = json.loads(lines[0])
        assert data["event_type"] == "sheet_loaded"
        assert list(data) == sorted(data)

    def test_read_most_recent_first(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, GridcalcEvent

        for i in range(3):
            sink.write(GridcalcEvent(
                level=EventLevel.info,
                event_type=EventType.cell_updated,
                message=f"e{i}",
                context={"cell": f"A{i + 1}"},
            ))
        events = sink.read_events()
        assert [e["message"] for e in events] == ["e2", "e1", "e0"]

    def test_filters(self, sink):
        from gridcalc.logging.events import EventLevel, EventType, make_cell_event

        sink.write(make_cell_event(EventType.cell_updated, EventLevel.info, "ok", cell="A1"))
        sink.write(make_cell_event(EventType.cell_error, EventLevel.error, "bad", cell="B1"))
        sink.write(make_cell_event(EventType.cell_error, EventLevel.error, "bad", cell="A1"))

        assert len(sink.read_events(level="error")) == 2
        assert len(sink.read_events(event_type="cell_updated")) == 1
        assert len(sink.read_events(cell="A1")) == 2
        assert len(sink.read_events(limit=1)) == 1

    def test_read_missing_log_returns_empty(self, sink):
        assert sink.read_events() == []

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit_returns_nothing(self, sink, limit):
        from gridcalc.logging.events import EventLevel, EventType, make_cell_event

        for _ in range(3):
            sink.write(make_cell_event(EventType.cell_updated, EventLevel.info, "ok", cell="A1"))
        assert sink.read_events(limit=limit) == []

    def test_reading_does_not_create_logs_dir(self, log_dir):
        from gridcalc.logging.sink import EventSink

        assert EventSink(log_dir).read_events() == []
        assert not (log_dir / "logs").exists()

    def test_tail_read_drops_partial_line(self, log_dir):
        from gridcalc.logging.events import EventLevel, EventType, make_cell_event
        from gridcalc.logging.sink import EventSink

        small = EventSink(log_dir, tail_bytes=300)
        for i in range(20):
            small.write(make_cell_event(EventType.cell_updated, EventLevel.info, f"m{i}", cell="A1"))
        events = small.read_events()
        assert 0 < len(events) < 20
        assert events[0]["message"] == "m19"


# ---------------------------------------------------------------------------
# C) Emit helpers
# ---------------------------------------------------------------------------


class TestEmitHelpers:
    def test_emit_without_log_dir_is_noop(self):
        import gridcalc.logging.events as mod

        old_sink = mod._sink
        mod._sink = None
        try:
            mod.emit_info(mod.EventType.sheet_loaded, "nothing", {"sheet": "S"})
        finally:
            mod._sink = old_sink

    def test_set_log_dir_enables_logging(self, enabled_sink, log_dir):
        from gridcalc.logging.events import EventType, emit_info

        emit_info(EventType.sheet_loaded, "loaded", {"sheet": "S"})
        events = enabled_sink.read_events()
        assert len(events) == 1
        assert events[0]["level"] == "info"

    def test_emit_error_sets_error_code(self, enabled_sink):
        from gridcalc.logging.events import EventType, emit_error

        emit_error(EventType.cell_error, "boom", {"cell": "A1"}, error_code="parse_error")
        events = enabled_sink.read_events()
        assert events[0]["error_code"] == "parse_error"
        assert events[0]["level"] == "error"

    def test_emit_warning(self, enabled_sink):
        from gridcalc.logging.events import EventType, emit_warning

        emit_warning(EventType.cycle_detected, "loop", {"cell": "A1"})
        assert enabled_sink.read_events()[0]["level"] == "warning"

    def test_set_log_dir_reads_config(self, log_dir):
        import gridcalc.logging.events as mod

        (log_dir / "gridcalc.yaml").write_text("logging_tail_bytes: 1024\n")
        old_sink = mod._sink
        try:
            mod.set_log_dir(log_dir)
            assert mod.get_sink()._tail_bytes == 1024
            mod.set_log_dir(None)
            assert mod.get_sink() is None
        finally:
            mod._sink = old_sink

    def test_emit_never_raises(self, enabled_sink, monkeypatch):
        from gridcalc.logging.events import EventType, emit_info

        def broken(event):
            raise OSError("disk full")

        monkeypatch.setattr(enabled_sink, "write", broken)
        emit_info(EventType.sheet_loaded, "x", {"sheet": "S"})


# ---------------------------------------------------------------------------
# D) Sheet integration
# ---------------------------------------------------------------------------


class TestSheetEvents:
    def test_cell_events(self, enabled_sink):
        from gridcalc.sheet import Sheet

        grid = Sheet(rows=2, columns=2, name="Demo")
        grid.update_cell("A1", "=1 + 1")
        grid.update_cell("B1", "=1 / 0")
        grid.update_cell("A2", "=A2")

        events = enabled_sink.read_events()
        types = [e["event_type"] for e in reversed(events)]
        assert types == ["cell_updated", "cell_error", "cycle_detected"]

        cycle = events[0]
        assert cycle["context"]["cell"] == "A2"
        assert cycle["context"]["sheet"] == "Demo"
        assert cycle["error_code"] == "cyclic_reference"
        assert cycle["level"] == "error"

    def test_text_cells_are_silent(self, enabled_sink):
        from gridcalc.sheet import Sheet

        Sheet(rows=1, columns=1).update_cell("A1", "hello")
        assert enabled_sink.read_events() == []

    def test_load_emits_sheet_events(self, enabled_sink, tmp_path):
        from gridcalc.sheet import load_sheet

        path = tmp_path / "s.yaml"
        path.write_text("name: S\nrows: 1\ncolumns: 1\ncells:\n  A1: '=2'\n")
        load_sheet(path)

        types = [e["event_type"] for e in reversed(enabled_sink.read_events())]
        assert types == ["cell_updated", "sheet_recalculated", "sheet_loaded"]

    def test_recalculate_with_errors_warns(self, enabled_sink):
        from gridcalc.sheet import Sheet

        grid = Sheet(rows=1, columns=2, name="Bad")
        grid.update_cell("A1", "=1 / 0")
        grid.update_cell("B1", "=2")
        grid.recalculate_all()

        recalc = enabled_sink.read_events(event_type="sheet_recalculated")[0]
        assert recalc["level"] == "warning"
        assert recalc["error_code"] == "cells_in_error"
        assert recalc["context"] == {"sheet": "Bad", "cells": 2, "errors": 1}

    def test_load_failure_emits_error(self, enabled_sink, tmp_path):
        from gridcalc.sheet import load_sheet

        path = tmp_path / "broken.yaml"
        path.write_text("rows: 1\ncolumns: 1\ncells:\n  C9: 1\n")
        with pytest.raises(ValueError):
            load_sheet(path)

        events = enabled_sink.read_events(level="error")
        assert len(events) == 1
        assert events[0]["event_type"] == "sheet_loaded"
        assert events[0]["error_code"] == "sheet_invalid"
        assert events[0]["context"]["sheet"] == "broken"
