"""In-memory cell grid that hosts formulas.

A :class:`Sheet` owns the raw text of every cell and the value last
computed for it.  It is the cell accessor the formula engine reads from;
the engine itself never writes to it.  Every update re-evaluates the
edited cell from scratch, and :meth:`Sheet.recalculate_all` re-evaluates
every cell in row-major order (there is no dependency graph).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from gridcalc.formulas import (
    DEFAULT_MAX_DEPTH,
    EMPTY,
    CellSnapshot,
    ParseResult,
    Text,
    Value,
    evaluate,
    make_ref,
    parse_ref,
    validate_syntax,
)
from gridcalc.logging import (
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    make_cell_event,
)


@dataclass
class Cell:
    """One grid cell: its raw text, last value and last error."""

    row: int
    column: int
    expression: str = ""
    value: Value = EMPTY
    error: str | None = None

    @property
    def reference(self) -> str:
        return make_ref(self.row, self.column)

    @property
    def is_formula(self) -> bool:
        trimmed = self.expression.strip()
        return trimmed.startswith("=") and len(trimmed) > 1

    def snapshot(self) -> CellSnapshot:
        return CellSnapshot(self.reference, self.expression, self.value)


def _store_literal(cell: Cell) -> None:
    """Give a non-formula cell its value straight from its text."""
    cell.error = None
    cell.value = Text(cell.expression) if cell.expression.strip() else EMPTY


class Sheet:
    """A rectangular grid of cells.

    Usage::

        sheet = Sheet(rows=3, columns=3)
        sheet.update_cell("A1", "10")
        sheet.update_cell("B1", "=A1 * 2")
        sheet.cell("B1").value   # Number(Decimal("20"))

    Parameters
    ----------
    rows, columns : int
        Initial grid size; both must be at least 1.
    name : str
        Display name.
    max_depth : int
        Maximum reference-chain length allowed during evaluation.
    """

    def __init__(
        self,
        rows: int = 10,
        columns: int = 10,
        name: str = "New sheet",
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        if rows < 1 or columns < 1:
            raise ValueError(f"Sheet needs at least one row and column, got {rows}x{columns}")
        self.name = name
        self.rows = rows
        self.columns = columns
        self.max_depth = max_depth
        self._cells: dict[tuple[int, int], Cell] = {
            (r, c): Cell(r, c) for r in range(rows) for c in range(columns)
        }

    # ------------------------------------------------------------------
    # CellAccessor protocol implementation
    # ------------------------------------------------------------------

    def resolve(self, reference: str) -> CellSnapshot | None:
        """Snapshot of the cell at *reference*, or None if out of bounds."""
        try:
            key = parse_ref(reference)
        except ValueError:
            return None
        cell = self._cells.get(key)
        return cell.snapshot() if cell is not None else None

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def cell(self, reference: str) -> Cell:
        """Return the cell at *reference*.

        Raises:
            KeyError: If *reference* is malformed or outside the grid.
        """
        try:
            key = parse_ref(reference)
        except ValueError:
            raise KeyError(reference) from None
        if key not in self._cells:
            raise KeyError(reference)
        return self._cells[key]

    def iter_cells(self) -> Iterator[Cell]:
        """All cells in row-major order."""
        for key in sorted(self._cells):
            yield self._cells[key]

    def errors(self) -> dict[str, str]:
        """Reference -> error message for every cell currently in error."""
        return {c.reference: c.error for c in self.iter_cells() if c.error is not None}

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def update_cell(self, reference: str, expression: str) -> ParseResult:
        """Store *expression* in a cell and compute its value.

        Text that is not a formula (no leading ``=``, or ``=`` alone) is
        stored as ``Text``.  Formulas are checked for syntax first, then
        evaluated with the cell as the origin of the reference chain.

        Returns:
            The outcome for this cell.  Failures are also recorded on the
            cell itself (``error`` set, ``value`` Empty).
        """
        cell = self.cell(reference)
        cell.expression = expression

        if not cell.is_formula:
            _store_literal(cell)
            return ParseResult.ok(cell.value)

        result = validate_syntax(expression)
        if result.success:
            result = evaluate(expression, self, reference, max_depth=self.max_depth)

        if result.success:
            cell.error = None
            cell.value = result.value
            emit(make_cell_event(
                EventType.cell_updated,
                EventLevel.info,
                f"{reference} evaluated",
                cell=reference,
                sheet=self.name,
                expression=expression,
            ))
        else:
            cell.error = result.error_message
            cell.value = EMPTY
            event_type = (
                EventType.cycle_detected
                if result.error_code == "cyclic_reference"
                else EventType.cell_error
            )
            emit(make_cell_event(
                event_type,
                EventLevel.error,
                result.error_message or "",
                cell=reference,
                sheet=self.name,
                expression=expression,
                error_code=result.error_code,
                extra={"position": result.error_position},
            ))
        return result

    def recalculate_all(self) -> int:
        """Re-evaluate every non-empty cell.  Returns how many were evaluated."""
        count = 0
        for cell in list(self.iter_cells()):
            if cell.expression:
                self.update_cell(cell.reference, cell.expression)
                count += 1
        failed = len(self.errors())
        context = {"sheet": self.name, "cells": count, "errors": failed}
        if failed:
            emit_warning(
                EventType.sheet_recalculated,
                f"Recalculated {count} cell(s), {failed} in error",
                context,
                error_code="cells_in_error",
            )
        else:
            emit_info(EventType.sheet_recalculated, f"Recalculated {count} cell(s)", context)
        return count

    def clear(self) -> None:
        """Blank every cell."""
        for cell in self._cells.values():
            cell.expression = ""
            cell.value = EMPTY
            cell.error = None

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def add_row(self) -> None:
        """Append an empty row at the bottom."""
        for c in range(self.columns):
            self._cells[(self.rows, c)] = Cell(self.rows, c)
        self.rows += 1

    def add_column(self) -> None:
        """Append an empty column on the right."""
        for r in range(self.rows):
            self._cells[(r, self.columns)] = Cell(r, self.columns)
        self.columns += 1

    def remove_row(self, index: int) -> None:
        """Delete row *index* (0-based), shift later rows up, recalculate.

        References inside expressions are not rewritten.

        Raises:
            ValueError: If this is the only row.
            IndexError: If *index* is outside the grid.
        """
        if self.rows <= 1:
            raise ValueError("Cannot remove the last row")
        if not 0 <= index < self.rows:
            raise IndexError(f"Row {index} out of range")

        cells: dict[tuple[int, int], Cell] = {}
        for (r, c), cell in self._cells.items():
            if r == index:
                continue
            if r > index:
                cell.row = r - 1
            cells[(cell.row, c)] = cell
        self._cells = cells
        self.rows -= 1
        self.recalculate_all()

    def remove_column(self, index: int) -> None:
        """Delete column *index* (0-based), shift later columns left, recalculate.

        References inside expressions are not rewritten.

        Raises:
            ValueError: If this is the only column.
            IndexError: If *index* is outside the grid.
        """
        if self.columns <= 1:
            raise ValueError("Cannot remove the last column")
        if not 0 <= index < self.columns:
            raise IndexError(f"Column {index} out of range")

        cells: dict[tuple[int, int], Cell] = {}
        for (r, c), cell in self._cells.items():
            if c == index:
                continue
            if c > index:
                cell.column = c - 1
            cells[(r, cell.column)] = cell
        self._cells = cells
        self.columns -= 1
        self.recalculate_all()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, max_depth: int = DEFAULT_MAX_DEPTH) -> Sheet:
        """Build a sheet from ``{name, rows, columns, cells: {ref: text}}``.

        Cell contents that are not strings (YAML numbers) are stored as
        their ``str()``.  Literal cells take their values first; formulas
        are evaluated once everything is loaded, so the order of ``cells``
        does not matter.

        Raises:
            ValueError: If a reference is malformed or outside the grid.
        """
        cells = data.get("cells") or {}
        if not isinstance(cells, Mapping):
            raise ValueError("'cells' must be a mapping of reference to expression")

        sheet = cls(
            rows=int(data.get("rows", 10)),
            columns=int(data.get("columns", 10)),
            name=str(data.get("name", "New sheet")),
            max_depth=max_depth,
        )
        for ref, content in cells.items():
            try:
                cell = sheet.cell(str(ref))
            except KeyError:
                raise ValueError(
                    f"Cell {ref!r} is not inside a {sheet.rows}x{sheet.columns} sheet"
                ) from None
            cell.expression = "" if content is None else str(content)
            if not cell.is_formula:
                _store_literal(cell)
        sheet.recalculate_all()
        return sheet


def load_sheet(path: Path, *, max_depth: int = DEFAULT_MAX_DEPTH) -> Sheet:
    """Load a sheet from a YAML file (see :meth:`Sheet.from_dict`)."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"{path} must contain a mapping")
        sheet = Sheet.from_dict(data, max_depth=max_depth)
    except (ValueError, yaml.YAMLError) as exc:
        emit_error(
            EventType.sheet_loaded,
            f"Cannot load {path.name}: {exc}",
            {"sheet": path.stem, "path": str(path)},
            error_code="sheet_invalid",
        )
        raise
    emit_info(
        EventType.sheet_loaded,
        f"Loaded {path.name}",
        {"sheet": sheet.name, "path": str(path), "rows": sheet.rows, "columns": sheet.columns},
    )
    return sheet
