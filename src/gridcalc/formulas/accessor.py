"""Read-only cell lookup capability supplied by the host grid."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from gridcalc.formulas.values import EMPTY, Value, from_raw


@dataclass(frozen=True)
class CellSnapshot:
    """What the formula engine may see of one cell."""

    reference: str
    raw_expression: str = ""
    cached_value: Value = EMPTY


@runtime_checkable
class CellAccessor(Protocol):
    """Protocol for resolving a cell reference to a snapshot."""

    def resolve(self, reference: str) -> CellSnapshot | None:
        """Return the cell at *reference*, or ``None`` if there is none."""
        ...


class MappingAccessor:
    """Serve snapshots from a plain ``{reference: content}`` mapping.

    Text content starting with ``=`` is treated as a formula; anything else
    becomes the cached value.  Useful for tests and one-off evaluation.
    """

    def __init__(self, cells: Mapping[str, Any]) -> None:
        self._cells: dict[str, CellSnapshot] = {}
        for ref, content in cells.items():
            if isinstance(content, CellSnapshot):
                self._cells[ref] = content
            elif isinstance(content, str) and content.lstrip().startswith("="):
                self._cells[ref] = CellSnapshot(ref, raw_expression=content)
            else:
                raw = content if isinstance(content, str) else ""
                self._cells[ref] = CellSnapshot(ref, raw, from_raw(content))

    def resolve(self, reference: str) -> CellSnapshot | None:
        return self._cells.get(reference)
