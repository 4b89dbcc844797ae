"""Cycle detection and depth limiting for cell-reference resolution."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from gridcalc.formulas.errors import FormulaCycleError, FormulaDepthError

DEFAULT_MAX_DEPTH = 64


class ResolutionContext:
    """The chain of references currently being resolved.

    One context is shared by a top-level evaluation and every nested parser
    it spawns.  A reference is open only while its formula is being
    evaluated, so the chain mirrors the live call stack rather than the
    history of everything resolved so far.

    Parameters
    ----------
    origin : str | None
        Reference of the cell whose formula started the evaluation.  It
        seeds the chain so a cell referring to itself is caught at once.
    max_depth : int
        Maximum number of open references, origin included.
    """

    def __init__(self, origin: str | None = None, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        self.max_depth = max_depth
        # dict keeps insertion order for the cycle message
        self._open: dict[str, None] = {}
        if origin:
            self._open[origin] = None

    def __contains__(self, ref: str) -> bool:
        return ref in self._open

    def __len__(self) -> int:
        return len(self._open)

    @property
    def chain(self) -> list[str]:
        """Open references, outermost first."""
        return list(self._open)

    def check(self, ref: str, position: int | None = None) -> None:
        """Raise if resolving *ref* would close a cycle."""
        if ref in self._open:
            raise FormulaCycleError(self.chain + [ref], position)

    @contextmanager
    def enter(self, ref: str, position: int | None = None) -> Iterator[None]:
        """Hold *ref* open for the duration of the block.

        Raises:
            FormulaCycleError: *ref* is already open.
            FormulaDepthError: Opening *ref* would exceed ``max_depth``.
        """
        self.check(ref, position)
        if len(self._open) >= self.max_depth:
            raise FormulaDepthError(ref, self.max_depth, position)
        self._open[ref] = None
        try:
            yield
        finally:
            del self._open[ref]
