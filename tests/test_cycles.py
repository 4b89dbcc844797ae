"""Tests for cycle detection and the reference-chain depth guard."""

from __future__ import annotations

import pytest

from gridcalc.formulas import (
    FormulaCycleError,
    FormulaDepthError,
    MappingAccessor,
    ResolutionContext,
    evaluate,
)


def _chain(length: int) -> dict[str, object]:
    """A1 -> A2 -> ... -> A<length> -> literal 1."""
    cells: dict[str, object] = {f"A{i}": f"=A{i + 1}" for i in range(1, length + 1)}
    cells[f"A{length + 1}"] = 1
    return cells


class TestCycles:
    def test_two_cell_cycle_from_either_side(self) -> None:
        accessor = MappingAccessor({"A1": "=B1", "B1": "=A1"})

        first = evaluate("A1", accessor)
        assert not first.success
        assert first.error_message == "Cyclic reference: A1 -> B1 -> A1"
        assert first.error_code == "cyclic_reference"

        second = evaluate("B1", accessor)
        assert second.error_message == "Cyclic reference: B1 -> A1 -> B1"

    def test_origin_seeds_chain(self) -> None:
        accessor = MappingAccessor({"A1": "=B1", "B1": "=A1"})
        result = evaluate("=B1", accessor, "A1")
        assert result.error_message == "Cyclic reference: A1 -> B1 -> A1"

    def test_self_reference_caught_immediately(self) -> None:
        accessor = MappingAccessor({"C3": "=C3 + 1"})
        result = evaluate("=C3 + 1", accessor, "C3")
        assert result.error_message == "Cyclic reference: C3 -> C3"
        assert result.error_position == 1

    def test_long_cycle(self) -> None:
        accessor = MappingAccessor({"A1": "=B1", "B1": "=C1", "C1": "=D1 + 1", "D1": "=B1"})
        result = evaluate("A1", accessor)
        assert result.error_message == "Cyclic reference: A1 -> B1 -> C1 -> D1 -> B1"

    def test_cycle_behind_function(self) -> None:
        accessor = MappingAccessor({"A1": "=max(1, B1)", "B1": "=mmin(A1)"})
        assert evaluate("A1", accessor).error_code == "cyclic_reference"


class TestDepthGuard:
    def test_chain_within_limit(self) -> None:
        accessor = MappingAccessor(_chain(3))
        result = evaluate("A1", accessor, max_depth=3)
        assert result.success, result.error_message

    def test_chain_over_limit(self) -> None:
        accessor = MappingAccessor(_chain(4))
        result = evaluate("A1", accessor, max_depth=3)
        assert result.error_message == "Reference chain exceeds maximum depth of 3 at A4"
        assert result.error_code == "depth_exceeded"

    def test_origin_counts_toward_depth(self) -> None:
        accessor = MappingAccessor(_chain(3))
        result = evaluate("A1", accessor, "Z1", max_depth=3)
        assert result.error_code == "depth_exceeded"

    def test_default_limit_stops_long_chain(self) -> None:
        accessor = MappingAccessor(_chain(500))
        result = evaluate("A1", accessor)
        assert result.error_message == "Reference chain exceeds maximum depth of 64 at A65"

    def test_default_limit_allows_moderate_chain(self) -> None:
        accessor = MappingAccessor(_chain(40))
        assert evaluate("A1", accessor).success


class TestResolutionContext:
    def test_enter_adds_and_removes(self) -> None:
        ctx = ResolutionContext("A1")
        with ctx.enter("B1"):
            assert ctx.chain == ["A1", "B1"]
            assert "B1" in ctx
        assert ctx.chain == ["A1"]

    def test_removed_on_failure(self) -> None:
        ctx = ResolutionContext()
        with pytest.raises(RuntimeError):
            with ctx.enter("B1"):
                raise RuntimeError("boom")
        assert len(ctx) == 0

    def test_enter_open_ref(self) -> None:
        ctx = ResolutionContext("A1")
        with pytest.raises(FormulaCycleError) as exc_info:
            with ctx.enter("A1", 7):
                pass
        assert exc_info.value.chain == ["A1", "A1"]
        assert exc_info.value.position == 7

    def test_depth(self) -> None:
        ctx = ResolutionContext(max_depth=1)
        with ctx.enter("A1"):
            with pytest.raises(FormulaDepthError):
                with ctx.enter("A2"):
                    pass

    def test_invalid_max_depth(self) -> None:
        with pytest.raises(ValueError):
            ResolutionContext(max_depth=0)
