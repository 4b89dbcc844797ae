"""Non-throwing outcome of an evaluation or validation pass."""

from __future__ import annotations

from dataclasses import dataclass

from gridcalc.formulas.values import Value


@dataclass(frozen=True)
class ParseResult:
    """Either a value (``success``) or an error message with a position.

    Exactly one of ``value`` / ``error_message`` is set.  ``error_code`` is
    a short machine-readable category such as ``"cyclic_reference"``.
    """

    success: bool
    value: Value | None = None
    error_message: str | None = None
    error_position: int = 0
    error_code: str | None = None

    @classmethod
    def ok(cls, value: Value) -> ParseResult:
        return cls(success=True, value=value)

    @classmethod
    def error(cls, message: str, position: int = 0, code: str = "formula_error") -> ParseResult:
        return cls(
            success=False,
            error_message=message,
            error_position=position,
            error_code=code,
        )
