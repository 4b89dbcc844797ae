"""Built-in formula functions: max, min, mmax, mmin."""

from __future__ import annotations

from typing import Any, Callable

from gridcalc.formulas.errors import FormulaFunctionError
from gridcalc.formulas.values import Number, Value, to_number

# name -> (min_args, max_args); None means unbounded
ARITY: dict[str, tuple[int, int | None]] = {
    "max": (2, 2),
    "min": (2, 2),
    "mmax": (1, None),
    "mmin": (1, None),
}


def check_arity(name: str, count: int, position: int | None = None) -> None:
    """Raise FormulaFunctionError unless *name* accepts *count* arguments."""
    if name not in ARITY:
        raise FormulaFunctionError(name, position=position)
    lo, hi = ARITY[name]
    if lo == hi and count != lo:
        raise FormulaFunctionError(
            name, f"Function {name} takes exactly {lo} arguments", position
        )
    if count < lo:
        plural = "argument" if lo == 1 else "arguments"
        raise FormulaFunctionError(
            name, f"Function {name} requires at least {lo} {plural}", position
        )
    if hi is not None and count > hi:
        raise FormulaFunctionError(
            name, f"Function {name} takes at most {hi} arguments", position
        )


def _fn_max(args: list[Value]) -> Value:
    """max(a, b) -- the greater of two numbers."""
    return Number(max(to_number(args[0]), to_number(args[1])))


def _fn_min(args: list[Value]) -> Value:
    """min(a, b) -- the lesser of two numbers."""
    return Number(min(to_number(args[0]), to_number(args[1])))


def _fn_mmax(args: list[Value]) -> Value:
    """mmax(a, ...) -- the greatest of one or more numbers."""
    return Number(max(to_number(a) for a in args))


def _fn_mmin(args: list[Value]) -> Value:
    """mmin(a, ...) -- the least of one or more numbers."""
    return Number(min(to_number(a) for a in args))


FUNCTIONS: dict[str, Callable[[list[Value]], Any]] = {
    "max": _fn_max,
    "min": _fn_min,
    "mmax": _fn_mmax,
    "mmin": _fn_mmin,
}


def call_function(name: str, args: list[Value], position: int | None = None) -> Value:
    """Check arity, then apply the function named *name* to *args*."""
    check_arity(name, len(args), position)
    return FUNCTIONS[name](args)
