"""Error types for formula lexing, parsing and evaluation."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors.

    Attributes:
        position: Character offset the error refers to, if known.
    """

    code = "formula_error"

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        super().__init__(message)


class FormulaLexError(FormulaError):
    """Unknown character, unknown keyword or malformed cell reference."""

    code = "lex_error"


class FormulaParseError(FormulaError):
    """Token stream does not match the grammar."""

    code = "parse_error"


class FormulaFunctionError(FormulaError):
    """Unknown function or wrong number of arguments.

    Attributes:
        func_name: The function that caused the error.
    """

    code = "function_error"

    def __init__(self, func_name: str, message: str | None = None, position: int | None = None) -> None:
        self.func_name = func_name
        super().__init__(message or f"Unknown function '{func_name}'", position)


class FormulaDivisionError(FormulaError):
    """Division by a divisor that coerces to zero."""

    code = "division_by_zero"

    def __init__(self, position: int | None = None) -> None:
        super().__init__("Division by zero", position)


class FormulaRefError(FormulaError):
    """A cell reference that cannot be resolved.

    Attributes:
        ref: The unresolved reference, or ``None`` when no accessor exists.
    """

    code = "ref_error"

    def __init__(self, ref: str | None, position: int | None = None) -> None:
        self.ref = ref
        if ref is None:
            msg = "No spreadsheet context to resolve cell references"
        else:
            msg = f"Cell {ref} not found"
        super().__init__(msg, position)


class FormulaCycleError(FormulaError):
    """A reference that is already being resolved further up the chain.

    Attributes:
        chain: Open references in resolution order, ending with the repeat.
    """

    code = "cyclic_reference"

    def __init__(self, chain: list[str], position: int | None = None) -> None:
        self.chain = chain
        super().__init__(f"Cyclic reference: {' -> '.join(chain)}", position)


class FormulaDepthError(FormulaError):
    """Acyclic reference chain longer than the configured maximum."""

    code = "depth_exceeded"

    def __init__(self, ref: str, max_depth: int, position: int | None = None) -> None:
        self.ref = ref
        self.max_depth = max_depth
        super().__init__(
            f"Reference chain exceeds maximum depth of {max_depth} at {ref}",
            position,
        )


ENGINE_ERRORS = (
    FormulaError,
    FormulaLexError,
    FormulaParseError,
    FormulaFunctionError,
    FormulaDivisionError,
    FormulaRefError,
    FormulaCycleError,
    FormulaDepthError,
)
