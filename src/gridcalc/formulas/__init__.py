"""Cell formula lexing, evaluation and syntax validation.

Public API::

    from gridcalc.formulas import evaluate, validate_syntax, tokenize
"""

from gridcalc.formulas.accessor import CellAccessor, CellSnapshot, MappingAccessor
from gridcalc.formulas.context import DEFAULT_MAX_DEPTH, ResolutionContext
from gridcalc.formulas.errors import (
    ENGINE_ERRORS,
    FormulaCycleError,
    FormulaDepthError,
    FormulaDivisionError,
    FormulaError,
    FormulaFunctionError,
    FormulaLexError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.formulas.grammar import extract_refs, validate_syntax
from gridcalc.formulas.lexer import tokenize
from gridcalc.formulas.parser import FormulaParser, evaluate
from gridcalc.formulas.references import column_index_of, column_name_of, make_ref, parse_ref
from gridcalc.formulas.result import ParseResult
from gridcalc.formulas.tokens import Token, TokenKind
from gridcalc.formulas.values import (
    EMPTY,
    Boolean,
    Empty,
    Number,
    Text,
    Value,
    display_value,
    from_raw,
    to_boolean,
    to_number,
)

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "EMPTY",
    "ENGINE_ERRORS",
    "Boolean",
    "CellAccessor",
    "CellSnapshot",
    "Empty",
    "FormulaCycleError",
    "FormulaDepthError",
    "FormulaDivisionError",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaLexError",
    "FormulaParseError",
    "FormulaParser",
    "FormulaRefError",
    "MappingAccessor",
    "Number",
    "ParseResult",
    "ResolutionContext",
    "Text",
    "Token",
    "TokenKind",
    "Value",
    "column_index_of",
    "column_name_of",
    "display_value",
    "evaluate",
    "extract_refs",
    "from_raw",
    "make_ref",
    "parse_ref",
    "to_boolean",
    "to_number",
    "tokenize",
    "validate_syntax",
]
