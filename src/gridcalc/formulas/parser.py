"""Recursive-descent parser that evaluates formulas as it descends.

No syntax tree is built: every grammar rule returns the :class:`Value` of
the text it consumed.  Operator precedence (lowest to highest)::

    1. Comparison: = < >   (at most one per expression)
    2. Addition/subtraction: + -
    3. Multiplication/division: * /
    4. Factors: number, cell reference, function call, not, ( expr )

Cell references holding a formula are evaluated by a nested parser that
shares this parser's :class:`ResolutionContext`, which is how cycles and
overlong reference chains are caught.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Context, Decimal, DecimalException, localcontext

from gridcalc.formulas.accessor import CellAccessor
from gridcalc.formulas.context import DEFAULT_MAX_DEPTH, ResolutionContext
from gridcalc.formulas.errors import (
    FormulaDivisionError,
    FormulaError,
    FormulaParseError,
    FormulaRefError,
)
from gridcalc.formulas.functions import call_function
from gridcalc.formulas.lexer import body_start, tokenize
from gridcalc.formulas.result import ParseResult
from gridcalc.formulas.tokens import COMPARISONS, Token, TokenKind
from gridcalc.formulas.values import (
    EMPTY,
    Boolean,
    Number,
    Value,
    to_boolean,
    to_number,
)

# Fixed arithmetic context so results do not depend on the caller's
# thread-local decimal settings.
DECIMAL_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN)


def describe(token: Token) -> str:
    """Human-readable name of a token for error messages."""
    if token.kind is TokenKind.End:
        return "end of input"
    return f"'{token.lexeme}'"


def unexpected_token(token: Token) -> FormulaParseError:
    return FormulaParseError(
        f"Unexpected token {describe(token)} at position {token.position}",
        token.position,
    )


def expected_token(expected: TokenKind, token: Token) -> FormulaParseError:
    return FormulaParseError(
        f"Expected token {expected.value} but found {token.kind.value} "
        f"at position {token.position}",
        token.position,
    )


def run_safely(fn, text: str) -> ParseResult:
    """Run ``fn(text) -> Value`` and fold every failure into a ParseResult."""
    try:
        with localcontext(DECIMAL_CONTEXT):
            value = fn(text)
    except FormulaError as exc:
        return ParseResult.error(str(exc), exc.position or 0, exc.code)
    except RecursionError:
        return ParseResult.error("Expression nested too deeply", 0, "nesting_too_deep")
    except DecimalException as exc:
        return ParseResult.error(
            f"Numeric overflow: {type(exc).__name__}", 0, "numeric_overflow"
        )
    return ParseResult.ok(value)


class FormulaParser:
    """Evaluates formula text against an optional cell accessor.

    Usage::

        parser = FormulaParser(sheet, origin="C3")
        result = parser.evaluate("=A1 + max(B1, 10)")
        if result.success:
            print(result.value)

    Parameters
    ----------
    accessor : CellAccessor | None
        Read-only cell lookup.  Without one, any cell reference fails.
    origin : str | None
        Reference of the cell that owns the expression, used to seed
        cycle detection.
    context : ResolutionContext | None
        Shared chain of open references.  Nested parsers receive their
        parent's context; top-level callers normally leave this unset.
    max_depth : int
        Maximum reference-chain length when a new context is created.
    """

    def __init__(
        self,
        accessor: CellAccessor | None = None,
        origin: str | None = None,
        *,
        context: ResolutionContext | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._accessor = accessor
        self._context = context if context is not None else ResolutionContext(origin, max_depth)
        self._tokens: list[Token] = []
        self._index = 0

    @property
    def context(self) -> ResolutionContext:
        return self._context

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def evaluate(self, text: str) -> ParseResult:
        """Parse and compute *text*.  Never raises."""
        return run_safely(self.evaluate_or_raise, text)

    def validate_syntax(self, text: str) -> ParseResult:
        """Check *text* against the grammar only.  Never raises."""
        from gridcalc.formulas.grammar import validate_syntax

        return validate_syntax(text)

    def evaluate_or_raise(self, text: str) -> Value:
        """Parse and compute *text*.

        Raises:
            FormulaError: On any lexical, syntactic or semantic failure.
        """
        start = body_start(text)
        if start >= len(text):
            return EMPTY

        self._tokens = tokenize(text, start)
        self._index = 0

        value = self._comparison()
        if self._current.kind is not TokenKind.End:
            raise unexpected_token(self._current)
        return value

    # ------------------------------------------------------------------
    # Token stream
    # ------------------------------------------------------------------

    @property
    def _current(self) -> Token:
        # Reading past the end keeps yielding End.
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return self._tokens[-1]

    def _expect(self, kind: TokenKind) -> Token:
        token = self._current
        if token.kind is not kind:
            raise expected_token(kind, token)
        self._index += 1
        return token

    # ------------------------------------------------------------------
    # Grammar rules
    # ------------------------------------------------------------------

    def _comparison(self) -> Value:
        left = self._addition()
        if self._current.kind not in COMPARISONS:
            return left

        op = self._expect(self._current.kind).kind
        right = self._addition()
        a, b = to_number(left), to_number(right)
        if op is TokenKind.Equal:
            return Boolean(a == b)
        if op is TokenKind.Less:
            return Boolean(a < b)
        return Boolean(a > b)

    def _addition(self) -> Value:
        left = self._term()
        while self._current.kind in (TokenKind.Plus, TokenKind.Minus):
            op = self._expect(self._current.kind).kind
            right = self._term()
            if op is TokenKind.Plus:
                left = Number(to_number(left) + to_number(right))
            else:
                left = Number(to_number(left) - to_number(right))
        return left

    def _term(self) -> Value:
        left = self._factor()
        while self._current.kind in (TokenKind.Multiply, TokenKind.Divide):
            op_token = self._expect(self._current.kind)
            right = self._factor()
            if op_token.kind is TokenKind.Multiply:
                left = Number(to_number(left) * to_number(right))
            else:
                divisor = to_number(right)
                if divisor == 0:
                    raise FormulaDivisionError(op_token.position)
                left = Number(to_number(left) / divisor)
        return left

    def _factor(self) -> Value:
        token = self._current
        kind = token.kind

        if kind is TokenKind.Number:
            self._expect(TokenKind.Number)
            return Number(Decimal(token.lexeme))

        if kind is TokenKind.CellReference:
            return self._cell_reference()

        if kind is TokenKind.Function:
            return self._function()

        if kind is TokenKind.Not:
            self._expect(TokenKind.Not)
            return Boolean(not to_boolean(self._factor()))

        if kind is TokenKind.LeftParen:
            self._expect(TokenKind.LeftParen)
            value = self._comparison()
            self._expect(TokenKind.RightParen)
            return value

        raise unexpected_token(token)

    def _function(self) -> Value:
        name_token = self._expect(TokenKind.Function)
        self._expect(TokenKind.LeftParen)

        args: list[Value] = []
        # An empty list parses so that arity reports it.
        if self._current.kind is not TokenKind.RightParen:
            args.append(self._comparison())
            while self._current.kind is TokenKind.Comma:
                self._expect(TokenKind.Comma)
                args.append(self._comparison())

        self._expect(TokenKind.RightParen)
        return call_function(name_token.lexeme, args, name_token.position)

    def _cell_reference(self) -> Value:
        token = self._expect(TokenKind.CellReference)
        ref = token.lexeme

        self._context.check(ref, token.position)
        if self._accessor is None:
            raise FormulaRefError(None, token.position)
        cell = self._accessor.resolve(ref)
        if cell is None:
            raise FormulaRefError(ref, token.position)

        expression = cell.raw_expression
        if not expression or not expression.lstrip().startswith("="):
            return cell.cached_value

        with self._context.enter(ref, token.position):
            nested = FormulaParser(self._accessor, context=self._context)
            try:
                return nested.evaluate_or_raise(expression)
            except FormulaError as exc:
                # Positions from a nested formula do not refer to this text.
                exc.position = None
                raise


def evaluate(
    text: str,
    accessor: CellAccessor | None = None,
    origin: str | None = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ParseResult:
    """Evaluate *text* with a fresh parser and resolution context.

    Args:
        text: Expression, with or without a leading ``=``.
        accessor: Read-only cell lookup for resolving references.
        origin: Reference of the cell that owns *text*.
        max_depth: Maximum length of the live reference chain.

    Returns:
        A ParseResult holding the value, or the error and its position.
    """
    return FormulaParser(accessor, origin, max_depth=max_depth).evaluate(text)
