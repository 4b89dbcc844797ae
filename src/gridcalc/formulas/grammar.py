"""Lark-based syntax-only pass over the formula grammar.

The evaluating parser in :mod:`gridcalc.formulas.parser` computes values
while it descends; this module answers the cheaper question "is this text
well-formed?" without touching any cell.  It reuses the hand-written lexer
and feeds its tokens to an LALR(1) grammar that mirrors the evaluating
parser rule for rule::

    expr        := comparison
    comparison  := addition [ ('=' | '<' | '>') addition ]
    addition    := term { ('+' | '-') term }
    term        := factor { ('*' | '/') factor }
    factor      := NUMBER | CELLREF | function | 'not' factor | '(' expr ')'
    function    := FNNAME '(' [ expr { ',' expr } ] ')'

An empty argument list is accepted by the grammar so that ``mmax()`` is
reported as an arity error; arity is checked on the resulting tree.
Division by zero, missing cells and cycles are semantic and are left to
evaluation.
"""

from __future__ import annotations

from lark import Lark, Token as LarkToken, Tree, Visitor
from lark.exceptions import UnexpectedInput, UnexpectedToken
from lark.lexer import Lexer

from gridcalc.formulas.accessor import CellAccessor
from gridcalc.formulas.functions import check_arity
from gridcalc.formulas.lexer import body_start, tokenize
from gridcalc.formulas.parser import expected_token, run_safely, unexpected_token
from gridcalc.formulas.result import ParseResult
from gridcalc.formulas.tokens import Token, TokenKind
from gridcalc.formulas.values import EMPTY, Boolean, Value

# Lark terminal name for each token kind.  Punctuation is underscored so it
# is dropped from the tree.
_TERMINALS: dict[TokenKind, str] = {
    TokenKind.Number: "NUMBER",
    TokenKind.CellReference: "CELL_REFERENCE",
    TokenKind.Plus: "PLUS",
    TokenKind.Minus: "MINUS",
    TokenKind.Multiply: "MULTIPLY",
    TokenKind.Divide: "DIVIDE",
    TokenKind.LeftParen: "_LEFT_PAREN",
    TokenKind.RightParen: "_RIGHT_PAREN",
    TokenKind.Comma: "_COMMA",
    TokenKind.Function: "FUNCTION",
    TokenKind.Equal: "EQUAL",
    TokenKind.Less: "LESS",
    TokenKind.Greater: "GREATER",
    TokenKind.Not: "NOT",
}

_KINDS: dict[str, TokenKind] = {name: kind for kind, name in _TERMINALS.items()}
_KINDS["$END"] = TokenKind.End

GRAMMAR = r"""
start: comparison

?comparison: addition
    | addition EQUAL addition    -> compare
    | addition LESS addition     -> compare
    | addition GREATER addition  -> compare

?addition: term
    | addition PLUS term   -> binary
    | addition MINUS term  -> binary

?term: factor
    | term MULTIPLY factor  -> binary
    | term DIVIDE factor    -> binary

?factor: NUMBER              -> number
    | CELL_REFERENCE         -> cell_ref
    | FUNCTION _LEFT_PAREN (comparison (_COMMA comparison)*)? _RIGHT_PAREN  -> call
    | NOT factor             -> negation
    | _LEFT_PAREN comparison _RIGHT_PAREN

%declare NUMBER CELL_REFERENCE PLUS MINUS MULTIPLY DIVIDE FUNCTION EQUAL LESS GREATER NOT
%declare _LEFT_PAREN _RIGHT_PAREN _COMMA
"""


class _TokenStreamLexer(Lexer):
    """Adapts an already-lexed token list to lark's lexer interface."""

    def __init__(self, lexer_conf) -> None:
        pass

    def lex(self, data: list[Token]):
        for token in data:
            if token.kind is TokenKind.End:
                break
            yield LarkToken(_TERMINALS[token.kind], token.lexeme, start_pos=token.position)


_parser = Lark(GRAMMAR, parser="lalr", lexer=_TokenStreamLexer, start="start")


class _ArityChecker(Visitor):
    """Visitor that rejects calls with the wrong number of arguments."""

    def call(self, tree: Tree) -> None:
        name = tree.children[0]
        check_arity(str(name), len(tree.children) - 1, name.start_pos)


def _syntax_error(exc: UnexpectedToken, tokens: list[Token]):
    """Translate a lark error into the same messages the evaluator uses."""
    end = tokens[-1]
    if exc.token.type == "$END":
        found = end
    else:
        by_pos = {t.position: t for t in tokens}
        found = by_pos.get(exc.token.start_pos, end)

    expected = sorted(
        {_KINDS[name] for name in exc.expected if name in _KINDS},
        key=lambda kind: kind.value,
    )
    if len(expected) == 1:
        return expected_token(expected[0], found)
    return unexpected_token(found)


def parse_tree(text: str) -> Tree | None:
    """Parse *text* (optional leading ``=``) into a lark Tree.

    Returns:
        The tree, or ``None`` for empty and ``=``-only text.

    Raises:
        FormulaLexError: On a lexical error.
        FormulaParseError: If the token stream does not match the grammar.
        FormulaFunctionError: On a call with the wrong number of arguments.
    """
    start = body_start(text)
    if start >= len(text):
        return None

    tokens = tokenize(text, start)
    try:
        tree = _parser.parse(tokens)
    except UnexpectedToken as exc:
        raise _syntax_error(exc, tokens) from exc
    except UnexpectedInput as exc:
        raise unexpected_token(tokens[-1]) from exc

    _ArityChecker().visit(tree)
    return tree


def _check(text: str) -> Value:
    return EMPTY if parse_tree(text) is None else Boolean(True)


def validate_syntax(
    text: str,
    accessor: CellAccessor | None = None,
    origin: str | None = None,
) -> ParseResult:
    """Check that *text* is a well-formed formula.  Never raises.

    *accessor* and *origin* are accepted for symmetry with
    :func:`gridcalc.formulas.parser.evaluate`; no cell is ever read.

    Returns:
        ``Boolean(True)`` on success, ``Empty`` for empty text, or the
        first lexical/syntactic error with its position.
    """
    return run_safely(_check, text)


def extract_refs(text: str) -> list[str]:
    """Cell references mentioned in *text*, in source order, without repeats.

    Raises:
        FormulaError: If *text* is not a well-formed formula.
    """
    tree = parse_tree(text)
    if tree is None:
        return []
    refs: list[str] = []
    for subtree in tree.iter_subtrees_topdown():
        if subtree.data == "cell_ref":
            ref = str(subtree.children[0])
            if ref not in refs:
                refs.append(ref)
    return refs
