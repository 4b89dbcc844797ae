"""Hand-written lexer for cell formulas.

Scanning is greedy, left to right, skipping whitespace between tokens:

- ``0-9``  a maximal digit run        -> Number (no sign, point or exponent)
- ``A-Z``  letters then digits        -> CellReference (``AB12``)
- ``a-z``  a maximal lowercase word   -> Not (``not``) or Function
- ``+ - * / ( ) , = < >``             -> the matching operator kind

Anything else is a :class:`FormulaLexError`.  The returned list always ends
with exactly one ``End`` token positioned at ``len(text)``.
"""

from __future__ import annotations

from gridcalc.formulas.errors import FormulaLexError
from gridcalc.formulas.tokens import OPERATORS, Token, TokenKind

FUNCTION_NAMES = frozenset({"max", "min", "mmax", "mmin"})


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def _is_upper(ch: str) -> bool:
    return "A" <= ch <= "Z"


def _is_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def _scan_while(text: str, pos: int, pred) -> int:
    """Index of the first character at or after *pos* failing *pred*."""
    while pos < len(text) and pred(text[pos]):
        pos += 1
    return pos


def tokenize(text: str, offset: int = 0) -> list[Token]:
    """Split *text* into tokens, scanning from *offset*.

    Token positions are offsets into the whole of *text*.

    Raises:
        FormulaLexError: On the first character that cannot start a token,
            an unknown lowercase keyword, or column letters without a row.
    """
    tokens: list[Token] = []
    pos = offset
    length = len(text)

    while True:
        pos = _scan_while(text, pos, str.isspace)
        if pos >= length:
            break

        ch = text[pos]
        start = pos

        if _is_digit(ch):
            pos = _scan_while(text, pos, _is_digit)
            tokens.append(Token(TokenKind.Number, text[start:pos], start))

        elif _is_upper(ch):
            letters_end = _scan_while(text, pos, _is_upper)
            pos = _scan_while(text, letters_end, _is_digit)
            if pos == letters_end:
                raise FormulaLexError(
                    f"Malformed cell reference '{text[start:letters_end]}' at position {start}",
                    start,
                )
            tokens.append(Token(TokenKind.CellReference, text[start:pos], start))

        elif _is_lower(ch):
            pos = _scan_while(text, pos, _is_lower)
            word = text[start:pos]
            if word == "not":
                tokens.append(Token(TokenKind.Not, word, start))
            elif word in FUNCTION_NAMES:
                tokens.append(Token(TokenKind.Function, word, start))
            else:
                raise FormulaLexError(f"Unknown keyword '{word}' at position {start}", start)

        elif ch in OPERATORS:
            pos += 1
            tokens.append(Token(OPERATORS[ch], ch, start))

        else:
            raise FormulaLexError(f"Unknown character '{ch}' at position {start}", start)

    tokens.append(Token(TokenKind.End, "", length))
    return tokens


def body_start(text: str) -> int:
    """Offset where a formula's body begins.

    Skips leading whitespace, one optional ``=``, and the whitespace after
    it.  Returns ``len(text)`` when nothing is left to parse.
    """
    pos = _scan_while(text, 0, str.isspace)
    if text.startswith("=", pos):
        pos = _scan_while(text, pos + 1, str.isspace)
    return pos
