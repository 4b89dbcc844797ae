"""Token model produced by the lexer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenKind(str, Enum):
    Number = "Number"
    CellReference = "CellReference"
    Plus = "Plus"
    Minus = "Minus"
    Multiply = "Multiply"
    Divide = "Divide"
    LeftParen = "LeftParen"
    RightParen = "RightParen"
    Comma = "Comma"
    Function = "Function"
    Equal = "Equal"
    Less = "Less"
    Greater = "Greater"
    Not = "Not"
    End = "End"


# Single-character operators, mapped one-to-one to their kinds.
OPERATORS: dict[str, TokenKind] = {
    "+": TokenKind.Plus,
    "-": TokenKind.Minus,
    "*": TokenKind.Multiply,
    "/": TokenKind.Divide,
    "(": TokenKind.LeftParen,
    ")": TokenKind.RightParen,
    ",": TokenKind.Comma,
    "=": TokenKind.Equal,
    "<": TokenKind.Less,
    ">": TokenKind.Greater,
}

COMPARISONS = frozenset({TokenKind.Equal, TokenKind.Less, TokenKind.Greater})


@dataclass(frozen=True)
class Token:
    """A lexeme with its kind and character offset."""

    kind: TokenKind
    lexeme: str
    position: int

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.lexeme} at {self.position}"
