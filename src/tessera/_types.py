"""Token types shared by the lexer and parser."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    DATA = "data"
    ECHO = "echo"
    RAW_ECHO = "raw_echo"
    DIRECTIVE = "directive"
    EOF = "eof"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexer token.

    Attributes:
        type: Token kind
        value: Literal text (DATA), expression source (ECHO/RAW_ECHO) or
            directive name (DIRECTIVE)
        lineno: 1-based line of the token start
        col_offset: 0-based column of the token start
        args: Directive argument text without the enclosing parentheses,
            or None when the directive was written without parentheses
        context: Escaping context selected for an ECHO token
    """

    type: TokenType
    value: str
    lineno: int
    col_offset: int
    args: str | None = None
    context: str = "body"

    def __repr__(self) -> str:
        if self.type is TokenType.DIRECTIVE:
            args = "" if self.args is None else f"({self.args})"
            return f"Token(@{self.value}{args}, {self.lineno}:{self.col_offset})"
        return f"Token({self.type.value}, {self.value!r}, {self.lineno}:{self.col_offset})"
