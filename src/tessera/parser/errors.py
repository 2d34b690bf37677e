"""Parser error construction.

Parse errors are `TemplateSyntaxError`s located at the offending token, with
the source line and a caret, plus a suggestion where one is obvious.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tessera.environment.exceptions import ErrorCode, TemplateSyntaxError
from tessera.parser.expressions import ExpressionError

if TYPE_CHECKING:
    from tessera._types import Token


class ParseErrorMixin:
    """Mixin building located syntax errors for the Parser."""

    if TYPE_CHECKING:
        _name: str | None
        _filename: str | None
        _source: str | None
        _current: Token

    def _error(
        self,
        message: str,
        token: Token | None = None,
        *,
        suggestion: str | None = None,
        code: ErrorCode = ErrorCode.SYNTAX_ERROR,
        column: int | None = None,
    ) -> TemplateSyntaxError:
        token = token or self._current
        return TemplateSyntaxError(
            message,
            lineno=token.lineno,
            name=self._name,
            filename=self._filename,
            source=self._source,
            col_offset=token.col_offset if column is None else column,
            code=code,
            suggestion=suggestion,
        )

    def _expression_error(self, exc: ExpressionError, token: Token, text: str) -> TemplateSyntaxError:
        return self._error(
            f"Invalid expression '{text.strip()}': {exc}",
            token,
            code=ErrorCode.INVALID_EXPRESSION,
        )
