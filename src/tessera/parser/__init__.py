"""Parser: token stream → immutable node tree."""

from tessera.parser.core import Parser
from tessera.parser.expressions import (
    ExpressionError,
    parse_arguments,
    parse_expression,
    parse_loop_header,
)

__all__ = [
    "ExpressionError",
    "Parser",
    "parse_arguments",
    "parse_expression",
    "parse_loop_header",
]
