"""Output nodes."""

from __future__ import annotations

import ast
from collections.abc import Sequence
from dataclasses import dataclass

from tessera.nodes.base import Expr, Node


@dataclass(frozen=True, slots=True)
class Data(Node):
    """Literal text between template constructs."""

    value: str


@dataclass(frozen=True, slots=True)
class Output(Node):
    """Echo: {{ expr }} (encoded for ``context``) or {!! expr !!} (context ``raw``).

    ``source`` keeps the expression text for runtime error messages.
    """

    expr: Expr
    context: str = "body"
    source: str = ""


@dataclass(frozen=True, slots=True)
class Helper(Node):
    """Inline directive dispatched through the helper registry: @date(value, 'Y-m-d')"""

    name: str
    args: Sequence[Expr]
    keywords: Sequence[ast.keyword] = ()
    source: str = ""


@dataclass(frozen=True, slots=True)
class Flush(Node):
    """Streaming flush point: @flush"""
