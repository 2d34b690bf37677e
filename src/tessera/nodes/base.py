"""Base node class for the tessera template tree."""

from __future__ import annotations

import ast
from dataclasses import dataclass

#: Expressions are stored as parsed Python expression trees.
Expr = ast.expr


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all template nodes.

    All nodes track their source location for error reporting.
    Nodes are immutable so a parsed tree can be shared between compilations.
    """

    lineno: int
    col_offset: int
