"""Control flow nodes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tessera.nodes.base import Expr, Node


@dataclass(frozen=True, slots=True)
class If(Node):
    """Conditional: @if / @unless / @isset / @empty / @hasSection / custom conditions.

    Every conditional directive is parsed into this node; only the test
    expression differs.
    """

    test: Expr
    body: Sequence[Node]
    elif_: Sequence[tuple[Expr, Sequence[Node]]] = ()
    else_: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class For(Node):
    """Loop: @foreach, @forelse, @for.

    ``target`` is a store-context expression whose names bind into the render
    context. ``key_target`` is set for ``items as key => value``. ``empty``
    holds the @empty branch of @forelse.
    """

    target: Expr
    iter: Expr
    body: Sequence[Node]
    key_target: Expr | None = None
    empty: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class While(Node):
    """Loop: @while(cond)"""

    test: Expr
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Case(Node):
    """One @case of a @switch; consecutive empty cases share a body."""

    values: Sequence[Expr]
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Switch(Node):
    """@switch(subject) @case(v) ... @break @default ... @endswitch"""

    subject: Expr
    cases: Sequence[Case]
    default: Sequence[Node] = ()


@dataclass(frozen=True, slots=True)
class Break(Node):
    """@break / @break(cond)"""

    test: Expr | None = None


@dataclass(frozen=True, slots=True)
class Continue(Node):
    """@continue / @continue(cond)"""

    test: Expr | None = None
