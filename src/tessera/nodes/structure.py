"""Template structure nodes: inheritance, sections, stacks, includes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tessera.nodes.base import Expr, Node


@dataclass(frozen=True, slots=True)
class Extends(Node):
    """Template inheritance: @extends('layouts.app')"""

    template: str


@dataclass(frozen=True, slots=True)
class Section(Node):
    """Section capture: @section('name') ... @endsection / @stop / @show

    ``show`` emits the resolved section right after committing it.
    """

    name: str
    body: Sequence[Node]
    show: bool = False


@dataclass(frozen=True, slots=True)
class InlineSection(Node):
    """Inline section: @section('title', expr)"""

    name: str
    value: Expr


@dataclass(frozen=True, slots=True)
class Yield(Node):
    """Section output: @yield('name', default)"""

    name: Expr
    default: Expr | None = None


@dataclass(frozen=True, slots=True)
class Parent(Node):
    """@parent: the ancestor's content for the enclosing section."""


@dataclass(frozen=True, slots=True)
class Push(Node):
    """Stack contribution: @push / @prepend / @pushOnce

    ``once_key`` is set for @pushOnce; the contribution is made only the
    first time the key is seen in a render.
    """

    stack: Expr
    body: Sequence[Node]
    prepend: bool = False
    once_key: Expr | None = None


@dataclass(frozen=True, slots=True)
class Stack(Node):
    """Stack output: @stack('scripts')"""

    name: Expr


@dataclass(frozen=True, slots=True)
class Include(Node):
    """Include: @include / @includeIf / @includeWhen

    ``ignore_missing`` is set for @includeIf; ``condition`` for @includeWhen.
    """

    template: Expr
    data: Expr | None = None
    ignore_missing: bool = False
    condition: Expr | None = None


@dataclass(frozen=True, slots=True)
class Once(Node):
    """@once / @once('key') ... @endonce"""

    key: Expr
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Discard(Node):
    """Run ``body`` for its side effects (sections, stacks) and drop its output.

    Produced by the inheritance resolver for every template in an
    ``@extends`` chain except the root layout.
    """

    body: Sequence[Node]
    template_name: str = ""


@dataclass(frozen=True, slots=True)
class Origin(Node):
    """Marks where the body of ``template_name`` starts in a flattened extends chain.

    Runtime diagnostics report lines against this template from here on.
    """

    template_name: str


@dataclass(frozen=True, slots=True)
class Template(Node):
    """Root node representing a complete template."""

    body: Sequence[Node]
    extends: Extends | None = None
