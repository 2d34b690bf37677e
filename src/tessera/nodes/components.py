"""Component, fragment, teleport and cache nodes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from tessera.nodes.base import Expr, Node


@dataclass(frozen=True, slots=True)
class Slot(Node):
    """Named slot inside a component invocation: @slot('title') ... @endslot"""

    name: Expr
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Component(Node):
    """Component invocation: @component('Alert', {...}) ... @endcomponent

    ``body`` is the default slot; ``slots`` the named slot blocks.
    """

    name: Expr
    attrs: Expr | None
    body: Sequence[Node]
    slots: Sequence[Slot] = ()


@dataclass(frozen=True, slots=True)
class Props(Node):
    """Prop declaration: @props('title', size='md') or @props({'size': 'md'})

    ``required`` lists props without a default.
    """

    required: Sequence[str]
    defaults: Sequence[tuple[str, Expr]]


@dataclass(frozen=True, slots=True)
class Aware(Node):
    """Ambient data from ancestor components: @aware(color='gray')"""

    names: Sequence[tuple[str, Expr | None]]


@dataclass(frozen=True, slots=True)
class Fragment(Node):
    """Partial-render region: @fragment('stats') ... @endfragment"""

    name: Expr
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Teleport(Node):
    """Relocated region: @teleport('#modals') ... @endteleport"""

    target: Expr
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Cache(Node):
    """Content caching: @cache('sidebar', 3600, tags=['nav']) ... @endcache"""

    key: Expr
    body: Sequence[Node]
    ttl: Expr | None = None
    tags: Expr | None = None


@dataclass(frozen=True, slots=True)
class Error(Node):
    """Validation error block: @error('email') {{ message }} @else ... @enderror"""

    field: Expr
    bag: Expr | None
    body: Sequence[Node]
    else_: Sequence[Node] = ()

