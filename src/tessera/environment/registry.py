"""Directive registry.

Directive names map to handlers by exact match. The registry distinguishes
the kinds of directive the parser treats differently:

- **block** directives are built into the parser (``@if``, ``@section``...)
- **context** directives echo one value in an explicit escaping context
  (``@js(value)`` is ``{{ value }}`` encoded for ``script``)
- **helpers** are inline directives whose handler returns the output
  (``@csrf``, ``@date(value)``); built-in and user-registered directives
  live in the same table
- **conditions** are user-registered block conditionals:
  ``env.condition('admin', pred)`` enables ``@admin ... @else ... @endadmin``

All mutations use copy-on-write so templates compiling on other threads
never observe a half-updated table.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Literal

DirectiveKind = Literal["block", "context", "helper", "condition", "condition_end"]

#: Directives handled by the parser itself.
BLOCK_DIRECTIVES: frozenset[str] = frozenset(
    {
        # conditionals
        "if", "elseif", "else", "endif", "unless", "endunless", "isset",
        "endisset", "empty", "endempty", "switch", "case", "default",
        "endswitch", "hasSection", "sectionMissing",
        # loops
        "foreach", "endforeach", "forelse", "endforelse", "for", "endfor",
        "while", "endwhile", "break", "continue",
        # inheritance and stacks
        "extends", "section", "endsection", "stop", "show", "yield", "parent",
        "push", "endpush", "prepend", "endprepend", "pushOnce", "endPushOnce",
        "stack", "layout", "endlayout",
        # includes and components
        "include", "includeIf", "includeWhen", "component", "endcomponent",
        "slot", "endslot", "props", "aware",
        # blocks
        "once", "endonce", "fragment", "endfragment", "teleport", "endteleport",
        "cache", "endcache", "flush", "error", "enderror", "verbatim",
    }
)

#: Explicit-context echo directives → escaping context.
CONTEXT_DIRECTIVES: Mapping[str, str] = {
    "raw": "raw",
    "js": "script",
    "attr": "attribute",
    "url": "url",
    "query": "query",
    "css": "css",
    "id": "id",
}


class DirectiveRegistry:
    """Name → handler lookup for every directive an Environment understands.

    Example:
            >>> registry = DirectiveRegistry()
            >>> registry.register_helper("money", lambda v: f"${v:,.2f}")
            >>> registry.kind("money"), registry.kind("if"), registry.kind("media")
            ('helper', 'block', None)
    """

    __slots__ = ("_conditions", "_helpers")

    def __init__(
        self,
        helpers: Mapping[str, Callable[..., Any]] | None = None,
        conditions: Mapping[str, Callable[..., Any]] | None = None,
    ):
        self._helpers: dict[str, Callable[..., Any]] = dict(helpers or {})
        self._conditions: dict[str, Callable[..., Any]] = dict(conditions or {})

    def _check_name(self, name: str) -> None:
        if not name.isidentifier():
            raise ValueError(f"Invalid directive name {name!r}")
        if name in BLOCK_DIRECTIVES or name in CONTEXT_DIRECTIVES:
            raise ValueError(f"@{name} is a built-in directive and cannot be redefined")

    def register_helper(self, name: str, handler: Callable[..., Any]) -> None:
        self._check_name(name)
        new = self._helpers.copy()
        new[name] = handler
        self._helpers = new

    def register_condition(self, name: str, predicate: Callable[..., Any]) -> None:
        self._check_name(name)
        new = self._conditions.copy()
        new[name] = predicate
        self._conditions = new

    def kind(self, name: str) -> DirectiveKind | None:
        if name in BLOCK_DIRECTIVES:
            return "block"
        if name in CONTEXT_DIRECTIVES:
            return "context"
        if name in self._helpers:
            return "helper"
        if name in self._conditions:
            return "condition"
        if name.startswith("end") and name[3:] in self._conditions:
            return "condition_end"
        return None

    def is_directive(self, name: str) -> bool:
        return self.kind(name) is not None

    @property
    def helpers(self) -> Mapping[str, Callable[..., Any]]:
        return self._helpers

    @property
    def conditions(self) -> Mapping[str, Callable[..., Any]]:
        return self._conditions

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_directive(name)

    def __iter__(self) -> Iterator[str]:
        yield from sorted(BLOCK_DIRECTIVES | set(CONTEXT_DIRECTIVES))
        yield from sorted(self._helpers)
        yield from sorted(self._conditions)
