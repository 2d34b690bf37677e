"""Template structure parsing: inheritance, sections, stacks, includes, @once."""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera._types import Token
from tessera.environment.exceptions import ErrorCode
from tessera.nodes import (
    Data,
    Extends,
    Include,
    InlineSection,
    Once,
    Parent,
    Push,
    Section,
    Slot,
    Stack,
    Yield,
)

if TYPE_CHECKING:
    from tessera.nodes import Expr, Node


def trim_nodes(nodes: list[Node]) -> list[Node]:
    """Drop whitespace-only text at both ends and strip the outermost text nodes."""
    nodes = list(nodes)
    while nodes and isinstance(nodes[0], Data) and not nodes[0].value.strip():
        nodes.pop(0)
    while nodes and isinstance(nodes[-1], Data) and not nodes[-1].value.strip():
        nodes.pop()
    if nodes and isinstance(nodes[0], Data):
        first = nodes[0]
        nodes[0] = Data(first.lineno, first.col_offset, first.value.lstrip())
    if nodes and isinstance(nodes[-1], Data):
        last = nodes[-1]
        nodes[-1] = Data(last.lineno, last.col_offset, last.value.rstrip())
    return nodes


class TemplateStructureBlockMixin:
    """Mixin for parsing @extends, sections, stacks, includes and @once.

    Host attributes and methods come from `Parser`.
    """

    if TYPE_CHECKING:
        _name: str | None
        _block_stack: list[tuple[str, Token]]
        _extends: Extends | None
        _current: Token

        def _advance(self) -> Token: ...
        def _push_block(self, name: str, token: Token) -> None: ...
        def _pop_block(self) -> None: ...
        def _in_block(self, *names: str) -> bool: ...
        def _closers_for(self, name: str) -> tuple[str, ...]: ...
        def _parse_body(self, stop: frozenset[str] = ...) -> list[Node]: ...
        def _consume_end(self, opener: str) -> Token: ...
        def _arguments(self, token: Token) -> tuple[list[Expr], list[ast.keyword]]: ...
        def _require_args(self, token: Token, minimum: int = 1, maximum: int | None = None) -> list[Expr]: ...
        def _string_literal(self, token: Token, expr: Expr, what: str) -> str: ...
        def _error(self, message: str, token: Token | None = None, **kwargs) -> Exception: ...
        def _parse_slot(self, token: Token) -> Slot: ...

    def _auto_key(self, token: Token) -> ast.Constant:
        """Key for an argument-less @once / @pushOnce: unique per source position."""
        return ast.Constant(value=f"{self._name or '<string>'}:{token.lineno}:{token.col_offset}")

    # -- inheritance -----------------------------------------------------

    def _set_extends(self, token: Token, parent: str) -> None:
        if self._block_stack:
            raise self._error(
                f"@{token.value} must be at the top level of the template",
                token,
                suggestion=f"Move @{token.value} out of @{self._block_stack[-1][0]}",
                code=ErrorCode.MISPLACED_EXTENDS,
            )
        if self._extends is not None:
            raise self._error(
                f"Template already extends '{self._extends.template}'",
                token,
                suggestion="A template can extend only one parent",
                code=ErrorCode.MISPLACED_EXTENDS,
            )
        self._extends = Extends(token.lineno, token.col_offset, template=parent)

    def _parse_extends(self, start: Token) -> None:
        """@extends('layouts.app'): recorded on the Template, emits nothing."""
        self._advance()
        (arg,) = self._require_args(start, 1, 1)
        self._set_extends(start, self._string_literal(start, arg, "parent name"))

    def _parse_layout(self, start: Token) -> list[Node]:
        """@layout('layouts.app') ... @endlayout

        Sugar for @extends: each @slot becomes a section of that name and the
        remaining body becomes the ``content`` section. When a ``content``
        slot is given explicitly the remaining body is kept as-is, so its
        @push blocks still run.
        """
        self._advance()
        (arg,) = self._require_args(start, 1, 1)
        self._set_extends(start, self._string_literal(start, arg, "layout name"))

        self._push_block("layout", start)
        slots: list[Slot] = []
        rest: list[Node] = []
        while True:
            rest.extend(self._parse_body(frozenset({"slot", "endlayout"})))
            if self._current.value != "slot":
                break
            slots.append(self._parse_slot(self._current))
        self._consume_end("layout")
        self._pop_block()

        nodes: list[Node] = []
        for slot in slots:
            name = self._string_literal(start, slot.name, "slot name")
            nodes.append(Section(slot.lineno, slot.col_offset, name=name, body=tuple(trim_nodes(list(slot.body)))))
        rest = trim_nodes(rest)
        if any(isinstance(n, Section) and n.name == "content" for n in nodes):
            nodes.extend(rest)
        elif rest:
            nodes.append(Section(start.lineno, start.col_offset, name="content", body=tuple(rest)))
        return nodes

    def _parse_section(self, start: Token) -> Section | InlineSection:
        """@section('name') ... @endsection|@stop|@show, or @section('name', value)"""
        self._advance()
        args = self._require_args(start, 1, 2)
        name = self._string_literal(start, args[0], "name")
        if len(args) == 2:
            return InlineSection(start.lineno, start.col_offset, name=name, value=args[1])

        self._push_block("section", start)
        body = self._parse_body(frozenset({"endsection", "stop", "show"}))
        end = self._consume_end("section")
        self._pop_block()
        return Section(
            start.lineno,
            start.col_offset,
            name=name,
            body=tuple(body),
            show=end.value == "show",
        )

    def _parse_yield(self, start: Token) -> Yield:
        self._advance()
        args = self._require_args(start, 1, 2)
        return Yield(
            start.lineno,
            start.col_offset,
            name=args[0],
            default=args[1] if len(args) == 2 else None,
        )

    def _parse_parent(self, start: Token) -> Parent:
        self._advance()
        if not self._in_block("section"):
            raise self._error(
                "@parent outside a @section",
                start,
                suggestion="@parent stands for the parent template's content of the enclosing section",
                code=ErrorCode.UNEXPECTED_DIRECTIVE,
            )
        return Parent(start.lineno, start.col_offset)

    # -- stacks ----------------------------------------------------------

    def _parse_push(self, start: Token) -> Push:
        """@push('s') / @prepend('s') / @pushOnce('s', key?)"""
        self._advance()
        opener = start.value
        if opener == "pushOnce":
            args = self._require_args(start, 1, 2)
            once_key: Expr | None = args[1] if len(args) == 2 else self._auto_key(start)
        else:
            args = self._require_args(start, 1, 1)
            once_key = None

        self._push_block(opener, start)
        body = self._parse_body(frozenset(self._closers_for(opener)))
        self._consume_end(opener)
        self._pop_block()
        return Push(
            start.lineno,
            start.col_offset,
            stack=args[0],
            body=tuple(body),
            prepend=opener == "prepend",
            once_key=once_key,
        )

    def _parse_stack(self, start: Token) -> Stack:
        self._advance()
        (name,) = self._require_args(start, 1, 1)
        return Stack(start.lineno, start.col_offset, name=name)

    # -- includes --------------------------------------------------------

    def _parse_include(self, start: Token) -> Include:
        """@include(view, data?) / @includeIf(view, data?) / @includeWhen(cond, view, data?)"""
        self._advance()
        if start.value == "includeWhen":
            args = self._require_args(start, 2, 3)
            condition: Expr | None = args[0]
            args = args[1:]
        else:
            args = self._require_args(start, 1, 2)
            condition = None
        return Include(
            start.lineno,
            start.col_offset,
            template=args[0],
            data=args[1] if len(args) == 2 else None,
            ignore_missing=start.value == "includeIf",
            condition=condition,
        )

    # -- once ------------------------------------------------------------

    def _parse_once(self, start: Token) -> Once:
        self._advance()
        args = self._require_args(start, 0, 1)
        key = args[0] if args else self._auto_key(start)
        self._push_block("once", start)
        body = self._parse_body(frozenset({"endonce"}))
        self._consume_end("once")
        self._pop_block()
        return Once(start.lineno, start.col_offset, key=key, body=tuple(body))


