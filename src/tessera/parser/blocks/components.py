"""Component, fragment, teleport, cache and @error parsing."""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera._types import Token
from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Aware, Cache, Component, Error, Flush, Fragment, Props, Slot, Teleport

if TYPE_CHECKING:
    from tessera.nodes import Expr, Node


class ComponentBlockMixin:
    """Mixin for parsing component invocations and capture blocks.

    Host attributes and methods come from `Parser`.
    """

    if TYPE_CHECKING:
        _breakable: list[str]
        _current: Token

        def _advance(self) -> Token: ...
        def _push_block(self, name: str, token: Token) -> None: ...
        def _pop_block(self) -> None: ...
        def _parse_body(self, stop: frozenset[str] = ...) -> list[Node]: ...
        def _consume_end(self, opener: str) -> Token: ...
        def _arguments(self, token: Token) -> tuple[list[Expr], list[ast.keyword]]: ...
        def _require_args(self, token: Token, minimum: int = 1, maximum: int | None = None) -> list[Expr]: ...
        def _string_literal(self, token: Token, expr: Expr, what: str) -> str: ...
        def _error(self, message: str, token: Token | None = None, **kwargs) -> Exception: ...

    # -- components ------------------------------------------------------

    def _parse_component(self, start: Token) -> Component:
        """@component('Alert', {'type': 'error'}) ... @endcomponent

        Attributes may also be given as keywords: @component('Alert', type='error').
        @slot blocks directly inside the body become named slots; everything
        else is the default slot.
        """
        self._advance()
        args, keywords = self._arguments(start)
        if not args or len(args) > 2:
            raise self._error(
                "@component expects a component name and an optional attribute mapping",
                start,
                code=ErrorCode.INVALID_ARGUMENTS,
            )
        attrs: Expr | None = args[1] if len(args) == 2 else None
        if keywords:
            pairs = ast.Dict(
                keys=[ast.Constant(value=kw.arg) if kw.arg else None for kw in keywords],
                values=[kw.value for kw in keywords],
            )
            attrs = pairs if attrs is None else ast.Dict(keys=[None, None], values=[attrs, pairs])

        self._push_block("component", start)
        body: list[Node] = []
        slots: list[Slot] = []
        while True:
            body.extend(self._parse_body(frozenset({"slot", "endcomponent"})))
            if self._current.value != "slot":
                break
            slots.append(self._parse_slot(self._current))
        self._consume_end("component")
        self._pop_block()

        return Component(
            start.lineno,
            start.col_offset,
            name=args[0],
            attrs=attrs,
            body=tuple(body),
            slots=tuple(slots),
        )

    def _parse_slot(self, start: Token) -> Slot:
        self._advance()
        (name,) = self._require_args(start, 1, 1)
        self._push_block("slot", start)
        body = self._parse_body(frozenset({"endslot"}))
        self._consume_end("slot")
        self._pop_block()
        return Slot(start.lineno, start.col_offset, name=name, body=tuple(body))

    def _parse_slot_outside_component(self, start: Token) -> Slot:
        raise self._error(
            "@slot must appear directly inside @component or @layout",
            start,
            suggestion="Move the @slot block out of the enclosing block",
            code=ErrorCode.UNEXPECTED_DIRECTIVE,
        )

    def _declared_names(self, start: Token) -> tuple[list[str], list[tuple[str, Expr]]]:
        """Split @props/@aware arguments into bare names and (name, default) pairs.

        Accepts string literals, a dict literal with string keys, and keywords:

            @props('title', {'size': 'md'}, variant='primary')
        """
        args, keywords = self._arguments(start)
        names: list[str] = []
        defaults: list[tuple[str, Expr]] = []
        for arg in args:
            if isinstance(arg, ast.Dict):
                for key, value in zip(arg.keys, arg.values, strict=True):
                    if key is None:
                        raise self._error(
                            f"@{start.value} does not accept ** unpacking",
                            start,
                            code=ErrorCode.INVALID_ARGUMENTS,
                        )
                    defaults.append((self._string_literal(start, key, "names"), value))
            else:
                names.append(self._string_literal(start, arg, "names"))
        for kw in keywords:
            if kw.arg is None:
                raise self._error(
                    f"@{start.value} does not accept ** unpacking",
                    start,
                    code=ErrorCode.INVALID_ARGUMENTS,
                )
            defaults.append((kw.arg, kw.value))
        return names, defaults

    def _parse_props(self, start: Token) -> Props:
        self._advance()
        required, defaults = self._declared_names(start)
        return Props(start.lineno, start.col_offset, required=tuple(required), defaults=tuple(defaults))

    def _parse_aware(self, start: Token) -> Aware:
        self._advance()
        names, defaults = self._declared_names(start)
        pairs: list[tuple[str, Expr | None]] = [(name, None) for name in names]
        pairs.extend(defaults)
        return Aware(start.lineno, start.col_offset, names=tuple(pairs))

    # -- capture blocks --------------------------------------------------

    def _parse_fragment(self, start: Token) -> Fragment:
        self._advance()
        (name,) = self._require_args(start, 1, 1)
        self._push_block("fragment", start)
        body = self._parse_body(frozenset({"endfragment"}))
        self._consume_end("fragment")
        self._pop_block()
        return Fragment(start.lineno, start.col_offset, name=name, body=tuple(body))

    def _parse_teleport(self, start: Token) -> Teleport:
        self._advance()
        (target,) = self._require_args(start, 1, 1)
        self._push_block("teleport", start)
        body = self._parse_body(frozenset({"endteleport"}))
        self._consume_end("teleport")
        self._pop_block()
        return Teleport(start.lineno, start.col_offset, target=target, body=tuple(body))

    def _parse_cache(self, start: Token) -> Cache:
        """@cache(key, ttl=None, tags=None) ... @endcache"""
        self._advance()
        args, keywords = self._arguments(start)
        options: dict[str, Expr | None] = {"ttl": None, "tags": None}
        if not args or len(args) > 3:
            raise self._error(
                "@cache expects a key, an optional ttl and optional tags",
                start,
                code=ErrorCode.INVALID_ARGUMENTS,
            )
        for name, value in zip(("ttl", "tags"), args[1:], strict=False):
            options[name] = value
        for kw in keywords:
            if kw.arg not in options:
                raise self._error(
                    f"@cache got an unexpected keyword '{kw.arg}'",
                    start,
                    suggestion="Valid keywords are ttl and tags",
                    code=ErrorCode.INVALID_ARGUMENTS,
                )
            options[kw.arg] = kw.value

        self._push_block("cache", start)
        # The body compiles to its own function; loop control cannot cross it.
        outer_breakable, self._breakable = self._breakable, []
        try:
            body = self._parse_body(frozenset({"endcache"}))
        finally:
            self._breakable = outer_breakable
        self._consume_end("cache")
        self._pop_block()
        return Cache(
            start.lineno,
            start.col_offset,
            key=args[0],
            body=tuple(body),
            ttl=options["ttl"],
            tags=options["tags"],
        )

    def _parse_flush(self, start: Token) -> Flush:
        self._advance()
        return Flush(start.lineno, start.col_offset)

    def _parse_error_block(self, start: Token) -> Error:
        """@error('email') / @error('email', 'login') ... @else ... @enderror

        The body sees the first message for the field as ``message``.
        """
        self._advance()
        args = self._require_args(start, 1, 2)
        self._push_block("error", start)
        body = self._parse_body(frozenset({"else", "enderror"}))
        else_: list[Node] = []
        if self._current.value == "else":
            self._advance()
            else_ = self._parse_body(frozenset({"enderror"}))
        self._consume_end("error")
        self._pop_block()
        return Error(
            start.lineno,
            start.col_offset,
            field=args[0],
            bag=args[1] if len(args) == 2 else None,
            body=tuple(body),
            else_=tuple(else_),
        )
