"""Recursive-descent parser: token stream → template tree.

The parser keeps an explicit stack of open blocks. A body is parsed until
one of the directives that may end it; reaching EOF with a block still open
reports the open block, and an end directive that closes nothing reports
the stray directive together with the innermost open block.

Directive dispatch goes through the DirectiveRegistry: block directives
have parser methods, explicit-context echoes become `Output` nodes,
helpers become `Helper` nodes and registered conditions become `If` nodes.
"""

from __future__ import annotations

import ast
from collections.abc import Callable
from typing import TYPE_CHECKING

from tessera._types import Token, TokenType
from tessera.environment.exceptions import ErrorCode
from tessera.environment.registry import CONTEXT_DIRECTIVES, DirectiveRegistry
from tessera.nodes import Data, Extends, Helper, Node, Output, Template
from tessera.parser.blocks import (
    ComponentBlockMixin,
    ControlFlowBlockMixin,
    TemplateStructureBlockMixin,
)
from tessera.parser.errors import ParseErrorMixin
from tessera.parser.expressions import ExpressionError, parse_arguments, parse_expression

if TYPE_CHECKING:
    from tessera.nodes import Expr

#: Opening directive → directives that close it.
BLOCK_ENDS: dict[str, tuple[str, ...]] = {
    "if": ("endif",),
    "unless": ("endunless",),
    "isset": ("endisset",),
    "empty": ("endempty",),
    "hasSection": ("endif",),
    "sectionMissing": ("endif",),
    "switch": ("endswitch",),
    "foreach": ("endforeach",),
    "forelse": ("endforelse",),
    "for": ("endfor",),
    "while": ("endwhile",),
    "section": ("endsection", "stop", "show"),
    "push": ("endpush",),
    "prepend": ("endprepend",),
    "pushOnce": ("endPushOnce",),
    "layout": ("endlayout",),
    "component": ("endcomponent",),
    "slot": ("endslot",),
    "once": ("endonce",),
    "fragment": ("endfragment",),
    "teleport": ("endteleport",),
    "cache": ("endcache",),
    "error": ("enderror",),
}

# Directives that only continue or close a block.
_CONTINUATIONS = frozenset({"elseif", "else", "case", "stop", "show"})

# These end a body only in their argument-less form; with arguments
# @empty(x) is a conditional, @default(x) a helper and @break(x) a loop break.
_BARE_STOPS = frozenset({"empty", "default", "break"})


class Parser(
    TemplateStructureBlockMixin,
    ControlFlowBlockMixin,
    ComponentBlockMixin,
    ParseErrorMixin,
):
    """Parse a token list into a `Template` node.

    Args:
        tokens: Tokens from the lexer, ending with EOF
        name: Template name for diagnostics and ``@once`` keys
        filename: Source path for diagnostics
        source: Template source for error snippets
        registry: Directive registry of the owning Environment

    Example:
            >>> tokens = tokenize("@if(user)Hi {{ user.name }}@endif", is_directive=registry.is_directive)
            >>> Parser(tokens, registry=registry).parse().body[0]
            If(lineno=1, col_offset=0, test=<ast.Name ...>, ...)
    """

    __slots__ = (
        "_block_stack",
        "_breakable",
        "_dispatch",
        "_extends",
        "_filename",
        "_name",
        "_pos",
        "_registry",
        "_source",
        "_tokens",
    )

    def __init__(
        self,
        tokens: list[Token],
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        *,
        registry: DirectiveRegistry,
    ):
        self._tokens = tokens
        self._pos = 0
        self._name = name
        self._filename = filename
        self._source = source
        self._registry = registry
        # (directive, opening token) for every open block
        self._block_stack: list[tuple[str, Token]] = []
        # "loop" / "switch" entries; decides what a bare @break means
        self._breakable: list[str] = []
        self._extends: Extends | None = None
        self._dispatch: dict[str, Callable[[Token], Node | list[Node] | None]] = {
            "if": self._parse_if,
            "unless": self._parse_unless,
            "isset": self._parse_isset,
            "empty": self._parse_empty,
            "hasSection": self._parse_has_section,
            "sectionMissing": self._parse_has_section,
            "switch": self._parse_switch,
            "foreach": self._parse_foreach,
            "forelse": self._parse_foreach,
            "for": self._parse_for,
            "while": self._parse_while,
            "break": self._parse_break,
            "continue": self._parse_continue,
            "extends": self._parse_extends,
            "section": self._parse_section,
            "yield": self._parse_yield,
            "parent": self._parse_parent,
            "push": self._parse_push,
            "prepend": self._parse_push,
            "pushOnce": self._parse_push,
            "stack": self._parse_stack,
            "layout": self._parse_layout,
            "include": self._parse_include,
            "includeIf": self._parse_include,
            "includeWhen": self._parse_include,
            "once": self._parse_once,
            "component": self._parse_component,
            "slot": self._parse_slot_outside_component,
            "props": self._parse_props,
            "aware": self._parse_aware,
            "fragment": self._parse_fragment,
            "teleport": self._parse_teleport,
            "cache": self._parse_cache,
            "flush": self._parse_flush,
            "error": self._parse_error_block,
            "default": self._parse_default_helper,
        }

    # -- token navigation ------------------------------------------------

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.type is not TokenType.EOF:
            self._pos += 1
        return token

    # -- block stack -----------------------------------------------------

    def _push_block(self, name: str, token: Token) -> None:
        self._block_stack.append((name, token))

    def _pop_block(self) -> None:
        self._block_stack.pop()

    def _in_block(self, *names: str) -> bool:
        return any(name in names for name, _ in self._block_stack)

    def _closers_for(self, name: str) -> tuple[str, ...]:
        if name in BLOCK_ENDS:
            return BLOCK_ENDS[name]
        return (f"end{name}",)

    def _unclosed_error(self) -> Exception:
        name, token = self._block_stack[-1]
        closer = self._closers_for(name)[0]
        return self._error(
            f"Unclosed @{name} (opened at line {token.lineno})",
            token,
            suggestion=f"Add @{closer} to close the block",
            code=ErrorCode.UNCLOSED_BLOCK,
        )

    def _unexpected_error(self, token: Token) -> Exception:
        if self._block_stack:
            name, opener = self._block_stack[-1]
            closer = self._closers_for(name)[0]
            suggestion = (
                f"The innermost open block is @{name} (line {opener.lineno}); "
                f"close it with @{closer}"
            )
        else:
            suggestion = "Remove it or add the opening directive"
        return self._error(
            f"Unexpected @{token.value}",
            token,
            suggestion=suggestion,
            code=ErrorCode.UNEXPECTED_DIRECTIVE,
        )

    def _consume_end(self, opener: str) -> Token:
        """Consume the directive closing ``opener``; return it."""
        token = self._current
        if token.type is TokenType.EOF:
            raise self._unclosed_error()
        if token.type is not TokenType.DIRECTIVE or token.value not in self._closers_for(opener):
            raise self._unexpected_error(token)
        self._advance()
        return token

    # -- expressions -----------------------------------------------------

    def _expr(self, token: Token, text: str | None) -> Expr:
        try:
            return parse_expression(text or "")
        except ExpressionError as exc:
            raise self._expression_error(exc, token, text or "") from None

    def _arguments(self, token: Token) -> tuple[list[Expr], list[ast.keyword]]:
        try:
            return parse_arguments(token.args)
        except ExpressionError as exc:
            raise self._expression_error(exc, token, token.args or "") from None

    def _require_args(self, token: Token, minimum: int = 1, maximum: int | None = None) -> list[Expr]:
        args, keywords = self._arguments(token)
        if keywords:
            raise self._error(
                f"@{token.value} does not take keyword arguments",
                token,
                code=ErrorCode.INVALID_ARGUMENTS,
            )
        if len(args) < minimum or (maximum is not None and len(args) > maximum):
            expected = str(minimum) if maximum == minimum else f"{minimum} to {maximum}"
            if maximum is None:
                expected = f"at least {minimum}"
            raise self._error(
                f"@{token.value} expects {expected} argument(s), got {len(args)}",
                token,
                code=ErrorCode.INVALID_ARGUMENTS,
            )
        return args

    def _string_literal(self, token: Token, expr: Expr, what: str) -> str:
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            return expr.value
        raise self._error(
            f"@{token.value} {what} must be a string literal",
            token,
            code=ErrorCode.INVALID_ARGUMENTS,
        )

    # -- bodies ----------------------------------------------------------

    def parse(self) -> Template:
        body = self._parse_body()
        return Template(lineno=1, col_offset=0, body=tuple(body), extends=self._extends)

    def _at_stop(self, token: Token, stop: frozenset[str]) -> bool:
        if token.type is not TokenType.DIRECTIVE or token.value not in stop:
            return False
        if token.value in _BARE_STOPS and token.args is not None and token.args.strip():
            return False
        return True

    def _parse_body(self, stop: frozenset[str] = frozenset()) -> list[Node]:
        """Parse nodes until a directive in ``stop`` (not consumed) or EOF."""
        nodes: list[Node] = []
        while True:
            token = self._current
            if token.type is TokenType.EOF:
                if stop:
                    raise self._unclosed_error()
                return nodes
            if self._at_stop(token, stop):
                return nodes

            if token.type is TokenType.DATA:
                self._advance()
                nodes.append(Data(token.lineno, token.col_offset, token.value))
            elif token.type in (TokenType.ECHO, TokenType.RAW_ECHO):
                self._advance()
                nodes.append(
                    Output(
                        token.lineno,
                        token.col_offset,
                        expr=self._expr(token, token.value),
                        context=token.context,
                        source=token.value,
                    )
                )
            else:
                result = self._parse_directive(token)
                if isinstance(result, list):
                    nodes.extend(result)
                elif result is not None:
                    nodes.append(result)

    def _parse_directive(self, token: Token) -> Node | list[Node] | None:
        name = token.value
        kind = self._registry.kind(name)
        bare = token.args is None or not token.args.strip()

        if name in _CONTINUATIONS or (name.startswith("end") and kind == "block"):
            raise self._unexpected_error(token)
        if kind == "condition_end":
            raise self._unexpected_error(token)

        if kind == "block":
            if name in ("empty", "default") and bare:
                raise self._unexpected_error(token)
            handler = self._dispatch.get(name)
            if handler is None:
                raise self._unexpected_error(token)
            return handler(token)

        self._advance()
        if kind == "context":
            args = self._require_args(token, 1, 1)
            return Output(
                token.lineno,
                token.col_offset,
                expr=args[0],
                context=CONTEXT_DIRECTIVES[name],
                source=token.args or "",
            )
        if kind == "condition":
            return self._parse_condition(token)

        args, keywords = self._arguments(token)
        return Helper(
            token.lineno,
            token.col_offset,
            name=name,
            args=tuple(args),
            keywords=tuple(keywords),
            source=f"@{name}({token.args or ''})",
        )

    def _parse_default_helper(self, token: Token) -> Helper:
        """``@default(value, fallback)``: the helper, not the switch branch."""
        self._advance()
        args, keywords = self._arguments(token)
        return Helper(
            token.lineno,
            token.col_offset,
            name="default",
            args=tuple(args),
            keywords=tuple(keywords),
            source=f"@default({token.args})",
        )
