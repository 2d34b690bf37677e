"""Control flow directive parsing: conditionals, switch and loops."""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera._types import Token, TokenType
from tessera.environment.exceptions import ErrorCode
from tessera.nodes import Break, Case, Continue, Data, For, If, Switch, While
from tessera.parser.expressions import ExpressionError, parse_loop_header

if TYPE_CHECKING:
    from tessera.nodes import Expr, Node


def _call(func: str, *args: ast.expr) -> ast.Call:
    return ast.Call(func=ast.Name(id=func, ctx=ast.Load()), args=list(args), keywords=[])


def _deferred(expr: ast.expr) -> ast.Lambda:
    """``lambda: expr`` so the runtime can catch undefined names."""
    return ast.Lambda(
        args=ast.arguments(
            posonlyargs=[], args=[], vararg=None, kwonlyargs=[], kw_defaults=[], kwarg=None, defaults=[]
        ),
        body=expr,
    )


def _is_blank(nodes: list[Node]) -> bool:
    return all(isinstance(n, Data) and not n.value.strip() for n in nodes)


class ControlFlowBlockMixin:
    """Mixin for parsing conditionals, @switch and loops.

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
        def _expr(self, token: Token, text: str | None) -> Expr: ...
        def _arguments(self, token: Token) -> tuple[list[Expr], list[ast.keyword]]: ...
        def _require_args(self, token: Token, minimum: int = 1, maximum: int | None = None) -> list[Expr]: ...
        def _error(self, message: str, token: Token | None = None, **kwargs) -> Exception: ...
        def _unexpected_error(self, token: Token) -> Exception: ...

    # -- conditionals ----------------------------------------------------

    def _parse_conditional(self, start: Token, test: Expr, closer: str, *, allow_elseif: bool) -> If:
        """Parse the body, optional @elseif/@else branches and ``closer``."""
        opener = start.value
        self._push_block(opener, start)
        stop = frozenset({"elseif", "else", closer}) if allow_elseif else frozenset({"else", closer})

        body = self._parse_body(stop)
        elif_: list[tuple[Expr, list[Node]]] = []
        else_: list[Node] = []

        while self._current.value == "elseif" and allow_elseif:
            token = self._advance()
            elif_test = self._expr(token, token.args)
            elif_.append((elif_test, self._parse_body(stop)))

        if self._current.value == "else":
            self._advance()
            else_ = self._parse_body(frozenset({closer}))

        end = self._current
        if end.type is not TokenType.DIRECTIVE or end.value != closer:
            raise self._unexpected_error(end)
        self._advance()
        self._pop_block()

        return If(
            start.lineno,
            start.col_offset,
            test=test,
            body=tuple(body),
            elif_=tuple((t, tuple(b)) for t, b in elif_),
            else_=tuple(else_),
        )

    def _parse_if(self, start: Token) -> If:
        self._advance()
        test = self._expr(start, start.args)
        return self._parse_conditional(start, test, "endif", allow_elseif=True)

    def _parse_unless(self, start: Token) -> If:
        self._advance()
        test = ast.UnaryOp(op=ast.Not(), operand=self._expr(start, start.args))
        return self._parse_conditional(start, test, "endunless", allow_elseif=False)

    def _parse_isset(self, start: Token) -> If:
        """@isset(a, b.c): true when every expression evaluates to non-None."""
        self._advance()
        args = self._require_args(start)
        tests: list[ast.expr] = [_call("_isset", _deferred(arg)) for arg in args]
        test = tests[0] if len(tests) == 1 else ast.BoolOp(op=ast.And(), values=tests)
        return self._parse_conditional(start, test, "endisset", allow_elseif=False)

    def _parse_empty(self, start: Token) -> If:
        """@empty(items): true when undefined, None or falsy."""
        self._advance()
        (arg,) = self._require_args(start, 1, 1)
        test = _call("_is_empty", _deferred(arg))
        return self._parse_conditional(start, test, "endempty", allow_elseif=False)

    def _parse_has_section(self, start: Token) -> If:
        self._advance()
        (name,) = self._require_args(start, 1, 1)
        test: ast.expr = ast.Call(
            func=ast.Attribute(value=ast.Name(id="_rc", ctx=ast.Load()), attr="has_section", ctx=ast.Load()),
            args=[name],
            keywords=[],
        )
        if start.value == "sectionMissing":
            test = ast.UnaryOp(op=ast.Not(), operand=test)
        return self._parse_conditional(start, test, "endif", allow_elseif=True)

    def _parse_condition(self, start: Token) -> If:
        """Registered condition: @admin(user) ... @else ... @endadmin"""
        args, keywords = self._arguments(start)
        test = ast.Call(
            func=ast.Name(id="_condition", ctx=ast.Load()),
            args=[ast.Constant(value=start.value), *args],
            keywords=keywords,
        )
        return self._parse_conditional(start, test, f"end{start.value}", allow_elseif=False)

    # -- switch ----------------------------------------------------------

    def _parse_switch(self, start: Token) -> Switch:
        """@switch(x) @case(1) ... @break @case(2) @case(3) ... @default ... @endswitch

        A @break ends its case. Consecutive cases with empty bodies share the
        next body. A case body is also ended by the next @case or @default.
        """
        self._advance()
        subject = self._expr(start, start.args)
        self._push_block("switch", start)
        self._breakable.append("switch")
        case_stop = frozenset({"case", "default", "endswitch", "break"})

        leading = self._parse_body(frozenset({"case", "default", "endswitch"}))
        if not _is_blank(leading):
            raise self._error(
                "Only whitespace may appear between @switch and the first @case",
                start,
                code=ErrorCode.UNEXPECTED_DIRECTIVE,
            )

        cases: list[Case] = []
        default: list[Node] = []
        pending: list[Expr] = []
        has_default = False

        while self._current.value != "endswitch":
            token = self._advance()
            if token.value == "case":
                values = self._require_args(token)
                body = self._parse_body(case_stop)
                if _is_blank(body) and self._current.value == "case":
                    pending.extend(values)
                    continue
                cases.append(Case(token.lineno, token.col_offset, values=(*pending, *values), body=tuple(body)))
                pending = []
            elif token.value == "default":
                if has_default:
                    raise self._error("@switch has more than one @default", token)
                has_default = True
                default = self._parse_body(case_stop)
            else:
                raise self._unexpected_error(token)
            if self._current.value == "break":
                self._advance()
            self._parse_body(frozenset({"case", "default", "endswitch"}))

        self._advance()
        self._breakable.pop()
        self._pop_block()
        if pending:
            cases.append(Case(start.lineno, start.col_offset, values=tuple(pending), body=()))
        return Switch(start.lineno, start.col_offset, subject=subject, cases=tuple(cases), default=tuple(default))

    # -- loops -----------------------------------------------------------

    def _parse_loop_body(self, start: Token, opener: str, stop: frozenset[str]) -> list[Node]:
        self._push_block(opener, start)
        self._breakable.append("loop")
        try:
            return self._parse_body(stop)
        finally:
            self._breakable.pop()

    def _parse_foreach(self, start: Token) -> For:
        """@foreach(items as item) / @foreach(items as k => v) / @foreach(item in items)

        @forelse takes the same header and an @empty branch.
        """
        self._advance()
        try:
            target, iterable, key_target = parse_loop_header(start.args or "")
        except ExpressionError as exc:
            raise self._error(str(exc), start, code=ErrorCode.INVALID_EXPRESSION) from None

        opener = start.value
        closer = "endforelse" if opener == "forelse" else "endforeach"
        stop = frozenset({"empty", closer}) if opener == "forelse" else frozenset({closer})
        body = self._parse_loop_body(start, opener, stop)

        empty: list[Node] = []
        if opener == "forelse" and self._current.value == "empty":
            self._advance()
            empty = self._parse_body(frozenset({closer}))
        self._consume_end(opener)
        self._pop_block()

        return For(
            start.lineno,
            start.col_offset,
            target=target,
            iter=iterable,
            body=tuple(body),
            key_target=key_target,
            empty=tuple(empty),
        )

    def _parse_for(self, start: Token) -> For:
        """@for(target in iterable)"""
        self._advance()
        try:
            target, iterable, key_target = parse_loop_header(start.args or "")
        except ExpressionError as exc:
            raise self._error(str(exc), start, code=ErrorCode.INVALID_EXPRESSION) from None
        if key_target is not None or " as " in (start.args or ""):
            raise self._error(
                "@for takes 'target in iterable'",
                start,
                suggestion="Use @foreach(items as item) for the 'as' form",
                code=ErrorCode.INVALID_EXPRESSION,
            )
        body = self._parse_loop_body(start, "for", frozenset({"endfor"}))
        self._consume_end("for")
        self._pop_block()
        return For(start.lineno, start.col_offset, target=target, iter=iterable, body=tuple(body))

    def _parse_while(self, start: Token) -> While:
        self._advance()
        test = self._expr(start, start.args)
        body = self._parse_loop_body(start, "while", frozenset({"endwhile"}))
        self._consume_end("while")
        self._pop_block()
        return While(start.lineno, start.col_offset, test=test, body=tuple(body))

    def _loop_control_test(self, token: Token) -> Expr | None:
        if token.args is None or not token.args.strip():
            return None
        return self._expr(token, token.args)

    def _parse_break(self, start: Token) -> Break:
        self._advance()
        if not self._breakable or self._breakable[-1] != "loop":
            message = "Conditional @break inside @switch" if self._breakable else "@break outside a loop"
            raise self._error(message, start, code=ErrorCode.UNEXPECTED_DIRECTIVE)
        return Break(start.lineno, start.col_offset, test=self._loop_control_test(start))

    def _parse_continue(self, start: Token) -> Continue:
        self._advance()
        if "loop" not in self._breakable:
            raise self._error("@continue outside a loop", start, code=ErrorCode.UNEXPECTED_DIRECTIVE)
        return Continue(start.lineno, start.col_offset, test=self._loop_control_test(start))
