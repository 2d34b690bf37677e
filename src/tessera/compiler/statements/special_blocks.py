"""Special block compilation: @fragment, @teleport and @error.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera.compiler.utils import assign, call, const, ctx_item, expr_stmt, join, method, name, or_pass

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tessera.nodes import Error, Expr, Fragment, Node, Teleport


class SpecialBlockMixin:
    """Mixin for compiling fragment, teleport and error blocks."""

    if TYPE_CHECKING:
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _compile_body(self, nodes: Sequence[Node]) -> list[ast.stmt]: ...
        def _capture(self, body: Sequence[Node], prefix: str) -> tuple[list[ast.stmt], str]: ...
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...
        def _next_id(self, prefix: str) -> str: ...

    def _compile_fragment(self, node: Fragment) -> list[ast.stmt]:
        """Record the fragment's output and emit it in place.

        Generates:
            ... body into _fragment_buf_N ...
            _fragment_M = ''.join(_fragment_buf_N)
            _rc.add_fragment(_str(name), _fragment_M)
            _append(_Markup(_fragment_M))
        """
        stmts, buf = self._capture(node.body, "fragment")
        content = self._next_id("fragment")
        stmts.append(assign(content, join(buf)))
        stmts.append(
            expr_stmt(
                method("_rc", "add_fragment", call("_str", self._compile_expr(node.name)), name(content))
            )
        )
        stmts.append(self._emit_output(call("_Markup", name(content))))
        return stmts

    def _compile_teleport(self, node: Teleport) -> list[ast.stmt]:
        """Capture the body for relocation; nothing is emitted in place."""
        stmts, buf = self._capture(node.body, "teleport")
        stmts.append(
            expr_stmt(
                method("_rc", "add_teleport", call("_str", self._compile_expr(node.target)), join(buf))
            )
        )
        return stmts

    def _compile_error(self, node: Error) -> list[ast.stmt]:
        """@error(field, bag): bind ``message`` to the first error for ``field``.

        Generates:
            _message_N = _error_message(_rc, field, bag)
            if _message_N is not None:
                _message_prev_M = ctx.get('message', _MISSING)
                ctx['message'] = _message_N
                try:
                    ... body ...
                finally:
                    _restore(ctx, 'message', _message_prev_M)
            else:
                ... @else ...
        """
        message = self._next_id("message")
        prev = self._next_id("message_prev")
        bag = const(None) if node.bag is None else self._compile_expr(node.bag)

        matched: list[ast.stmt] = [
            assign(prev, method("ctx", "get", const("message"), name("_MISSING"))),
            assign(ctx_item("message", for_store=True), name(message)),
            ast.Try(
                body=or_pass(self._compile_body(node.body)),
                handlers=[],
                orelse=[],
                finalbody=[expr_stmt(call("_restore", name("ctx"), const("message"), name(prev)))],
            ),
        ]
        return [
            assign(message, call("_error_message", name("_rc"), self._compile_expr(node.field), bag)),
            ast.If(
                test=ast.Compare(left=name(message), ops=[ast.IsNot()], comparators=[const(None)]),
                body=matched,
                orelse=self._compile_body(node.else_),
            ),
        ]
