"""Basic statement compilation: text, echoes, helpers and flush points.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera.compiler.utils import call, const, expr_stmt, name

if TYPE_CHECKING:
    from tessera.nodes import Data, Expr, Flush, Helper, Output


class BasicStatementMixin:
    """Mixin for compiling output statements."""

    if TYPE_CHECKING:
        _streaming: bool

        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...

    def _compile_data(self, node: Data) -> list[ast.stmt]:
        """Literal text: ``_append('text')`` or ``yield 'text'``."""
        if not node.value:
            return []
        return [self._emit_output(const(node.value))]

    def _compile_output(self, node: Output) -> list[ast.stmt]:
        """Echo encoded for its output context.

        ``body`` goes through the cached ``_e``; every other context goes
        through ``_encode(value, context)``. Markup passes ``body`` unchanged.
        """
        expr = self._compile_expr(node.expr)
        if node.context == "body":
            value = call("_e", expr)
        else:
            value = call("_encode", expr, const(node.context))
        return [self._emit_output(value)]

    def _compile_helper(self, node: Helper) -> list[ast.stmt]:
        """Inline directive: ``_e(_helper('name')(*args, **kwargs))``"""
        handler = call("_helper", const(node.name))
        invocation = ast.Call(
            func=handler,
            args=[self._compile_expr(arg) for arg in node.args],
            keywords=[
                ast.keyword(arg=kw.arg, value=self._compile_expr(kw.value)) for kw in node.keywords
            ],
        )
        return [self._emit_output(call("_e", invocation))]

    def _compile_flush(self, node: Flush) -> list[ast.stmt]:
        """@flush: hand buffered output to the client (streaming only)."""
        if not self._streaming:
            return []
        return [expr_stmt(ast.Yield(value=name("_FLUSH")))]
