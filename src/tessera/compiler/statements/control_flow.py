"""Control flow compilation: conditionals, loops and @switch.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera.compiler.utils import assign, call, const, ctx_item, method, name, or_pass

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tessera.nodes import Break, Continue, Expr, For, If, Node, Switch, While


class ControlFlowMixin:
    """Mixin for compiling conditionals, loops and @switch."""

    if TYPE_CHECKING:
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _compile_store_target(self, node: Expr) -> ast.expr: ...
        def _compile_body(self, nodes: Sequence[Node]) -> list[ast.stmt]: ...
        def _next_id(self, prefix: str) -> str: ...

    def _compile_if(self, node: If) -> list[ast.stmt]:
        """Compile every conditional directive (@if, @unless, @isset, ...)."""
        orelse = self._compile_body(node.else_)
        for test, body in reversed(node.elif_):
            orelse = [
                ast.If(
                    test=self._compile_expr(test),
                    body=or_pass(self._compile_body(body)),
                    orelse=orelse,
                )
            ]
        return [
            ast.If(
                test=self._compile_expr(node.test),
                body=or_pass(self._compile_body(node.body)),
                orelse=orelse,
            )
        ]

    def _compile_for(self, node: For) -> list[ast.stmt]:
        """Compile @foreach / @forelse / @for.

        Generates:
            _loop_prev_N = ctx.get('loop', _MISSING)
            _loop_N = _LoopCursor(iterable, _loop_prev_N)
            ctx['loop'] = _loop_N
            try:
                for ctx['item'] in _loop_N:
                    ... body ...
            finally:
                _restore(ctx, 'loop', _loop_prev_N)
            if not _loop_N.iterated:
                ... @empty branch ...

        ``loop`` is restored afterwards, so a nested loop's cursor never
        leaks into the enclosing loop body.
        """
        loop_var = self._next_id("loop")
        prev_var = self._next_id("loop_prev")

        target = self._compile_store_target(node.target)
        pairs = node.key_target is not None
        if pairs:
            target = ast.Tuple(
                elts=[self._compile_store_target(node.key_target), target],  # type: ignore[arg-type]
                ctx=ast.Store(),
            )

        stmts: list[ast.stmt] = [
            assign(prev_var, method("ctx", "get", const("loop"), name("_MISSING"))),
            assign(
                loop_var,
                call(
                    "_LoopCursor",
                    self._compile_expr(node.iter),
                    name(prev_var),
                    pairs=const(pairs),
                ),
            ),
            assign(ctx_item("loop", for_store=True), name(loop_var)),
            ast.Try(
                body=[
                    ast.For(
                        target=target,
                        iter=name(loop_var),
                        body=or_pass(self._compile_body(node.body)),
                        orelse=[],
                    )
                ],
                handlers=[],
                orelse=[],
                finalbody=[ast.Expr(value=call("_restore", name("ctx"), const("loop"), name(prev_var)))],
            ),
        ]

        if node.empty:
            stmts.append(
                ast.If(
                    test=ast.UnaryOp(
                        op=ast.Not(),
                        operand=ast.Attribute(value=name(loop_var), attr="iterated", ctx=ast.Load()),
                    ),
                    body=or_pass(self._compile_body(node.empty)),
                    orelse=[],
                )
            )
        return stmts

    def _compile_while(self, node: While) -> list[ast.stmt]:
        return [
            ast.While(
                test=self._compile_expr(node.test),
                body=or_pass(self._compile_body(node.body)),
                orelse=[],
            )
        ]

    def _loop_control(self, test: Expr | None, stmt: ast.stmt) -> list[ast.stmt]:
        if test is None:
            return [stmt]
        return [ast.If(test=self._compile_expr(test), body=[stmt], orelse=[])]

    def _compile_break(self, node: Break) -> list[ast.stmt]:
        return self._loop_control(node.test, ast.Break())

    def _compile_continue(self, node: Continue) -> list[ast.stmt]:
        return self._loop_control(node.test, ast.Continue())

    def _compile_switch(self, node: Switch) -> list[ast.stmt]:
        """Compile @switch to an if/elif chain over a cached subject.

        Generates:
            _switch_N = subject
            if _switch_N == 1 or _switch_N == 2:
                ...
            else:
                ... @default ...
        """
        subject = self._next_id("switch")
        orelse = self._compile_body(node.default)
        for case in reversed(node.cases):
            comparisons: list[ast.expr] = [
                ast.Compare(left=name(subject), ops=[ast.Eq()], comparators=[self._compile_expr(value)])
                for value in case.values
            ]
            test = comparisons[0] if len(comparisons) == 1 else ast.BoolOp(op=ast.Or(), values=comparisons)
            orelse = [ast.If(test=test, body=or_pass(self._compile_body(case.body)), orelse=orelse)]
        return [assign(subject, self._compile_expr(node.subject)), *orelse]
