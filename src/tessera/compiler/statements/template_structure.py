"""Template structure compilation: sections, stacks, includes and @once.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera.compiler.utils import assign, call, const, expr_stmt, join, method, name, or_pass

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tessera.nodes import (
        Discard,
        Expr,
        Include,
        InlineSection,
        Node,
        Once,
        Parent,
        Push,
        Section,
        Stack,
        Yield,
    )


class TemplateStructureMixin:
    """Mixin for compiling sections, stacks, includes and @once."""

    if TYPE_CHECKING:
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _compile_body(self, nodes: Sequence[Node]) -> list[ast.stmt]: ...
        def _capture(self, body: Sequence[Node], prefix: str) -> tuple[list[ast.stmt], str]: ...
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...
        def _next_id(self, prefix: str) -> str: ...

    # -- sections --------------------------------------------------------

    def _compile_section(self, node: Section) -> list[ast.stmt]:
        """Capture a section and commit it; @show also emits the resolved section.

        Generates:
            _section_buf_N = []
            ... body into _section_buf_N ...
            _rc.capture_section('name', ''.join(_section_buf_N))
            [_append(_rc.resolve_section('name'))]
        """
        stmts, buf = self._capture(node.body, "section")
        stmts.append(expr_stmt(method("_rc", "capture_section", const(node.name), join(buf))))
        if node.show:
            stmts.append(self._emit_output(call("_yield_section", name("_rc"), const(node.name))))
        return stmts

    def _compile_inline_section(self, node: InlineSection) -> list[ast.stmt]:
        """@section('title', value): the value is escaped like an echo."""
        value = call("_e", self._compile_expr(node.value))
        return [expr_stmt(method("_rc", "capture_section", const(node.name), value))]

    def _compile_yield(self, node: Yield) -> list[ast.stmt]:
        args = [name("_rc"), self._compile_expr(node.name)]
        if node.default is not None:
            args.append(self._compile_expr(node.default))
        return [self._emit_output(call("_yield_section", *args))]

    def _compile_parent(self, node: Parent) -> list[ast.stmt]:
        return [self._emit_output(name("_PARENT"))]

    def _compile_discard(self, node: Discard) -> list[ast.stmt]:
        """Run an extending template's body for its sections and stacks only."""
        stmts: list[ast.stmt] = [
            expr_stmt(method("_rc", "enter_template", const(node.template_name), name("_sources")))
        ]
        capture, _ = self._capture(node.body, "discard")
        stmts.extend(capture)
        return stmts

    # -- stacks ----------------------------------------------------------

    def _compile_push(self, node: Push) -> list[ast.stmt]:
        """Compile @push / @prepend / @pushOnce.

        Generates:
            _stack_N = _str(stack)
            [if _rc.claim_once(_stack_N + ':' + _str(key)):]
                ... body into _push_buf_M ...
                _rc.push(_stack_N, ''.join(_push_buf_M), prepend=False)
        """
        stack = self._next_id("stack")
        stmts: list[ast.stmt] = [assign(stack, call("_str", self._compile_expr(node.stack)))]
        body, buf = self._capture(node.body, "push")
        body.append(
            expr_stmt(method("_rc", "push", name(stack), join(buf), prepend=const(node.prepend)))
        )
        if node.once_key is None:
            stmts.extend(body)
            return stmts

        key = ast.BinOp(
            left=ast.BinOp(left=name(stack), op=ast.Add(), right=const(":")),
            op=ast.Add(),
            right=call("_str", self._compile_expr(node.once_key)),
        )
        stmts.append(ast.If(test=method("_rc", "claim_once", key), body=body, orelse=[]))
        return stmts

    def _compile_stack(self, node: Stack) -> list[ast.stmt]:
        return [self._emit_output(method("_rc", "render_stack", call("_str", self._compile_expr(node.name))))]

    # -- includes --------------------------------------------------------

    def _compile_include(self, node: Include) -> list[ast.stmt]:
        """Generates: ``_append(_include(name, ctx, data, _rc, ignore_missing))``"""
        data = const(None) if node.data is None else self._compile_expr(node.data)
        output = self._emit_output(
            call(
                "_include",
                self._compile_expr(node.template),
                name("ctx"),
                data,
                name("_rc"),
                const(node.ignore_missing),
            )
        )
        if node.condition is None:
            return [output]
        return [ast.If(test=self._compile_expr(node.condition), body=[output], orelse=[])]

    def _compile_once(self, node: Once) -> list[ast.stmt]:
        key = call("_str", self._compile_expr(node.key))
        return [
            ast.If(
                test=method("_rc", "claim_once", key),
                body=or_pass(self._compile_body(node.body)),
                orelse=[],
            )
        ]
