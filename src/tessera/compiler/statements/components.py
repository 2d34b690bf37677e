"""Component compilation: invocations, slots, @props and @aware.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera.compiler.utils import assign, call, const, expr_stmt, join, lambda_, method, name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tessera.nodes import Aware, Component, Expr, Node, Props


class ComponentMixin:
    """Mixin for compiling component invocations and declarations."""

    if TYPE_CHECKING:
        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _capture(self, body: Sequence[Node], prefix: str) -> tuple[list[ast.stmt], str]: ...
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...
        def _next_id(self, prefix: str) -> str: ...

    def _compile_component(self, node: Component) -> list[ast.stmt]:
        """Compile a component invocation.

        Generates:
            _attrs_N = _dict(attrs)
            _rc.aware.push(_snake_keys(_attrs_N))
            try:
                _slots_N = {}
                ... each @slot into a buffer ...
                _slots_N[_str(slot_name)] = _Markup(''.join(_slot_buf_M))
                ... remaining body into _default_buf_K ...
                _out_N = _component(name, _attrs_N, _Markup(''.join(_default_buf_K)),
                                    _slots_N, ctx, _rc)
            finally:
                _rc.aware.pop()
            _append(_out_N)

        The aware frame is pushed before slots are captured, so components
        nested inside the slots see this invocation's data.
        """
        attrs = self._next_id("attrs")
        slots = self._next_id("slots")
        out = self._next_id("out")

        attrs_value = (
            ast.Dict(keys=[], values=[])
            if node.attrs is None
            else ast.BoolOp(op=ast.Or(), values=[self._compile_expr(node.attrs), ast.Dict(keys=[], values=[])])
        )
        stmts: list[ast.stmt] = [
            assign(attrs, call("_dict", attrs_value)),
            expr_stmt(
                method(
                    ast.Attribute(value=name("_rc"), attr="aware", ctx=ast.Load()),
                    "push",
                    call("_snake_keys", name(attrs)),
                )
            ),
        ]

        body: list[ast.stmt] = [assign(slots, ast.Dict(keys=[], values=[]))]
        for slot in node.slots:
            captured, buf = self._capture(slot.body, "slot")
            body.extend(captured)
            body.append(
                ast.Assign(
                    targets=[
                        ast.Subscript(
                            value=name(slots),
                            slice=call("_str", self._compile_expr(slot.name)),
                            ctx=ast.Store(),
                        )
                    ],
                    value=call("_Markup", join(buf)),
                )
            )

        captured, default_buf = self._capture(node.body, "default")
        body.extend(captured)
        body.append(
            assign(
                out,
                call(
                    "_component",
                    self._compile_expr(node.name),
                    name(attrs),
                    call("_Markup", join(default_buf)),
                    name(slots),
                    name("ctx"),
                    name("_rc"),
                ),
            )
        )

        stmts.append(
            ast.Try(
                body=body,
                handlers=[],
                orelse=[],
                finalbody=[
                    expr_stmt(method(ast.Attribute(value=name("_rc"), attr="aware", ctx=ast.Load()), "pop"))
                ],
            )
        )
        stmts.append(self._emit_output(name(out)))
        return stmts

    def _compile_props(self, node: Props) -> list[ast.stmt]:
        """@props: ``_props(ctx, _rc, ('title',), {'size': lambda: 'md'})``

        Defaults are wrapped in lambdas so they are evaluated only for props
        the call site left unset.
        """
        required = ast.Tuple(elts=[const(prop) for prop in node.required], ctx=ast.Load())
        defaults = ast.Dict(
            keys=[const(prop) for prop, _ in node.defaults],
            values=[lambda_(self._compile_expr(value)) for _, value in node.defaults],
        )
        return [expr_stmt(call("_props", name("ctx"), name("_rc"), required, defaults))]

    def _compile_aware(self, node: Aware) -> list[ast.stmt]:
        """@aware: ``_aware(ctx, _rc, {'color': lambda: 'gray'})``"""
        values = ast.Dict(
            keys=[const(prop) for prop, _ in node.names],
            values=[
                lambda_(const(None) if value is None else self._compile_expr(value))
                for _, value in node.names
            ],
        )
        return [expr_stmt(call("_aware", name("ctx"), name("_rc"), values))]
