"""Tessera Compiler Core: node tree → Python code object.

The compiler builds an ``ast.Module`` directly and compiles it; no Python
source text is generated. A template compiles to two functions sharing one
body compiler:

    def render(ctx, _rc):
        _e = _escape
        buf = []
        _append = buf.append
        ... body ...
        return ''.join(buf)

    def render_stream(ctx, _rc):
        _e = _escape
        ... body, with ``yield`` in place of ``_append`` ...

``ctx`` is the render context mapping; ``_rc`` the request-scoped
`RenderContext` holding sections, stacks, fragments and the rest of the
render state.

Captured regions (sections, stack pushes, fragments, teleports, slots) are
always compiled in StringBuilder mode, even inside ``render_stream``: their
output goes to a buffer, never to the stream. Inheritance arrives already
flattened by `resolve_inheritance`, so the module never calls a parent.
"""

from __future__ import annotations

import ast
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from tessera.compiler.expressions import ExpressionCompilationMixin
from tessera.compiler.statements import StatementCompilationMixin
from tessera.compiler.utils import assign, call, const, expr_stmt, function, join, method, name

if TYPE_CHECKING:
    import types

    from tessera.nodes import Node
    from tessera.nodes import Template as TemplateNode

logger = logging.getLogger(__name__)


class Compiler(ExpressionCompilationMixin, StatementCompilationMixin):
    """Compile a template tree to a code object defining render/render_stream.

    Attributes:
        _name: Template name for generated keys and error messages
        _filename: Source file path for compile()
        _counter: Counter for unique buffer and iterator names
        _streaming: When True, output statements ``yield`` instead of ``_append``

    Node Dispatch:
        O(1) dict lookup keyed by node class name:
            ```python
            handler = self._node_dispatch[type(node).__name__]
            ```

    Line Tracking:
        Nodes that evaluate user expressions are preceded by
        ``_rc.line = N`` so runtime errors can point at the template line.

    Example:
            >>> tokens = tokenize("Hello, {{ name }}!", is_directive=registry.is_directive)
            >>> tree = Parser(tokens, registry=registry).parse()
            >>> code = Compiler().compile(tree, name="greeting")
            >>> namespace = build_namespace(env)
            >>> exec(code, namespace)
            >>> namespace["render"]({"name": "World"}, RenderContext())
            'Hello, World!'
    """

    __slots__ = ("_counter", "_filename", "_name", "_node_dispatch", "_streaming")

    # Node types whose code can raise at render time
    _LINE_TRACKED_NODES = frozenset(
        {
            "Output",
            "Helper",
            "If",
            "For",
            "While",
            "Switch",
            "Include",
            "Component",
            "Props",
            "Aware",
            "Yield",
            "Stack",
            "InlineSection",
            "Push",
            "Fragment",
            "Teleport",
            "Cache",
            "Error",
            "Once",
        }
    )

    def __init__(self) -> None:
        self._name: str | None = None
        self._filename: str | None = None
        self._counter = 0
        self._streaming = False
        self._node_dispatch: dict[str, Callable[[Node], list[ast.stmt]]] = {
            "Data": self._compile_data,
            "Output": self._compile_output,
            "Helper": self._compile_helper,
            "Flush": self._compile_flush,
            "If": self._compile_if,
            "For": self._compile_for,
            "While": self._compile_while,
            "Switch": self._compile_switch,
            "Break": self._compile_break,
            "Continue": self._compile_continue,
            "Section": self._compile_section,
            "InlineSection": self._compile_inline_section,
            "Yield": self._compile_yield,
            "Parent": self._compile_parent,
            "Push": self._compile_push,
            "Stack": self._compile_stack,
            "Include": self._compile_include,
            "Once": self._compile_once,
            "Discard": self._compile_discard,
            "Origin": self._compile_origin,
            "Component": self._compile_component,
            "Props": self._compile_props,
            "Aware": self._compile_aware,
            "Fragment": self._compile_fragment,
            "Teleport": self._compile_teleport,
            "Cache": self._compile_cache,
            "Error": self._compile_error,
        }

    def compile(
        self,
        node: TemplateNode,
        name: str | None = None,
        filename: str | None = None,
    ) -> types.CodeType:
        """Compile a (flattened) template tree to a code object.

        Args:
            node: Root Template node, after inheritance resolution
            name: Template name for error messages and ``@once`` keys
            filename: Source filename for tracebacks
        """
        self._name = name
        self._filename = filename
        self._counter = 0

        module = ast.Module(
            body=[
                self._make_render_function(node),
                self._make_render_function_stream(node),
            ],
            type_ignores=[],
        )
        ast.fix_missing_locations(module)
        logger.debug("Compiled template %s", name or "<string>")
        return compile(module, filename or f"<template {name or 'string'}>", "exec")

    # -- functions -------------------------------------------------------

    def _prologue(self) -> list[ast.stmt]:
        # _e = _escape: LOAD_FAST in the hot path
        return [assign("_e", name("_escape"))]

    def _make_render_function(self, node: TemplateNode) -> ast.FunctionDef:
        self._streaming = False
        body = self._prologue()
        body.append(assign("buf", ast.List(elts=[], ctx=ast.Load())))
        body.append(assign("_append", ast.Attribute(value=name("buf"), attr="append", ctx=ast.Load())))
        body.extend(self._compile_body(node.body))
        body.append(ast.Return(value=join("buf")))
        return function("render", ["ctx", "_rc"], body)

    def _make_render_function_stream(self, node: TemplateNode) -> ast.FunctionDef:
        self._streaming = True
        try:
            body = self._prologue()
            body.extend(self._compile_body(node.body))
        finally:
            self._streaming = False
        # Unreachable yield keeps this a generator even for an empty body.
        body.append(ast.Return(value=None))
        body.append(expr_stmt(ast.Yield(value=None)))
        return function("render_stream", ["ctx", "_rc"], body)

    # -- emission --------------------------------------------------------

    def _emit_output(self, value_expr: ast.expr) -> ast.stmt:
        """Output statement: ``yield`` (streaming) or ``_append`` (StringBuilder).

        All output in compiled templates flows through here, so one body
        compiler serves both render functions.
        """
        if self._streaming:
            return expr_stmt(ast.Yield(value=value_expr))
        return expr_stmt(call("_append", value_expr))

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"_{prefix}_{self._counter}"

    def _capture(self, body: Sequence[Node], prefix: str) -> tuple[list[ast.stmt], str]:
        """Compile ``body`` so its output lands in a fresh buffer.

        Returns the statements and the buffer name. In streaming mode the
        body is compiled in StringBuilder mode with a local ``_append``;
        otherwise the outer ``_append`` is saved and restored around it.
        """
        buf = self._next_id(f"{prefix}_buf")
        stmts: list[ast.stmt] = [assign(buf, ast.List(elts=[], ctx=ast.Load()))]
        capture_append = ast.Attribute(value=name(buf), attr="append", ctx=ast.Load())

        if self._streaming:
            stmts.append(assign("_append", capture_append))
            self._streaming = False
            try:
                stmts.extend(self._compile_body(body))
            finally:
                self._streaming = True
            return stmts, buf

        saved = self._next_id("save_append")
        stmts.append(assign(saved, name("_append")))
        stmts.append(assign("_append", capture_append))
        stmts.append(
            ast.Try(
                body=self._compile_body(body) or [ast.Pass()],
                handlers=[],
                orelse=[],
                finalbody=[assign("_append", name(saved))],
            )
        )
        return stmts, buf

    # -- dispatch --------------------------------------------------------

    def _make_line_marker(self, lineno: int) -> ast.stmt:
        """``_rc.line = lineno``"""
        return ast.Assign(
            targets=[ast.Attribute(value=name("_rc"), attr="line", ctx=ast.Store())],
            value=const(lineno),
        )

    def _compile_node(self, node: Node) -> list[ast.stmt]:
        node_type = type(node).__name__
        stmts: list[ast.stmt] = []
        if node_type in self._LINE_TRACKED_NODES:
            stmts.append(self._make_line_marker(node.lineno))
        stmts.extend(self._node_dispatch[node_type](node))
        return stmts

    def _compile_body(self, nodes: Sequence[Node]) -> list[ast.stmt]:
        stmts: list[ast.stmt] = []
        for child in nodes:
            stmts.extend(self._compile_node(child))
        return stmts

    def _compile_origin(self, node: Node) -> list[ast.stmt]:
        """Point diagnostics at another template of the extends chain."""
        return [expr_stmt(method("_rc", "enter_template", const(node.template_name), name("_sources")))]  # type: ignore[attr-defined]
