"""Expression compilation: template expressions → render-time Python.

Template expressions are parsed by Python itself and then rewritten so
that every free name is looked up in the render context and attribute
access falls back to item access:

    user.name           →  _getattr(_lookup(ctx, 'user'), 'name')
    [p.id for p in ps]  →  [_getattr(p, 'id') for p in _lookup(ctx, 'ps')]

Comprehension variables and lambda parameters stay local.
"""

from __future__ import annotations

import ast
import copy
from typing import TYPE_CHECKING

from tessera.compiler.utils import call, const, ctx_item, name

if TYPE_CHECKING:
    from tessera.nodes import Expr

#: Names the parser itself generates; they refer to runtime helpers.
RESERVED_NAMES = frozenset({"_rc", "_isset", "_is_empty", "_condition"})

_LOCATION_ATTRS = ("lineno", "col_offset", "end_lineno", "end_col_offset")


def _strip_locations(tree: ast.AST) -> ast.AST:
    for node in ast.walk(tree):
        for attr in _LOCATION_ATTRS:
            if attr in node._attributes and hasattr(node, attr):
                delattr(node, attr)
    return tree


def _target_names(target: ast.AST) -> set[str]:
    return {n.id for n in ast.walk(target) if isinstance(n, ast.Name)}


class ContextRewriter(ast.NodeTransformer):
    """Rewrite free names to context lookups and attributes to safe access."""

    def __init__(self) -> None:
        self._scopes: list[set[str]] = []

    def _is_local(self, id: str) -> bool:
        return any(id in scope for scope in self._scopes)

    def visit_Name(self, node: ast.Name) -> ast.expr:
        if not isinstance(node.ctx, ast.Load) or node.id in RESERVED_NAMES or self._is_local(node.id):
            return node
        return call("_lookup", name("ctx"), const(node.id))

    def visit_Attribute(self, node: ast.Attribute) -> ast.expr:
        if not isinstance(node.ctx, ast.Load):
            return self.generic_visit(node)
        if isinstance(node.value, ast.Name) and node.value.id in RESERVED_NAMES:
            return node
        return call("_getattr", self.visit(node.value), const(node.attr))

    def visit_NamedExpr(self, node: ast.NamedExpr) -> ast.expr:
        """``(x := value)`` binds ``x`` in the render context."""
        return call("_bind", name("ctx"), const(node.target.id), self.visit(node.value))

    def visit_Lambda(self, node: ast.Lambda) -> ast.expr:
        params = {a.arg for a in (*node.args.posonlyargs, *node.args.args, *node.args.kwonlyargs)}
        for extra in (node.args.vararg, node.args.kwarg):
            if extra is not None:
                params.add(extra.arg)
        node.args.defaults = [self.visit(d) for d in node.args.defaults]
        node.args.kw_defaults = [None if d is None else self.visit(d) for d in node.args.kw_defaults]
        self._scopes.append(params)
        try:
            node.body = self.visit(node.body)
        finally:
            self._scopes.pop()
        return node

    def _visit_comprehension(self, node: ast.AST, elements: tuple[str, ...]) -> ast.AST:
        generators: list[ast.comprehension] = node.generators  # type: ignore[attr-defined]
        # The first iterable is evaluated in the enclosing scope.
        generators[0].iter = self.visit(generators[0].iter)
        bound: set[str] = set()
        self._scopes.append(bound)
        try:
            for index, gen in enumerate(generators):
                if index:
                    gen.iter = self.visit(gen.iter)
                bound.update(_target_names(gen.target))
                gen.ifs = [self.visit(test) for test in gen.ifs]
            for field in elements:
                setattr(node, field, self.visit(getattr(node, field)))
        finally:
            self._scopes.pop()
        return node

    def visit_ListComp(self, node: ast.ListComp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_SetComp(self, node: ast.SetComp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_DictComp(self, node: ast.DictComp) -> ast.AST:
        return self._visit_comprehension(node, ("key", "value"))


class _StoreRewriter(ast.NodeTransformer):
    def visit_Name(self, node: ast.Name) -> ast.expr:
        return ctx_item(node.id, for_store=True)


class ExpressionCompilationMixin:
    """Mixin turning template expressions into executable expressions."""

    def _compile_expr(self, node: Expr) -> ast.expr:
        """Copy ``node`` and rewrite it against the render context.

        Parsed expressions carry locations relative to their own text; they
        are dropped so the module gets consistent locations when fixed up.
        """
        tree = _strip_locations(copy.deepcopy(node))
        return ContextRewriter().visit(tree)

    def _compile_store_target(self, node: Expr) -> ast.expr:
        """Loop target → assignment target binding into ``ctx``."""
        tree = _strip_locations(copy.deepcopy(node))
        return _StoreRewriter().visit(tree)
