"""Python expressions inside directives, echoes and bound attributes.

Directive arguments are parsed as the argument list of a call, so
``@include('partials.nav', {'active': 'home'})`` and ``@cache('nav', ttl=60)``
need no special grammar. Loop headers get their own small grammar:

    items as item
    items as key => value
    item in items
"""

from __future__ import annotations

import ast

__all__ = [
    "ExpressionError",
    "parse_arguments",
    "parse_expression",
    "parse_loop_header",
    "split_top_level",
    "to_store_target",
]

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())


class ExpressionError(ValueError):
    """Invalid expression text; ``offset`` is the column inside the text."""

    def __init__(self, message: str, offset: int = 0):
        self.offset = offset
        super().__init__(message)


def _syntax_message(exc: SyntaxError) -> str:
    return exc.msg or "invalid syntax"


def parse_expression(source: str) -> ast.expr:
    """Parse a single Python expression.

    Raises:
        ExpressionError: Empty or invalid expression
    """
    if not source.strip():
        raise ExpressionError("Empty expression")
    try:
        tree = ast.parse(f"({source}\n)", mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(_syntax_message(exc), max((exc.offset or 1) - 2, 0)) from None
    return tree.body


def parse_arguments(source: str | None) -> tuple[list[ast.expr], list[ast.keyword]]:
    """Parse directive arguments as a call's positional and keyword arguments.

    Example:
        >>> args, kwargs = parse_arguments("'nav', ttl=60")
        >>> ast.unparse(args[0]), kwargs[0].arg
        ("'nav'", 'ttl')
    """
    if source is None or not source.strip():
        return [], []
    try:
        tree = ast.parse(f"_f({source}\n)", mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(_syntax_message(exc), max((exc.offset or 1) - 4, 0)) from None
    call = tree.body
    assert isinstance(call, ast.Call)
    return list(call.args), list(call.keywords)


def split_top_level(source: str, separator: str) -> list[str]:
    """Split ``source`` on ``separator`` outside brackets and string literals."""
    parts: list[str] = []
    depth = 0
    start = 0
    i = 0
    end = len(source)
    while i < end:
        ch = source[i]
        if ch in "'\"":
            quote = ch
            i += 1
            while i < end and source[i] != quote:
                i += 2 if source[i] == "\\" else 1
            i += 1
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
        elif depth == 0 and source.startswith(separator, i):
            parts.append(source[start:i])
            i += len(separator)
            start = i
            continue
        i += 1
    parts.append(source[start:])
    return parts


class _StoreContext(ast.NodeTransformer):
    def visit_Name(self, node: ast.Name) -> ast.Name:
        return ast.Name(id=node.id, ctx=ast.Store())

    def visit_Tuple(self, node: ast.Tuple) -> ast.Tuple:
        return ast.Tuple(elts=[self.visit(e) for e in node.elts], ctx=ast.Store())

    def visit_List(self, node: ast.List) -> ast.List:
        return ast.List(elts=[self.visit(e) for e in node.elts], ctx=ast.Store())

    def generic_visit(self, node: ast.AST) -> ast.AST:
        raise ExpressionError("Loop targets must be names or tuples of names")


def to_store_target(source: str) -> ast.expr:
    """Parse a loop target (``item``, ``k, v``, ``(a, (b, c))``) in store context."""
    expr = parse_expression(source)
    if not isinstance(expr, (ast.Name, ast.Tuple, ast.List)):
        raise ExpressionError(f"Invalid loop target '{source.strip()}'")
    return _StoreContext().visit(expr)


def parse_loop_header(source: str) -> tuple[ast.expr, ast.expr, ast.expr | None]:
    """Parse a loop header into (target, iterable, key_target).

    Raises:
        ExpressionError: The header matches none of the loop forms
    """
    parts = split_top_level(source, " as ")
    if len(parts) == 2:
        iterable = parse_expression(parts[0])
        pair = split_top_level(parts[1], "=>")
        if len(pair) == 2:
            return to_store_target(pair[1]), iterable, to_store_target(pair[0])
        return to_store_target(parts[1]), iterable, None

    try:
        tree = ast.parse(f"for {source.strip()}:\n    pass\n")
    except SyntaxError:
        raise ExpressionError(
            f"Invalid loop header '{source.strip()}'; expected 'items as item', "
            "'items as key => value' or 'item in items'"
        ) from None
    loop = tree.body[0]
    assert isinstance(loop, ast.For)
    target = loop.target
    if not isinstance(target, (ast.Name, ast.Tuple, ast.List)):
        raise ExpressionError(f"Invalid loop target in '{source.strip()}'")
    return target, loop.iter, None
