"""Small builders for the Python AST the compiler emits."""

from __future__ import annotations

import ast
from typing import Any


def name(id: str) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Load())


def store(id: str) -> ast.Name:
    return ast.Name(id=id, ctx=ast.Store())


def const(value: Any) -> ast.Constant:
    return ast.Constant(value=value)


def call(func: str | ast.expr, *args: ast.expr, **keywords: ast.expr) -> ast.Call:
    return ast.Call(
        func=name(func) if isinstance(func, str) else func,
        args=list(args),
        keywords=[ast.keyword(arg=k, value=v) for k, v in keywords.items()],
    )


def method(obj: str | ast.expr, attr: str, *args: ast.expr, **keywords: ast.expr) -> ast.Call:
    """``obj.attr(*args, **keywords)``"""
    value = name(obj) if isinstance(obj, str) else obj
    return call(ast.Attribute(value=value, attr=attr, ctx=ast.Load()), *args, **keywords)


def assign(target: str | ast.expr, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[store(target) if isinstance(target, str) else target], value=value)


def expr_stmt(value: ast.expr) -> ast.Expr:
    return ast.Expr(value=value)


def ctx_item(key: str, *, for_store: bool = False) -> ast.Subscript:
    """``ctx['key']``"""
    return ast.Subscript(
        value=name("ctx"),
        slice=const(key),
        ctx=ast.Store() if for_store else ast.Load(),
    )


def join(buf: str) -> ast.Call:
    """``''.join(buf)``"""
    return method(const(""), "join", name(buf))


def function(
    id: str,
    args: list[str],
    body: list[ast.stmt],
    defaults: list[ast.expr] | None = None,
) -> ast.FunctionDef:
    return ast.FunctionDef(
        name=id,
        args=ast.arguments(
            posonlyargs=[],
            args=[ast.arg(arg=a) for a in args],
            vararg=None,
            kwonlyargs=[],
            kw_defaults=[],
            kwarg=None,
            defaults=defaults or [],
        ),
        body=body or [ast.Pass()],
        decorator_list=[],
        returns=None,
        type_params=[],
    )


def lambda_(body: ast.expr) -> ast.Lambda:
    """``lambda: body``"""
    return ast.Lambda(
        args=ast.arguments(
            posonlyargs=[], args=[], vararg=None, kwonlyargs=[], kw_defaults=[], kwarg=None, defaults=[]
        ),
        body=body,
    )


def or_pass(body: list[ast.stmt]) -> list[ast.stmt]:
    return body or [ast.Pass()]
