"""Content cache compilation: @cache(key, ttl, tags) ... @endcache.

The body becomes a nested producer function handed to the environment's
content cache, which calls it only on a miss. Producer errors propagate
to the render unchanged.

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING

from tessera.compiler.utils import assign, call, const, function, join, method, name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tessera.nodes import Cache, Expr, Node


class CachingMixin:
    """Mixin for compiling @cache blocks."""

    if TYPE_CHECKING:
        _streaming: bool

        def _compile_expr(self, node: Expr) -> ast.expr: ...
        def _compile_body(self, nodes: Sequence[Node]) -> list[ast.stmt]: ...
        def _emit_output(self, value_expr: ast.expr) -> ast.stmt: ...
        def _next_id(self, prefix: str) -> str: ...

    def _compile_cache(self, node: Cache) -> list[ast.stmt]:
        """Compile a content-cached block.

        Generates:
            def _cache_producer_N():
                _cache_buf_M = []
                _append = _cache_buf_M.append
                ... body ...
                return ''.join(_cache_buf_M)
            _append(_Markup(_content_cache.remember(_str(key), ttl, _cache_producer_N, tags=tags)))
        """
        producer = self._next_id("cache_producer")
        buf = self._next_id("cache_buf")

        streaming = self._streaming
        self._streaming = False
        try:
            body = [
                assign(buf, ast.List(elts=[], ctx=ast.Load())),
                assign("_append", ast.Attribute(value=name(buf), attr="append", ctx=ast.Load())),
                *self._compile_body(node.body),
                ast.Return(value=join(buf)),
            ]
        finally:
            self._streaming = streaming

        ttl = const(None) if node.ttl is None else self._compile_expr(node.ttl)
        tags = const(None) if node.tags is None else self._compile_expr(node.tags)
        cached = method(
            "_content_cache",
            "remember",
            call("_str", self._compile_expr(node.key)),
            ttl,
            name(producer),
            tags=tags,
        )
        return [
            function(producer, [], body),
            self._emit_output(call("_Markup", cached)),
        ]
