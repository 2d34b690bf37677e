"""Tessera compiler: template tree → Python code object.

`resolve_inheritance` flattens an extends chain first; `Compiler` then
emits an ``ast.Module`` defining ``render`` and ``render_stream``.
"""

from tessera.compiler.core import Compiler
from tessera.compiler.inheritance import resolve_inheritance

__all__ = ["Compiler", "resolve_inheritance"]
