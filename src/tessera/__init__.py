"""Tessera: a server-side template compiler for directive and tag markup.

Templates mix HTML with ``@directives``, ``{{ echoes }}`` and custom tags,
and compile to Python code objects that render against a context mapping.

Quickstart:
    >>> from tessera import Environment
    >>> env = Environment()
    >>> env.from_string("Hello, {{ name }}!").render(name="<World>")
    'Hello, &lt;World&gt;!'

Views on disk:
    >>> from tessera import Environment, FileSystemLoader
    >>> env = Environment(loader=FileSystemLoader("views/"))
    >>> env.render("pages.about", {"team": team})

Architecture:
Source → Tag Expander → Lexer → Parser → Inheritance Resolver → Compiler → exec()

Pipeline stages:
1. **Tag Expander**: Rewrites custom tags (``<if>``, ``<Alert/>``) to directives
2. **Lexer**: Splits text, echoes and directives; picks each echo's escaping context
3. **Parser**: Builds an immutable node tree, checking block nesting
4. **Inheritance Resolver**: Flattens ``@extends`` chains, detecting cycles
5. **Compiler**: Emits an ``ast.Module`` with ``render`` and ``render_stream``
6. **Template**: Runs the compiled functions with a fresh RenderContext per render

Escaping:
Every ``{{ }}`` echo is encoded for where it appears: element text,
attribute values, URL attributes, query strings, ``<script>`` and
``<style>``. Raw output needs a differently spelled construct (``{!! !!}``).

Thread-Safety:
Templates are immutable and render from any number of threads. Each render
owns its sections, stacks, fragments and component state; the compiled and
content caches tolerate concurrent population.
"""

from tessera._types import Token, TokenType
from tessera.cache import CompiledCache, ContentCache, TaggedCache
from tessera.environment import (
    AsyncResolutionError,
    ChoiceLoader,
    CyclicInheritanceError,
    DictLoader,
    DirectiveRegistry,
    Environment,
    ErrorCode,
    FileSystemLoader,
    FragmentNotFoundError,
    FunctionLoader,
    MissingRequiredPropError,
    PackageLoader,
    PrefixLoader,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSource,
    TemplateSyntaxError,
    UndefinedError,
    build_source_snippet,
)
from tessera.escaping import encode
from tessera.render_context import (
    RenderContext,
    get_render_context,
    get_render_context_required,
    render_context,
)
from tessera.template import UNKNOWN, ComponentAttributes, LoopCursor, Markup, Template
from tessera.utils.html import html_escape

__version__ = "0.1.0"

__all__ = [
    "UNKNOWN",
    "AsyncResolutionError",
    "ChoiceLoader",
    "CompiledCache",
    "ComponentAttributes",
    "ContentCache",
    "CyclicInheritanceError",
    "DictLoader",
    "DirectiveRegistry",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "FragmentNotFoundError",
    "FunctionLoader",
    "LoopCursor",
    "Markup",
    "MissingRequiredPropError",
    "PackageLoader",
    "PrefixLoader",
    "RenderContext",
    "SourceSnippet",
    "TaggedCache",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSource",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "UndefinedError",
    "__version__",
    "build_source_snippet",
    "encode",
    "get_render_context",
    "get_render_context_required",
    "html_escape",
    "render_context",
]


def __getattr__(name: str) -> object:
    """Module-level getattr for the free-threading declaration."""
    if name == "_Py_mod_gil":
        # 0 = Py_MOD_GIL_NOT_USED
        return 0
    raise AttributeError(f"module 'tessera' has no attribute {name!r}")
