"""Environment: configuration, template loading and render entry points.

The Environment owns everything shared across renders:

- the loader (template resolver collaborator) and view-name resolution
- the DirectiveRegistry (built-in and custom helpers and conditions)
- shared data (globals), view composers and component aliases
- the compiled-template cache and the content cache

Compilation Pipeline:
    ```
    source ─ strip_comments ─ expand_tags ─ tokenize ─ Parser
           ─ resolve_inheritance ─ Compiler ─ Template
    ```

View Names:
Dot notation maps to loader paths using the configured extensions:
``layouts.app`` → ``layouts/app.html``. Names that already end in one of
the extensions are used as-is. Names containing ``..`` are rejected.

Component Names:
``User.ProfileCard`` → ``components/user/profile-card.html`` (PascalCase
segments become kebab-case; ``x-user-card`` arrives as ``user-card``).
A directory component may use ``index.html``. Aliases registered with
`Environment.alias` map a component name straight to a view name.

Thread-Safety:
Rendering is safe from any number of threads. Registration methods
(`share`, `composer`, `alias`, `directive`, `condition`) replace their
tables copy-on-write; call them at startup.

Example:
    >>> env = Environment(loader=DictLoader({
    ...     "layouts/app.html": "<title>@yield('title', 'Home')</title>",
    ...     "about.html": "@extends('layouts.app')@section('title', 'About')",
    ... }))
    >>> env.render("about")
    '<title>About</title>'
"""

from __future__ import annotations

import fnmatch
import logging
import re
import time
from collections.abc import AsyncIterator, Callable, Iterable, Iterator, Mapping
from pathlib import Path
from typing import Any, Literal

from tessera.cache import CompiledCache, CompiledEntry, ContentCache
from tessera.compiler import Compiler, resolve_inheritance
from tessera.environment.directives import environment_conditions, environment_helpers
from tessera.environment.exceptions import TemplateNotFoundError
from tessera.environment.globals import DEFAULT_GLOBALS
from tessera.environment.loaders import Loader, TemplateSource
from tessera.environment.registry import DirectiveRegistry
from tessera.lexer import strip_comments, tokenize
from tessera.nodes import Template as TemplateNode
from tessera.parser import Parser
from tessera.tags import expand_tags
from tessera.template import Template

logger = logging.getLogger(__name__)

Mode = Literal["development", "production"]

Composer = Callable[[dict[str, Any]], Mapping[str, Any] | None]

_KEBAB_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def _kebab(segment: str) -> str:
    """``ProfileCard`` → ``profile-card``; ``HTMLButton`` → ``html-button``"""
    return _KEBAB_RE.sub("-", segment).lower()


class Environment:
    """Central configuration and entry point for rendering templates.

    Args:
        loader: Template resolver; required for named templates
        mode: ``"development"`` (full diagnostics, loud prop errors) or
            ``"production"`` (generic error markers, lenient props)
        strict: Undefined names raise UndefinedError instead of reading as None
        fast_cache: Serve compiled templates without re-checking their sources.
            Edited templates are not picked up until `invalidate_compiled`.
        cache_dir: Directory for persisted compiled templates
        extensions: Suffixes tried when resolving dot-notation view names
        components_path: Directory holding component templates
        max_include_depth: Nesting limit for includes and components
        stream_chunk_size: Minimum characters per streamed chunk
        globals: Extra shared data available to every template
        content_cache: Cache backing ``@cache`` blocks (default: a new ContentCache)

    Attributes:
        registry: DirectiveRegistry with built-in and custom directives
        content_cache: Rendered-content cache for ``@cache`` blocks
    """

    def __init__(
        self,
        loader: Loader | None = None,
        *,
        mode: Mode = "development",
        strict: bool = True,
        fast_cache: bool = False,
        cache_dir: str | Path | None = None,
        extensions: Iterable[str] = (".html",),
        components_path: str = "components",
        max_include_depth: int = 50,
        stream_chunk_size: int = 4096,
        globals: Mapping[str, Any] | None = None,
        content_cache: ContentCache | None = None,
    ):
        if mode not in ("development", "production"):
            raise ValueError(f"mode must be 'development' or 'production', got {mode!r}")
        if stream_chunk_size < 1:
            raise ValueError("stream_chunk_size must be at least 1")

        self.loader = loader
        self.mode: Mode = mode
        self.strict = strict
        self.extensions: tuple[str, ...] = tuple(
            ext if ext.startswith(".") else f".{ext}" for ext in extensions
        )
        if not self.extensions:
            raise ValueError("extensions must name at least one suffix")
        self.components_path = components_path.strip("/")
        self.max_include_depth = max_include_depth
        self.stream_chunk_size = stream_chunk_size

        self.globals: dict[str, Any] = {**DEFAULT_GLOBALS, **(globals or {})}
        self.content_cache = content_cache if content_cache is not None else ContentCache()
        self.registry = DirectiveRegistry(
            helpers=environment_helpers(self),
            conditions=environment_conditions(self),
        )

        self._compiled = CompiledCache(fast=fast_cache, directory=cache_dir)
        # logical name → canonical loader name
        self._resolved: dict[str, str] = {}
        self._composers: tuple[tuple[str, Composer], ...] = ()
        self._aliases: dict[str, str] = {}

    # -- configuration ---------------------------------------------------

    @property
    def production(self) -> bool:
        return self.mode == "production"

    @property
    def debug(self) -> bool:
        return self.mode == "development"

    @property
    def fast_cache(self) -> bool:
        return self._compiled.fast

    def share(self, key: str, value: Any) -> None:
        """Make ``value`` available to every template as ``key``."""
        self.globals = {**self.globals, key: value}

    def composer(self, views: str | Iterable[str], callback: Composer) -> None:
        """Run ``callback(data)`` before rendering matching views.

        ``views`` are view names or glob patterns (``users.*``, ``*``). A
        mapping returned by the callback is merged into the data.
        """
        patterns = [views] if isinstance(views, str) else list(views)
        self._composers = (*self._composers, *((p, callback) for p in patterns))

    def alias(self, name: str, target: str) -> None:
        """Render component ``name`` from view ``target`` (``'btn'`` → ``'forms.button'``)."""
        self._aliases = {**self._aliases, name: target}

    def directive(self, name: str, handler: Callable[..., Any]) -> None:
        """Register an inline directive: ``@name(args)`` emits ``handler(*args)``.

        Return a Markup to emit HTML unescaped.
        """
        self.registry.register_helper(name, handler)
        # Already compiled templates lexed @name as text
        self.invalidate_compiled()

    def condition(self, name: str, predicate: Callable[..., Any]) -> None:
        """Register a block conditional: ``@name(args) ... @else ... @endname``."""
        self.registry.register_condition(name, predicate)
        self.invalidate_compiled()

    # -- name resolution -------------------------------------------------

    def candidates(self, name: str) -> list[str]:
        """Loader names tried for view ``name``, in order.

        Raises:
            TemplateNotFoundError: ``name`` is empty or contains ``..``
        """
        if not name or ".." in name:
            raise TemplateNotFoundError(f"Invalid view name {name!r}", name=name)
        name = name.strip("/")
        if name.endswith(self.extensions):
            return [name]
        path = name.replace(".", "/")
        return [path + ext for ext in self.extensions]

    def component_view(self, name: str) -> list[str]:
        """View names tried for component ``name``."""
        if name in self._aliases:
            return [self._aliases[name]]
        segments = [_kebab(segment) for segment in name.split(".") if segment]
        path = "/".join([self.components_path, *segments]) if self.components_path else "/".join(segments)
        return [path, f"{path}/index"]

    def _load_source(self, name: str) -> TemplateSource:
        if self.loader is None:
            raise TemplateNotFoundError(
                f"Cannot load '{name}': no loader configured", name=name
            )
        tried = self.candidates(name)
        for candidate in tried:
            try:
                return self.loader.get_source(candidate)
            except TemplateNotFoundError:
                continue
        raise TemplateNotFoundError(
            f"View '{name}' not found (tried: {', '.join(tried)})", name=name
        )

    def _current_fingerprint(self, canonical: str) -> str | None:
        if self.loader is None:
            return None
        try:
            return self.loader.get_source(canonical).fingerprint
        except TemplateNotFoundError:
            return None

    # -- compilation -----------------------------------------------------

    def expand(self, source: str, *, name: str | None = None) -> str:
        """Return ``source`` with comments removed and custom tags desugared."""
        return expand_tags(strip_comments(source), name=name)

    def _parse(self, source: str, name: str | None, filename: str | None) -> TemplateNode:
        expanded = self.expand(source, name=name)
        tokens = tokenize(expanded, is_directive=self.registry.is_directive, name=name)
        return Parser(tokens, name, filename, source, registry=self.registry).parse()

    def _compile(
        self, source: str, name: str | None, filename: str | None
    ) -> tuple[Any, dict[str, str], dict[str, str]]:
        """Compile ``source``; return (code, fingerprints, sources) of its extends chain."""
        start = time.perf_counter()
        tree = self._parse(source, name, filename)
        fingerprints: dict[str, str] = {}

        def load_parent(parent: str) -> tuple[str, TemplateNode, str]:
            found = self._load_source(parent)
            fingerprints[found.name] = found.fingerprint
            return found.name, self._parse(found.source, found.name, found.filename), found.source

        flat, sources = resolve_inheritance(tree, name, load_parent, source)
        code = Compiler().compile(flat, name, filename)
        logger.debug(
            "Compiled %s in %.1fms (%d template(s) in chain)",
            name or "<string>",
            (time.perf_counter() - start) * 1000,
            len(sources) or 1,
        )
        return code, fingerprints, sources

    def _template_for(self, entry: CompiledEntry) -> Template:
        template = entry.template
        if template is None:
            template = Template(
                self,
                entry.code,
                entry.name,
                entry.filename,
                entry.sources.get(entry.name),
                entry.sources,
            )
            entry.template = template
        return template

    def get_template(self, name: str) -> Template:
        """Load, compile and cache the template for view ``name``.

        Raises:
            TemplateNotFoundError: No loader name for ``name`` exists
            TemplateSyntaxError: The template or one of its parents is malformed
            CyclicInheritanceError: The extends chain loops
        """
        canonical = self._resolved.get(name)
        if canonical is not None:
            entry = self._compiled.get(canonical, self._current_fingerprint)
            if entry is not None:
                return self._template_for(entry)

        found = self._load_source(name)
        self._resolved[name] = found.name
        entry = self._compiled.get(found.name, self._current_fingerprint)
        if entry is None:
            code, fingerprints, sources = self._compile(found.source, found.name, found.filename)
            fingerprints[found.name] = found.fingerprint
            entry = CompiledEntry(
                name=found.name,
                code=code,
                fingerprints=fingerprints,
                sources=sources,
                filename=found.filename,
            )
            self._compiled.put(entry)
        return self._template_for(entry)

    def get_component(self, name: str) -> Template:
        """Template for component ``name`` (see Component Names above)."""
        tried = self.component_view(name)
        for view in tried:
            try:
                return self.get_template(view)
            except TemplateNotFoundError as e:
                if e.name != view:
                    # The component exists but something it extends does not
                    raise
        raise TemplateNotFoundError(
            f"Component '{name}' not found (tried: {', '.join(tried)})", name=name
        )

    def from_string(self, source: str, name: str | None = None) -> Template:
        """Compile a template from a string. The result is not cached.

        ``@extends`` and ``@include`` still resolve through the loader.
        """
        code, _, sources = self._compile(source, name, None)
        return Template(self, code, name, None, source, sources)

    def invalidate_compiled(self, name: str | None = None) -> int:
        """Drop compiled templates: one view (and views extending it) or all.

        Returns:
            Number of compiled templates dropped
        """
        if name is None:
            self._resolved = {}
            return self._compiled.invalidate()
        canonical = self._resolved.get(name)
        if canonical is None:
            canonical = name if name.endswith(self.extensions) else self.candidates(name)[0]
        self._resolved = {k: v for k, v in self._resolved.items() if v != canonical}
        return self._compiled.invalidate(canonical)

    def warm(self, patterns: str | Iterable[str] = "*") -> int:
        """Compile every loader template matching ``patterns``; return the count.

        Patterns are globs over loader names (``emails/*.html``) or view
        names (``emails.*``).
        """
        if self.loader is None:
            return 0
        if isinstance(patterns, str):
            patterns = [patterns]
        globs: list[str] = []
        for pattern in patterns:
            globs.append(pattern)
            if not pattern.endswith(self.extensions):
                globs.extend(self.candidates(pattern))
        warmed = 0
        for name in self.loader.list_templates():
            if any(fnmatch.fnmatchcase(name, glob) for glob in globs):
                self.get_template(name)
                warmed += 1
        logger.debug("Warmed %d compiled template(s)", warmed)
        return warmed

    # -- composers -------------------------------------------------------

    def _view_matches(self, pattern: str, canonical: str) -> bool:
        if pattern == "*" or fnmatch.fnmatchcase(canonical, pattern):
            return True
        if ".." in pattern:
            return False
        return any(fnmatch.fnmatchcase(canonical, glob) for glob in self.candidates(pattern))

    def compose(self, name: str | None, data: dict[str, Any]) -> None:
        """Apply the view composers registered for ``name`` to ``data`` in place."""
        if not self._composers or name is None:
            return
        for pattern, callback in self._composers:
            if self._view_matches(pattern, name):
                result = callback(data)
                if result:
                    data.update(result)

    # -- rendering -------------------------------------------------------

    @staticmethod
    def _args(context: Mapping[str, Any] | None) -> tuple[Any, ...]:
        return () if context is None else (context,)

    def render(
        self,
        name: str,
        context: Mapping[str, Any] | None = None,
        /,
        *,
        fragment: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Render view ``name`` (or only one of its fragments)."""
        template = self.get_template(name)
        if fragment is not None:
            return template.render_fragment(fragment, *self._args(context), **kwargs)
        return template.render(*self._args(context), **kwargs)

    def render_fragment(
        self, name: str, fragment: str, context: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> str:
        return self.get_template(name).render_fragment(fragment, *self._args(context), **kwargs)

    def render_stream(
        self, name: str, context: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> Iterator[str]:
        return self.get_template(name).render_stream(*self._args(context), **kwargs)

    async def render_async(
        self, name: str, context: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> str:
        """Await pending context values concurrently, then render."""
        return await self.get_template(name).render_async(*self._args(context), **kwargs)

    async def render_stream_async(
        self, name: str, context: Mapping[str, Any] | None = None, /, **kwargs: Any
    ) -> AsyncIterator[str]:
        template = self.get_template(name)
        async for chunk in template.render_stream_async(*self._args(context), **kwargs):
            yield chunk

    def render_many(
        self,
        views: Mapping[str, Mapping[str, Any] | None] | Iterable[str],
        context: Mapping[str, Any] | None = None,
    ) -> dict[str, str]:
        """Render several views with shared ``context``.

        ``views`` is either view names or a mapping of view name to data
        merged over the shared context.

        Example:
            >>> env.render_many({"mail.subject": None, "mail.body": {"name": "Ada"}}, {"site": site})
            {'mail.subject': '...', 'mail.body': '...'}
        """
        items = views.items() if isinstance(views, Mapping) else ((view, None) for view in views)
        results: dict[str, str] = {}
        for view, data in items:
            merged = {**(context or {}), **(data or {})}
            results[view] = self.render(view, merged)
        return results

    def __repr__(self) -> str:
        return (
            f"<Environment mode={self.mode} strict={self.strict} "
            f"fast_cache={self.fast_cache} compiled={len(self._compiled)}>"
        )
