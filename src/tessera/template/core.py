"""Tessera Template: compiled template object ready for rendering.

The Template class wraps a compiled code object and provides the render
API. Templates are immutable and thread-safe for concurrent rendering.

Architecture:
    ```
    Template
    ├── _env_ref: WeakRef[Environment]  # Prevents circular refs
    ├── _code: code object              # Compiled Python bytecode
    ├── _render_func: callable          # render(ctx, _rc)
    ├── _render_stream_func: callable   # render_stream(ctx, _rc)
    └── _name, _filename, _source       # For error messages
    ```

StringBuilder Pattern:
Generated code uses ``buf.append()`` + ``''.join(buf)``:
    ```python
    def render(ctx, _rc):
        _e = _escape
        buf = []
        _append = buf.append
        _append('Hello, ')
        _rc.line = 1
        _append(_e(_lookup(ctx, 'name')))
        return ''.join(buf)
    ```

Request Isolation:
Every top-level render creates a fresh `RenderContext`; sections, stacks,
``@once`` keys, fragments, teleports and aware frames never outlive it.

Memory Safety:
Uses ``weakref.ref(env)`` to break potential cycles:
``Template → (weak) → Environment → cache → Template``
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import weakref
from collections.abc import AsyncIterator, Iterator, Mapping
from typing import TYPE_CHECKING, Any

from tessera.escaping import encode, encode_body
from tessera.template.attributes import ComponentAttributes
from tessera.template.helpers import (
    FLUSH,
    STATIC_NAMESPACE,
    apply_aware,
    apply_props,
    bind,
    error_message,
    is_empty,
    isset,
    lookup,
    lookup_lenient,
    restore,
    safe_getattr,
    snake_keys,
    teleport_script,
    yield_section,
)
from tessera.utils.html import Markup, html_escape

if TYPE_CHECKING:
    import types

    from tessera.environment import Environment
    from tessera.render_context import RenderContext

logger = logging.getLogger(__name__)

#: Keys reserved for slot data inside a component's context.
_SLOTS_KEY = "slots"


class Template:
    """Compiled template ready for rendering.

    Wraps a compiled code object defining ``render(ctx, _rc)`` and
    ``render_stream(ctx, _rc)``.

    Thread-Safety:
        - Template object is immutable after construction
        - Each render call creates local state only (buffer, RenderContext)
        - Multiple threads can render the same template simultaneously

    Attributes:
        name: Template identifier (for error messages)
        filename: Source file path (for error messages)

    Error Enhancement:
        Runtime errors are caught and enhanced with template context:
            ```
            Runtime Error: 'NoneType' object is not iterable
              Location: users.index:4
               |
             4 | @foreach(users as user)
            ```

    Example:
            >>> env = Environment()
            >>> t = env.from_string("Hello, {{ name }}!")
            >>> t.render(name="<World>")
            'Hello, &lt;World&gt;!'
    """

    __slots__ = (
        "_code",
        "_env_ref",
        "_filename",
        "_name",
        "_namespace",
        "_render_func",
        "_render_stream_func",
        "_source",
        "_sources",
    )

    def __init__(
        self,
        env: Environment,
        code: types.CodeType,
        name: str | None,
        filename: str | None,
        source: str | None = None,
        sources: Mapping[str, str] | None = None,
    ):
        """Initialize template with compiled code.

        Args:
            env: Parent Environment (stored as weak reference)
            code: Compiled Python code object
            name: Template name (for error messages)
            filename: Source filename (for error messages)
            source: Template source for runtime error snippets
            sources: Sources of every template in a flattened extends chain
        """
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self._code = code
        self._name = name
        self._filename = filename
        self._source = source
        self._sources: dict[str, str] = dict(sources or {})

        env_ref = self._env_ref

        def _environment(action: str) -> Environment:
            _env = env_ref()
            if _env is None:
                raise RuntimeError(f"Environment has been garbage collected while {action}")
            return _env

        # @include / @includeIf / @includeWhen
        def _include(
            template_name: Any,
            context: dict[str, Any],
            data: Mapping[str, Any] | None,
            render_ctx: RenderContext,
            ignore_missing: bool = False,
        ) -> Markup:
            from tessera.environment.exceptions import TemplateNotFoundError

            name = str(template_name)
            render_ctx.check_include_depth(name)
            _env = _environment(f"including '{name}'")
            try:
                included = _env.get_template(name)
            except TemplateNotFoundError:
                if ignore_missing:
                    return Markup()
                raise

            child_ctx = dict(context)
            if data:
                child_ctx.update(data)
            _env.compose(included.name, child_ctx)
            child_rc = render_ctx.child_context(included.name or name)
            return Markup(included._render_into(child_ctx, child_rc))

        # @component / <Alert> / <x-alert>
        def _component(
            component_name: Any,
            attrs: dict[str, Any],
            default_slot: Markup,
            slots: dict[str, Markup],
            context: dict[str, Any],
            render_ctx: RenderContext,
        ) -> Markup:
            name = str(component_name)
            render_ctx.check_include_depth(name)
            _env = _environment(f"rendering component '{name}'")
            component = _env.get_component(name)

            # Named slots of an enclosing component must not leak into this one
            child_ctx = dict(context)
            for inherited in context.get(_SLOTS_KEY) or ():
                child_ctx.pop(inherited, None)
            child_ctx.update(snake_keys(attrs))
            child_ctx.update(slots)
            child_ctx["slot"] = default_slot
            child_ctx[_SLOTS_KEY] = dict(slots)
            child_ctx["attributes"] = ComponentAttributes(attrs)
            _env.compose(component.name, child_ctx)

            child_rc = render_ctx.child_context(component.name or name, isolated=True)
            return Markup(component._render_into(child_ctx, child_rc))

        def _helper(name: str) -> Any:
            return _environment(f"calling @{name}").registry.helpers[name]

        def _condition(name: str, *args: Any) -> bool:
            predicate = _environment(f"evaluating @{name}").registry.conditions[name]
            return bool(predicate(*args))

        def _props(
            context: dict[str, Any],
            render_ctx: RenderContext,
            required: tuple[str, ...],
            defaults: Mapping[str, Any],
        ) -> None:
            production = _environment("binding props").production
            apply_props(context, render_ctx, required, defaults, production=production)

        namespace: dict[str, Any] = STATIC_NAMESPACE.copy()
        namespace.update(
            {
                "_escape": encode_body,
                "_encode": encode,
                "_lookup": lookup if env.strict else lookup_lenient,
                "_getattr": safe_getattr,
                "_bind": bind,
                "_restore": restore,
                "_isset": isset,
                "_is_empty": is_empty,
                "_condition": _condition,
                "_helper": _helper,
                "_include": _include,
                "_component": _component,
                "_props": _props,
                "_aware": apply_aware,
                "_snake_keys": snake_keys,
                "_yield_section": yield_section,
                "_error_message": error_message,
                "_content_cache": env.content_cache,
                "_sources": self._sources,
            }
        )
        exec(code, namespace)
        self._render_func = namespace["render"]
        self._render_stream_func = namespace["render_stream"]
        self._namespace = namespace

    @property
    def _env(self) -> Environment:
        """Get the Environment (dereferences weak reference)."""
        env = self._env_ref()
        if env is None:
            raise RuntimeError(
                f"Environment has been garbage collected (template: {self._name or 'unknown'})"
            )
        return env

    @property
    def name(self) -> str | None:
        """Template name."""
        return self._name

    @property
    def filename(self) -> str | None:
        """Source filename."""
        return self._filename

    @property
    def source(self) -> str | None:
        return self._source

    # -- context ---------------------------------------------------------

    def _build_context(self, args: tuple[Any, ...], kwargs: dict[str, Any], method: str) -> dict[str, Any]:
        ctx: dict[str, Any] = {}
        ctx.update(self._env.globals)
        if args:
            if len(args) == 1 and isinstance(args[0], Mapping):
                ctx.update(args[0])
            else:
                raise TypeError(
                    f"{method}() takes at most 1 positional argument (a mapping), got {len(args)}"
                )
        ctx.update(kwargs)
        self._env.compose(self._name, ctx)
        return ctx

    def _new_render_context(self) -> Any:
        from tessera.render_context import get_render_context, render_context

        # A render nested in a framework's render_context() block inherits its metadata
        outer = get_render_context()
        return render_context(
            template_name=self._name,
            source=self._source,
            parent_meta=outer._meta if outer is not None else None,
        )

    def _prepare(self, rc: RenderContext, fragment: str | None = None) -> None:
        env = self._env
        rc.filename = self._filename
        rc.max_include_depth = env.max_include_depth
        rc.fragment = fragment

    # -- rendering -------------------------------------------------------

    def _render_into(self, ctx: dict[str, Any], rc: RenderContext) -> str:
        """Run the compiled body against an existing RenderContext.

        Used for includes and components, which render inside the
        caller's request state.
        """
        from tessera.environment.exceptions import TemplateError
        from tessera.render_context import reset_render_context, set_render_context

        rc.source = self._source
        token = set_render_context(rc)
        try:
            result: str = self._render_func(ctx, rc)
            return result
        except TemplateError:
            raise
        except Exception as e:
            raise self._enhance_error(e, rc) from e
        finally:
            reset_render_context(token)

    def _finish(self, output: str, rc: RenderContext) -> str:
        """Apply the fragment request and append teleport scripts."""
        from tessera.environment.exceptions import FragmentNotFoundError

        if rc.fragment is not None:
            if rc.fragment not in rc.fragments:
                raise FragmentNotFoundError(
                    rc.fragment,
                    available=list(rc.fragments),
                    template_name=self._name,
                )
            output = rc.fragments[rc.fragment]
        return output + teleport_script(rc.teleports, rc.csp_nonce)

    def render(self, *args: Any, **kwargs: Any) -> str:
        """Render template with given context.

        Args:
            *args: Single mapping of context variables
            **kwargs: Context variables as keyword arguments

        Returns:
            Rendered template as string

        Example:
            >>> t.render(name="World")
            'Hello, World!'
            >>> t.render({"name": "World"})
            'Hello, World!'
        """
        ctx = self._build_context(args, kwargs, "render")
        return self._render(ctx)

    def render_fragment(self, fragment: str, /, *args: Any, **kwargs: Any) -> str:
        """Render only the named ``@fragment`` (plus teleport scripts).

        The whole template still runs so sections and stacks feeding the
        fragment resolve exactly as in a full render.

        Raises:
            FragmentNotFoundError: The template never produced ``fragment``
        """
        ctx = self._build_context(args, kwargs, "render_fragment")
        return self._render(ctx, fragment=fragment)

    def _render(self, ctx: dict[str, Any], fragment: str | None = None) -> str:
        from tessera.environment.exceptions import TemplateError

        with self._new_render_context() as render_ctx:
            self._prepare(render_ctx, fragment)
            try:
                output: str = self._render_func(ctx, render_ctx)
            except TemplateError:
                raise
            except Exception as e:
                raise self._enhance_error(e, render_ctx) from e
            return self._finish(output, render_ctx)

    def render_stream(self, *args: Any, **kwargs: Any) -> Iterator[str]:
        """Render template as a generator of HTML chunks.

        Output is coalesced into chunks of at least ``stream_chunk_size``
        characters; ``@flush`` sends whatever is buffered immediately.

        Once a chunk has been handed out the response cannot be taken
        back, so an error after that point is logged and rendered as an
        error marker at the end of the stream (full detail in development,
        a generic notice in production). Errors before the first chunk
        propagate normally.

        Example:
            >>> for chunk in t.render_stream(rows=rows):
            ...     send(chunk)
        """
        ctx = self._build_context(args, kwargs, "render_stream")
        return self._stream(ctx)

    def _stream(self, ctx: dict[str, Any]) -> Iterator[str]:
        from tessera.environment.exceptions import TemplateError

        env = self._env
        chunk_size = env.stream_chunk_size

        with self._new_render_context() as render_ctx:
            self._prepare(render_ctx)
            buffer: list[str] = []
            size = 0
            started = False
            try:
                for chunk in self._render_stream_func(ctx, render_ctx):
                    if chunk is FLUSH:
                        if buffer:
                            started = True
                            yield "".join(buffer)
                            buffer, size = [], 0
                        continue
                    buffer.append(chunk)
                    size += len(chunk)
                    if size >= chunk_size:
                        started = True
                        yield "".join(buffer)
                        buffer, size = [], 0
            except Exception as e:
                error = e if isinstance(e, TemplateError) else self._enhance_error(e, render_ctx)
                if not started:
                    if error is e:
                        raise
                    raise error from e
                logger.exception(
                    "Error while streaming %s after output was sent", self._name or "<string>"
                )
                yield "".join(buffer) + self._error_marker(error)
                return

            tail = "".join(buffer) + teleport_script(render_ctx.teleports, render_ctx.csp_nonce)
            if tail:
                yield tail

    def _error_marker(self, error: Exception) -> str:
        if self._env.production:
            return '<div class="tessera-render-error">An error occurred while rendering this page.</div>'
        from tessera.environment.terminal import strip_colors

        detail = error.format_compact() if hasattr(error, "format_compact") else str(error)
        return f'<pre class="tessera-render-error">{html_escape(strip_colors(detail))}</pre>'

    async def render_async(self, *args: Any, **kwargs: Any) -> str:
        """Resolve pending context values concurrently, then render.

        Awaitable values in the context (coroutines, tasks, futures) are
        awaited together with ``asyncio.gather``; the render itself runs in
        a worker thread so it does not block the event loop.

        Raises:
            AsyncResolutionError: A pending value failed; the original
                exception is chained as ``__cause__``
        """
        ctx = self._build_context(args, kwargs, "render_async")
        ctx = await resolve_pending(ctx)
        return await asyncio.to_thread(self._render, ctx)

    async def render_stream_async(self, *args: Any, **kwargs: Any) -> AsyncIterator[str]:
        """Async generator variant of `render_stream`.

        Pending values are resolved first; chunks then come from the
        synchronous stream.
        """
        ctx = self._build_context(args, kwargs, "render_stream_async")
        ctx = await resolve_pending(ctx)
        for chunk in self._stream(ctx):
            yield chunk

    # -- errors ----------------------------------------------------------

    def _enhance_error(self, error: Exception, render_ctx: RenderContext) -> Exception:
        """Enhance a generic exception with template context from RenderContext.

        Converts generic Python exceptions into TemplateRuntimeError with
        template name, line number, and source snippet context.
        """
        from tessera.environment.exceptions import TemplateRuntimeError, build_source_snippet

        template_name = render_ctx.template_name
        lineno = render_ctx.line
        error_str = str(error).strip()

        # Empty messages (StopIteration, bare exceptions)
        if not error_str:
            error_str = f"{type(error).__name__} (no details available)"
        else:
            error_str = f"{type(error).__name__}: {error_str}"

        snippet = None
        source = render_ctx.source or self._source
        if source and lineno:
            snippet = build_source_snippet(source, lineno)

        suggestion = None
        if isinstance(error, (TypeError, AttributeError)) and "NoneType" in error_str:
            suggestion = "A value is None here; guard it with @isset(...) or give it a default"

        return TemplateRuntimeError(
            error_str,
            template_name=template_name,
            lineno=lineno or None,
            suggestion=suggestion,
            source_snippet=snippet,
            template_stack=render_ctx.template_stack,
        )

    def __repr__(self) -> str:
        return f"<Template {self._name or '(inline)'}>"


async def resolve_pending(ctx: dict[str, Any]) -> dict[str, Any]:
    """Await every awaitable value in ``ctx`` concurrently.

    Returns a new mapping with the resolved values in place.

    Raises:
        AsyncResolutionError: For the first key (in context order) whose
            value raised
    """
    from tessera.environment.exceptions import AsyncResolutionError

    pending = [(key, value) for key, value in ctx.items() if inspect.isawaitable(value)]
    if not pending:
        return ctx

    logger.debug("Resolving %d pending context value(s)", len(pending))
    results = await asyncio.gather(*(value for _, value in pending), return_exceptions=True)
    resolved = dict(ctx)
    for (key, _), result in zip(pending, results, strict=True):
        if isinstance(result, BaseException):
            if isinstance(result, asyncio.CancelledError):
                raise result
            raise AsyncResolutionError(key, result) from result
        resolved[key] = result
    return resolved
