"""RenderContext: per-render state kept out of the user's context mapping.

Everything one render call mutates lives here: the section table, the
stack table, ``@once`` keys, captured fragments, teleports, the aware stack
and framework metadata (CSRF token, validation errors, old input, CSP nonce).

A RenderContext is created by every top-level render call and discarded
when it returns, so no state survives into the next request. Compiled code
receives it explicitly as ``_rc``; it is also published through a
ContextVar so helpers called from user code (``csrf_token()``) can find it.

Includes get a child context sharing every table with the parent.
Components get a child context with fresh section and stack tables but the
same aware stack, once keys, fragments, teleports and metadata.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import Any

from tessera.utils.html import Markup

logger = logging.getLogger(__name__)

#: Marker left by ``@parent`` and replaced when a section is resolved.
PARENT_PLACEHOLDER = "##parent-placeholder-8f1c6a2e##"


class AwareStack:
    """Ambient data published by enclosing component invocations.

    Each component invocation pushes one frame (its call-site data plus prop
    defaults) for the duration of its slots and body, and pops it on exit,
    so a frame is visible only to that subtree.

    Example:
            >>> aware = AwareStack()
            >>> with aware.frame({"color": "purple"}):
            ...     with aware.frame({"label": "Home"}):
            ...         aware.lookup("color", "gray")
            'purple'
    """

    __slots__ = ("_frames",)

    def __init__(self) -> None:
        self._frames: list[dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._frames)

    def push(self, data: Mapping[str, Any]) -> None:
        self._frames.append(dict(data))

    def pop(self) -> dict[str, Any]:
        return self._frames.pop()

    @contextmanager
    def frame(self, data: Mapping[str, Any]) -> Iterator[None]:
        self.push(data)
        try:
            yield
        finally:
            self.pop()

    def publish(self, data: Mapping[str, Any]) -> None:
        """Add values to the innermost frame without overriding call-site data."""
        if self._frames:
            top = self._frames[-1]
            for key, value in data.items():
                top.setdefault(key, value)

    def current(self) -> Mapping[str, Any]:
        """The innermost frame: call-site data of the component rendering now."""
        return self._frames[-1] if self._frames else {}

    def lookup(self, name: str, default: Any = None) -> Any:
        """Find ``name`` in the nearest ancestor frame.

        The innermost frame belongs to the component asking, so it is skipped.
        """
        for frame in reversed(self._frames[:-1]):
            if name in frame:
                return frame[name]
        return default


@dataclass
class RenderContext:
    """Per-render state isolated from user context.

    Attributes:
        template_name: Current template name for error messages
        filename: Source file path for error messages
        source: Current template source for runtime error snippets
        line: Current line number (updated by generated code)
        include_depth: Current include/component depth
        max_include_depth: Maximum allowed include depth
        template_stack: (template_name, line) pairs of the include chain
        sections: Section table, first capture per name
        overridden: Later (ancestor) captures per section name, child first
        stacks: Stack table, name → ordered contributions
        once_keys: Keys already claimed by ``@once``/``@pushOnce``
        fragments: Captured fragment output, first capture per name
        fragment: Fragment requested for a partial render, if any
        teleports: (target selector, content) pairs in capture order
        aware: Ambient component data
    """

    template_name: str | None = None
    filename: str | None = None
    source: str | None = None
    line: int = 0

    # 50 catches recursive includes early while allowing deep real hierarchies.
    include_depth: int = 0
    max_include_depth: int = 50
    template_stack: list[tuple[str, int]] = field(default_factory=list)

    sections: dict[str, str] = field(default_factory=dict)
    overridden: dict[str, list[str]] = field(default_factory=dict)
    stacks: dict[str, list[str]] = field(default_factory=dict)
    once_keys: set[str] = field(default_factory=set)

    fragments: dict[str, str] = field(default_factory=dict)
    fragment: str | None = None
    teleports: list[tuple[str, str]] = field(default_factory=list)

    aware: AwareStack = field(default_factory=AwareStack)

    # Framework metadata (csrf_token, errors, old, csp_nonce, env...)
    _meta: dict[str, object] = field(default_factory=dict)

    def get_meta(self, key: str, default: object = None) -> object:
        """Get framework-supplied metadata.

        Frameworks pass request state in through metadata instead of the
        user context:

            with render_context() as rc:
                rc.set_meta("csrf_token", session.csrf_token)
                rc.set_meta("errors", form.errors)
                html = env.render("auth.login", {"form": form})

        Template helpers (``@csrf``, ``@error``, ``@old``) read it back.
        """
        return self._meta.get(key, default)

    def set_meta(self, key: str, value: object) -> None:
        self._meta[key] = value

    @property
    def csp_nonce(self) -> str | None:
        nonce = self._meta.get("csp_nonce")
        return None if nonce is None else str(nonce)

    def enter_template(self, name: str, sources: Mapping[str, str]) -> None:
        """Attribute the following lines to ``name`` (flattened extends chains)."""
        self.template_name = name
        self.source = sources.get(name, self.source)
        self.line = 0

    # -- sections --------------------------------------------------------

    def capture_section(self, name: str, content: str) -> None:
        """Commit a section capture.

        The first capture of a name wins; templates run child first, so that
        is the closest definition. Later captures are kept for ``@parent``.
        """
        if name in self.sections:
            self.overridden.setdefault(name, []).append(content)
        else:
            self.sections[name] = content

    def has_section(self, name: str) -> bool:
        return name in self.sections

    def resolve_section(self, name: str) -> Markup | None:
        """Return the effective content of a section with ``@parent`` resolved."""
        if name not in self.sections:
            return None
        versions = [self.sections[name], *self.overridden.get(name, ())]
        resolved = versions[-1].replace(PARENT_PLACEHOLDER, "")
        for version in reversed(versions[:-1]):
            resolved = version.replace(PARENT_PLACEHOLDER, resolved)
        return Markup(resolved)

    # -- stacks ----------------------------------------------------------

    def push(self, name: str, content: str, *, prepend: bool = False) -> None:
        contributions = self.stacks.setdefault(name, [])
        if prepend:
            contributions.insert(0, content)
        else:
            contributions.append(content)

    def render_stack(self, name: str) -> Markup:
        if name not in self.stacks:
            logger.debug("Stack %r rendered with no contributions", name)
            return Markup()
        return Markup("".join(self.stacks[name]))

    def claim_once(self, key: str) -> bool:
        """Return True the first time ``key`` is seen during this render."""
        if key in self.once_keys:
            return False
        self.once_keys.add(key)
        return True

    # -- fragments and teleports -----------------------------------------

    def add_fragment(self, name: str, content: str) -> None:
        self.fragments.setdefault(name, content)

    def add_teleport(self, target: str, content: str) -> None:
        self.teleports.append((target, content))

    # -- nesting ---------------------------------------------------------

    def check_include_depth(self, template_name: str) -> None:
        """Raise TemplateRuntimeError when the include depth limit is reached."""
        if self.include_depth >= self.max_include_depth:
            from tessera.environment.exceptions import ErrorCode, TemplateRuntimeError

            error = TemplateRuntimeError(
                f"Maximum include depth exceeded ({self.max_include_depth}) "
                f"when including '{template_name}'",
                template_name=self.template_name,
                lineno=self.line or None,
                suggestion="Check for circular includes: A -> B -> A",
                template_stack=self.template_stack,
            )
            error.code = ErrorCode.INCLUDE_DEPTH
            raise error

    def child_context(self, template_name: str, *, isolated: bool = False) -> RenderContext:
        """Create the context for an included template or a component.

        Args:
            template_name: Name of the template being entered
            isolated: Give the child its own section and stack tables
        """
        new_stack = self.template_stack.copy()
        if self.template_name:
            new_stack.append((self.template_name, self.line))

        return RenderContext(
            template_name=template_name,
            line=0,
            include_depth=self.include_depth + 1,
            max_include_depth=self.max_include_depth,
            template_stack=new_stack,
            sections={} if isolated else self.sections,
            overridden={} if isolated else self.overridden,
            stacks={} if isolated else self.stacks,
            once_keys=self.once_keys,
            fragments=self.fragments,
            fragment=self.fragment,
            teleports=self.teleports,
            aware=self.aware,
            _meta=self._meta,
        )


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "tessera_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Get the current render context (None outside a render)."""
    return _render_context.get()


def get_render_context_required() -> RenderContext:
    rc = _render_context.get()
    if rc is None:
        raise RuntimeError("Not in a render context")
    return rc


@contextmanager
def render_context(
    template_name: str | None = None,
    source: str | None = None,
    parent_meta: Mapping[str, object] | None = None,
) -> Iterator[RenderContext]:
    """Create a RenderContext and make it current for the ``with`` block.

    A render started inside the block inherits the block's metadata, which
    is how a framework hands request data to templates:

        with render_context() as rc:
            rc.set_meta("csp_nonce", nonce)
            html = env.render("home")
    """
    rc = RenderContext(
        template_name=template_name,
        source=source,
        _meta=dict(parent_meta) if parent_meta else {},
    )
    token: Token[RenderContext | None] = _render_context.set(rc)
    try:
        yield rc
    finally:
        _render_context.reset(token)


def set_render_context(rc: RenderContext) -> Token[RenderContext | None]:
    return _render_context.set(rc)


def reset_render_context(token: Token[RenderContext | None]) -> None:
    _render_context.reset(token)
