"""Pure runtime helper functions injected into the template namespace.

These functions are called by compiled template code at render time.
None of them close over Environment state; helpers that depend on the
environment (includes, components, ``@props`` mode handling) are built by
`Template` and delegate to the functions here.

Thread-Safety:
All functions are stateless and safe for concurrent use.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from tessera.escaping import to_script_json
from tessera.render_context import PARENT_PLACEHOLDER, get_render_context
from tessera.template.attributes import ComponentAttributes
from tessera.template.loop_context import LoopCursor
from tessera.utils.html import Markup, html_escape

if TYPE_CHECKING:
    from tessera.render_context import RenderContext

logger = logging.getLogger(__name__)


class _Sentinel:
    __slots__ = ("_name",)

    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name


#: "No previous value" marker for variables restored after a block.
MISSING: Any = _Sentinel("MISSING")

#: Yielded by ``render_stream`` at ``@flush`` to force buffered output out.
FLUSH: Any = _Sentinel("FLUSH")

# =============================================================================
# Shared Base Namespace
# =============================================================================
# Static entries shared across all Template instances, copied once per
# Template instead of constructed fresh. Read-only after module load.
# =============================================================================

STATIC_NAMESPACE: dict[str, Any] = {
    "__builtins__": {},
    "_Markup": Markup,
    "_str": str,
    "_dict": dict,
    "_MISSING": MISSING,
    "_FLUSH": FLUSH,
    "_PARENT": Markup(PARENT_PLACEHOLDER),
    "_LoopCursor": LoopCursor,
}


# =============================================================================
# Variable access
# =============================================================================


def lookup(ctx: dict[str, Any], var_name: str) -> Any:
    """Look up a variable in strict mode.

    Undefined variables raise UndefinedError with the template location,
    a source snippet and a "Did you mean?" suggestion.
    """
    from tessera.environment.exceptions import UndefinedError, build_source_snippet

    try:
        return ctx[var_name]
    except KeyError:
        render_ctx = get_render_context()
        template_name = render_ctx.template_name if render_ctx else None
        lineno = render_ctx.line if render_ctx else None
        source = render_ctx.source if render_ctx else None
        snippet = build_source_snippet(source, lineno) if source and lineno else None
        raise UndefinedError(
            var_name,
            template_name,
            lineno,
            available_names=frozenset(ctx.keys()),
            source_snippet=snippet,
            template_stack=render_ctx.template_stack if render_ctx else None,
        ) from None


def lookup_lenient(ctx: dict[str, Any], var_name: str) -> Any:
    """Look up a variable; undefined names read as None."""
    return ctx.get(var_name)


def safe_getattr(obj: Any, name: str) -> Any:
    """Get attribute with dict fallback and None-safe handling.

    Resolution order:
    - Mappings: subscript first (user data), getattr fallback (methods).
      Keys like ``items`` or ``get`` resolve to user data, not dict methods.
    - Objects: getattr first, subscript fallback.

    Missing attributes and attributes of None read as None.
    """
    if obj is None:
        return None
    if isinstance(obj, Mapping) and not isinstance(obj, ComponentAttributes):
        try:
            return obj[name]
        except KeyError:
            return getattr(obj, name, None)
    try:
        return getattr(obj, name)
    except AttributeError:
        try:
            return obj[name]
        except (KeyError, TypeError, IndexError):
            return None


def bind(ctx: dict[str, Any], var_name: str, value: Any) -> Any:
    """``(name := value)`` inside a template expression."""
    ctx[var_name] = value
    return value


def restore(ctx: dict[str, Any], var_name: str, previous: Any) -> None:
    """Put back a variable a block rebound (``loop``, ``message``)."""
    if previous is MISSING:
        ctx.pop(var_name, None)
    else:
        ctx[var_name] = previous


# =============================================================================
# Conditionals
# =============================================================================


def isset(value_fn: Callable[[], Any]) -> bool:
    """``@isset(expr)``: defined and not None.

    The expression is passed as a lambda so an undefined name in strict
    mode counts as "not set" instead of raising.
    """
    from tessera.environment.exceptions import UndefinedError

    try:
        value = value_fn()
    except (UndefinedError, LookupError):
        return False
    return value is not None


def is_empty(value_fn: Callable[[], Any]) -> bool:
    """``@empty(expr)``: undefined, None, or falsy."""
    from tessera.environment.exceptions import UndefinedError

    try:
        value = value_fn()
    except (UndefinedError, LookupError):
        return True
    return not value


# =============================================================================
# Sections
# =============================================================================


def yield_section(rc: RenderContext, name: Any, default: Any = None) -> Markup:
    """``@yield(name, default)``: the resolved section, else the escaped default."""
    content = rc.resolve_section(str(name))
    if content is None:
        return html_escape(default)
    return content


# =============================================================================
# Components
# =============================================================================


def snake_keys(attrs: Mapping[str, Any]) -> dict[str, Any]:
    """``user-name`` → ``user_name``: attribute names as template variables."""
    return {key.replace("-", "_"): value for key, value in attrs.items()}


def apply_props(
    ctx: dict[str, Any],
    rc: RenderContext,
    required: tuple[str, ...],
    defaults: Mapping[str, Callable[[], Any]],
    *,
    production: bool = False,
) -> None:
    """Bind declared props and drop them from the ``attributes`` bag.

    Call-site values win; defaults are evaluated only for props the call
    site left unset. A missing required prop raises MissingRequiredPropError
    in development and binds ``''`` with a warning in production. Resolved
    props are published to the component's aware frame.
    """
    from tessera.environment.exceptions import MissingRequiredPropError, build_source_snippet

    component = rc.template_name or "<component>"
    call_site = rc.aware.current()
    declared = (*required, *defaults)

    for prop in declared:
        if prop in call_site:
            ctx[prop] = call_site[prop]
        elif prop in defaults:
            ctx[prop] = defaults[prop]()
        elif production:
            logger.warning("Component %s rendered without required prop %r", component, prop)
            ctx[prop] = ""
        else:
            snippet = build_source_snippet(rc.source, rc.line) if rc.source and rc.line else None
            raise MissingRequiredPropError(
                component,
                prop,
                template_name=rc.template_name,
                lineno=rc.line or None,
                source_snippet=snippet,
                template_stack=rc.template_stack,
            )

    attributes = ctx.get("attributes")
    if isinstance(attributes, ComponentAttributes):
        names = set(declared) | {prop.replace("_", "-") for prop in declared}
        ctx["attributes"] = attributes.without(names)
    rc.aware.publish({prop: ctx[prop] for prop in declared})


def apply_aware(
    ctx: dict[str, Any],
    rc: RenderContext,
    names: Mapping[str, Callable[[], Any]],
) -> None:
    """``@aware``: read values published by ancestor components.

    A value passed at this component's own call site takes precedence,
    then the nearest ancestor frame, then the declared default.
    """
    own = rc.aware.current()
    for name, default in names.items():
        if name in own:
            ctx[name] = own[name]
            continue
        value = rc.aware.lookup(name, MISSING)
        ctx[name] = default() if value is MISSING else value


# =============================================================================
# Forms
# =============================================================================


def _first_message(messages: Any) -> str | None:
    if messages is None:
        return None
    if isinstance(messages, str):
        return messages or None
    for message in messages:
        if message:
            return str(message)
    return None


def error_message(rc: RenderContext, field: Any, bag: Any = None) -> str | None:
    """First validation message for ``field``, or None.

    Errors come from the ``errors`` metadata: ``{field: [messages]}``, or
    ``{bag: {field: [messages]}}`` when a bag name is given.
    """
    errors = rc.get_meta("errors")
    if not isinstance(errors, Mapping):
        return None
    if bag is not None:
        errors = errors.get(str(bag))
        if not isinstance(errors, Mapping):
            return None
    return _first_message(errors.get(str(field)))


# =============================================================================
# Teleports
# =============================================================================


def teleport_script(teleports: list[tuple[str, str]], nonce: str | None = None) -> str:
    """Script relocating teleported content into its target elements.

    Contributions to the same target are concatenated in capture order.
    """
    if not teleports:
        return ""
    grouped: dict[str, list[str]] = {}
    for target, content in teleports:
        grouped.setdefault(target, []).append(content)

    lines = ["(function() {"]
    for target, contents in grouped.items():
        lines.append(
            f"var t = document.querySelector({to_script_json(target)}); "
            f"if (t) {{ t.innerHTML = {to_script_json(''.join(contents))}; }}"
        )
    lines.append("})();")
    nonce_attr = f' nonce="{html_escape(nonce)}"' if nonce else ""
    return f"<script{nonce_attr}>" + "\n".join(lines) + "</script>"
