"""Default global functions and variables for templates.

Template expressions resolve every name against the render context, so
Python builtins are only available when they are globals. The defaults
are side-effect free builtins plus request helpers that read the current
RenderContext's metadata.

Request Helpers:
    Functions exposing request state that frameworks set via
    ``RenderContext.set_meta()``:

        from tessera.render_context import render_context

        with render_context() as rc:
            rc.set_meta("csrf_token", session.csrf_token)
            rc.set_meta("hx_request", request.headers.get("HX-Request") == "true")
            html = env.render("users.index", users=users)

    Templates read them back in expressions:

        @if(hx_request())
            @include('users.table')
        @else
            ...
        @endif
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from tessera.render_context import get_render_context


def csrf_token() -> str:
    """The raw CSRF token for this render (``''`` when none was set).

    For a complete hidden input use ``@csrf``.
    """
    ctx = get_render_context()
    if ctx is None:
        return ""
    return str(ctx.get_meta("csrf_token", "") or "")


def hx_request() -> bool:
    """True when the framework flagged the request as an HTMX request."""
    ctx = get_render_context()
    if ctx is None:
        return False
    return bool(ctx.get_meta("hx_request", False))


def hx_target() -> str | None:
    """Element the HTMX response will be swapped into (``HX-Target``)."""
    ctx = get_render_context()
    if ctx is None:
        return None
    target = ctx.get_meta("hx_target")
    return None if target is None else str(target)


def errors() -> Mapping[str, Any]:
    """Validation errors for this render: ``{field: [messages]}``."""
    ctx = get_render_context()
    bag = ctx.get_meta("errors") if ctx is not None else None
    return bag if isinstance(bag, Mapping) else {}


REQUEST_GLOBALS: dict[str, Any] = {
    "csrf_token": csrf_token,
    "hx_request": hx_request,
    "hx_target": hx_target,
    "errors": errors,
}

# Builtins without side effects or access to the interpreter
BUILTIN_GLOBALS: dict[str, Any] = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "enumerate": enumerate,
    "float": float,
    "int": int,
    "isinstance": isinstance,
    "len": len,
    "list": list,
    "max": max,
    "min": min,
    "range": range,
    "reversed": reversed,
    "round": round,
    "set": set,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
}

DEFAULT_GLOBALS: dict[str, Any] = {**BUILTIN_GLOBALS, **REQUEST_GLOBALS}


__all__ = [
    "BUILTIN_GLOBALS",
    "DEFAULT_GLOBALS",
    "REQUEST_GLOBALS",
    "csrf_token",
    "errors",
    "hx_request",
    "hx_target",
]
