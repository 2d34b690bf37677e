"""HTML-style custom tags → directive text.

Every custom tag is sugar for a directive spelling, so the tag expander is a
text → text pass that runs before lexing:

    <if :condition="user.admin">...<else/>...</if>
    → @if(user.admin)...@else...@endif

    <Alert type="error" :message="msg"/>
    → @component('Alert', {'type': 'error', 'message': msg})@endcomponent

Attribute values prefixed with ``:`` are Python expressions. Unprefixed values
are literal strings; they are passed through unescaped here and escaped when
rendered. A bare attribute (``<Button disabled/>``) is ``True``.

Comments, ``@verbatim`` regions and echoes are swapped for placeholders
before the scan and restored afterwards, so tag-looking text inside them is
never rewritten. Placeholders keep the newline count of the text they
replace, and a rewritten tag keeps its own newlines inside the directive's
argument list, so line numbers survive expansion.

Component tags are PascalCase (``<UserCard>``, ``<User.ProfileCard>``) or
``x-`` prefixed (``<x-user-card>``). Slot tags (``<slot:title>``,
``<slot name="title">``) are only rewritten inside a component or
``<layout>`` body; elsewhere ``<slot>`` is the ordinary HTML element.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from tessera.environment.exceptions import ErrorCode, TemplateSyntaxError
from tessera.lexer import strip_comments

__all__ = ["Attribute", "expand_tags", "is_component_tag", "parse_attributes", "strip_comments"]


@dataclass(frozen=True, slots=True)
class Attribute:
    """One attribute of a custom tag.

    Attributes:
        name: Attribute name without the binding sigil
        value: Raw value text, or None for a bare attribute
        bound: True for ``:name="expr"``
    """

    name: str
    value: str | None
    bound: bool = False

    @property
    def expression(self) -> str:
        """Python expression source for this attribute's value."""
        if self.bound:
            return self.value or "None"
        if self.value is None:
            return "True"
        return repr(self.value)


_ATTRIBUTE_RE = re.compile(
    r"""
    (?P<bound>:)?
    (?P<name>[^\s=/>"':][^\s=/>"']*)
    (?:
        \s*=\s*
        (?:
            "(?P<dq>[^"]*)"
          | '(?P<sq>[^']*)'
          | (?P<uq>[^\s"'>=`]+)
        )
    )?
    """,
    re.VERBOSE,
)


def parse_attributes(text: str) -> list[Attribute]:
    """Parse a tag's attribute text into `Attribute` objects, in source order.

    Example:
        >>> parse_attributes('type="error" :count="n + 1" disabled')
        [Attribute(name='type', value='error', bound=False),
         Attribute(name='count', value='n + 1', bound=True),
         Attribute(name='disabled', value=None, bound=False)]
    """
    attributes: list[Attribute] = []
    pos = 0
    end = len(text)
    while pos < end:
        if text[pos].isspace() or text[pos] == "/":
            pos += 1
            continue
        m = _ATTRIBUTE_RE.match(text, pos)
        if m is None:
            pos += 1
            continue
        value = m.group("dq")
        if value is None:
            value = m.group("sq")
        if value is None:
            value = m.group("uq")
        attributes.append(Attribute(m.group("name"), value, bound=bool(m.group("bound"))))
        pos = m.end()
    return attributes


_COMPONENT_RE = re.compile(r"(?:[A-Z][A-Za-z0-9]*(?:\.[A-Za-z][A-Za-z0-9]*)*|x-[a-z0-9][\w.:-]*)$")


def is_component_tag(name: str) -> bool:
    """True for PascalCase and ``x-`` prefixed tag names."""
    return bool(_COMPONENT_RE.match(name)) and not name.startswith("x-slot")


# ---------------------------------------------------------------------------
# Placeholder protection
# ---------------------------------------------------------------------------

_PROTECT_RE = re.compile(
    r"""
    \{\{--.*?--\}\}
  | <!--\#.*?\#-->
  | (?<!@)@verbatim(?![A-Za-z0-9_]).*?@endverbatim(?![A-Za-z0-9_])
  | \{\{\{.*?\}\}\}
  | \{!!.*?!!\}
  | \{\{.*?\}\}
    """,
    re.DOTALL | re.VERBOSE,
)
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\n*\x00")
_ECHO_BODY_RE = re.compile(r"^(?:\{\{\{(.*)\}\}\}|\{!!(.*)!!\}|\{\{(.*)\}\})$", re.DOTALL)


class _Protected:
    """Swap protected regions for numbered placeholders and back."""

    __slots__ = ("regions",)

    def __init__(self) -> None:
        self.regions: list[str] = []

    def protect(self, source: str) -> str:
        def _sub(m: re.Match[str]) -> str:
            self.regions.append(m.group(0))
            return f"\x00{len(self.regions) - 1}" + "\n" * m.group(0).count("\n") + "\x00"

        return _PROTECT_RE.sub(_sub, source)

    def restore(self, text: str) -> str:
        return _PLACEHOLDER_RE.sub(lambda m: self.regions[int(m.group(1))], text)

    def literal_expression(self, value: str) -> str:
        """Expression for a literal attribute value that may hold echoes.

        ``title="Hi {{ name }}"`` becomes ``('Hi ' + str(name))``.
        """
        parts: list[str] = []
        pos = 0
        for m in _PLACEHOLDER_RE.finditer(value):
            if m.start() > pos:
                parts.append(repr(value[pos : m.start()]))
            region = self.regions[int(m.group(1))]
            echo = _ECHO_BODY_RE.match(region)
            if echo is None or region.startswith("{{--"):
                parts.append(repr(region))
            else:
                body = next(g for g in echo.groups() if g is not None)
                parts.append(f"str({body.strip()})")
            pos = m.end()
        if not parts:
            return repr(value)
        if pos < len(value):
            parts.append(repr(value[pos:]))
        return "(" + " + ".join(parts) + ")"


# ---------------------------------------------------------------------------
# Tag expansion
# ---------------------------------------------------------------------------

_TAG_RE = re.compile(
    r"""
    <(?P<close>/)?
    (?P<name>[A-Za-z][\w.:-]*)
    (?P<attrs>(?:[^>"']|"[^"]*"|'[^']*')*?)
    (?P<self>/)?\s*>
    """,
    re.VERBOSE,
)

_CONTROL_TAGS = frozenset(
    {
        "if", "elseif", "else", "unless", "loop", "forelse", "empty", "while",
        "include", "layout", "fragment", "teleport", "cache", "once", "csp",
        "id", "csrf", "method", "error", "class", "style", "checked",
        "selected", "disabled", "readonly", "required", "slot", "x-slot",
    }
)
_PREFIXED_TAGS = frozenset({"push", "prepend", "pushOnce", "stack", "yield", "slot", "x-slot"})

_CLOSERS = {
    "if": "endif",
    "unless": "endunless",
    "loop": "endforeach",
    "forelse": "endforelse",
    "while": "endwhile",
    "layout": "endlayout",
    "fragment": "endfragment",
    "teleport": "endteleport",
    "cache": "endcache",
    "once": "endonce",
    "error": "enderror",
    "push": "endpush",
    "prepend": "endprepend",
    "pushOnce": "endPushOnce",
    "slot": "endslot",
    "x-slot": "endslot",
}

# Tags that are directives only when the attribute is present; otherwise
# they are ordinary HTML elements.
_OPTIONAL_TAGS = {"style": "map"}

_WHEN_TAGS = frozenset({"checked", "selected", "disabled", "readonly", "required"})


def _directive(name: str, args: str | None, newlines: int) -> str:
    if args is None:
        if not newlines:
            return f"@{name}"
        args = ""
    return f"@{name}({args}" + "\n" * newlines + ")"


class _TagExpander:
    __slots__ = ("_depth", "_name", "_protected", "_source")

    def __init__(self, source: str, protected: _Protected, name: str | None):
        self._source = source
        self._protected = protected
        self._name = name
        # Open component/layout tags; slot tags are rewritten only inside one.
        self._depth = 0

    def _error(self, message: str, offset: int) -> TemplateSyntaxError:
        lineno = self._source.count("\n", 0, offset) + 1
        line_start = self._source.rfind("\n", 0, offset) + 1
        return TemplateSyntaxError(
            message,
            lineno=lineno,
            name=self._name,
            source=self._protected.restore(self._source),
            col_offset=offset - line_start,
            code=ErrorCode.MALFORMED_TAG,
        )

    def expand(self) -> str:
        source = self._source
        out: list[str] = []
        pos = 0
        for m in _TAG_RE.finditer(source):
            replacement = self._rewrite(m)
            if replacement is None:
                continue
            out.append(source[pos : m.start()])
            # "@endif" directly followed by "(" or a word would read as one directive.
            nxt = source[m.end() : m.end() + 1]
            if replacement[-1] != ")" and nxt and (nxt.isalnum() or nxt in "_("):
                replacement += "()"
            elif replacement[-1] != ")" and nxt and nxt in " \t":
                rest = source[m.end() :].lstrip(" \t")
                if rest.startswith("("):
                    replacement += "()"
            out.append(replacement)
            pos = m.end()
        out.append(source[pos:])
        return "".join(out)

    def _rewrite(self, m: re.Match[str]) -> str | None:
        full_name = m.group("name")
        base, colon, suffix = full_name.partition(":")
        closing = bool(m.group("close"))
        newlines = m.group(0).count("\n")

        if base == "slot" or base == "x-slot":
            if base == "slot" and self._depth <= 0:
                return None
            return self._slot(m, suffix, closing, newlines)

        if colon and base in _PREFIXED_TAGS:
            return self._prefixed(m, base, suffix, closing, newlines)

        if is_component_tag(full_name):
            return self._component(m, full_name, closing, newlines)

        if full_name not in _CONTROL_TAGS:
            return None

        if closing:
            closer = _CLOSERS.get(full_name)
            if closer is None or full_name in _OPTIONAL_TAGS:
                return None
            if full_name == "layout":
                self._depth -= 1
            return _directive(closer, None, newlines)

        attrs = {a.name: a for a in parse_attributes(m.group("attrs"))}
        handler = _HANDLERS.get(full_name)
        if handler is None:
            return None
        return handler(self, m, attrs, bool(m.group("self")), newlines)

    def _require(self, m: re.Match[str], attrs: dict[str, Attribute], name: str) -> Attribute:
        attr = attrs.get(name)
        if attr is None:
            raise self._error(
                f"<{m.group('name')}> requires a '{name}' attribute", m.start()
            )
        return attr

    def _text(self, attr: Attribute) -> str:
        """Literal text of an attribute, placeholders restored."""
        return self._protected.restore(attr.value or "")

    def _expr(self, attr: Attribute) -> str:
        if attr.bound or attr.value is None:
            return self._protected.restore(attr.expression)
        return self._protected.literal_expression(attr.value)

    # -- handlers ------------------------------------------------------------

    def _slot(self, m: re.Match[str], suffix: str, closing: bool, newlines: int) -> str:
        if closing:
            return _directive("endslot", None, newlines)
        if suffix:
            name = suffix
        else:
            attrs = {a.name: a for a in parse_attributes(m.group("attrs"))}
            name = self._text(self._require(m, attrs, "name"))
        opened = _directive("slot", repr(name), newlines)
        if m.group("self"):
            return opened + "@endslot"
        return opened

    def _prefixed(
        self, m: re.Match[str], base: str, suffix: str, closing: bool, newlines: int
    ) -> str:
        if closing:
            closer = _CLOSERS.get(base)
            if closer is None:
                raise self._error(f"</{m.group('name')}> has no opening form", m.start())
            return _directive(closer, None, newlines)
        attrs = {a.name: a for a in parse_attributes(m.group("attrs"))}
        stack = repr(suffix)
        if base == "stack":
            return _directive("stack", stack, newlines)
        if base == "yield":
            default = attrs.get("default")
            args = stack if default is None else f"{stack}, {self._expr(default)}"
            return _directive("yield", args, newlines)
        if base == "pushOnce":
            key = attrs.get("key")
            args = stack if key is None else f"{stack}, {self._expr(key)}"
            return _directive("pushOnce", args, newlines)
        return _directive(base, stack, newlines)

    def _component(self, m: re.Match[str], name: str, closing: bool, newlines: int) -> str:
        if name.startswith("x-"):
            name = name[2:]
        if closing:
            self._depth -= 1
            return _directive("endcomponent", None, newlines)
        items = ", ".join(
            f"{a.name!r}: {self._expr(a)}" for a in parse_attributes(m.group("attrs"))
        )
        opened = _directive("component", f"{name!r}, {{{items}}}", newlines)
        if m.group("self"):
            return opened + "@endcomponent"
        self._depth += 1
        return opened


def _conditional(directive: str, attribute: str) -> Callable[..., str]:
    def handler(
        self: _TagExpander,
        m: re.Match[str],
        attrs: dict[str, Attribute],
        self_closing: bool,
        newlines: int,
    ) -> str:
        return _directive(directive, self._expr(self._require(m, attrs, attribute)), newlines)

    return handler


def _bare(directive: str) -> Callable[..., str]:
    def handler(
        self: _TagExpander,
        m: re.Match[str],
        attrs: dict[str, Attribute],
        self_closing: bool,
        newlines: int,
    ) -> str:
        return _directive(directive, None, newlines)

    return handler


def _loop(directive: str) -> Callable[..., str]:
    def handler(
        self: _TagExpander,
        m: re.Match[str],
        attrs: dict[str, Attribute],
        self_closing: bool,
        newlines: int,
    ) -> str:
        items = self._expr(self._require(m, attrs, "items"))
        target = self._text(self._require(m, attrs, "as"))
        return _directive(directive, f"{items} as {target}", newlines)

    return handler


def _named(directive: str, attribute: str) -> Callable[..., str]:
    """Handler for tags whose attribute is a literal name (``<fragment name="x">``)."""

    def handler(
        self: _TagExpander,
        m: re.Match[str],
        attrs: dict[str, Attribute],
        self_closing: bool,
        newlines: int,
    ) -> str:
        return _directive(directive, self._expr(self._require(m, attrs, attribute)), newlines)

    return handler


def _include(self: _TagExpander, m, attrs, self_closing, newlines) -> str:
    view = self._expr(self._require(m, attrs, "view"))
    data = attrs.get("data")
    args = view if data is None else f"{view}, {self._expr(data)}"
    return _directive("include", args, newlines)


def _layout(self: _TagExpander, m, attrs, self_closing, newlines) -> str:
    name = self._expr(self._require(m, attrs, "name"))
    if self_closing:
        return _directive("layout", name, newlines) + "@endlayout"
    self._depth += 1
    return _directive("layout", name, newlines)


def _cache(self: _TagExpander, m, attrs, self_closing, newlines) -> str:
    args = [self._expr(self._require(m, attrs, "key"))]
    ttl = attrs.get("ttl")
    if ttl is None:
        args.append("None")
    elif not ttl.bound and (ttl.value or "").isdigit():
        args.append(ttl.value)
    else:
        args.append(self._expr(ttl))
    tags = attrs.get("tags")
    if tags is not None:
        args.append(self._expr(tags) if tags.bound else repr((tags.value or "").split()))
    return _directive("cache", ", ".join(args), newlines)


def _once(self: _TagExpander, m, attrs, self_closing, newlines) -> str:
    key = attrs.get("key")
    return _directive("once", None if key is None else self._expr(key), newlines)


def _error_tag(self: _TagExpander, m, attrs, self_closing, newlines) -> str:
    opened = _directive("error", self._expr(self._require(m, attrs, "field")), newlines)
    if self_closing:
        return opened + "{{ message }}@enderror"
    return opened


def _style(self: _TagExpander, m, attrs, self_closing, newlines) -> str | None:
    if "map" not in attrs:
        return None
    return _directive("style", self._expr(attrs["map"]), newlines)


def _method(self: _TagExpander, m, attrs, self_closing, newlines) -> str:
    return _directive("method", self._expr(self._require(m, attrs, "type")), newlines)


_HANDLERS: dict[str, Callable[..., str | None]] = {
    "if": _conditional("if", "condition"),
    "elseif": _conditional("elseif", "condition"),
    "unless": _conditional("unless", "condition"),
    "while": _conditional("while", "condition"),
    "else": _bare("else"),
    "empty": _bare("empty"),
    "csp": _bare("csp"),
    "csrf": _bare("csrf"),
    "loop": _loop("foreach"),
    "forelse": _loop("forelse"),
    "include": _include,
    "layout": _layout,
    "fragment": _named("fragment", "name"),
    "teleport": _named("teleport", "to"),
    "cache": _cache,
    "once": _once,
    "id": _named("id", "value"),
    "method": _method,
    "error": _error_tag,
    "class": _conditional("class", "map"),
    "style": _style,
    **{name: _conditional(name, "when") for name in _WHEN_TAGS},
}


def expand_tags(source: str, *, name: str | None = None) -> str:
    """Rewrite custom tags in ``source`` to directive text.

    Args:
        source: Template source
        name: Template name for diagnostics

    Raises:
        TemplateSyntaxError: A custom tag is missing a required attribute
    """
    protected = _Protected()
    text = protected.protect(source)
    if "<" not in text:
        return source
    expanded = _TagExpander(text, protected, name).expand()
    return protected.restore(expanded)
