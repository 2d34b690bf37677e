"""Allow-list HTML sanitizer behind ``@sanitize(html, mode)``.

Tags outside the mode's allow-list are dropped (their text is kept),
``<script>``/``<style>`` elements are dropped with their content, event
handler attributes (``onclick``...) are removed and URL attributes with
script-executing schemes are removed.

Modes:
- ``strict``: no tags at all, text only
- ``basic``: inline emphasis and line breaks
- ``default``: basic plus lists and links
- ``rich``: default plus headings, quotes and code
"""

from __future__ import annotations

from html.parser import HTMLParser
from typing import Any

from tessera.escaping import is_safe_url
from tessera.utils.html import Markup, html_escape

_BASIC = frozenset({"p", "br", "strong", "em", "b", "i"})
_DEFAULT = _BASIC | {"ul", "ol", "li", "a"}
_RICH = _DEFAULT | {"h1", "h2", "h3", "h4", "h5", "h6", "blockquote", "code", "pre"}

ALLOWED_TAGS: dict[str, frozenset[str]] = {
    "strict": frozenset(),
    "basic": _BASIC,
    "default": _DEFAULT,
    "rich": _RICH,
}

_ALLOWED_ATTRIBUTES: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "title", "rel", "target"}),
}

_VOID_TAGS = frozenset({"br"})
_DROP_CONTENT = frozenset({"script", "style", "template", "iframe", "object"})


class _Sanitizer(HTMLParser):
    def __init__(self, allowed: frozenset[str]):
        super().__init__(convert_charrefs=True)
        self._allowed = allowed
        self._out: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _DROP_CONTENT:
            self._skip_depth += 1
            return
        if self._skip_depth or tag not in self._allowed:
            return
        self._out.append(self._open_tag(tag, attrs))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if self._skip_depth or tag not in self._allowed:
            return
        self._out.append(self._open_tag(tag, attrs))

    def handle_endtag(self, tag: str) -> None:
        if tag in _DROP_CONTENT:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth or tag not in self._allowed or tag in _VOID_TAGS:
            return
        self._out.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._out.append(html_escape(data))

    def _open_tag(self, tag: str, attrs: list[tuple[str, str | None]]) -> str:
        permitted = _ALLOWED_ATTRIBUTES.get(tag, frozenset())
        parts = [tag]
        for name, value in attrs:
            if name not in permitted or value is None:
                continue
            if name == "href" and not is_safe_url(value):
                continue
            parts.append(f'{name}="{html_escape(value)}"')
        return "<" + " ".join(parts) + ">"

    def result(self) -> str:
        self.close()
        return "".join(self._out)


def sanitize_html(value: Any, mode: str = "default") -> Markup:
    """Reduce ``value`` to the tags allowed by ``mode``.

    Raises:
        ValueError: If ``mode`` is unknown
    """
    if value is None:
        return Markup()
    try:
        allowed = ALLOWED_TAGS[mode]
    except KeyError:
        raise ValueError(
            f"Unknown sanitize mode {mode!r}; expected one of {', '.join(ALLOWED_TAGS)}"
        ) from None
    parser = _Sanitizer(allowed)
    parser.feed(str(value))
    return Markup(parser.result())
