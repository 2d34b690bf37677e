"""HTML-safe strings and body/attribute escaping.

`Markup` marks text that is already safe HTML (rendered sections, slots,
attribute bags, form helpers). Everything else is escaped on output.

Escaping is a single `str.translate()` pass over the five characters that
matter inside HTML text and quoted attribute values.
"""

from __future__ import annotations

import re
from typing import Any

_ESCAPE_TABLE = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&#34;",
        "'": "&#39;",
    }
)

_TAG_RE = re.compile(r"<[^>]*>")


class Markup(str):
    """A string that is safe to emit without escaping.

    Concatenating a Markup with a plain string escapes the plain side, so
    safety is preserved through ``+`` and ``join``:

        >>> Markup("<b>") + "<i>"
        Markup('<b>&lt;i&gt;')
    """

    __slots__ = ()

    def __new__(cls, value: Any = "") -> Markup:
        if hasattr(value, "__html__") and not isinstance(value, str):
            value = value.__html__()
        return super().__new__(cls, value)

    def __html__(self) -> Markup:
        return self

    def __add__(self, other: str) -> Markup:
        if isinstance(other, str):
            return Markup(str.__add__(self, html_escape(other)))
        return NotImplemented

    def __radd__(self, other: str) -> Markup:
        if isinstance(other, str):
            return Markup(str.__add__(html_escape(other), self))
        return NotImplemented

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"

    def join(self, seq: Any) -> Markup:
        return Markup(str.join(self, (html_escape(item) for item in seq)))

    @classmethod
    def escape(cls, value: Any) -> Markup:
        """Escape ``value`` unless it is already safe."""
        return html_escape(value)


def html_escape(value: Any) -> Markup:
    """Escape a value for HTML text or a quoted attribute.

    ``None`` renders as the empty string; objects exposing ``__html__``
    (Markup, attribute bags) pass through unchanged.
    """
    if value is None:
        return Markup()
    if hasattr(value, "__html__"):
        return Markup(value.__html__())
    return Markup(str.translate(str(value), _ESCAPE_TABLE))


def strip_tags(value: Any) -> str:
    """Remove tags and collapse whitespace."""
    if value is None:
        return ""
    return " ".join(_TAG_RE.sub("", str(value)).split())
