"""Context-aware output encoding.

`encode(value, context)` maps a value to a string that is safe for the
position it is emitted at. The compiler picks the context for every
``{{ }}`` echo from where it appears in the markup:

=============  ===========================================================
Context        Used for
=============  ===========================================================
``body``       Element text (default)
``attribute``  Quoted attribute values and bare positions inside a tag
``unquoted``   Unquoted attribute values (also ``unquoted_url``/``_css``)
``url``        The start of ``href``/``src``/``action``... values
``query``      Attribute values after a ``?`` in a URL
``script``     Inside ``<script>``: JSON literal, safe against ``</script>``
``css``        Inside ``<style>`` and ``style=""``
``id``         Explicit ``@id()``: keeps ``[A-Za-z0-9_-]`` only
``raw``        ``{!! !!}`` and ``@raw()``: no encoding at all
=============  ===========================================================

``raw`` is only reachable through a differently spelled construct; an
ordinary echo never selects it.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from typing import Any, Literal
from urllib.parse import quote_plus, urlencode

from tessera.utils.html import Markup, html_escape

EscapeContext = Literal[
    "body", "attribute", "unquoted", "url", "unquoted_url", "query",
    "script", "css", "unquoted_css", "id", "raw",
]

#: Attributes whose value is a URL.
URL_ATTRIBUTES: frozenset[str] = frozenset(
    {
        "href",
        "src",
        "action",
        "formaction",
        "poster",
        "cite",
        "background",
        "longdesc",
        "manifest",
        "xlink:href",
        "hx-get",
        "hx-post",
        "hx-put",
        "hx-patch",
        "hx-delete",
    }
)

_DANGEROUS_SCHEMES = ("javascript:", "vbscript:", "data:", "file:")
_SCHEME_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")
_DANGEROUS_CSS = (
    "expression",
    "javascript",
    "vbscript",
    "url(",
    "import",
    "behavior",
    "binding",
)
_CSS_ALLOWED_RE = re.compile(r"[^a-zA-Z0-9\s#.,;:%()\-_/'\"!+*>~\[\]=]")
_ID_RE = re.compile(r"[^a-zA-Z0-9_-]")

# JSON escapes that keep a literal inert inside <script> and HTML attributes
_SCRIPT_TABLE = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "'": "\\u0027",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


# Characters that end or split an unquoted attribute value
_UNQUOTED_TABLE = str.maketrans(
    {
        " ": "&#32;",
        "\t": "&#9;",
        "\n": "&#10;",
        "\r": "&#13;",
        "\f": "&#12;",
        "=": "&#61;",
        "`": "&#96;",
    }
)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def encode_body(value: Any) -> Markup:
    return html_escape(value)


def encode_attribute(value: Any) -> Markup:
    if value is True:
        return Markup("true")
    if value is False:
        return Markup("false")
    return html_escape(value)


def is_safe_url(value: str) -> bool:
    """Return False for script-executing schemes and non-image data URLs."""
    cleaned = _SCHEME_NOISE_RE.sub("", value).lower()
    for scheme in _DANGEROUS_SCHEMES:
        if cleaned.startswith(scheme):
            return scheme == "data:" and cleaned.startswith("data:image/") and (
                not cleaned.startswith("data:image/svg")
            )
    return True


def encode_url(value: Any) -> Markup:
    """Neutralize dangerous schemes; relative and http(s) URLs pass unchanged."""
    text = _text(value)
    if not is_safe_url(text):
        return Markup("#")
    if isinstance(value, Markup):
        return value
    return html_escape(text)


def encode_query(value: Any) -> Markup:
    if value is None:
        return Markup()
    if isinstance(value, Mapping):
        return Markup(html_escape(urlencode(value, doseq=True)))
    return Markup(quote_plus(str(value)))


def to_script_json(value: Any) -> str:
    """Serialize ``value`` as JSON that cannot close the enclosing element.

    ``"); alert(1); //`` becomes a single JSON string literal, and ``</script>``
    inside any string is emitted as ``\\u003c/script\\u003e``.
    """
    if isinstance(value, Markup):
        value = str(value)
    return json.dumps(value, default=str, ensure_ascii=False).translate(_SCRIPT_TABLE)


def encode_script(value: Any) -> Markup:
    return Markup(to_script_json(value))


def encode_css(value: Any) -> Markup:
    text = _text(value)
    lowered = text.strip().lower()
    if any(keyword in lowered for keyword in _DANGEROUS_CSS):
        return Markup()
    return Markup(_CSS_ALLOWED_RE.sub("", text).replace('"', "&#34;"))


def encode_id(value: Any) -> Markup:
    return Markup(_ID_RE.sub("", _text(value)))


def encode_raw(value: Any) -> Markup:
    return Markup(_text(value))


def _unquoted(encoder: Callable[[Any], Markup]) -> Callable[[Any], Markup]:
    """Wrap ``encoder`` so its output cannot leave an unquoted attribute value.

    Applied after the inner encoder, so Markup values are covered too.
    """

    def encode_unquoted(value: Any) -> Markup:
        return Markup(str(encoder(value)).translate(_UNQUOTED_TABLE))

    return encode_unquoted


ENCODERS: dict[str, Callable[[Any], Markup]] = {
    "body": encode_body,
    "attribute": encode_attribute,
    "unquoted": _unquoted(encode_attribute),
    "url": encode_url,
    "unquoted_url": _unquoted(encode_url),
    "query": encode_query,
    "script": encode_script,
    "css": encode_css,
    "unquoted_css": _unquoted(encode_css),
    "id": encode_id,
    "raw": encode_raw,
}


def encode(value: Any, context: EscapeContext = "body") -> Markup:
    """Encode ``value`` for output ``context``.

    Raises:
        ValueError: If ``context`` is not a known escaping context
    """
    try:
        encoder = ENCODERS[context]
    except KeyError:
        raise ValueError(
            f"Unknown escaping context {context!r}; expected one of {', '.join(ENCODERS)}"
        ) from None
    return encoder(value)
