"""Built-in inline directives (helpers) and conditions.

Helpers are called with the directive's evaluated arguments and return
the value to emit. A `Markup` result is emitted as-is; anything else is
HTML-escaped like an ordinary ``{{ }}`` echo:

    @csrf                          → <input type="hidden" name="_token" value="...">
    @date(post.published, '%d %b') → 04 Mar
    @class({'active': is_active})  → class="active"

Categories:
**Forms**:
    - `csrf`, `method`, `old`
    - `checked`, `selected`, `disabled`, `readonly`, `required`
**Attributes and data**:
    - `class`, `style`, `json`, `jsonScript`
**Security**:
    - `csp`, `nonce`, `sanitize`
**Debugging**:
    - `dump` (renders nothing outside debug mode)
**Formatting**:
    - `date`, `time`, `datetime`, `humanDate`, `diffForHumans`
    - `number`, `currency`, `percent`
    - `upper`, `lower`, `title`, `ucfirst`, `slug`, `truncate`, `excerpt`
    - `count`, `join`, `default`

Request-scoped values (CSRF token, old input, CSP nonce) are read from the
current RenderContext's metadata; see `tessera.render_context`.

Conditions:
    - `@production ... @endproduction`: the Environment runs in production mode
    - `@env('staging', 'production') ... @endenv`: the mode is one of the names

Custom directives are registered the same way:
    >>> env.directive("money", lambda v: f"${v:,.2f}")
    >>> env.from_string("@money(price)").render(price=1234.5)
    '$1,234.50'
"""

from __future__ import annotations

import math
import pprint
import re
import warnings
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Any

from tessera.escaping import to_script_json
from tessera.render_context import get_render_context
from tessera.utils.html import Markup, html_escape, strip_tags
from tessera.utils.sanitize import sanitize_html

if TYPE_CHECKING:
    from tessera.environment import Environment


def _meta(key: str, default: Any = None) -> Any:
    rc = get_render_context()
    if rc is None:
        return default
    return rc.get_meta(key, default)


# =============================================================================
# Forms
# =============================================================================


def csrf() -> Markup:
    """Hidden CSRF token input.

    The framework supplies the token via ``rc.set_meta("csrf_token", ...)``.

    Warns:
        UserWarning: If no token was provided for this render
    """
    token = _meta("csrf_token")
    if not token:
        warnings.warn(
            "@csrf used but no token provided. The framework should call "
            "render_context.set_meta('csrf_token', token) before rendering.",
            UserWarning,
            stacklevel=2,
        )
        return Markup()
    return Markup(f'<input type="hidden" name="_token" value="{html_escape(token)}">')


def method(verb: Any) -> Markup:
    """Hidden ``_method`` input for PUT/PATCH/DELETE form spoofing."""
    return Markup(f'<input type="hidden" name="_method" value="{html_escape(str(verb).upper())}">')


def old(key: Any, default: Any = "") -> Any:
    """Previously submitted input, by dotted key (``address.city``)."""
    value: Any = _meta("old")
    for part in str(key).split("."):
        if not isinstance(value, Mapping) or part not in value:
            return default
        value = value[part]
    return default if value is None else value


def _when(attribute: str) -> Callable[[Any], Markup]:
    def helper(condition: Any = True) -> Markup:
        return Markup(attribute) if condition else Markup()

    helper.__name__ = attribute
    helper.__doc__ = f"``{attribute}`` when the condition is truthy, else nothing."
    return helper


checked = _when("checked")
selected = _when("selected")
disabled = _when("disabled")
readonly = _when("readonly")
required = _when("required")


# =============================================================================
# Attributes and data
# =============================================================================


def _conditional_items(entries: Any) -> list[str]:
    """``{'a': True, 'b': False}`` / ``['a', {'b': cond}]`` → enabled names."""
    if entries is None:
        return []
    if isinstance(entries, str):
        return [entries] if entries else []
    if isinstance(entries, Mapping):
        return [str(key) for key, enabled in entries.items() if enabled]
    items: list[str] = []
    for item in entries:
        items.extend(_conditional_items(item))
    return items


def class_list(entries: Any) -> Markup:
    """``@class({'btn': True, 'active': is_active})`` → ``class="btn active"``."""
    return Markup(f'class="{html_escape(" ".join(_conditional_items(entries)))}"')


def style_list(entries: Any) -> Markup:
    """``@style({'color: red': is_error})`` → ``style="color: red;"``."""
    declarations = [item.strip().rstrip(";") for item in _conditional_items(entries)]
    body = "; ".join(d for d in declarations if d)
    if body:
        body += ";"
    return Markup(f'style="{html_escape(body)}"')


def json(value: Any) -> Markup:
    """JSON literal that cannot close the enclosing ``<script>``."""
    return Markup(to_script_json(value))


def json_script(value: Any, var: str = "data") -> Markup:
    """``<script>var NAME = {...};</script>`` carrying the render's CSP nonce."""
    if not str(var).isidentifier():
        raise ValueError(f"@jsonScript variable name must be an identifier, got {var!r}")
    nonce = _meta("csp_nonce")
    nonce_attr = f' nonce="{html_escape(nonce)}"' if nonce else ""
    return Markup(f"<script{nonce_attr}>var {var} = {to_script_json(value)};</script>")


# =============================================================================
# Security
# =============================================================================


def csp() -> Markup:
    """Content-Security-Policy meta tag allowing scripts with this render's nonce."""
    nonce = html_escape(_meta("csp_nonce") or "")
    policy = (
        "default-src 'self'; "
        f"script-src 'self' 'nonce-{nonce}'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data:;"
    )
    return Markup(f'<meta http-equiv="Content-Security-Policy" content="{policy}">')


def nonce() -> Markup:
    return html_escape(_meta("csp_nonce") or "")


def sanitize(value: Any, mode: str = "default") -> Markup:
    return sanitize_html(value, mode)


# =============================================================================
# Formatting: dates
# =============================================================================


def _to_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, time):
        return datetime.combine(date.today(), value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return datetime.fromtimestamp(int(text))
    return datetime.fromisoformat(text)


def _format(value: Any, fmt: str) -> str:
    moment = _to_datetime(value)
    return "" if moment is None else moment.strftime(fmt)


def format_date(value: Any, fmt: str = "%Y-%m-%d") -> str:
    """Format a datetime, date, Unix timestamp or ISO-8601 string."""
    return _format(value, fmt)


def format_time(value: Any, fmt: str = "%H:%M:%S") -> str:
    return _format(value, fmt)


def format_datetime(value: Any, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    return _format(value, fmt)


def human_date(value: Any) -> str:
    """``March 4, 2026``"""
    moment = _to_datetime(value)
    if moment is None:
        return ""
    return f"{moment:%B} {moment.day}, {moment.year}"


_UNITS = (
    ("year", 31536000),
    ("month", 2592000),
    ("week", 604800),
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
)


def diff_for_humans(value: Any, now: Any = None) -> str:
    """Relative time: ``3 hours ago``, ``in 2 days``."""
    moment = _to_datetime(value)
    if moment is None:
        return ""
    reference = _to_datetime(now) or datetime.now(moment.tzinfo)
    seconds = int((reference - moment).total_seconds())
    future = seconds < 0
    seconds = abs(seconds)

    amount, unit = seconds, "second"
    for name, size in _UNITS:
        if seconds >= size:
            amount, unit = seconds // size, name
            break
    phrase = f"{amount} {unit}{'' if amount == 1 else 's'}"
    return f"in {phrase}" if future else f"{phrase} ago"


# =============================================================================
# Formatting: numbers
# =============================================================================


def _round_half_up(value: float, decimals: int) -> float:
    factor = 10**decimals
    return math.floor(abs(value) * factor + 0.5) / factor * (1 if value >= 0 else -1)


def format_number(value: Any, decimals: int = 0) -> str:
    """``1234.5`` → ``1,235``; ``format_number(1234.5, 2)`` → ``1,234.50``"""
    number = float(value or 0)
    return f"{_round_half_up(number, int(decimals)):,.{int(decimals)}f}"


CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "NGN": "₦",
    "INR": "₹",
}


def format_currency(amount: Any, currency: str = "USD") -> str:
    """``@currency(9.5)`` → ``$9.50``; unknown codes prefix the code."""
    code = str(currency).upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    return symbol + format_number(amount, 2)


def format_percent(value: Any, decimals: int = 2) -> str:
    return format_number(value, decimals) + "%"


# =============================================================================
# Formatting: strings
# =============================================================================

_WORD_START_RE = re.compile(r"(^|\s)(\S)")
_SLUG_RE = re.compile(r"[^A-Za-z0-9-]+")


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def upper(value: Any) -> str:
    return _text(value).upper()


def lower(value: Any) -> str:
    return _text(value).lower()


def title(value: Any) -> str:
    """Capitalize the first letter of every whitespace-separated word."""
    return _WORD_START_RE.sub(lambda m: m.group(1) + m.group(2).upper(), _text(value).lower())


def ucfirst(value: Any) -> str:
    text = _text(value)
    return text[:1].upper() + text[1:]


def slug(value: Any) -> str:
    """``Hello, World!`` → ``hello-world``"""
    return _SLUG_RE.sub("-", _text(value)).strip("-").lower()


def truncate(value: Any, length: int = 100, end: str = "...") -> str:
    text = _text(value)
    if len(text) <= length:
        return text
    return text[:length] + end


def excerpt(value: Any, length: int = 150) -> str:
    """Tag-free summary cut at a word boundary."""
    text = strip_tags(value)
    if len(text) <= length:
        return text
    cut = text[:length]
    space = cut.rfind(" ")
    if space > 0:
        cut = cut[:space]
    return cut + "..."


def count(value: Any) -> int:
    if value is None:
        return 0
    return len(value)


def join(items: Iterable[Any] | None, separator: str = "") -> str:
    if items is None:
        return ""
    return str(separator).join(_text(item) for item in items)


def default(value: Any, fallback: Any = "") -> Any:
    """``value`` unless it is empty (None, ``''``, 0, empty collection)."""
    return value if value else fallback


# =============================================================================
# Registry tables
# =============================================================================

#: Helpers that do not depend on Environment configuration.
BUILTIN_HELPERS: dict[str, Callable[..., Any]] = {
    "csrf": csrf,
    "method": method,
    "old": old,
    "checked": checked,
    "selected": selected,
    "disabled": disabled,
    "readonly": readonly,
    "required": required,
    "class": class_list,
    "style": style_list,
    "json": json,
    "jsonScript": json_script,
    "csp": csp,
    "nonce": nonce,
    "sanitize": sanitize,
    "date": format_date,
    "time": format_time,
    "datetime": format_datetime,
    "humanDate": human_date,
    "diffForHumans": diff_for_humans,
    "number": format_number,
    "currency": format_currency,
    "percent": format_percent,
    "upper": upper,
    "lower": lower,
    "title": title,
    "ucfirst": ucfirst,
    "slug": slug,
    "truncate": truncate,
    "excerpt": excerpt,
    "count": count,
    "join": join,
    "default": default,
}


def environment_helpers(env: Environment) -> dict[str, Callable[..., Any]]:
    """Built-in helpers plus the ones that read Environment settings."""

    def dump(*values: Any) -> Markup:
        """Pretty-printed values in debug mode; nothing in production."""
        if not env.debug:
            return Markup()
        body = "\n".join(pprint.pformat(value, width=100) for value in values)
        return Markup(f'<pre class="tessera-dump">{html_escape(body)}</pre>')

    helpers = dict(BUILTIN_HELPERS)
    helpers["dump"] = dump
    return helpers


def environment_conditions(env: Environment) -> dict[str, Callable[..., bool]]:
    def production() -> bool:
        return env.production

    def in_env(*names: Any) -> bool:
        flat: list[str] = []
        for name in names:
            if isinstance(name, (list, tuple, set, frozenset)):
                flat.extend(str(n) for n in name)
            else:
                flat.append(str(name))
        return env.mode in flat

    return {"production": production, "env": in_env}
