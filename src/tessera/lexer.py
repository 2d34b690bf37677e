"""Lexer: template source → flat token stream.

Recognized constructs:

- ``{{ expr }}``          escaped echo (context selected from position)
- ``{!! expr !!}``        raw echo
- ``{{{ expr }}}``        raw echo (legacy spelling)
- ``{{-- ... --}}``       comment, dropped
- ``<!--# ... #-->``      hidden comment, dropped
- ``@name`` / ``@name(args)``  directive call, when ``name`` is registered
- ``@verbatim ... @endverbatim``  literal region
- ``@{{ ... }}`` / ``@@name``     literal escapes for the two syntaxes

Everything else is literal text. ``@word`` that is not a registered
directive (``@media``, ``@keyframes``, the host in ``user@example.com``)
stays literal. A registered name is a directive wherever it appears, so
``yes@else`` closes a branch; write ``@@`` for a literal ``@`` there.

Directive arguments are matched with a quote-aware balanced-parenthesis
scan. An unterminated argument list is left as literal text rather than
raising; the parser then reports the construct it leaves unbalanced.

Escaping context:
`HtmlContextTracker` follows the literal markup between echoes and assigns
each echo token a context: ``script`` inside ``<script>``, ``css`` inside
``<style>`` or ``style=""``, ``url`` at the start of an ``href``/``src``
value, ``query`` after a ``?`` in such a value, ``attribute`` elsewhere in a
tag, ``body`` otherwise. Echoes in unquoted attribute values get the
``unquoted`` variant of their context, which also encodes whitespace and ``=``.

"""

from __future__ import annotations

import re
from bisect import bisect_right
from collections.abc import Callable, Iterator

from tessera._types import Token, TokenType
from tessera.environment.exceptions import ErrorCode, TemplateSyntaxError
from tessera.escaping import URL_ATTRIBUTES

_SPECIAL_RE = re.compile(r"\{\{|\{!!|@|<!--#")
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INLINE_WS_RE = re.compile(r"[ \t]*")
_COMMENT_RE = re.compile(r"\{\{--.*?--\}\}|<!--#.*?#-->", re.DOTALL)
_ENDVERBATIM_RE = re.compile(r"@endverbatim(?![A-Za-z0-9_])")
_QUOTES = "'\""
# Echo contexts inside an unquoted attribute value
_UNQUOTED_CONTEXTS = {"attribute": "unquoted", "url": "unquoted_url", "css": "unquoted_css"}


def strip_comments(source: str) -> str:
    """Remove ``{{-- --}}`` and ``<!--# #-->`` comments.

    Runs to a fixpoint so removing one comment cannot splice together the
    delimiters of a new one; applying it twice equals applying it once.
    """
    while True:
        stripped = _COMMENT_RE.sub("", source)
        if stripped == source:
            return stripped
        source = stripped


def _skip_string(source: str, pos: int) -> int:
    """Return the index just past the string literal starting at ``pos``."""
    quote = source[pos]
    i = pos + 1
    end = len(source)
    while i < end:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return -1


def find_closing_paren(source: str, open_pos: int) -> int:
    """Return the index of the ``)`` matching the ``(`` at ``open_pos``.

    Nested parentheses of any depth and parentheses inside string literals
    are handled. Returns -1 when the group is never closed.

    Example:
        >>> find_closing_paren("@if(f(a, ')'))", 3)
        13
    """
    depth = 0
    i = open_pos
    end = len(source)
    while i < end:
        ch = source[i]
        if ch in _QUOTES:
            i = _skip_string(source, i)
            if i < 0:
                return -1
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _find_echo_end(source: str, start: int, closer: str) -> int:
    """Find ``closer`` after ``start``, skipping string literals and nested braces."""
    depth = 0
    i = start
    end = len(source)
    first = closer[0]
    while i < end:
        ch = source[i]
        if ch in _QUOTES:
            i = _skip_string(source, i)
            if i < 0:
                return -1
            continue
        if depth == 0 and ch == first and source.startswith(closer, i):
            return i
        if ch == "{":
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
        i += 1
    return -1


class HtmlContextTracker:
    """Incremental HTML state machine used to pick echo escaping contexts.

    Only literal template text is fed in; echo output is represented by
    `feed_value()` so a second echo in the same attribute value knows it is
    no longer at the start of a URL.
    """

    __slots__ = ("_attr", "_closing", "_quote", "_state", "_tag", "_value")

    TEXT = "text"
    TAG = "tag"
    AFTER_NAME = "after_name"
    BEFORE_VALUE = "before_value"
    QUOTED = "quoted"
    UNQUOTED = "unquoted"
    SCRIPT = "script"
    STYLE = "style"
    COMMENT = "comment"

    _TAG_OPEN_RE = re.compile(r"<(/?)([A-Za-z][A-Za-z0-9:_-]*)")
    _ATTR_NAME_RE = re.compile(r"[^\s=>/\"']+")
    _SCRIPT_END_RE = re.compile(r"</script", re.IGNORECASE)
    _STYLE_END_RE = re.compile(r"</style", re.IGNORECASE)

    def __init__(self) -> None:
        self._state = self.TEXT
        self._tag = ""
        self._closing = False
        self._attr = ""
        self._quote = ""
        self._value = ""

    @property
    def context(self) -> str:
        state = self._state
        if state == self.SCRIPT:
            return "script"
        if state == self.STYLE:
            return "css"
        if state == self.QUOTED:
            return self._value_context()
        if state in (self.UNQUOTED, self.BEFORE_VALUE):
            context = self._value_context()
            return _UNQUOTED_CONTEXTS.get(context, context)
        if state in (self.TAG, self.AFTER_NAME):
            return "attribute"
        return "body"

    def _value_context(self) -> str:
        attr = self._attr
        if attr == "style":
            return "css"
        if attr in URL_ATTRIBUTES or attr.endswith(":href"):
            if not self._value.strip():
                return "url"
            if "?" in self._value:
                return "query"
        return "attribute"

    def feed_value(self) -> None:
        """Record that an echo wrote into the current attribute value."""
        if self._state == self.BEFORE_VALUE:
            self._value = ""
            self._state = self.UNQUOTED
        if self._state in (self.QUOTED, self.UNQUOTED):
            self._value += "\x00"

    def feed(self, text: str) -> None:
        i = 0
        end = len(text)
        while i < end:
            state = self._state
            if state == self.TEXT:
                j = text.find("<", i)
                if j < 0:
                    return
                if text.startswith("<!--", j):
                    self._state = self.COMMENT
                    i = j + 4
                    continue
                m = self._TAG_OPEN_RE.match(text, j)
                if m is None:
                    i = j + 1
                    continue
                self._closing = bool(m.group(1))
                self._tag = m.group(2).lower()
                self._state = self.TAG
                i = m.end()
            elif state == self.COMMENT:
                j = text.find("-->", i)
                if j < 0:
                    return
                self._state = self.TEXT
                i = j + 3
            elif state in (self.SCRIPT, self.STYLE):
                pattern = self._SCRIPT_END_RE if state == self.SCRIPT else self._STYLE_END_RE
                m = pattern.search(text, i)
                if m is None:
                    return
                self._closing = True
                self._tag = "script" if state == self.SCRIPT else "style"
                self._state = self.TAG
                i = m.end()
            elif state == self.QUOTED:
                j = text.find(self._quote, i)
                if j < 0:
                    self._value += text[i:]
                    return
                self._value += text[i:j]
                self._state = self.TAG
                i = j + 1
            elif state == self.UNQUOTED:
                ch = text[i]
                if ch.isspace():
                    self._state = self.TAG
                elif ch == ">":
                    self._close_tag()
                else:
                    self._value += ch
                i += 1
            elif state == self.BEFORE_VALUE:
                ch = text[i]
                if ch.isspace():
                    i += 1
                elif ch in _QUOTES:
                    self._quote = ch
                    self._value = ""
                    self._state = self.QUOTED
                    i += 1
                elif ch == ">":
                    self._close_tag()
                    i += 1
                else:
                    self._value = ""
                    self._state = self.UNQUOTED
            else:
                # TAG / AFTER_NAME
                ch = text[i]
                if ch.isspace() or ch == "/":
                    i += 1
                elif ch == ">":
                    self._close_tag()
                    i += 1
                elif ch == "=" and state == self.AFTER_NAME:
                    self._state = self.BEFORE_VALUE
                    i += 1
                else:
                    m = self._ATTR_NAME_RE.match(text, i)
                    if m is None:
                        i += 1
                        continue
                    self._attr = m.group(0).lower()
                    self._value = ""
                    self._state = self.AFTER_NAME
                    i = m.end()

    def _close_tag(self) -> None:
        if not self._closing and self._tag == "script":
            self._state = self.SCRIPT
        elif not self._closing and self._tag == "style":
            self._state = self.STYLE
        else:
            self._state = self.TEXT
        self._attr = ""
        self._value = ""


class Lexer:
    """Tokenize template source.

    Args:
        source: Template text (after tag expansion)
        is_directive: Predicate deciding whether ``@name`` is a directive
        name: Template name for diagnostics
    """

    __slots__ = ("_data", "_data_start", "_is_directive", "_name", "_newlines", "_source", "_tracker")

    def __init__(
        self,
        source: str,
        *,
        is_directive: Callable[[str], bool],
        name: str | None = None,
    ):
        self._source = source
        self._is_directive = is_directive
        self._name = name
        self._newlines = [i for i, ch in enumerate(source) if ch == "\n"]
        self._tracker = HtmlContextTracker()
        self._data: list[str] = []
        self._data_start = 0

    def _position(self, offset: int) -> tuple[int, int]:
        index = bisect_right(self._newlines, offset - 1)
        line_start = self._newlines[index - 1] + 1 if index else 0
        return index + 1, offset - line_start

    def _error(self, message: str, offset: int, code: ErrorCode) -> TemplateSyntaxError:
        lineno, col = self._position(offset)
        return TemplateSyntaxError(
            message,
            lineno=lineno,
            name=self._name,
            source=self._source,
            col_offset=col,
            code=code,
        )

    def _add_data(self, text: str, offset: int) -> None:
        if not text:
            return
        if not self._data:
            self._data_start = offset
        self._data.append(text)

    def _flush_data(self) -> Iterator[Token]:
        if self._data:
            text = "".join(self._data)
            self._data = []
            self._tracker.feed(text)
            lineno, col = self._position(self._data_start)
            yield Token(TokenType.DATA, text, lineno, col)

    def tokenize(self) -> Iterator[Token]:
        source = self._source
        end = len(source)
        pos = 0

        while pos < end:
            m = _SPECIAL_RE.search(source, pos)
            if m is None:
                self._add_data(source[pos:], pos)
                break
            start = m.start()
            self._add_data(source[pos:start], pos)
            marker = m.group(0)

            if marker == "<!--#":
                close = source.find("#-->", start + 5)
                if close < 0:
                    self._add_data(marker, start)
                    pos = start + 5
                else:
                    pos = close + 4
                continue

            if marker == "{{" and source.startswith("{{--", start):
                close = source.find("--}}", start + 4)
                if close < 0:
                    raise self._error("Unclosed comment", start, ErrorCode.UNCLOSED_COMMENT)
                pos = close + 4
                continue

            if marker in ("{{", "{!!"):
                yield from self._flush_data()
                if source.startswith("{{{", start):
                    opener, closer, kind = "{{{", "}}}", TokenType.RAW_ECHO
                elif marker == "{!!":
                    opener, closer, kind = "{!!", "!!}", TokenType.RAW_ECHO
                else:
                    opener, closer, kind = "{{", "}}", TokenType.ECHO
                body_start = start + len(opener)
                close = _find_echo_end(source, body_start, closer)
                if close < 0:
                    raise self._error(
                        f"Unclosed '{opener}' (expected '{closer}')", start, ErrorCode.UNCLOSED_ECHO
                    )
                lineno, col = self._position(start)
                context = "raw" if kind is TokenType.RAW_ECHO else self._tracker.context
                yield Token(kind, source[body_start:close].strip(), lineno, col, context=context)
                self._tracker.feed_value()
                pos = close + len(closer)
                continue

            # marker == "@"
            pos = yield from self._lex_at(start)

        yield from self._flush_data()
        lineno, col = self._position(end)
        yield Token(TokenType.EOF, "", lineno, col)

    def _lex_at(self, start: int) -> Iterator[Token]:
        """Lex the construct starting with ``@`` at ``start``; return the next position."""
        source = self._source

        if source.startswith("@{{", start):
            close = _find_echo_end(source, start + 3, "}}")
            if close < 0:
                raise self._error("Unclosed '@{{'", start, ErrorCode.UNCLOSED_ECHO)
            self._add_data(source[start + 1 : close + 2], start)
            return close + 2

        if source.startswith("@@", start):
            m = _NAME_RE.match(source, start + 2)
            if m is not None:
                self._add_data("@" + m.group(0), start)
                return m.end()
            self._add_data("@@", start)
            return start + 2

        m = _NAME_RE.match(source, start + 1)
        if m is None:
            self._add_data("@", start)
            return start + 1

        name = m.group(0)
        if not self._is_directive(name):
            self._add_data(source[start : m.end()], start)
            return m.end()

        if name == "verbatim":
            close = _ENDVERBATIM_RE.search(source, m.end())
            if close is None:
                raise self._error("Unclosed @verbatim", start, ErrorCode.UNCLOSED_VERBATIM)
            self._add_data(source[m.end() : close.start()], m.end())
            return close.end()

        pos = m.end()
        args: str | None = None
        ws = _INLINE_WS_RE.match(source, pos)
        after_ws = ws.end() if ws else pos
        if after_ws < len(source) and source[after_ws] == "(":
            close = find_closing_paren(source, after_ws)
            if close < 0:
                # Unterminated argument list: leave it as literal text.
                self._add_data(source[start:pos], start)
                return pos
            args = source[after_ws + 1 : close]
            pos = close + 1

        yield from self._flush_data()
        lineno, col = self._position(start)
        yield Token(TokenType.DIRECTIVE, name, lineno, col, args=args)
        return pos


def tokenize(
    source: str,
    *,
    is_directive: Callable[[str], bool],
    name: str | None = None,
) -> list[Token]:
    """Tokenize ``source`` into a list ending with an EOF token."""
    return list(Lexer(source, is_directive=is_directive, name=name).tokenize())
