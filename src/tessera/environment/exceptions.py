"""Exceptions for the tessera template system.

Exception Hierarchy:
TemplateError (base)
├── TemplateNotFoundError       # Loader cannot locate a template
├── TemplateSyntaxError         # Compile-time error (lexer, tags, parser)
│   └── CyclicInheritanceError  # @extends chain revisits a template
├── TemplateRuntimeError        # Render-time error with context
│   ├── MissingRequiredPropError
│   ├── FragmentNotFoundError
│   └── AsyncResolutionError    # A pending context value failed to resolve
└── UndefinedError              # Undefined variable access (strict mode)

Compile-time errors abort the whole render. Runtime errors carry the
template name, line, a source snippet and the include/component stack so
development-mode output can show exactly where rendering failed.

Example:
    ```
    T-RUN-001: Undefined variable 'titl' in article.html:5
       |
    >  5 | <h1>{{ titl }}</h1>
       |
      Hint: Did you mean 'title'?
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum
from typing import Any

from tessera.environment import terminal

_DOCS_BASE = "docs/errors.md"


class ErrorCode(Enum):
    """Searchable error codes.

    Format: T-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (parser/tags), INH (inheritance),
    RUN (runtime), TPL (template loading)
    """

    # Lexer errors (T-LEX-xxx)
    UNCLOSED_ECHO = "T-LEX-001"
    UNCLOSED_VERBATIM = "T-LEX-002"
    UNCLOSED_COMMENT = "T-LEX-003"

    # Parser errors (T-PAR-xxx)
    UNEXPECTED_DIRECTIVE = "T-PAR-001"
    UNCLOSED_BLOCK = "T-PAR-002"
    INVALID_EXPRESSION = "T-PAR-003"
    MALFORMED_TAG = "T-PAR-004"
    INVALID_ARGUMENTS = "T-PAR-005"
    MISPLACED_EXTENDS = "T-PAR-006"

    # Inheritance errors (T-INH-xxx)
    CYCLIC_INHERITANCE = "T-INH-001"

    # Runtime errors (T-RUN-xxx)
    UNDEFINED_VARIABLE = "T-RUN-001"
    MISSING_REQUIRED_PROP = "T-RUN-002"
    INCLUDE_DEPTH = "T-RUN-003"
    FRAGMENT_NOT_FOUND = "T-RUN-004"
    ASYNC_RESOLUTION = "T-RUN-005"
    RUNTIME_ERROR = "T-RUN-006"

    # Template loading errors (T-TPL-xxx)
    TEMPLATE_NOT_FOUND = "T-TPL-001"
    SYNTAX_ERROR = "T-TPL-002"

    @property
    def docs_url(self) -> str:
        """Documentation anchor for this error code."""
        return f"{_DOCS_BASE}#{self.value.lower()}"

    @property
    def category(self) -> str:
        """Error category (e.g., 'runtime', 'lexer', 'parser')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "INH": "inheritance",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


def format_template_stack(stack: list[tuple[str, int]] | None) -> str:
    """Format the include/component stack for error messages.

    Example:
        >>> print(format_template_stack([("layouts.app", 12), ("partials.nav", 3)]))
        Template stack:
          • layouts.app:12
          • partials.nav:3
    """
    if not stack:
        return ""

    lines = [terminal.dim_text("Template stack:")]
    for template_name, line_num in stack:
        lines.append(f"  • {terminal.location(f'{template_name}:{line_num}')}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error.

    Attributes:
        lines: (line_number, line_content) pairs around the error.
        error_line: 1-based line number where the error occurred.
        column: Optional column offset for a caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            parts.append(
                terminal.format_source_line(lineno, content, is_error=lineno == self.error_line)
            )
        if self.column is not None:
            caret = " " * self.column + "^"
            parts.append(f"{terminal.dim_text('   |')} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet:
    """Build a SourceSnippet with ``context_lines`` lines on either side."""
    all_lines = source.splitlines()
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


class TemplateError(Exception):
    """Base exception for all template errors.

    Attributes:
        code: ErrorCode for searchable, documentable identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format the error as a short diagnostic without traceback noise."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        parts = [header]
        if self.code:
            parts.append(f"  Docs: {self.code.docs_url}")
        return "\n".join(parts)


class TemplateNotFoundError(TemplateError):
    """No loader could locate the requested template.

    Never rendered as empty output: the error always reaches the caller.
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, message: str, *, name: str | None = None):
        self.name = name
        super().__init__(message)


class TemplateSyntaxError(TemplateError):
    """Compile-time error in template source.

    Raised for unterminated directives and echoes, unbalanced parentheses,
    malformed tags and invalid expressions. When ``source`` and ``lineno``
    are known the message includes the offending line, and a caret when
    ``col_offset`` is known as well.
    """

    code: ErrorCode | None = ErrorCode.SYNTAX_ERROR

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        col_offset: int | None = None,
        *,
        code: ErrorCode | None = None,
        suggestion: str | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.name = name
        self.filename = filename
        self.source = source
        self.col_offset = col_offset
        self.suggestion = suggestion
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    def _location(self) -> str:
        location = self.filename or self.name or "<template>"
        if self.lineno:
            location += f":{self.lineno}"
            if self.col_offset is not None:
                location += f":{self.col_offset}"
        return location

    def _snippet_lines(self) -> list[str]:
        if not (self.source and self.lineno):
            return []
        lines = self.source.splitlines()
        if not 0 < self.lineno <= len(lines):
            return []
        out = ["   |", f"{self.lineno:>3} | {lines[self.lineno - 1]}"]
        if self.col_offset is not None:
            out.append(f"   | {' ' * self.col_offset}^")
        return out

    def _format_message(self) -> str:
        parts = [f"Syntax Error: {self.message}", f"  --> {self._location()}"]
        parts.extend(self._snippet_lines())
        if self.suggestion:
            parts.append(f"\n  {terminal.hint('Suggestion:')} {self.suggestion}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        code_prefix = f"{self.code.value}: " if self.code else ""
        parts = [f"{code_prefix}{self.message}", f"  --> {self._location()}"]
        snippet = self._snippet_lines()
        if snippet:
            parts.extend([*snippet, "   |"])
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        if self.code:
            parts.append(f"  Docs: {self.code.docs_url}")
        return "\n".join(parts)


class CyclicInheritanceError(TemplateSyntaxError):
    """An ``@extends`` chain revisits a template already in the chain.

    Detected while flattening the chain, before any rendering starts.

    Attributes:
        chain: Template names in extension order, ending with the repeat.
    """

    code: ErrorCode | None = ErrorCode.CYCLIC_INHERITANCE

    def __init__(self, chain: list[str], *, lineno: int | None = None, source: str | None = None):
        self.chain = list(chain)
        super().__init__(
            "Cyclic template inheritance: " + " -> ".join(self.chain),
            lineno=lineno,
            name=self.chain[0] if self.chain else None,
            source=source,
            suggestion="Remove one of the @extends directives so the chain ends at a root layout",
        )


class TemplateRuntimeError(TemplateError):
    """Render-time error with debugging context.

    Output Format:
            ```
            Runtime Error: 'NoneType' object has no attribute 'title'
              Location: article.html:15
              Expression: {{ post.title }}
              Suggestion: Check that 'post' is set before this point
            ```

    Attributes:
        message: Error description
        expression: Template expression that failed
        values: Variable names → values for context
        template_name: Name of the template
        lineno: Line number in template source
        suggestion: Actionable fix suggestion
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        values: dict[str, Any] | None = None,
        template_name: str | None = None,
        lineno: int | None = None,
        suggestion: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[tuple[str, int]] | None = None,
    ):
        self.message = message
        self.expression = expression
        self.values = values or {}
        self.template_name = template_name
        self.lineno = lineno
        self.suggestion = suggestion
        self.source_snippet = source_snippet
        self.template_stack = template_stack or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]

        if self.template_name or self.lineno:
            loc = self.template_name or "<template>"
            if self.lineno:
                loc += f":{self.lineno}"
            parts.append(f"  Location: {terminal.location(loc)}")

        if self.source_snippet:
            parts.append(self.source_snippet.format())

        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))

        if self.expression:
            parts.append(f"  Expression: {self.expression}")

        if self.values:
            parts.append("  Values:")
            for name, value in self.values.items():
                value_repr = repr(value)
                if len(value_repr) > 80:
                    value_repr = value_repr[:77] + "..."
                parts.append(f"    {name} = {value_repr} ({type(value).__name__})")

        if self.suggestion:
            parts.append(f"\n  {terminal.hint('Suggestion:')} {self.suggestion}")

        return "\n".join(parts)

    def format_compact(self) -> str:
        loc = self.template_name or "<template>"
        if self.lineno:
            loc += f":{self.lineno}"
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  Location: {terminal.location(loc)}",
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))
        if self.expression:
            parts.append(f"  Expression: {self.expression}")
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        if self.code:
            parts.append(f"  {terminal.dim_text('Docs:')} {terminal.docs_url(self.code.docs_url)}")
        return "\n".join(parts)


class MissingRequiredPropError(TemplateRuntimeError):
    """A component declared a prop without default and the call site omitted it.

    Only raised in development mode; production mode binds the prop to an
    empty value and logs a warning instead.
    """

    code: ErrorCode | None = ErrorCode.MISSING_REQUIRED_PROP

    def __init__(self, component: str, prop: str, **kwargs: Any):
        self.component = component
        self.prop = prop
        super().__init__(
            f"Component '{component}' requires prop '{prop}'",
            suggestion=f'Pass it at the call site (<{component} {prop}="..."/>) '
            f"or give it a default in @props",
            **kwargs,
        )


class FragmentNotFoundError(TemplateRuntimeError):
    """A partial render asked for a fragment the template never produced."""

    code: ErrorCode | None = ErrorCode.FRAGMENT_NOT_FOUND

    def __init__(self, fragment: str, available: list[str] | None = None, **kwargs: Any):
        self.fragment = fragment
        self.available = sorted(available or [])
        suggestion = None
        if self.available:
            matches = get_close_matches(fragment, self.available, n=1, cutoff=0.6)
            if matches:
                suggestion = f"Did you mean '{matches[0]}'?"
            else:
                suggestion = "Available fragments: " + ", ".join(self.available)
        super().__init__(f"Fragment '{fragment}' not found", suggestion=suggestion, **kwargs)


class AsyncResolutionError(TemplateRuntimeError):
    """A pending context value failed while being awaited.

    The original exception is chained as ``__cause__``; the failed value is
    never replaced with an empty one.

    Attributes:
        key: Context key whose value failed to resolve.
    """

    code: ErrorCode | None = ErrorCode.ASYNC_RESOLUTION

    def __init__(self, key: str, cause: BaseException, **kwargs: Any):
        self.key = key
        self.cause = cause
        super().__init__(
            f"Pending value '{key}' failed: {type(cause).__name__}: {cause}",
            **kwargs,
        )


class UndefinedError(TemplateError):
    """Raised when a strict-mode template reads an undefined variable.

    When ``available_names`` is provided a "Did you mean?" suggestion is
    added for close matches.

    To fix:
        - Pass the variable in render(): env.render("page", {"title": ...})
        - Guard it: @isset(title) {{ title }} @endisset
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_VARIABLE

    def __init__(
        self,
        name: str,
        template: str | None = None,
        lineno: int | None = None,
        available_names: frozenset[str] | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[tuple[str, int]] | None = None,
    ):
        self.name = name
        self.template = template or "<template>"
        self.lineno = lineno
        self._available_names = available_names
        self.source_snippet = source_snippet
        self.template_stack = template_stack or []
        super().__init__(self._format_message())

    def _headline(self) -> str:
        location = self.template
        if self.lineno:
            location += f":{self.lineno}"
        msg = f"Undefined variable '{self.name}' in {terminal.location(location)}"
        if self._available_names:
            matches = get_close_matches(self.name, self._available_names, n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{terminal.suggestion(matches[0])}'?"
        return msg

    def _hint(self) -> str:
        return f"  {terminal.hint('Hint:')} Use @isset({self.name}) for optional variables"

    def _format_message(self) -> str:
        msg = self._headline()
        if self.source_snippet:
            msg += "\n" + self.source_snippet.format()
        if self.template_stack:
            msg += "\n\n" + format_template_stack(self.template_stack)
        return msg + "\n" + self._hint()

    def format_compact(self) -> str:
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self._headline())
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))
        parts.append(self._hint())
        if self.code:
            parts.append(f"  {terminal.dim_text('Docs:')} {terminal.docs_url(self.code.docs_url)}")
        return "\n".join(parts)
