"""Terminal styling for diagnostics.

ANSI colors for error output with TTY detection and NO_COLOR/FORCE_COLOR
support. Rendered HTML never passes through here; only exception messages
and log output do.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
    "bright_blue": "\033[94m",
}

ColorName = Literal[
    "reset", "bold", "dim", "red", "green", "yellow", "cyan",
    "bright_red", "bright_green", "bright_blue",
]

_ANSI_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    """Decide once whether diagnostics are colorized.

    FORCE_COLOR wins over NO_COLOR; otherwise colors follow stderr being a TTY,
    since diagnostics end up in logs and tracebacks rather than stdout.
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stderr.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    """Return True when diagnostics are colorized."""
    return _USE_COLORS


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap text in ANSI codes, or return it untouched when colors are off."""
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences (used when a message goes into HTML)."""
    return _ANSI_RE.sub("", text)


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    return colorize(text, "green")


def suggestion(text: str) -> str:
    return colorize(text, "bright_green", "bold")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def docs_url(text: str) -> str:
    return colorize(text, "bright_blue")


def format_error_header(code: str | None, message: str) -> str:
    """Prefix a message with its colored error code, when there is one."""
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one numbered source line; the error line gets a '>' marker."""
    marker = ">" if is_error else " "
    number = line_number(f"{marker}{lineno:>3}")
    body = error_line(content) if is_error else dim_text(content)
    return f"{number} | {body}"
