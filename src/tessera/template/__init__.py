"""Tessera Template package: compiled template objects ready for rendering."""

from tessera.template.attributes import ComponentAttributes
from tessera.template.core import Template, resolve_pending
from tessera.template.loop_context import UNKNOWN, LoopCursor
from tessera.utils.html import Markup

__all__ = [
    "UNKNOWN",
    "ComponentAttributes",
    "LoopCursor",
    "Markup",
    "Template",
    "resolve_pending",
]
