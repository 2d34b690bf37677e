"""Template tree nodes.

Immutable frozen dataclasses produced by the parser and consumed by the
inheritance resolver and the compiler. Expressions are Python ``ast.expr``
trees; the compiler rewrites their name lookups against the render context.
"""

from tessera.nodes.base import Expr, Node
from tessera.nodes.components import (
    Aware,
    Cache,
    Component,
    Error,
    Fragment,
    Props,
    Slot,
    Teleport,
)
from tessera.nodes.control_flow import Break, Case, Continue, For, If, Switch, While
from tessera.nodes.output import Data, Flush, Helper, Output
from tessera.nodes.structure import (
    Discard,
    Extends,
    Include,
    InlineSection,
    Once,
    Origin,
    Parent,
    Push,
    Section,
    Stack,
    Template,
    Yield,
)

__all__ = [
    "Aware",
    "Break",
    "Cache",
    "Case",
    "Component",
    "Continue",
    "Data",
    "Discard",
    "Error",
    "Expr",
    "Extends",
    "Flush",
    "For",
    "Fragment",
    "Helper",
    "If",
    "Include",
    "InlineSection",
    "Node",
    "Once",
    "Origin",
    "Output",
    "Parent",
    "Props",
    "Push",
    "Section",
    "Slot",
    "Stack",
    "Switch",
    "Teleport",
    "Template",
    "While",
    "Yield",
]
