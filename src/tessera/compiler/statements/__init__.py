"""Statement compilation for the tessera compiler.

One mixin per directive family; `StatementCompilationMixin` combines them
for the Compiler.
"""

from __future__ import annotations

from tessera.compiler.statements.basic import BasicStatementMixin
from tessera.compiler.statements.caching import CachingMixin
from tessera.compiler.statements.components import ComponentMixin
from tessera.compiler.statements.control_flow import ControlFlowMixin
from tessera.compiler.statements.special_blocks import SpecialBlockMixin
from tessera.compiler.statements.template_structure import TemplateStructureMixin


class StatementCompilationMixin(
    BasicStatementMixin,
    ControlFlowMixin,
    TemplateStructureMixin,
    ComponentMixin,
    SpecialBlockMixin,
    CachingMixin,
):
    """Combined mixin for statement compilation."""


__all__ = [
    "BasicStatementMixin",
    "CachingMixin",
    "ComponentMixin",
    "ControlFlowMixin",
    "SpecialBlockMixin",
    "StatementCompilationMixin",
    "TemplateStructureMixin",
]
