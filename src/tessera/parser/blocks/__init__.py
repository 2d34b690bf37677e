"""Block parsing mixins for the Parser.

- control_flow: conditionals, @switch and loops
- template_structure: inheritance, sections, stacks, includes, @once
- components: components, slots, props, fragments, teleports, caching, @error

Uses inline TYPE_CHECKING declarations for host attributes.

"""

from __future__ import annotations

from tessera.parser.blocks.components import ComponentBlockMixin
from tessera.parser.blocks.control_flow import ControlFlowBlockMixin
from tessera.parser.blocks.template_structure import TemplateStructureBlockMixin, trim_nodes

__all__ = [
    "ComponentBlockMixin",
    "ControlFlowBlockMixin",
    "TemplateStructureBlockMixin",
    "trim_nodes",
]
