"""Inheritance resolution: flatten an ``@extends`` chain into one tree.

A child template contributes only sections and stack pushes; its other
output is dropped. Flattening therefore turns

    child (extends mid) → mid (extends root) → root

into a single body that runs every template in child-first order:

    Discard(child.body)
    Discard(mid.body)
    Origin("root")
    *root.body

Sections keep the first capture per name, so the closest definition wins
and ``@parent`` resolves against the later (ancestor) captures.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from tessera.environment.exceptions import CyclicInheritanceError
from tessera.nodes import Discard, Origin, Template

logger = logging.getLogger(__name__)

#: name → (canonical name, parsed tree, source)
ParentLoader = Callable[[str], tuple[str, Template, str]]


def resolve_inheritance(
    node: Template,
    name: str | None,
    load_parent: ParentLoader,
    source: str | None = None,
) -> tuple[Template, dict[str, str]]:
    """Flatten ``node``'s extends chain.

    Args:
        node: Parsed template, possibly with ``extends`` set
        name: Canonical name of ``node``'s template
        load_parent: Resolves a parent name to its canonical name, tree and source
        source: Source of ``node``, recorded for diagnostics

    Returns:
        The flattened tree (``extends`` cleared) and a mapping of every
        template name in the chain to its source.

    Raises:
        CyclicInheritanceError: A template in the chain extends one of its descendants.
        TemplateNotFoundError: A parent cannot be loaded.
    """
    current_name = name or "<string>"
    sources: dict[str, str] = {}
    if source is not None:
        sources[current_name] = source

    if node.extends is None:
        return node, sources

    chain = [current_name]
    body: list = []
    current = node
    while current.extends is not None:
        extends = current.extends
        parent_name, parent, parent_source = load_parent(extends.template)
        if parent_name in chain:
            raise CyclicInheritanceError(
                [*chain, parent_name],
                lineno=extends.lineno,
                source=sources.get(current_name),
            )
        body.append(
            Discard(current.lineno, current.col_offset, body=current.body, template_name=current_name)
        )
        chain.append(parent_name)
        sources[parent_name] = parent_source
        current, current_name = parent, parent_name

    body.append(Origin(current.lineno, current.col_offset, template_name=current_name))
    body.extend(current.body)
    logger.debug("Resolved inheritance chain %s", " -> ".join(chain))
    return Template(node.lineno, node.col_offset, body=tuple(body), extends=None), sources
