"""Environment package: configuration, loaders, directives and errors.

Re-exports the public symbols so ``from tessera.environment import
Environment`` works alongside the submodules.
"""

from tessera.environment.core import Environment
from tessera.environment.exceptions import (
    AsyncResolutionError,
    CyclicInheritanceError,
    ErrorCode,
    FragmentNotFoundError,
    MissingRequiredPropError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    build_source_snippet,
)
from tessera.environment.loaders import (
    ChoiceLoader,
    DictLoader,
    FileSystemLoader,
    FunctionLoader,
    Loader,
    PackageLoader,
    PrefixLoader,
    TemplateSource,
)
from tessera.environment.registry import DirectiveRegistry

__all__ = [
    "AsyncResolutionError",
    "ChoiceLoader",
    "CyclicInheritanceError",
    "DictLoader",
    "DirectiveRegistry",
    "Environment",
    "ErrorCode",
    "FileSystemLoader",
    "FragmentNotFoundError",
    "FunctionLoader",
    "Loader",
    "MissingRequiredPropError",
    "PackageLoader",
    "PrefixLoader",
    "SourceSnippet",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "TemplateSource",
    "TemplateSyntaxError",
    "UndefinedError",
    "build_source_snippet",
]
