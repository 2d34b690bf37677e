"""Template loaders.

Loaders are the template resolver collaborator: they map a loader-level
template name to its source text and a fingerprint. They implement
`get_source(name)` returning a `TemplateSource` and raise
`TemplateNotFoundError` when the name is unknown.

Built-in Loaders:
- `FileSystemLoader`: Load from filesystem directories
- `DictLoader`: Load from an in-memory dictionary (testing/embedded)
- `ChoiceLoader`: Try multiple loaders in order (theme fallback)
- `PrefixLoader`: Namespace templates by prefix (plugin architectures)
- `PackageLoader`: Load from installed Python packages (importlib.resources)
- `FunctionLoader`: Wrap a callable as a loader

Logical view names (``layouts.app``) are mapped to loader names
(``layouts/app.html``) by the Environment, not by loaders.

Custom Loaders:
    ```python
    class DatabaseLoader:
        def get_source(self, name: str) -> TemplateSource:
            row = db.query("SELECT body FROM views WHERE name = ?", name)
            if not row:
                raise TemplateNotFoundError(f"Template '{name}' not found", name=name)
            return TemplateSource.from_text(name, row.body, f"db://{name}")

        def list_templates(self) -> list[str]:
            return [r.name for r in db.query("SELECT name FROM views")]
    ```

Thread-Safety:
All built-in loaders are safe for concurrent `get_source()` calls.

"""

from __future__ import annotations

import hashlib
import importlib.resources
from collections.abc import Callable
from dataclasses import dataclass
from difflib import get_close_matches
from pathlib import Path
from typing import Protocol

from tessera.environment.exceptions import TemplateNotFoundError

#: File suffixes FileSystemLoader.list_templates() reports.
TEMPLATE_SUFFIXES: tuple[str, ...] = (".html", ".tpl", ".xml", ".txt", ".json")


def fingerprint(source: str) -> str:
    """Content fingerprint used to validate compiled artifacts."""
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class TemplateSource:
    """Immutable template source as read from a loader.

    Attributes:
        name: Loader-level template name
        source: Raw template text
        filename: Path or pseudo-path for diagnostics (None if not file-backed)
        fingerprint: Content hash; compiled artifacts are valid only while it matches
    """

    name: str
    source: str
    filename: str | None
    fingerprint: str

    @classmethod
    def from_text(cls, name: str, source: str, filename: str | None = None) -> TemplateSource:
        return cls(name=name, source=source, filename=filename, fingerprint=fingerprint(source))


class Loader(Protocol):
    def get_source(self, name: str) -> TemplateSource: ...

    def list_templates(self) -> list[str]: ...


class FileSystemLoader:
    """Load templates from filesystem directories.

    Directories are searched in order and the first match wins, so a theme
    directory placed before the default one overrides it:
        ```python
        loader = FileSystemLoader(["themes/dark/", "views/"])
        ```

    Names that escape the search directory (``../secrets.html``) are
    rejected as not found.

    Example:
            >>> loader = FileSystemLoader("views/")
            >>> loader.get_source("pages/about.html").filename
            'views/pages/about.html'
    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | list[str | Path],
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    def get_source(self, name: str) -> TemplateSource:
        for base in self._paths:
            path = base / name
            if not path.is_file():
                continue
            if not path.resolve().is_relative_to(base.resolve()):
                raise TemplateNotFoundError(
                    f"Template '{name}' resolves outside {base}", name=name
                )
            return TemplateSource.from_text(name, path.read_text(self._encoding), str(path))

        raise TemplateNotFoundError(
            f"Template '{name}' not found in: {', '.join(str(p) for p in self._paths)}",
            name=name,
        )

    def list_templates(self) -> list[str]:
        templates: set[str] = set()
        for base in self._paths:
            if not base.is_dir():
                continue
            for path in base.rglob("*"):
                if path.is_file() and path.suffix in TEMPLATE_SUFFIXES:
                    templates.add(path.relative_to(base).as_posix())
        return sorted(templates)


class DictLoader:
    """Load templates from an in-memory dictionary.

    Example:
            >>> loader = DictLoader({
            ...     "layouts/app.html": "<main>@yield('content')</main>",
            ...     "home.html": "@extends('layouts.app')@section('content')Hi@endsection",
            ... })
            >>> Environment(loader=loader).render("home")
            '<main>Hi</main>'
    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: dict[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> TemplateSource:
        if name not in self._mapping:
            available = sorted(self._mapping)
            msg = f"Template '{name}' not found"
            matches = get_close_matches(name, available, n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{matches[0]}'?"
            elif available:
                msg += f". Available: {', '.join(available[:10])}"
                if len(available) > 10:
                    msg += f" ... ({len(available)} total)"
            raise TemplateNotFoundError(msg, name=name)
        return TemplateSource.from_text(name, self._mapping[name])

    def list_templates(self) -> list[str]:
        return sorted(self._mapping)


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match."""

    __slots__ = ("_loaders",)

    def __init__(self, loaders: list[Loader]):
        self._loaders = loaders

    def get_source(self, name: str) -> TemplateSource:
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError:
                continue
        raise TemplateNotFoundError(
            f"Template '{name}' not found in any of {len(self._loaders)} loaders", name=name
        )

    def list_templates(self) -> list[str]:
        templates: set[str] = set()
        for loader in self._loaders:
            templates.update(loader.list_templates())
        return sorted(templates)


class PrefixLoader:
    """Namespace templates by prefix, delegating to per-prefix loaders.

    Example:
            >>> loader = PrefixLoader({
            ...     "admin": FileSystemLoader("admin/views/"),
            ...     "mail": DictLoader({"welcome.html": "Hi {{ name }}"}),
            ... })
            >>> env = Environment(loader=loader)
            >>> env.render("mail/welcome", {"name": "Ada"})
            'Hi Ada'
    """

    __slots__ = ("_delimiter", "_mapping")

    def __init__(self, mapping: dict[str, Loader], delimiter: str = "/"):
        self._mapping = mapping
        self._delimiter = delimiter

    def get_source(self, name: str) -> TemplateSource:
        prefix, _, rest = name.partition(self._delimiter)
        loader = self._mapping.get(prefix)
        if loader is None:
            raise TemplateNotFoundError(
                f"Template '{name}': no loader for prefix '{prefix}'. "
                f"Available prefixes: {', '.join(sorted(self._mapping))}",
                name=name,
            )
        found = loader.get_source(rest)
        return TemplateSource(
            name=name, source=found.source, filename=found.filename, fingerprint=found.fingerprint
        )

    def list_templates(self) -> list[str]:
        templates: list[str] = []
        for prefix, loader in sorted(self._mapping.items()):
            templates.extend(f"{prefix}{self._delimiter}{name}" for name in loader.list_templates())
        return sorted(templates)


class PackageLoader:
    """Load templates shipped inside an installed Python package.

    Args:
        package_name: Dotted package name (e.g. ``"my_app"``)
        package_path: Subdirectory holding the templates (default ``"views"``)
        encoding: File encoding
    """

    __slots__ = ("_encoding", "_package_name", "_package_path")

    def __init__(self, package_name: str, package_path: str = "views", encoding: str = "utf-8"):
        self._package_name = package_name
        self._package_path = package_path
        self._encoding = encoding

    def _get_root(self) -> importlib.resources.abc.Traversable:
        root = importlib.resources.files(self._package_name)
        for part in self._package_path.split("/"):
            if part:
                root = root.joinpath(part)
        return root

    def get_source(self, name: str) -> TemplateSource:
        if ".." in name.split("/"):
            raise TemplateNotFoundError(f"Template '{name}' escapes the package", name=name)
        resource = self._get_root().joinpath(name)
        try:
            source = resource.read_text(self._encoding)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise TemplateNotFoundError(
                f"Template '{name}' not found in package "
                f"'{self._package_name}/{self._package_path}'",
                name=name,
            ) from exc
        return TemplateSource.from_text(
            name, source, f"{self._package_name}/{self._package_path}/{name}"
        )

    def list_templates(self) -> list[str]:
        return sorted(self._walk(self._get_root(), ""))

    def _walk(self, traversable: importlib.resources.abc.Traversable, prefix: str) -> list[str]:
        templates: list[str] = []
        if not traversable.is_dir():
            return templates
        for item in traversable.iterdir():
            name = f"{prefix}/{item.name}" if prefix else item.name
            if item.is_file() and not item.name.startswith("."):
                templates.append(name)
            elif item.is_dir() and not item.name.startswith((".", "__")):
                templates.extend(self._walk(item, name))
        return templates


class FunctionLoader:
    """Wrap a callable as a template loader.

    The callable returns the source string, a ``(source, filename)`` tuple,
    or ``None`` when the template does not exist.
    """

    __slots__ = ("_load_func",)

    def __init__(self, load_func: Callable[[str], str | tuple[str, str | None] | None]):
        self._load_func = load_func

    def get_source(self, name: str) -> TemplateSource:
        result = self._load_func(name)
        if result is None:
            raise TemplateNotFoundError(f"Template '{name}' not found", name=name)
        if isinstance(result, str):
            return TemplateSource.from_text(name, result, "<function>")
        source, filename = result
        return TemplateSource.from_text(name, source, filename)

    def list_templates(self) -> list[str]:
        """FunctionLoader cannot enumerate templates."""
        return []
