"""Component attribute bag.

Call-site attributes that a component did not declare with ``@props`` are
collected into ``attributes``, which renders as an HTML attribute list:

    <button {{ attributes.merge({'class': 'btn', 'type': 'button'}) }}>

Merge rule: ``class`` and ``style`` values are space-joined (defaults
first); for every other key the call-site value replaces the default.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from tessera.utils.html import Markup, html_escape

#: Attributes whose default and call-site values are combined on merge.
APPENDABLE = frozenset({"class", "style"})


def _join(first: Any, second: Any, key: str) -> str:
    separator = "; " if key == "style" else " "
    parts = [str(part).strip().rstrip(";") if key == "style" else str(part).strip() for part in (first, second)]
    return separator.join(part for part in parts if part)


class ComponentAttributes(Mapping[str, Any]):
    """Immutable mapping of attribute name → value that renders as HTML.

    ``True`` renders a bare attribute, ``False`` and ``None`` omit it.

    Example:
            >>> bag = ComponentAttributes({"class": "mt-4", "disabled": True})
            >>> str(bag.merge({"class": "btn"}).__html__())
            'class="btn mt-4" disabled'
    """

    __slots__ = ("_attrs",)

    def __init__(self, attrs: Mapping[str, Any] | None = None):
        self._attrs: dict[str, Any] = dict(attrs or {})

    def __getitem__(self, key: str) -> Any:
        return self._attrs[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._attrs)

    def __len__(self) -> int:
        return len(self._attrs)

    def get(self, key: str, default: Any = None) -> Any:
        return self._attrs.get(key, default)

    def has(self, *keys: str) -> bool:
        """True when every key is present."""
        return all(key in self._attrs for key in keys)

    def merge(self, defaults: Mapping[str, Any] | None = None, **extra: Any) -> ComponentAttributes:
        """Combine ``defaults`` with the call-site attributes."""
        base = dict(defaults or {})
        base.update(extra)
        merged = dict(base)
        for key, value in self._attrs.items():
            if key in APPENDABLE and key in base:
                merged[key] = _join(base[key], value, key)
            else:
                merged[key] = value
        return ComponentAttributes(merged)

    def only(self, *keys: str | Iterable[str]) -> ComponentAttributes:
        wanted = _flatten(keys)
        return ComponentAttributes({k: v for k, v in self._attrs.items() if k in wanted})

    def without(self, *keys: str | Iterable[str]) -> ComponentAttributes:
        unwanted = _flatten(keys)
        return ComponentAttributes({k: v for k, v in self._attrs.items() if k not in unwanted})

    # `except` reads better in templates: attributes.except_('class')
    except_ = without

    def class_(self, defaults: Any) -> ComponentAttributes:
        """``merge({'class': defaults})``"""
        return self.merge({"class": defaults})

    def __html__(self) -> Markup:
        parts = []
        for key, value in self._attrs.items():
            if value is None or value is False:
                continue
            if value is True:
                parts.append(str(html_escape(key)))
            else:
                parts.append(f'{html_escape(key)}="{html_escape(value)}"')
        return Markup(" ".join(parts))

    def __str__(self) -> str:
        return str(self.__html__())

    def __bool__(self) -> bool:
        return bool(self._attrs)

    def __repr__(self) -> str:
        return f"ComponentAttributes({self._attrs!r})"


def _flatten(keys: tuple[str | Iterable[str], ...]) -> set[str]:
    out: set[str] = set()
    for key in keys:
        if isinstance(key, str):
            out.add(key)
        else:
            out.update(key)
    return out
