"""Loop iteration metadata for ``@foreach``, ``@forelse`` and ``@for`` blocks."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sized
from typing import Any


class _Unknown:
    """Sentinel for loop values that depend on an unknown sequence length.

    Falsy, so ``@if(loop.last)`` checks treat an unknown length as
    "not last". Renders as the empty string.
    """

    __slots__ = ()
    _instance: _Unknown | None = None

    def __new__(cls) -> _Unknown:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return ""

    def __html__(self) -> str:
        return ""

    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN: Any = _Unknown()


class LoopCursor:
    """Loop iteration metadata accessible as ``loop`` inside loop bodies.

    Properties:
        index: 0-based position
        iteration: 1-based iteration count
        count: Total number of items, or UNKNOWN for unsized iterables
        remaining: Items left after the current one, or UNKNOWN
        first: True on the first iteration
        last: True on the final iteration (UNKNOWN when the length is unknown)
        even / odd: Parity of ``iteration``
        depth: Nesting level, 1 for the outermost loop
        parent: Cursor of the enclosing loop, or None

    Generators and other lazy iterables are consumed lazily; only their
    length-dependent properties are unavailable.

    Example:
            ```
            @foreach(users as user)
                {{ user.name }}@unless(loop.last), @endunless
            @endforeach
            ```
    """

    __slots__ = ("_count", "_index", "_items", "_pairs", "iterated", "parent")

    def __init__(self, items: Iterable[Any] | None, parent: Any = None, *, pairs: bool = False) -> None:
        if items is None:
            items = ()
        self._items = items
        self._pairs = pairs
        self._count: int | None = len(items) if isinstance(items, Sized) else None
        self._index = -1
        self.parent: LoopCursor | None = parent if isinstance(parent, LoopCursor) else None
        self.iterated = False

    def __iter__(self) -> Iterator[Any]:
        items: Iterable[Any] = self._items
        if self._pairs:
            items = items.items() if isinstance(items, Mapping) else enumerate(items)
        for item in items:
            self._index += 1
            self.iterated = True
            yield item

    @property
    def index(self) -> int:
        return self._index

    @property
    def iteration(self) -> int:
        return self._index + 1

    @property
    def count(self) -> int | Any:
        return UNKNOWN if self._count is None else self._count

    @property
    def remaining(self) -> int | Any:
        if self._count is None:
            return UNKNOWN
        return self._count - self._index - 1

    @property
    def first(self) -> bool:
        return self._index == 0

    @property
    def last(self) -> bool | Any:
        if self._count is None:
            return UNKNOWN
        return self._index == self._count - 1

    @property
    def even(self) -> bool:
        return self.iteration % 2 == 0

    @property
    def odd(self) -> bool:
        return self.iteration % 2 == 1

    @property
    def depth(self) -> int:
        return 1 if self.parent is None else self.parent.depth + 1

    def __repr__(self) -> str:
        total = "?" if self._count is None else self._count
        return f"<LoopCursor {self.iteration}/{total} depth={self.depth}>"
