"""Fixed-capacity history buffer."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Bounded sequence that evicts the oldest item on overflow.

    Appends are O(1). Iteration yields items oldest first.
    """

    __slots__ = ("_items",)

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._items: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        """Maximum number of retained items."""
        maxlen = self._items.maxlen
        assert maxlen is not None
        return maxlen

    @property
    def is_full(self) -> bool:
        """True once further appends start evicting."""
        return len(self._items) == self.capacity

    def append(self, item: T) -> None:
        """Insert an item, evicting the oldest when full."""
        self._items.append(item)

    def latest(self) -> T | None:
        """Return the newest item, or None when empty."""
        if not self._items:
            return None
        return self._items[-1]

    def clear(self) -> None:
        """Drop all items."""
        self._items.clear()

    def to_tuple(self) -> tuple[T, ...]:
        """Copy the contents, oldest first."""
        return tuple(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, size={len(self._items)})"
