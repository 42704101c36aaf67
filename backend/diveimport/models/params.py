"""
Named parameter list handed to the transform engine alongside a wrapped buffer.

Insertion order matters: templates address parameters by name, while the
Seabear importer overwrites the trailing date/time entries by index.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional


@dataclass
class NamedParameterList:
    """Ordered (name, value) pairs. Duplicate names are allowed."""

    _items: list[tuple[str, str]] = field(default_factory=list)

    def add(self, key: str, value: str) -> None:
        self._items.append((key, value))

    def key(self, index: int) -> str:
        return self._items[index][0]

    def value(self, index: int) -> str:
        return self._items[index][1]

    def set_value(self, index: int, value: str) -> None:
        self._items[index] = (self._items[index][0], value)

    def get(self, key: str) -> Optional[str]:
        """Value of the last entry named key."""
        for name, value in reversed(self._items):
            if name == key:
                return value
        return None

    def resize(self, size: int) -> None:
        """Truncate back to the first size entries."""
        del self._items[size:]

    def copy(self) -> "NamedParameterList":
        return NamedParameterList(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._items)
