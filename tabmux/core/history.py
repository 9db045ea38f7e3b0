"""Per-tab output history.

Tab 0 (main) keeps every line. Child tabs keep the most recent `retention`
lines in a fixed-capacity ring buffer; appending past capacity overwrites the
oldest entry.
"""

from __future__ import annotations

from typing import Iterator, Sequence, cast, overload

from instrukt_ai_logging import get_logger

logger = get_logger(__name__)


class RingBuffer(Sequence[str]):
    """Fixed-capacity FIFO of text chunks (array + head index)."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._slots: list[str | None] = [None] * capacity
        self._head = 0  # Index of the oldest entry
        self._size = 0

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def append(self, item: str) -> None:
        capacity = len(self._slots)
        if self._size < capacity:
            self._slots[(self._head + self._size) % capacity] = item
            self._size += 1
            return
        # Full: overwrite the oldest slot and advance head
        self._slots[self._head] = item
        self._head = (self._head + 1) % capacity

    def __len__(self) -> int:
        return self._size

    @overload
    def __getitem__(self, index: int) -> str: ...

    @overload
    def __getitem__(self, index: slice) -> list[str]: ...

    def __getitem__(self, index: int | slice) -> str | list[str]:
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(self._size))]
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError("ring buffer index out of range")
        return cast(str, self._slots[(self._head + index) % len(self._slots)])

    def __iter__(self) -> Iterator[str]:
        for i in range(self._size):
            yield self[i]

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, size={self._size})"


class HistoryStore:
    """History buffers for every tab, created 1:1 with tabs."""

    def __init__(self, retention: int) -> None:
        self.retention = retention
        self._buffers: list[list[str] | RingBuffer] = [[]]

    def add_child(self) -> int:
        """Create a bounded buffer for a new child tab and return its tab index."""
        self._buffers.append(RingBuffer(self.retention))
        return len(self._buffers) - 1

    def append(self, tab: int, data: str) -> None:
        self._buffers[tab].append(data)
        logger.trace("History append tab=%d len=%d", tab, len(self._buffers[tab]))

    def extend(self, tab: int, lines: Sequence[str]) -> None:
        for line in lines:
            self.append(tab, line)

    def get(self, tab: int) -> Sequence[str]:
        """Return the live buffer for rendering (do not mutate)."""
        return self._buffers[tab]

    def __len__(self) -> int:
        return len(self._buffers)
