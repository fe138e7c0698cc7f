"""Bounded most-recent-first sample window."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from schooltrack.models.location import LocationSample


class RecentWindow:
    """Fixed-capacity list of samples, newest first.

    :meth:`push` prepends and drops the oldest entry once full;
    :meth:`replace` loads a freshly fetched batch (assumed newest first).
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._items: deque[LocationSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        assert self._items.maxlen is not None  # noqa: S101
        return self._items.maxlen

    def push(self, sample: LocationSample) -> None:
        self._items.appendleft(sample)

    def replace(self, samples: Iterable[LocationSample]) -> None:
        self._items.clear()
        for sample in samples:
            if len(self._items) == self.capacity:
                break
            self._items.append(sample)

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> list[LocationSample]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[LocationSample]:
        return iter(list(self._items))
