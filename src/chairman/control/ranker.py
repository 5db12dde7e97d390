"""
Sensor Ranking Module

This module holds the per-cycle reading buffer and selects the hottest
valid reading from it using an in-place heap sort.
"""

import logging
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 24


def _key(value: Optional[int]) -> float:
    # Empty slots rank below every reading
    return float("-inf") if value is None else value


def _swap(keys: List[Optional[int]], n: int, m: int) -> None:
    keys[n - 1], keys[m - 1] = keys[m - 1], keys[n - 1]


def heapsort(keys: List[Optional[int]]) -> None:
    """Sort keys ascending in place with a binary max-heap.

    Indices are 1-based inside the heap (parent n // 2, children 2n and
    2n + 1). The heap is built by sifting each new element up, then the
    maximum is repeatedly swapped to the end of the shrinking heap.
    None entries sort before all integers.

    Args:
        keys: Buffer to sort, may contain None for empty slots
    """
    n_keys = len(keys)

    def at(i: int) -> float:
        return _key(keys[i - 1])

    for last in range(1, n_keys + 1):
        n = last
        while n > 1:
            parent = n // 2
            if at(parent) > at(n):
                break
            _swap(keys, parent, n)
            n = parent

    for last in range(n_keys - 1, 0, -1):
        _swap(keys, 1, last + 1)
        n = 1
        while True:
            largest = n
            left = n * 2
            right = left + 1

            if left <= last and at(left) > at(largest):
                largest = left
            if right <= last and at(right) > at(largest):
                largest = right

            if largest == n:
                break

            _swap(keys, largest, n)
            n = largest


class ReadingBuffer:
    """Fixed-capacity buffer of sensor readings for a single control cycle.

    Slots that were not filled hold None so they can never win selection.
    A new buffer is created for every cycle.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError(f"Invalid capacity {capacity}, must be >= 1")
        self.capacity = capacity
        self.slots: List[Optional[int]] = [None] * capacity
        self.filled = 0

    def fill(self, values: Iterable[int]) -> int:
        """Store readings in order, up to the buffer capacity.

        Args:
            values: Integer readings

        Returns:
            Number of readings stored
        """
        for value in values:
            if self.filled >= self.capacity:
                logger.debug(f"Reading buffer full ({self.capacity}), ignoring remaining readings")
                break
            self.slots[self.filled] = value
            self.filled += 1
        return self.filled

    def __len__(self) -> int:
        return self.filled

    def __iter__(self):
        return iter(self.slots[:self.filled])


def select_max_positive(buffer: ReadingBuffer) -> Optional[int]:
    """Select the highest strictly positive reading.

    Sorts the whole buffer, including empty slots, and scans from the
    largest value down. This is equivalent to taking the maximum of the
    positive readings.

    Args:
        buffer: Readings for the current cycle

    Returns:
        Highest reading above zero, or None if there is none
    """
    ranked = list(buffer.slots)
    heapsort(ranked)
    for value in reversed(ranked):
        if value is not None and value > 0:
            return value
    return None
