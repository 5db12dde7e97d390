"""
Tests for the Sensor Ranking module
"""

import random

import pytest

from chairman.control.ranker import (
    DEFAULT_CAPACITY,
    ReadingBuffer,
    heapsort,
    select_max_positive
)


def linear_max_positive(values):
    """Reference selection by a straight scan"""
    positives = [v for v in values if v > 0]
    return max(positives) if positives else None


class TestHeapsort:
    """Test the in-place heap sort"""

    def test_sorts_ascending(self):
        keys = [5, 3, 9, 1, 7, 2, 8]
        heapsort(keys)
        assert keys == [1, 2, 3, 5, 7, 8, 9]

    def test_duplicates_and_negatives(self):
        keys = [4, -2, 4, 0, -7, 11, 0, 4]
        heapsort(keys)
        assert keys == sorted([4, -2, 4, 0, -7, 11, 0, 4])

    def test_empty_and_single(self):
        keys = []
        heapsort(keys)
        assert keys == []
        keys = [42]
        heapsort(keys)
        assert keys == [42]

    def test_none_sorts_first(self):
        keys = [None, 35, None, -4, 42, None]
        heapsort(keys)
        assert keys[:3] == [None, None, None]
        assert keys[3:] == [-4, 35, 42]

    def test_random_inputs(self):
        rng = random.Random(1234)
        for _ in range(200):
            keys = [rng.randint(-50, 120) for _ in range(rng.randint(0, DEFAULT_CAPACITY))]
            expected = sorted(keys)
            heapsort(keys)
            assert keys == expected


class TestReadingBuffer:
    """Test the per-cycle reading buffer"""

    def test_initially_empty(self):
        buffer = ReadingBuffer()
        assert buffer.capacity == 24
        assert buffer.slots == [None] * 24
        assert len(buffer) == 0

    def test_fill(self):
        buffer = ReadingBuffer(4)
        assert buffer.fill([30, 40]) == 2
        assert buffer.slots == [30, 40, None, None]
        assert list(buffer) == [30, 40]

    def test_fill_respects_capacity(self):
        buffer = ReadingBuffer(3)
        assert buffer.fill([1, 2, 3, 4, 5]) == 3
        assert buffer.slots == [1, 2, 3]

    def test_invalid_capacity(self):
        with pytest.raises(ValueError, match="Invalid capacity"):
            ReadingBuffer(0)


class TestSelection:
    """Test selection of the hottest valid reading"""

    def test_selects_maximum(self):
        buffer = ReadingBuffer(24)
        buffer.fill([0, 0, 35, 0, 42, 0])
        assert select_max_positive(buffer) == 42

    def test_no_positive_reading(self):
        buffer = ReadingBuffer(24)
        buffer.fill([0, -5, 0, -1])
        assert select_max_positive(buffer) is None

    def test_empty_buffer(self):
        assert select_max_positive(ReadingBuffer(24)) is None

    def test_selection_leaves_buffer_untouched(self):
        buffer = ReadingBuffer(4)
        buffer.fill([50, 20, 30])
        select_max_positive(buffer)
        assert buffer.slots == [50, 20, 30, None]

    def test_matches_linear_scan(self):
        rng = random.Random(42)
        for _ in range(300):
            values = [rng.randint(-30, 100) for _ in range(rng.randint(0, 24))]
            buffer = ReadingBuffer(24)
            buffer.fill(values)
            assert select_max_positive(buffer) == linear_max_positive(values)
