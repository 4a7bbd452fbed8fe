"""
Tests for merging busy intervals and overlap checks.
"""

import random

import pendulum

from slotguard.domain.intervals import merge_intervals, overlaps_any
from slotguard.domain.models import TimeRange


def _range(start: str, end: str) -> TimeRange:
    return TimeRange(
        start=pendulum.parse(f"2024-11-25 {start}", tz="UTC"),
        end=pendulum.parse(f"2024-11-25 {end}", tz="UTC"),
    )


class TestMergeIntervals:
    """Tests for merge_intervals."""

    def test_empty(self):
        assert merge_intervals([]) == []

    def test_overlapping_and_adjacent_ranges_merge(self):
        """Test merging of overlapping and adjacent ranges."""
        ranges = [
            _range("09:00", "10:00"),
            _range("10:00", "11:00"),  # Adjacent
            _range("10:30", "12:00"),  # Overlapping
            _range("14:00", "15:00"),  # Separate
        ]

        merged = merge_intervals(ranges)

        assert merged == [_range("09:00", "12:00"), _range("14:00", "15:00")]

    def test_contained_range_is_absorbed(self):
        merged = merge_intervals([_range("09:00", "17:00"), _range("10:00", "11:00")])

        assert merged == [_range("09:00", "17:00")]

    def test_input_is_not_mutated(self):
        ranges = [_range("14:00", "15:00"), _range("09:00", "10:00")]
        snapshot = list(ranges)

        merge_intervals(ranges)

        assert ranges == snapshot

    def test_order_independent_and_idempotent(self):
        ranges = [
            _range("09:00", "09:30"),
            _range("09:15", "10:00"),
            _range("11:00", "11:45"),
            _range("11:45", "12:00"),
            _range("13:00", "13:15"),
        ]
        shuffled = list(ranges)
        random.Random(7).shuffle(shuffled)

        merged = merge_intervals(ranges)

        assert merge_intervals(shuffled) == merged
        assert merge_intervals(merged) == merged
        assert all(a.end < b.start for a, b in zip(merged, merged[1:]))


class TestOverlapsAny:
    """Tests for overlaps_any."""

    def test_no_busy_ranges(self):
        assert not overlaps_any(_range("09:00", "10:00"), [])

    def test_boundary_contact_is_free(self):
        busy = merge_intervals([_range("10:00", "11:00")])

        assert not overlaps_any(_range("09:00", "10:00"), busy)
        assert not overlaps_any(_range("11:00", "12:00"), busy)

    def test_partial_overlap(self):
        busy = merge_intervals([_range("10:00", "11:00"), _range("14:00", "15:00")])

        assert overlaps_any(_range("10:30", "11:30"), busy)
        assert overlaps_any(_range("13:45", "14:15"), busy)

    def test_window_between_busy_ranges(self):
        busy = merge_intervals([_range("09:00", "10:00"), _range("12:00", "13:00")])

        assert not overlaps_any(_range("10:00", "12:00"), busy)

    def test_window_containing_busy_range(self):
        busy = merge_intervals([_range("10:15", "10:20")])

        assert overlaps_any(_range("10:00", "11:00"), busy)

    def test_matches_brute_force(self):
        busy = merge_intervals([
            _range("08:00", "08:45"),
            _range("10:00", "10:30"),
            _range("13:15", "14:00"),
            _range("16:00", "17:30"),
        ])

        for hour in range(7, 18):
            for minute in (0, 15, 30, 45):
                start = pendulum.datetime(2024, 11, 25, hour, minute, tz="UTC")
                window = TimeRange(start=start, end=start.add(minutes=30))
                expected = any(window.overlaps(busy_range) for busy_range in busy)
                assert overlaps_any(window, busy) == expected
