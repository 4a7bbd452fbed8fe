"""
Merging and overlap tests for half-open busy intervals.
"""

from bisect import bisect_right
from typing import Iterable, List

from .models import TimeRange


def merge_intervals(intervals: Iterable[TimeRange]) -> List[TimeRange]:
    """
    Merge overlapping or adjacent time ranges into a sorted, disjoint list.

    Example: [09:00-10:00, 10:00-11:00, 10:30-12:00] -> [09:00-12:00]

    The input is left untouched.
    """
    sorted_ranges = sorted(intervals, key=lambda r: (r.start, r.end))
    if not sorted_ranges:
        return []

    merged: List[TimeRange] = [sorted_ranges[0]]

    for current in sorted_ranges[1:]:
        last = merged[-1]

        # Adjacent ranges are merged too; they leave no bookable gap.
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeRange(start=last.start, end=current.end)
        else:
            merged.append(current)

    return merged


def overlaps_any(window: TimeRange, merged: List[TimeRange]) -> bool:
    """
    Check whether ``window`` overlaps any range of a merged (sorted,
    disjoint) list. Boundary contact is not an overlap.
    """
    # Ends of a disjoint sorted list are ascending as well.
    index = bisect_right(merged, window.start, key=lambda r: r.end)
    if index == len(merged):
        return False
    return merged[index].start < window.end
