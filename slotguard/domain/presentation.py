"""
Display helpers for candidate slots.
"""

from typing import Dict, Iterable, List

import pendulum

from .models import CandidateSlot


def format_slot(slot: CandidateSlot, zone: str) -> str:
    """
    Format a slot's local start and end, e.g. ``9:00 AM - 9:30 AM``.
    """
    start = slot.start.in_timezone(zone)
    end = slot.end.in_timezone(zone)
    return f"{start.format('h:mm A')} - {end.format('h:mm A')}"


def group_slots_by_date(
    slots: Iterable[CandidateSlot],
    zone: str,
) -> Dict[pendulum.Date, List[CandidateSlot]]:
    """
    Group slots by the local calendar date of their start.

    A slot at 23:30 local time belongs to that local day even when its UTC
    date is already the next one.
    """
    grouped: Dict[pendulum.Date, List[CandidateSlot]] = {}

    for slot in slots:
        date_key = slot.start.in_timezone(zone).date()
        grouped.setdefault(date_key, []).append(slot)

    return grouped


def format_date_heading(day: pendulum.Date) -> str:
    """Heading such as ``Monday, December 8``."""
    return day.format("dddd, MMMM D")
