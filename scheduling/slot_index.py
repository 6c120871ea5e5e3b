"""
Slot Indices.

Lookups the constraint engine makes on every candidate (by group, by group
and day, by date and time) are served from dictionaries built once per run
instead of scanning the flat slot list.
"""

from collections import defaultdict
from datetime import date as date_type, time as time_type
from typing import Dict, Iterable, List, Optional, Tuple

from models import SlotAssignment, time_key


class SlotIndex:
    """Append-only multi-index over committed slots."""

    def __init__(self, slots: Iterable[SlotAssignment] = ()):
        self._slots: List[SlotAssignment] = []
        self._by_group: Dict[str, List[SlotAssignment]] = defaultdict(list)
        self._by_group_day: Dict[Tuple[str, date_type], List[SlotAssignment]] = defaultdict(list)
        self._by_time: Dict[Tuple[date_type, str], List[SlotAssignment]] = defaultdict(list)
        for slot in slots:
            self.add(slot)

    def add(self, slot: SlotAssignment) -> None:
        self._slots.append(slot)
        group_id = slot.group_id or ""
        self._by_group[group_id].append(slot)
        self._by_group_day[(group_id, slot.date)].append(slot)
        self._by_time[(slot.date, time_key(slot.start_time))].append(slot)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)

    @property
    def all(self) -> List[SlotAssignment]:
        return self._slots

    def for_group(self, group_id: str) -> List[SlotAssignment]:
        return self._by_group.get(group_id, [])

    def for_group_day(self, group_id: str, date: date_type) -> List[SlotAssignment]:
        return self._by_group_day.get((group_id, date), [])

    def at(self, date: date_type, start_time: time_type) -> List[SlotAssignment]:
        """Every group's slots starting at this date and time."""
        return self._by_time.get((date, time_key(start_time)), [])

    def occupants(
        self,
        date: date_type,
        start_time: time_type,
        facility_id: str,
        exclude_group: Optional[str] = None
    ) -> List[SlotAssignment]:
        """Slots holding a facility at a date/time, optionally ignoring one group."""
        return [
            s for s in self.at(date, start_time)
            if s.facility_id == facility_id and (exclude_group is None or s.group_id != exclude_group)
        ]
