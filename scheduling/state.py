"""
Generation State Management.

This module acts as the 'Memory' of one generation run.
It tracks:
1. Committed slots (pre-existing + generated), indexed for O(1) lookups.
2. Per-group activity usage counters (drive the variety bonus).
3. Per-(date, time) facility reservations.
4. Run statistics and the violations of cells that could not be filled.

A state object is created per run and discarded with it; nothing here is shared.
"""

from collections import defaultdict
from datetime import date as date_type, time as time_type
from typing import Dict, List, Optional, Set, Tuple
from pydantic import BaseModel

from models import SlotAssignment, GeneratedSlot, Facility, time_key
from .constraints import ConstraintViolation
from .slot_index import SlotIndex


class GenerationStats(BaseModel):
    total_slots_generated: int = 0
    total_slots_skipped: int = 0
    total_slots_existing: int = 0
    constraints_evaluated: int = 0
    hard_violations: int = 0
    soft_violations: int = 0
    iterations_used: int = 0
    backtrack_count: int = 0


class GenerationState:
    """
    Maintains the mutable state of a single generation run.
    """

    def __init__(self):
        self.slots = SlotIndex()
        self.generated: List[GeneratedSlot] = []
        self.violations: List[ConstraintViolation] = []
        self.stats = GenerationStats()

        # group_id -> activity_id -> count
        self.activity_usage: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        # (date, 'HH:MM') -> facility ids
        self.facility_reservations: Dict[Tuple[date_type, str], Set[str]] = defaultdict(set)

    def load_existing(self, slot: SlotAssignment) -> None:
        """Seed the run with a slot that was already committed before it started."""
        self.slots.add(slot)
        if slot.activity_id:
            self.activity_usage[slot.group_id or ""][slot.activity_id] += 1
        if slot.facility_id:
            self.reserve_facility(slot.date, slot.start_time, slot.facility_id)

    def add_booking(self, slot: GeneratedSlot) -> None:
        """
        Commit a generated slot to the state.
        Updates the index, usage counter and facility reservations.
        """
        self.generated.append(slot)
        self.slots.add(slot)
        self.activity_usage[slot.group_id or ""][slot.activity_id] += 1
        if slot.facility_id:
            self.reserve_facility(slot.date, slot.start_time, slot.facility_id)
        self.stats.total_slots_generated += 1

    def record_failure(self, violations: List[ConstraintViolation]) -> None:
        """Log a cell that no activity could fill."""
        self.violations.extend(violations)
        self.stats.total_slots_skipped += 1

    # --- Query Methods ---

    def usage(self, group_id: str, activity_id: str) -> int:
        return self.activity_usage.get(group_id, {}).get(activity_id, 0)

    def reserve_facility(self, date: date_type, start_time: time_type, facility_id: str) -> None:
        self.facility_reservations[(date, time_key(start_time))].add(facility_id)

    def free_facility(
        self,
        date: date_type,
        start_time: time_type,
        facilities: List[Facility]
    ) -> Optional[str]:
        """First facility not yet reserved at this date/time, else None."""
        reserved = self.facility_reservations.get((date, time_key(start_time)), set())
        for facility in facilities:
            if facility.id not in reserved:
                return facility.id
        return None

    def finalize_counts(self) -> None:
        self.stats.hard_violations = sum(1 for v in self.violations if v.is_hard)
        self.stats.soft_violations = sum(1 for v in self.violations if not v.is_hard)
