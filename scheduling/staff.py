"""
Staff Assignment.

Greedy chronological assignment of personnel to scheduled slots:
- no one works more than `max_hours_per_day`
- no one is on two slots that share a (date, start time)
- optionally, the least-loaded people are picked first
"""

import logging
from collections import defaultdict
from datetime import date as date_type
from typing import Dict, List, Optional, Sequence, Set, Tuple
from pydantic import BaseModel, Field

from models import Activity, SlotAssignment, Staff, StaffAssignment, StaffRole, time_key
from .config import get_settings

logger = logging.getLogger(__name__)


class AutoAssignResult(BaseModel):
    assignments: List[StaffAssignment] = Field(default_factory=list)
    unassigned_slots: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class StaffWorkload(BaseModel):
    staff_id: str
    staff_name: str
    total_slots: int = 0
    slots_by_day: Dict[date_type, int] = Field(default_factory=dict)
    slots_by_activity: Dict[str, int] = Field(default_factory=dict)
    hours_per_day: Dict[date_type, float] = Field(default_factory=dict)
    total_hours: float = 0.0


def _time_slot(slot: SlotAssignment) -> Tuple[date_type, str]:
    return slot.date, time_key(slot.start_time)


def auto_assign_staff(
    slots: Sequence[SlotAssignment],
    staff: List[Staff],
    activities: List[Activity],
    existing_assignments: Optional[List[StaffAssignment]] = None,
    max_hours_per_day: Optional[float] = None,
    balance_workload: bool = True
) -> AutoAssignResult:
    """
    Staff every slot that has an activity and no assignment yet.
    Existing assignments are kept and count towards hours and double-booking.
    """
    if max_hours_per_day is None:
        max_hours_per_day = get_settings().max_staff_hours_per_day
    existing_assignments = existing_assignments or []

    activity_map = {a.id: a for a in activities}
    slot_map = {s.key: s for s in slots}
    known_staff = {s.id for s in staff}
    active_staff = [s for s in staff if s.is_active]

    assignments: List[StaffAssignment] = list(existing_assignments)
    unassigned: List[str] = []
    warnings: List[str] = []

    # staff_id -> date -> hours, and staff_id -> {(date, 'HH:MM')}
    hours: Dict[str, Dict[date_type, float]] = defaultdict(lambda: defaultdict(float))
    busy: Dict[str, Set[Tuple[date_type, str]]] = defaultdict(set)

    for assignment in existing_assignments:
        if assignment.staff_id not in known_staff:
            logger.warning(f"Existing assignment for {assignment.slot_id} references unknown staff member {assignment.staff_id}")
            warnings.append(f"Unknown staff member {assignment.staff_id} on {assignment.slot_id}; assignment kept, hours not counted")
            continue
        slot = slot_map.get(assignment.slot_id)
        if slot is None:
            continue
        hours[assignment.staff_id][slot.date] += slot.duration_hours
        busy[assignment.staff_id].add(_time_slot(slot))

    already_staffed = {a.slot_id for a in existing_assignments}
    to_assign = sorted(
        (s for s in slots if s.activity_id and s.key not in already_staffed),
        key=lambda s: (s.date, s.start_time)
    )

    for slot in to_assign:
        activity = activity_map.get(slot.activity_id)
        required = activity.required_staff_count if activity else 1
        slot_hours = slot.duration_hours
        when = _time_slot(slot)

        available = [
            member for member in active_staff
            if hours[member.id][slot.date] + slot_hours <= max_hours_per_day
            and when not in busy[member.id]
        ]

        if not available:
            unassigned.append(slot.key)
            warnings.append(f"No staff available for {slot.date.isoformat()} {when[1]}")
            logger.warning(f"No staff available for slot {slot.key}")
            continue

        if balance_workload:
            # stable sort keeps staff-list order between equally loaded people
            available.sort(key=lambda member: sum(hours[member.id].values()))

        picked = available[:required]
        for position, member in enumerate(picked):
            assignments.append(StaffAssignment(
                slot_id=slot.key,
                staff_id=member.id,
                role=StaffRole.LEAD if position == 0 else StaffRole.ASSISTANT
            ))
            hours[member.id][slot.date] += slot_hours
            busy[member.id].add(when)

        if len(picked) < required:
            warnings.append(
                f"{slot.date.isoformat()} {when[1]}: {required} staff needed, {len(picked)} assigned"
            )
            logger.warning(f"Staff shortfall on slot {slot.key}: {len(picked)}/{required}")

    return AutoAssignResult(assignments=assignments, unassigned_slots=unassigned, warnings=warnings)


def calculate_staff_workload(
    member: Staff,
    assignments: List[StaffAssignment],
    slots: Sequence[SlotAssignment],
    activities: List[Activity]
) -> StaffWorkload:
    """Per-person load report built purely from assignments already made."""
    slot_map = {s.key: s for s in slots}
    activity_map = {a.id: a for a in activities}
    own = [a for a in assignments if a.staff_id == member.id]

    workload = StaffWorkload(staff_id=member.id, staff_name=member.full_name, total_slots=len(own))

    for assignment in own:
        slot = slot_map.get(assignment.slot_id)
        if slot is None:
            continue

        workload.slots_by_day[slot.date] = workload.slots_by_day.get(slot.date, 0) + 1

        if slot.activity_id:
            activity = activity_map.get(slot.activity_id)
            label = activity.name if activity and activity.name else slot.activity_id
            workload.slots_by_activity[label] = workload.slots_by_activity.get(label, 0) + 1

        workload.hours_per_day[slot.date] = workload.hours_per_day.get(slot.date, 0.0) + slot.duration_hours
        workload.total_hours += slot.duration_hours

    return workload


def staff_suggestions(
    slot: SlotAssignment,
    staff: List[Staff],
    assignments: List[StaffAssignment],
    slots: Sequence[SlotAssignment]
) -> List[Staff]:
    """Active staff free to take this slot."""
    slot_map = {s.key: s for s in slots}
    when = _time_slot(slot)

    on_slot = {a.staff_id for a in assignments if a.slot_id == slot.key}
    busy = {
        a.staff_id for a in assignments
        if a.slot_id in slot_map and _time_slot(slot_map[a.slot_id]) == when
    }
    return [s for s in staff if s.is_active and s.id not in on_slot and s.id not in busy]


def staff_availability_matrix(
    staff: List[Staff],
    slots: Sequence[SlotAssignment],
    assignments: List[StaffAssignment]
) -> Dict[str, Dict[str, bool]]:
    """staff_id -> '<date>_<HH:MM>' -> available."""
    slot_map = {s.key: s for s in slots}
    keys = [f"{s.date.isoformat()}_{time_key(s.start_time)}" for s in slots]

    matrix: Dict[str, Dict[str, bool]] = {}
    for member in staff:
        availability = {key: True for key in keys}
        for a in assignments:
            if a.staff_id != member.id or a.slot_id not in slot_map:
                continue
            slot = slot_map[a.slot_id]
            availability[f"{slot.date.isoformat()}_{time_key(slot.start_time)}"] = False
        matrix[member.id] = availability
    return matrix
