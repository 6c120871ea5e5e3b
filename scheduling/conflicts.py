"""
Conflict Detection.

Audits any slot collection (freshly generated or hand-edited) for:
1. Facility double bookings
2. Rule violations (each slot re-checked against the rest of the schedule)
3. Group headcount above facility capacity
4. Cells left without an activity
"""

from collections import Counter, defaultdict
from enum import Enum
from typing import Dict, List, Literal, Optional, Sequence, Tuple
from pydantic import BaseModel, Field

from models import SlotAssignment, Constraint, Facility, Group, time_key
from .constraints import ConstraintEngine, ConstraintContext
from .slot_index import SlotIndex


class ConflictType(str, Enum):
    FACILITY_DOUBLE_BOOKING = "facility_double_booking"
    STAFF_DOUBLE_BOOKING = "staff_double_booking"
    CONSTRAINT_VIOLATION = "constraint_violation"
    MISSING_FACILITY = "missing_facility"
    MISSING_ACTIVITY = "missing_activity"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    TIME_OVERLAP = "time_overlap"


Severity = Literal["critical", "warning", "info"]


class Conflict(BaseModel):
    id: str
    type: ConflictType
    severity: Severity
    message: str
    description: str
    affected_slots: List[str] = Field(default_factory=list)
    suggestion: Optional[str] = None


class ConflictSummary(BaseModel):
    critical: int = 0
    warnings: int = 0
    info: int = 0
    total: int = 0
    by_type: Dict[ConflictType, int] = Field(default_factory=dict)


def detect_conflicts(
    slots: Sequence[SlotAssignment],
    constraints: List[Constraint],
    facilities: List[Facility],
    groups: List[Group],
    engine: Optional[ConstraintEngine] = None
) -> List[Conflict]:
    """Run every audit over the slot collection."""
    conflicts: List[Conflict] = []
    conflicts.extend(_facility_conflicts(slots, facilities))
    conflicts.extend(_constraint_violations(slots, constraints, engine or ConstraintEngine()))
    conflicts.extend(_capacity_issues(slots, facilities, groups))
    conflicts.extend(_missing_assignments(slots))
    return conflicts


def _facility_conflicts(slots: Sequence[SlotAssignment], facilities: List[Facility]) -> List[Conflict]:
    facility_map = {f.id: f for f in facilities}
    buckets: Dict[Tuple[str, str, str], List[SlotAssignment]] = defaultdict(list)

    for slot in slots:
        if not slot.facility_id:
            continue
        buckets[(slot.date.isoformat(), time_key(slot.start_time), slot.facility_id)].append(slot)

    conflicts = []
    for (day, at, facility_id), booked in buckets.items():
        if len(booked) < 2:
            continue
        facility = facility_map.get(facility_id)
        conflicts.append(Conflict(
            id=f"facility_{day}_{at}_{facility_id}",
            type=ConflictType.FACILITY_DOUBLE_BOOKING,
            severity="critical",
            message=f"Double booking: {facility.name if facility and facility.name else facility_id}",
            description=f"{len(booked)} groups in the same facility ({day} {at})",
            affected_slots=[s.key for s in booked],
            suggestion="Move one of the groups to another facility or a different time"
        ))
    return conflicts


def _constraint_violations(
    slots: Sequence[SlotAssignment],
    constraints: List[Constraint],
    engine: ConstraintEngine
) -> List[Conflict]:
    active = [c for c in constraints if c.is_active]
    if not active:
        return []

    index = SlotIndex(slots)
    conflicts = []

    for slot in slots:
        if not slot.activity_id or not slot.group_id:
            continue

        context = ConstraintContext(
            date=slot.date,
            group_id=slot.group_id,
            activity_id=slot.activity_id,
            facility_id=slot.facility_id,
            start_time=slot.start_time,
            end_time=slot.end_time,
            slots=index,
            exclude=slot
        )

        for constraint in active:
            result = engine.evaluate(constraint, context)
            if result.satisfied:
                continue
            conflicts.append(Conflict(
                id=f"constraint_{constraint.id}_{slot.key}",
                type=ConflictType.CONSTRAINT_VIOLATION,
                severity="critical" if constraint.is_hard else "warning",
                message=constraint.name or constraint.constraint_type,
                description=result.message or constraint.error_message or "Constraint violated",
                affected_slots=[slot.key],
                suggestion=(
                    "Hard constraint - must be fixed" if constraint.is_hard
                    else "Soft constraint - fixing is recommended"
                )
            ))
    return conflicts


def _capacity_issues(
    slots: Sequence[SlotAssignment],
    facilities: List[Facility],
    groups: List[Group]
) -> List[Conflict]:
    facility_map = {f.id: f for f in facilities}
    group_map = {g.id: g for g in groups}
    conflicts = []

    for slot in slots:
        if not slot.facility_id or not slot.group_id:
            continue
        facility = facility_map.get(slot.facility_id)
        group = group_map.get(slot.group_id)
        if not facility or not group or not facility.capacity or not group.current_count:
            continue

        if group.current_count > facility.capacity:
            conflicts.append(Conflict(
                id=f"capacity_{slot.key}",
                type=ConflictType.CAPACITY_EXCEEDED,
                severity="warning",
                message="Capacity exceeded",
                description=(
                    f"Group '{group.name or group.id}' ({group.current_count} campers) exceeds the capacity "
                    f"of '{facility.name or facility.id}' ({facility.capacity})"
                ),
                affected_slots=[slot.key],
                suggestion="Pick a larger facility or split the group"
            ))
    return conflicts


def _missing_assignments(slots: Sequence[SlotAssignment]) -> List[Conflict]:
    return [
        Conflict(
            id=f"missing_activity_{slot.key}",
            type=ConflictType.MISSING_ACTIVITY,
            severity="info",
            message="No activity",
            description="This slot has no activity assigned",
            affected_slots=[slot.key],
            suggestion="Choose an activity for this slot"
        )
        for slot in slots if not slot.activity_id
    ]


def slot_conflicts(slot_key: str, conflicts: List[Conflict]) -> List[Conflict]:
    """Conflicts that involve one slot."""
    return [c for c in conflicts if slot_key in c.affected_slots]


def conflict_summary(conflicts: List[Conflict]) -> ConflictSummary:
    severities = Counter(c.severity for c in conflicts)
    by_type = {t: 0 for t in ConflictType}
    by_type.update(Counter(c.type for c in conflicts))
    return ConflictSummary(
        critical=severities["critical"],
        warnings=severities["warning"],
        info=severities["info"],
        total=len(conflicts),
        by_type=by_type
    )


def is_schedule_valid(conflicts: List[Conflict]) -> bool:
    """A schedule is valid when nothing critical remains."""
    return not any(c.severity == "critical" for c in conflicts)
