from datetime import time

import pytest
from pydantic import ValidationError

from models import (
    Constraint,
    ConstraintType,
    DailyLimitCondition,
    GeneratedSlot,
    SessionStatus,
)

from .factories import (
    CAMP_START,
    build_activity,
    build_constraint,
    build_session,
    build_slot,
    build_template,
    build_template_slot,
)


def test_template_slot_rejects_inverted_times() -> None:
    with pytest.raises(ValidationError):
        build_template_slot(start_time=time(10, 0), end_time=time(9, 0))


def test_template_slot_duration_and_target() -> None:
    slot = build_template_slot(start_time=time(9, 0), end_time=time(10, 30))
    meal = build_template_slot(id="ts_meal", slot_type="meal")

    assert slot.duration_minutes == 90
    assert slot.is_generation_target
    assert not meal.is_generation_target


def test_day_template_schedulable_slots_are_ordered() -> None:
    late = build_template_slot(id="ts_late", start_time=time(14, 0), end_time=time(15, 0), sort_order=2)
    early = build_template_slot(id="ts_early", sort_order=0)
    lunch = build_template_slot(id="ts_lunch", start_time=time(12, 0), end_time=time(13, 0),
                                slot_type="meal", sort_order=1)
    template = build_template(slots=[late, lunch, early])

    assert [s.id for s in template.schedulable_slots()] == ["ts_early", "ts_late"]


def test_session_inverted_dates_are_accepted_at_load_time() -> None:
    session = build_session(start_date=CAMP_START, end_date=CAMP_START.replace(day=1))

    assert session.end_date < session.start_date


def test_session_schedulable_statuses() -> None:
    assert build_session(status=SessionStatus.ACTIVE).is_schedulable
    assert not build_session(status=SessionStatus.DRAFT).is_schedulable


def test_activity_rejects_inverted_age_range() -> None:
    with pytest.raises(ValidationError):
        build_activity(min_age=12, max_age=8)


def test_constraint_condition_is_typed_from_constraint_type() -> None:
    constraint = build_constraint(constraint_type=ConstraintType.DAILY_LIMIT)

    assert constraint.constraint_type == "daily_limit"
    assert constraint.kind is ConstraintType.DAILY_LIMIT
    assert isinstance(constraint.condition, DailyLimitCondition)
    assert constraint.condition.max_count == 1


def test_constraint_rejects_mismatched_condition_kind() -> None:
    with pytest.raises(ValidationError):
        build_constraint(condition={"kind": "sequence", "before_activity_id": "act_1"})


def test_constraint_priority_bounds() -> None:
    with pytest.raises(ValidationError):
        build_constraint(priority=11)


def test_unknown_constraint_type_is_tolerated() -> None:
    constraint = Constraint(id="c_moon", constraint_type="moon_phase", condition={"phase": "full"})

    assert constraint.kind is None
    assert constraint.condition is None


def test_slot_key_uses_id_or_cell_coordinates() -> None:
    assert build_slot(id="slot_42").key == "slot_42"
    assert build_slot().key == "2025-07-14_grp_1_09:00"


def test_generated_slot_requires_activity() -> None:
    with pytest.raises(ValidationError):
        GeneratedSlot(date=CAMP_START, group_id="grp_1", start_time=time(9, 0), end_time=time(10, 0))
