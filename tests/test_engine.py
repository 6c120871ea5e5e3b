import asyncio
import random
import threading
from collections import Counter
from datetime import time, timedelta
from typing import List

import pytest

from models import GeneratedSlot, time_key
from scheduling import (
    GenerationOptions,
    GenerationProgress,
    InvalidGenerationWindowError,
    ScheduleGenerator,
    Settings,
    SlotScorer,
    detect_conflicts,
    generate_schedule,
)

from .factories import (
    CAMP_START,
    build_activity,
    build_constraint,
    build_facility,
    build_generator_input,
    build_group,
    build_hourly_slots,
    build_session,
    build_slot,
    build_template,
    build_template_slot,
)


def _fingerprint(slots: List[GeneratedSlot]) -> list:
    return [(s.date, s.group_id, s.start_time, s.activity_id, s.facility_id) for s in slots]


def test_fills_every_cell_once() -> None:
    result = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=1)).run()

    assert result.success
    assert result.status == "completed"
    assert len(result.slots) == 12
    assert result.stats.total_slots_generated == 12
    assert result.stats.total_slots_skipped == 0

    cells = Counter((s.date, s.group_id, s.template_slot_id) for s in result.slots)
    assert len(cells) == 12
    assert set(cells.values()) == {1}
    assert all(s.is_new for s in result.slots)


def test_facilities_are_never_double_booked() -> None:
    data = build_generator_input(
        groups=[build_group(id=f"grp_{i}") for i in range(1, 4)],
        facilities=[build_facility(), build_facility(id="fac_2")],
        constraints=[build_constraint(constraint_type="facility_exclusive", condition={})],
    )

    result = ScheduleGenerator(data, GenerationOptions(random_seed=7)).run()

    booked = Counter(
        (s.date, time_key(s.start_time), s.facility_id) for s in result.slots if s.facility_id
    )
    assert len(result.slots) == 18
    assert set(booked.values()) == {1}
    # Two facilities for three groups: one group per (date, time) goes without
    assert sum(1 for s in result.slots if s.facility_id is None) == 6


def test_daily_limit_leaves_unfillable_cells_skipped() -> None:
    data = build_generator_input(
        session=build_session(end_date=CAMP_START),
        groups=[build_group()],
        activities=[build_activity()],
        template_slots=build_hourly_slots(3),
        constraints=[build_constraint(condition={"activity_id": "act_1", "max_count": 2})],
    )

    result = ScheduleGenerator(data).run()

    assert len(result.slots) == 2
    assert result.stats.total_slots_skipped == 1
    assert result.status == "completed"
    assert result.violations
    assert all(v.is_hard and v.constraint_id == "c_1" for v in result.violations)
    assert result.stats.hard_violations == len(result.violations)


def test_generated_schedule_passes_its_own_audit() -> None:
    constraints = [
        build_constraint(id="c_limit", condition={"activity_id": "act_1", "max_count": 1}),
        build_constraint(id="c_run", constraint_type="consecutive_limit", condition={"max_consecutive": 1}),
        build_constraint(id="c_gap", constraint_type="gap_required",
                         condition={"activity_id": "act_2", "min_gap_minutes": 120}),
        build_constraint(id="c_exclusive", constraint_type="facility_exclusive", condition={}),
        build_constraint(id="c_morning", constraint_type="time_restriction",
                         condition={"activity_id": "act_3", "allowed_times": ["09:00:00"]}),
        build_constraint(id="c_apart", constraint_type="group_separation",
                         condition={"group_ids": ["grp_1", "grp_2"]}),
    ]
    data = build_generator_input(template_slots=build_hourly_slots(4), constraints=constraints)

    result = ScheduleGenerator(data, GenerationOptions(random_seed=3)).run()
    conflicts = detect_conflicts(result.slots, constraints, data.facilities, data.groups)

    assert result.slots
    assert not [c for c in conflicts if c.severity == "critical"]


def test_same_seed_same_schedule() -> None:
    first = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=42)).run()
    second = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=42)).run()

    assert _fingerprint(first.slots) == _fingerprint(second.slots)


def test_rerun_starts_from_fresh_state() -> None:
    generator = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=5))

    first = generator.run()
    second = generator.run()

    assert len(second.slots) == 12
    assert _fingerprint(first.slots) == _fingerprint(second.slots)


def test_injected_rng_drives_the_run() -> None:
    first = ScheduleGenerator(build_generator_input(), rng=random.Random(9)).run()
    second = ScheduleGenerator(build_generator_input(), rng=random.Random(9)).run()

    assert _fingerprint(first.slots) == _fingerprint(second.slots)


def test_existing_filled_slot_is_kept() -> None:
    existing = build_slot(id="slot_kept", activity_id="act_1", facility_id="fac_1")
    data = build_generator_input(existing_slots=[existing])

    result = ScheduleGenerator(data).run()

    assert len(result.slots) == 11
    assert result.stats.total_slots_existing == 1
    assert not any(
        s.date == existing.date and s.group_id == "grp_1" and s.start_time == time(9, 0) for s in result.slots
    )
    # The kept slot still holds its facility
    assert not any(
        s.date == existing.date and s.start_time == time(9, 0) and s.facility_id == "fac_1" for s in result.slots
    )


def test_existing_empty_slot_is_filled_in_place() -> None:
    empty = build_slot(id="slot_empty", activity_id=None)
    data = build_generator_input(existing_slots=[empty])

    result = ScheduleGenerator(data).run()
    filled = [s for s in result.slots if s.id == "slot_empty"]

    assert len(result.slots) == 12
    assert len(filled) == 1
    assert filled[0].is_new is False
    assert result.stats.total_slots_existing == 0


def test_existing_slots_ignored_when_not_respected() -> None:
    data = build_generator_input(existing_slots=[build_slot(id="slot_kept")])

    result = ScheduleGenerator(data, GenerationOptions(respect_existing_slots=False)).run()

    assert len(result.slots) == 12
    assert result.stats.total_slots_existing == 0


def test_iteration_cap_counts_remaining_cells_as_skipped() -> None:
    result = ScheduleGenerator(build_generator_input(), GenerationOptions(max_iterations=5)).run()

    assert len(result.slots) == 5
    assert result.stats.total_slots_skipped == 7
    assert result.status == "partial"


def test_iteration_cap_is_reported() -> None:
    result = ScheduleGenerator(build_generator_input(), GenerationOptions(max_iterations=10)).run()

    assert len(result.slots) == 10
    assert result.status == "partial"
    assert [v.constraint_type for v in result.violations] == ["iteration_limit"]
    assert not result.violations[0].is_hard
    assert "2 cells left unprocessed" in result.violations[0].message


def test_default_options_fill_a_week_long_camp() -> None:
    groups = [build_group(id=f"grp_{i}", name=f"Group {i}") for i in range(20)]
    activities = [build_activity(id=f"act_{i}", name=f"Activity {i}") for i in range(6)]
    session = build_session(end_date=CAMP_START + timedelta(days=6))

    result = generate_schedule(
        session, groups, activities, [build_facility()], build_template(build_hourly_slots(8)), []
    )

    assert result.feasibility.stats.total_slots == 1120
    assert len(result.slots) == 1120
    assert result.stats.total_slots_skipped == 0
    assert result.status == "completed"


def test_facility_flag_controls_reservation() -> None:
    data = build_generator_input(
        groups=[build_group(id=f"grp_{i}") for i in range(4)],
        facilities=[build_facility(id="fac_only")],
    )

    with_space = ScheduleGenerator(
        data, GenerationOptions(random_seed=7), rng=random.Random(7)
    ).run()
    without_space = ScheduleGenerator(
        data, GenerationOptions(random_seed=7, prioritize_facility_utilization=False), rng=random.Random(7)
    ).run()

    per_cell = Counter((s.date, s.start_time) for s in with_space.slots if s.facility_id == "fac_only")
    assert len(per_cell) == 6
    assert set(per_cell.values()) == {1}
    assert all(s.facility_id is None for s in without_space.slots)
    assert len(without_space.slots) == 24
    assert without_space.score.facility_utilization_score == 0.0


def test_no_activities_fails() -> None:
    result = ScheduleGenerator(build_generator_input(activities=[])).run()

    assert not result.success
    assert result.status == "failed"
    assert result.stats.total_slots_skipped == 12


def test_inactive_records_are_ignored() -> None:
    data = build_generator_input(
        groups=[build_group(), build_group(id="grp_off", is_active=False)],
        activities=[build_activity(), build_activity(id="act_off", is_active=False)],
    )

    result = ScheduleGenerator(data).run()

    assert len(result.slots) == 6
    assert {s.group_id for s in result.slots} == {"grp_1"}
    assert {s.activity_id for s in result.slots} == {"act_1"}


def test_window_defaults_and_overrides() -> None:
    data = build_generator_input(start_date=CAMP_START, end_date=CAMP_START)

    result = ScheduleGenerator(data).run()

    assert len(result.slots) == 4
    assert {s.date for s in result.slots} == {CAMP_START}


def test_inverted_window_raises() -> None:
    data = build_generator_input(start_date=CAMP_START, end_date=CAMP_START.replace(day=1))

    with pytest.raises(InvalidGenerationWindowError):
        ScheduleGenerator(data)


def test_best_fitting_duration_wins_with_single_candidate_pool() -> None:
    data = build_generator_input(
        session=build_session(end_date=CAMP_START),
        groups=[build_group()],
        activities=[
            build_activity(id="act_long", duration_minutes=180),
            build_activity(id="act_fit", duration_minutes=60),
        ],
        template_slots=[build_template_slot()],
    )

    result = ScheduleGenerator(data, settings=Settings(top_k_candidates=1)).run()

    assert [s.activity_id for s in result.slots] == ["act_fit"]


def test_progress_events() -> None:
    events: List[GenerationProgress] = []

    ScheduleGenerator(
        build_generator_input(),
        GenerationOptions(optimization_level="thorough"),
        on_progress=events.append,
    ).run()

    phases = [e.phase for e in events]
    percentages = [e.percentage for e in events]
    assert phases[0] == "initializing"
    assert phases[-1] == "completed"
    assert "optimizing" in phases
    assert percentages == sorted(percentages)
    assert percentages[-1] == 100
    # Cell 10 of 12: round(10 / 12 * 90) + 5
    assert 80 in percentages


def test_thorough_runs_optimization_hook() -> None:
    result = ScheduleGenerator(
        build_generator_input(), GenerationOptions(optimization_level="thorough")
    ).run()

    assert result.stats.iterations_used == 1
    assert len(result.slots) == 12


def test_cancellation() -> None:
    cancel = threading.Event()
    cancel.set()
    events: List[GenerationProgress] = []

    result = ScheduleGenerator(build_generator_input(), on_progress=events.append, cancel_event=cancel).run()

    assert result.status == "cancelled"
    assert len(result.slots) == 10
    assert events[-1].phase == "cancelled"


def test_run_async_matches_run() -> None:
    options = GenerationOptions(random_seed=11)

    sync_result = ScheduleGenerator(build_generator_input(), options).run()
    async_result = asyncio.run(ScheduleGenerator(build_generator_input(), options).run_async())

    assert _fingerprint(async_result.slots) == _fingerprint(sync_result.slots)
    assert async_result.status == "completed"


def test_score_components() -> None:
    result = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=2)).run()
    score = result.score

    assert score.constraint_score == 100.0
    assert score.variety_score == 100.0
    assert score.facility_utilization_score == 100.0
    assert score.total == pytest.approx(
        (score.constraint_score + score.balance_score + score.variety_score + score.facility_utilization_score) / 4
    )


def test_schedule_score_balance_and_utilization() -> None:
    base = {"date": CAMP_START, "group_id": "grp_1", "start_time": time(9, 0), "end_time": time(10, 0)}
    slots = [
        GeneratedSlot(activity_id="act_1", facility_id="fac_1", **base),
        GeneratedSlot(activity_id="act_1", facility_id="fac_1", **base),
        GeneratedSlot(activity_id="act_2", **base),
    ]

    score = SlotScorer(Settings()).schedule_score(slots)

    # counts [2, 1]: variance 0.25
    assert score.balance_score == pytest.approx(99.5)
    assert score.facility_utilization_score == pytest.approx(200 / 3)


def test_candidate_score() -> None:
    scorer = SlotScorer(Settings())

    score = scorer.candidate_score(
        constraint_score=100.0,
        activity=build_activity(duration_minutes=90),
        template_slot=build_template_slot(),
        usage_count=2,
        rng=random.Random(0),
    )

    # 100 + (50 - 2 * 5) - 30 * 0.5
    assert score == pytest.approx(125.0)


def test_generate_schedule_blocks_infeasible_inputs() -> None:
    events: List[GenerationProgress] = []

    result = generate_schedule(
        session=build_session(),
        groups=[],
        activities=[build_activity()],
        facilities=[],
        template=build_template(),
        constraints=[],
        on_progress=events.append,
    )

    assert not result.success
    assert result.status == "failed"
    assert result.slots == []
    assert result.feasibility is not None
    assert not result.feasibility.can_generate
    assert [e.phase for e in events] == ["validating", "failed"]


def test_generate_schedule_attaches_feasibility() -> None:
    data = build_generator_input()

    result = generate_schedule(
        session=data.session,
        groups=data.groups,
        activities=data.activities,
        facilities=data.facilities,
        template=build_template(),
        constraints=[],
        options=GenerationOptions(random_seed=1),
    )

    assert result.status == "completed"
    assert result.feasibility is not None
    assert result.feasibility.stats.total_slots == 12
    assert len(result.slots) == 12


def test_daily_limit_holds_across_days_and_groups() -> None:
    data = build_generator_input(
        activities=[build_activity(), build_activity(id="act_2")],
        template_slots=build_hourly_slots(5),
        constraints=[build_constraint(condition={"activity_id": "act_1", "max_count": 2})],
    )

    result = ScheduleGenerator(data, GenerationOptions(random_seed=4)).run()
    per_day = Counter((s.date, s.group_id) for s in result.slots if s.activity_id == "act_1")

    assert len(result.slots) == 30
    assert max(per_day.values()) <= 2


def test_exclusive_facility_scoped_to_one_space() -> None:
    data = build_generator_input(
        groups=[build_group(id=f"grp_{i}") for i in range(1, 4)],
        facilities=[build_facility(id="fac_pool"), build_facility(id="fac_2"), build_facility(id="fac_3")],
        constraints=[build_constraint(constraint_type="facility_exclusive", condition={"facility_id": "fac_pool"})],
    )

    result = ScheduleGenerator(data, GenerationOptions(random_seed=8)).run()
    pool = Counter((s.date, s.start_time) for s in result.slots if s.facility_id == "fac_pool")

    assert pool
    assert set(pool.values()) == {1}


def test_regenerating_keeps_previous_assignments() -> None:
    first = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=12)).run()
    data = build_generator_input(existing_slots=first.slots)
    second = ScheduleGenerator(data, GenerationOptions(random_seed=99)).run()

    assert second.slots == []
    assert second.stats.total_slots_existing == 12


def test_regenerating_only_fills_previously_empty_cells() -> None:
    first = ScheduleGenerator(build_generator_input(), GenerationOptions(random_seed=12)).run()
    kept = first.slots[:8]

    second = ScheduleGenerator(build_generator_input(existing_slots=kept), GenerationOptions(random_seed=99)).run()
    kept_cells = {(s.date, s.group_id, s.start_time) for s in kept}

    assert len(second.slots) == 4
    assert not any((s.date, s.group_id, s.start_time) in kept_cells for s in second.slots)


def test_three_days_two_groups_two_slots_five_activities() -> None:
    data = build_generator_input(activities=[build_activity(id=f"act_{i}") for i in range(1, 6)])

    result = generate_schedule(
        session=data.session,
        groups=data.groups,
        activities=data.activities,
        facilities=data.facilities,
        template=build_template(),
        constraints=[],
    )

    assert result.feasibility.stats.total_slots == 12
    assert len(result.slots) == 12
