"""
The Camp Schedule Generation Engine.

This module implements the core greedy "Solver" loop.
For every (date, template slot, group) cell it:
1. Proposes a facility (first one not yet reserved at that date/time) unless facility use is switched off.
2. Filters every active activity through the constraint engine (hard rules disqualify).
3. Ranks the survivors (constraint health + variety bonus - duration mismatch [+ jitter]).
4. Picks uniformly among the top 3, so schedules do not come out identical and repetitive.

Unfillable cells are recorded as violations and skipped; a run never aborts because of one.
"""

import asyncio
import logging
import random
import threading
import time
from datetime import date as date_type, timedelta
from enum import Enum
from typing import Callable, Dict, Iterator, List, Literal, Optional, Tuple
from pydantic import BaseModel, Field

from models import (
    Session, Group, Activity, Facility, DayTemplate, TemplateSlot, Constraint,
    SlotAssignment, GeneratedSlot, time_key
)
from .config import Settings, get_settings
from .constraints import ConstraintEngine, ConstraintContext, ConstraintViolation
from .exceptions import InvalidGenerationWindowError
from .feasibility import FeasibilityResult, check_feasibility
from .scoring import GenerationScore, SlotScorer
from .state import GenerationState, GenerationStats

logger = logging.getLogger(__name__)


class OptimizationLevel(str, Enum):
    FAST = "fast"
    BALANCED = "balanced"
    THOROUGH = "thorough"


class GenerationOptions(BaseModel):
    respect_existing_slots: bool = True
    optimization_level: OptimizationLevel = OptimizationLevel.BALANCED
    max_iterations: Optional[int] = Field(default=None, ge=1, description="Optional upper bound on cells processed in one run")
    random_seed: Optional[int] = Field(default=None, description="Seeds every random decision; enables score jitter")
    prioritize_facility_utilization: bool = Field(default=True, description="Reserve a free facility for every filled cell")
    balance_activity_distribution: bool = True


GenerationPhase = Literal[
    "initializing", "validating", "generating", "optimizing", "finalizing", "completed", "failed", "cancelled"
]
RunStatus = Literal["completed", "partial", "failed", "cancelled"]


class GenerationProgress(BaseModel):
    phase: GenerationPhase
    percentage: int = Field(ge=0, le=100)
    current_day: Optional[date_type] = None
    current_group: Optional[str] = None
    slots_generated: int = 0
    total_slots: int = 0
    message: str = ""


class GenerationResult(BaseModel):
    success: bool
    status: RunStatus
    slots: List[GeneratedSlot] = Field(default_factory=list)
    score: GenerationScore
    violations: List[ConstraintViolation] = Field(default_factory=list)
    stats: GenerationStats = Field(default_factory=GenerationStats)
    duration_ms: float = 0.0
    feasibility: Optional[FeasibilityResult] = None


class GeneratorInput(BaseModel):
    """Everything the collaborator supplies for one run."""
    session: Session
    groups: List[Group]
    activities: List[Activity]
    facilities: List[Facility] = Field(default_factory=list)
    template_slots: List[TemplateSlot]
    constraints: List[Constraint] = Field(default_factory=list)
    existing_slots: List[SlotAssignment] = Field(default_factory=list)
    start_date: Optional[date_type] = Field(default=None, description="Defaults to the session start")
    end_date: Optional[date_type] = Field(default=None, description="Defaults to the session end")


ProgressCallback = Callable[[GenerationProgress], None]
CellKey = Tuple[date_type, str, str]


def date_range(start: date_type, end: date_type) -> List[date_type]:
    """Inclusive, daily step."""
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


class ScheduleGenerator:
    """
    Main scheduling engine.
    Ingests camp records and options, outputs a GenerationResult.
    One instance may be run several times; every run gets fresh state.
    """

    def __init__(
        self,
        data: GeneratorInput,
        options: Optional[GenerationOptions] = None,
        on_progress: Optional[ProgressCallback] = None,
        rng: Optional[random.Random] = None,
        cancel_event: Optional[threading.Event] = None,
        settings: Optional[Settings] = None
    ):
        self.data = data
        self.options = options or GenerationOptions()
        self.on_progress = on_progress
        self.cancel_event = cancel_event
        self.settings = settings or get_settings()
        self._rng = rng

        # Initialize Helpers
        self.engine = ConstraintEngine()
        self.scorer = SlotScorer(self.settings)

        # Filtered inputs
        self.groups = [g for g in data.groups if g.is_active]
        self.activities = [a for a in data.activities if a.is_active]
        self.facilities = [f for f in data.facilities if f.is_active]
        self.constraints = [c for c in data.constraints if c.is_active]
        self.template_slots = sorted(
            (s for s in data.template_slots if s.is_generation_target),
            key=lambda s: (s.sort_order, s.start_time)
        )

        self.start_date = data.start_date or data.session.start_date
        self.end_date = data.end_date or data.session.end_date
        if self.end_date < self.start_date:
            raise InvalidGenerationWindowError(
                f"Generation window ends ({self.end_date}) before it starts ({self.start_date})"
            )

    # --- Drivers ---

    def run(self) -> GenerationResult:
        """Execute the pipeline synchronously."""
        steps = self._steps()
        while True:
            try:
                next(steps)
            except StopIteration as done:
                return done.value

    async def run_async(self) -> GenerationResult:
        """Execute the pipeline, handing control back to the event loop between batches."""
        steps = self._steps()
        while True:
            try:
                next(steps)
            except StopIteration as done:
                return done.value
            await asyncio.sleep(0)

    # --- Pipeline ---

    def _steps(self) -> Iterator[None]:
        """
        The generation loop. Yields at every progress point; returns the result.
        """
        started = time.perf_counter()
        rng = self._rng or random.Random(self.options.random_seed)
        state = GenerationState()

        self._emit("initializing", 0, 0, 0, "Initializing...")

        dates = date_range(self.start_date, self.end_date)
        total_slots = len(dates) * len(self.groups) * len(self.template_slots)

        logger.info(
            f"Starting schedule generation: {len(dates)} days, {len(self.groups)} groups, "
            f"{len(self.template_slots)} slots/day, {len(self.activities)} activities"
        )

        # 1. Seed the run with slots that already exist
        existing_cells: Dict[CellKey, SlotAssignment] = {}
        if self.options.respect_existing_slots:
            for slot in self.data.existing_slots:
                existing_cells[(slot.date, slot.group_id or "", time_key(slot.start_time))] = slot
                if slot.activity_id:
                    state.load_existing(slot)

        self._emit(
            "generating", 5, 0, total_slots,
            f"Generating schedule for {len(dates)} days, {len(self.groups)} groups..."
        )

        # 2. Main Loop
        processed = 0
        cancelled = False
        capped = False
        for date, template_slot, group in self._cells(dates, rng):
            if self.options.max_iterations is not None and processed >= self.options.max_iterations:
                self._record_iteration_cap(state, total_slots - processed)
                capped = True
                break

            processed += 1
            existing = existing_cells.get((date, group.id, time_key(template_slot.start_time)))

            if existing is not None and existing.activity_id:
                state.stats.total_slots_existing += 1
            else:
                self._fill_cell(state, date, template_slot, group, existing, rng)

            if processed % self.settings.progress_interval == 0 or processed == total_slots:
                self._emit(
                    "generating",
                    round(processed / total_slots * 90) + 5,
                    len(state.generated),
                    total_slots,
                    f"{date.isoformat()} - {group.name or group.id}",
                    current_day=date,
                    current_group=group.name or group.id
                )
                if self.cancel_event is not None and self.cancel_event.is_set():
                    logger.warning(f"Generation cancelled after {processed}/{total_slots} cells")
                    cancelled = True
                    break
                yield

        # 3. Optimization (extension point)
        if not cancelled and self.options.optimization_level == OptimizationLevel.THOROUGH:
            self._emit("optimizing", 95, len(state.generated), total_slots, "Optimizing schedule...")
            yield
            self._optimize(state)

        # 4. Finalize
        state.finalize_counts()
        score = self.scorer.schedule_score(state.generated)
        generated = len(state.generated)

        if cancelled:
            status = "cancelled"
        elif generated == 0:
            status = "failed"
        elif capped or generated < total_slots * 0.5:
            status = "partial"
        else:
            status = "completed"

        self._emit(
            "cancelled" if cancelled else "completed", 100, generated, total_slots,
            f"Generated {generated} slots"
        )

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Generation {status}: {generated} generated, {state.stats.total_slots_existing} existing, "
            f"{state.stats.total_slots_skipped} skipped in {duration_ms:.0f} ms"
        )

        return GenerationResult(
            success=generated > 0,
            status=status,
            slots=state.generated,
            score=score,
            violations=state.violations,
            stats=state.stats,
            duration_ms=duration_ms
        )

    def _cells(self, dates: List[date_type], rng: random.Random) -> Iterator[Tuple[date_type, TemplateSlot, Group]]:
        """Chronological dates, template order, groups reshuffled per (date, slot)."""
        for date in dates:
            for template_slot in self.template_slots:
                groups = list(self.groups)
                rng.shuffle(groups)
                for group in groups:
                    yield date, template_slot, group

    def _fill_cell(
        self,
        state: GenerationState,
        date: date_type,
        template_slot: TemplateSlot,
        group: Group,
        existing: Optional[SlotAssignment],
        rng: random.Random
    ) -> None:
        choice, violations = self._find_best_activity(state, date, template_slot, group, rng)

        if choice is None:
            logger.debug(f"No valid activity for {group.id} on {date} at {time_key(template_slot.start_time)}")
            state.record_failure(violations)
            return

        activity_id, facility_id = choice
        state.add_booking(GeneratedSlot(
            id=existing.id if existing is not None else None,
            date=date,
            group_id=group.id,
            template_slot_id=template_slot.id,
            start_time=template_slot.start_time,
            end_time=template_slot.end_time,
            activity_id=activity_id,
            facility_id=facility_id,
            is_new=existing is None
        ))

    def _find_best_activity(
        self,
        state: GenerationState,
        date: date_type,
        template_slot: TemplateSlot,
        group: Group,
        rng: random.Random
    ) -> Tuple[Optional[Tuple[str, Optional[str]]], List[ConstraintViolation]]:
        """
        Returns ((activity_id, facility_id), []) for the chosen candidate,
        or (None, violations) when every activity is ruled out.
        """
        facility_id = None
        if self.options.prioritize_facility_utilization:
            facility_id = state.free_facility(date, template_slot.start_time, self.facilities)
        violations: List[ConstraintViolation] = []
        scored: List[Tuple[float, str]] = []

        for activity in self.activities:
            context = ConstraintContext(
                date=date,
                group_id=group.id,
                activity_id=activity.id,
                facility_id=facility_id,
                start_time=template_slot.start_time,
                end_time=template_slot.end_time,
                slots=state.slots
            )

            result = self.engine.evaluate_all(self.constraints, context)
            state.stats.constraints_evaluated += 1

            if not result.satisfied:
                violations.extend(result.violations)
                continue

            score = self.scorer.candidate_score(
                constraint_score=result.score,
                activity=activity,
                template_slot=template_slot,
                usage_count=state.usage(group.id, activity.id),
                rng=rng,
                jitter=self.options.random_seed is not None,
                balance=self.options.balance_activity_distribution
            )
            scored.append((score, activity.id))

        if not scored:
            return None, violations

        scored.sort(key=lambda item: item[0], reverse=True)
        top = scored[:self.settings.top_k_candidates]
        _, activity_id = rng.choice(top)
        return (activity_id, facility_id), []

    def _record_iteration_cap(self, state: GenerationState, remaining: int) -> None:
        """Cells cut by `max_iterations` count as skipped and leave one soft violation."""
        message = f"Iteration limit ({self.options.max_iterations}) reached; {remaining} cells left unprocessed"
        logger.warning(message)
        state.stats.total_slots_skipped += remaining
        state.violations.append(ConstraintViolation(
            constraint_id="max_iterations",
            constraint_name="Iteration limit",
            constraint_type="iteration_limit",
            is_hard=False,
            message=message,
            severity="major"
        ))

    def _optimize(self, state: GenerationState) -> None:
        """Hook for a local-search improvement pass. Currently leaves slots untouched."""
        state.stats.iterations_used = 1

    def _emit(
        self,
        phase: GenerationPhase,
        percentage: int,
        slots_generated: int,
        total_slots: int,
        message: str,
        current_day: Optional[date_type] = None,
        current_group: Optional[str] = None
    ) -> None:
        if self.on_progress is None:
            return
        self.on_progress(GenerationProgress(
            phase=phase,
            percentage=percentage,
            current_day=current_day,
            current_group=current_group,
            slots_generated=slots_generated,
            total_slots=total_slots,
            message=message
        ))


def generate_schedule(
    session: Session,
    groups: List[Group],
    activities: List[Activity],
    facilities: List[Facility],
    template: Optional[DayTemplate],
    constraints: List[Constraint],
    existing_slots: Optional[List[SlotAssignment]] = None,
    options: Optional[GenerationOptions] = None,
    on_progress: Optional[ProgressCallback] = None,
    rng: Optional[random.Random] = None,
    cancel_event: Optional[threading.Event] = None
) -> GenerationResult:
    """
    Feasibility-gated generation run.
    Returns a 'failed' result without generating anything when the inputs are infeasible.
    """
    if on_progress is not None:
        on_progress(GenerationProgress(phase="validating", percentage=0, message="Checking feasibility..."))

    feasibility = check_feasibility(session, groups, activities, facilities, template, constraints)
    if not feasibility.can_generate:
        logger.warning(f"Generation blocked by {len(feasibility.issues)} feasibility issue(s)")
        if on_progress is not None:
            on_progress(GenerationProgress(
                phase="failed",
                percentage=100,
                total_slots=feasibility.stats.total_slots,
                message=feasibility.issues[0].message
            ))
        return GenerationResult(
            success=False,
            status="failed",
            score=SlotScorer(get_settings()).schedule_score([]),
            feasibility=feasibility
        )

    generator = ScheduleGenerator(
        GeneratorInput(
            session=session,
            groups=groups,
            activities=activities,
            facilities=facilities,
            template_slots=template.slots,
            constraints=constraints,
            existing_slots=existing_slots or []
        ),
        options=options,
        on_progress=on_progress,
        rng=rng,
        cancel_event=cancel_event
    )
    result = generator.run()
    result.feasibility = feasibility
    return result
