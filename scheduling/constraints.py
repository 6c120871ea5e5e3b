"""
Constraint Evaluation Logic.

This module answers the question: "Can Group G do Activity X in this slot, and how well does it fit?"
Every rule kind has one evaluator returning (satisfied, score 0-100, message).
Hard rules that come back unsatisfied disqualify the candidate; soft rules only weigh the score.
"""

import logging
from dataclasses import dataclass, field
from datetime import date as date_type, time as time_type
from typing import Callable, Dict, Iterable, List, Optional

from models import Constraint, ConstraintType, SlotAssignment, time_key
from .slot_index import SlotIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstraintEvaluation:
    """Outcome of one rule against one candidate."""
    satisfied: bool
    score: float = 100.0
    message: Optional[str] = None


PASS = ConstraintEvaluation(True, 100.0)


@dataclass
class ConstraintViolation:
    """Detailed reason for rejection."""
    constraint_id: str
    constraint_name: str
    constraint_type: str
    is_hard: bool
    message: str
    affected_slots: List[str] = field(default_factory=list)
    severity: str = "minor"  # critical | major | minor
    date: Optional[date_type] = None
    group_id: Optional[str] = None
    activity_id: Optional[str] = None


@dataclass
class AggregateEvaluation:
    """Outcome of every active rule against one candidate."""
    satisfied: bool
    score: float
    violations: List[ConstraintViolation] = field(default_factory=list)


@dataclass
class ConstraintContext:
    """
    A candidate assignment plus the committed slots it is judged against.
    `exclude` hides one slot from every view (used when auditing a slot against the rest).
    """
    date: date_type
    group_id: str
    activity_id: Optional[str]
    facility_id: Optional[str]
    start_time: time_type
    end_time: time_type
    slots: SlotIndex
    exclude: Optional[SlotAssignment] = None

    def _visible(self, slots: Iterable[SlotAssignment]) -> List[SlotAssignment]:
        if self.exclude is None:
            return list(slots)
        return [s for s in slots if s is not self.exclude]

    @property
    def all_slots(self) -> List[SlotAssignment]:
        return self._visible(self.slots.all)

    @property
    def day_slots(self) -> List[SlotAssignment]:
        """This group's slots on the candidate's date."""
        return self._visible(self.slots.for_group_day(self.group_id, self.date))

    @property
    def group_slots(self) -> List[SlotAssignment]:
        """This group's slots on every date."""
        return self._visible(self.slots.for_group(self.group_id))

    @property
    def concurrent_slots(self) -> List[SlotAssignment]:
        """Every group's slots starting at the candidate's date and time."""
        return self._visible(self.slots.at(self.date, self.start_time))

    @property
    def slot_key(self) -> str:
        return f"{self.date.isoformat()}_{self.group_id}_{time_key(self.start_time)}"


def _minutes(value: time_type) -> int:
    return value.hour * 60 + value.minute


def _fail(message: str) -> ConstraintEvaluation:
    return ConstraintEvaluation(False, 0.0, message)


class ConstraintEngine:
    """
    Pure evaluator of scheduling rules.
    Holds no run state; all slot knowledge arrives through the ConstraintContext.
    """

    def __init__(self):
        self._evaluators: Dict[ConstraintType, Callable[[Constraint, ConstraintContext], ConstraintEvaluation]] = {
            ConstraintType.TIME_RESTRICTION: self._check_time_restriction,
            ConstraintType.SEQUENCE: self._check_sequence,
            ConstraintType.DAILY_LIMIT: self._check_daily_limit,
            ConstraintType.DAILY_MINIMUM: self._check_daily_minimum,
            ConstraintType.CONSECUTIVE_LIMIT: self._check_consecutive_limit,
            ConstraintType.STAFF_LIMIT: self._check_staff_limit,
            ConstraintType.WEATHER_SUBSTITUTE: self._check_weather_substitute,
            ConstraintType.FACILITY_EXCLUSIVE: self._check_facility_exclusive,
            ConstraintType.GAP_REQUIRED: self._check_gap_required,
            ConstraintType.GROUP_SEPARATION: self._check_group_separation,
        }

    # --- Public API ---

    def evaluate(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        """Evaluate a single rule. Unknown rule kinds fail open."""
        evaluator = self._evaluators.get(constraint.kind) if constraint.kind else None
        if evaluator is None:
            logger.warning(f"No evaluator for constraint type: {constraint.constraint_type} ({constraint.id})")
            return PASS

        if not self._applies(constraint, context):
            return PASS

        return evaluator(constraint, context)

    def evaluate_all(self, constraints: List[Constraint], context: ConstraintContext) -> AggregateEvaluation:
        """
        Evaluate every active rule.
        Score is the priority-weighted mean: sum(score * priority/10) / number of active rules.
        """
        active = [c for c in constraints if c.is_active]
        violations: List[ConstraintViolation] = []
        total_score = 0.0
        hard_failed = False

        for constraint in active:
            result = self.evaluate(constraint, context)

            if not result.satisfied:
                violations.append(self.build_violation(constraint, context, result))
                if constraint.is_hard:
                    hard_failed = True

            total_score += result.score * (constraint.priority / 10)

        average = total_score / len(active) if active else 100.0
        return AggregateEvaluation(satisfied=not hard_failed, score=average, violations=violations)

    def is_valid_assignment(self, constraints: List[Constraint], context: ConstraintContext) -> bool:
        """True if no active hard rule rejects the candidate."""
        for constraint in constraints:
            if not (constraint.is_active and constraint.is_hard):
                continue
            if not self.evaluate(constraint, context).satisfied:
                return False
        return True

    def valid_activities(
        self,
        activity_ids: List[str],
        constraints: List[Constraint],
        base_context: ConstraintContext
    ) -> List[str]:
        """Activities that survive the hard rules for the context's cell."""
        valid = []
        for activity_id in activity_ids:
            candidate = ConstraintContext(
                date=base_context.date,
                group_id=base_context.group_id,
                activity_id=activity_id,
                facility_id=base_context.facility_id,
                start_time=base_context.start_time,
                end_time=base_context.end_time,
                slots=base_context.slots,
                exclude=base_context.exclude
            )
            if self.is_valid_assignment(constraints, candidate):
                valid.append(activity_id)
        return valid

    @staticmethod
    def build_violation(
        constraint: Constraint,
        context: ConstraintContext,
        result: ConstraintEvaluation
    ) -> ConstraintViolation:
        return ConstraintViolation(
            constraint_id=constraint.id,
            constraint_name=constraint.name,
            constraint_type=constraint.constraint_type,
            is_hard=constraint.is_hard,
            message=result.message or constraint.error_message or "Constraint violated",
            affected_slots=[context.slot_key],
            severity="critical" if constraint.is_hard else "minor",
            date=context.date,
            group_id=context.group_id,
            activity_id=context.activity_id
        )

    # --- Scope ---

    def _applies(self, constraint: Constraint, context: ConstraintContext) -> bool:
        scope = constraint.scope
        if scope.group_ids and context.group_id not in scope.group_ids:
            return False
        if scope.activity_ids and context.activity_id not in scope.activity_ids:
            return False
        if scope.facility_ids and context.facility_id not in scope.facility_ids:
            return False
        return True

    # --- Evaluators ---

    def _check_time_restriction(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        cond = constraint.condition
        if cond is None:
            return PASS
        if cond.activity_id and cond.activity_id != context.activity_id:
            return PASS

        current = time_key(context.start_time)
        if current in {time_key(t) for t in cond.blocked_times}:
            return _fail(f"Activity is not allowed at {current}")

        allowed = [time_key(t) for t in cond.allowed_times]
        if allowed and current not in allowed:
            return _fail(f"Activity is only allowed at: {', '.join(allowed)}")

        return PASS

    def _check_sequence(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        cond = constraint.condition
        if cond is None or not cond.before_activity_id:
            return PASS

        previous = [s for s in context.day_slots if s.end_time <= context.start_time]
        if not previous:
            return PASS
        predecessor = max(previous, key=lambda s: s.end_time)

        if predecessor.activity_id != cond.before_activity_id:
            return PASS

        if cond.must_follow:
            if context.activity_id != cond.after_activity_id:
                return _fail(f"{cond.before_activity_id} must be followed by {cond.after_activity_id}")
        elif context.activity_id == cond.after_activity_id:
            return _fail(f"{cond.after_activity_id} cannot follow {cond.before_activity_id}")

        return PASS

    def _check_daily_limit(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        cond = constraint.condition
        if cond is None or not cond.activity_id or not cond.max_count:
            return PASS
        if cond.activity_id != context.activity_id:
            return PASS

        count = sum(1 for s in context.day_slots if s.activity_id == cond.activity_id)

        # +1 for the candidate itself
        if count + 1 > cond.max_count:
            return _fail(f"Activity already appears {count} times today (max: {cond.max_count})")

        utilization_score = max(0.0, 100 - (count / cond.max_count) * 50)
        return ConstraintEvaluation(True, utilization_score)

    def _check_daily_minimum(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        # Day-level minimums cannot be judged from a single candidate
        return PASS

    def _check_consecutive_limit(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        cond = constraint.condition
        if cond is None or not cond.max_consecutive:
            return PASS

        target = cond.activity_id or context.activity_id
        if context.activity_id != target:
            return PASS

        earlier = sorted(
            (s for s in context.day_slots if s.start_time < context.start_time),
            key=lambda s: s.start_time
        )

        run = 0
        for slot in reversed(earlier):
            if slot.activity_id != target:
                break
            run += 1

        if run + 1 > cond.max_consecutive:
            return _fail(f"Consecutive limit exceeded ({run + 1}/{cond.max_consecutive})")

        return PASS

    def _check_staff_limit(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        # Staff load is enforced by the staff assignment pass
        return PASS

    def _check_weather_substitute(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        # Applied by the weather substitution pass, not per candidate
        return PASS

    def _check_facility_exclusive(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        if not context.facility_id:
            return PASS

        cond = constraint.condition
        if cond is not None and cond.facility_id and cond.facility_id != context.facility_id:
            return PASS

        for slot in context.concurrent_slots:
            if slot.facility_id == context.facility_id and slot.group_id != context.group_id:
                return _fail(f"Facility {context.facility_id} is already used by group {slot.group_id}")

        return PASS

    def _check_gap_required(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        cond = constraint.condition
        if cond is None or not cond.activity_id or not cond.min_gap_minutes:
            return PASS
        if context.activity_id != cond.activity_id:
            return PASS

        earlier = [
            s for s in context.day_slots
            if s.activity_id == cond.activity_id and s.start_time < context.start_time
        ]
        if not earlier:
            return PASS

        last = max(earlier, key=lambda s: s.end_time)
        gap = _minutes(context.start_time) - _minutes(last.end_time)

        if gap < cond.min_gap_minutes:
            return _fail(f"A gap of {cond.min_gap_minutes} minutes is required (found {gap})")

        return PASS

    def _check_group_separation(self, constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
        cond = constraint.condition
        if cond is None or len(cond.group_ids) < 2:
            return PASS
        if context.group_id not in cond.group_ids:
            return PASS

        others = set(cond.group_ids) - {context.group_id}
        for slot in context.concurrent_slots:
            if slot.group_id not in others:
                continue

            if cond.facility_based:
                if context.facility_id and slot.facility_id == context.facility_id:
                    return _fail(f"Groups {context.group_id} and {slot.group_id} must not share a facility")
            elif slot.activity_id == context.activity_id:
                return _fail(f"Groups {context.group_id} and {slot.group_id} must not do the same activity at once")

        return PASS


_engine = ConstraintEngine()


def evaluate_constraint(constraint: Constraint, context: ConstraintContext) -> ConstraintEvaluation:
    return _engine.evaluate(constraint, context)


def evaluate_all_constraints(constraints: List[Constraint], context: ConstraintContext) -> AggregateEvaluation:
    return _engine.evaluate_all(constraints, context)


def is_valid_assignment(constraints: List[Constraint], context: ConstraintContext) -> bool:
    return _engine.is_valid_assignment(constraints, context)


def valid_activities(
    activity_ids: List[str],
    constraints: List[Constraint],
    base_context: ConstraintContext
) -> List[str]:
    return _engine.valid_activities(activity_ids, constraints, base_context)
