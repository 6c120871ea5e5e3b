"""
Weather Substitution.

Finds weather-sensitive slots on adverse days and proposes replacement activities.
Proposals are never applied here; the collaborator overwrites each slot's
activity reference, which is safe to repeat.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence
from pydantic import BaseModel, Field

from models import Activity, Constraint, ConstraintType, DayWeather, SlotAssignment, WeatherCondition

logger = logging.getLogger(__name__)

ADVERSE_CONDITIONS = frozenset({
    WeatherCondition.RAINY,
    WeatherCondition.STORMY,
    WeatherCondition.VERY_HOT,
    WeatherCondition.VERY_COLD,
})

WEATHER_LABELS: Dict[WeatherCondition, str] = {
    WeatherCondition.SUNNY: "Sunny",
    WeatherCondition.CLOUDY: "Cloudy",
    WeatherCondition.RAINY: "Rain",
    WeatherCondition.STORMY: "Storm",
    WeatherCondition.VERY_HOT: "Heatwave",
    WeatherCondition.VERY_COLD: "Severe cold",
}


class WeatherSubstitution(BaseModel):
    slot_id: str
    original_activity_id: str
    original_activity_name: str
    substitute_activity_id: str
    substitute_activity_name: str
    reason: str


class WeatherCheckResult(BaseModel):
    affected_slots: List[SlotAssignment] = Field(default_factory=list)
    substitutions: List[WeatherSubstitution] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class SlotUpdate(BaseModel):
    slot_id: str
    activity_id: str
    reason: str


class WeatherSummary(BaseModel):
    good_days: int = 0
    bad_days: int = 0
    by_condition: Dict[WeatherCondition, int] = Field(default_factory=dict)


def is_bad_weather_for_outdoor(condition: WeatherCondition) -> bool:
    return condition in ADVERSE_CONDITIONS


def is_activity_affected_by_weather(activity: Activity, condition: WeatherCondition) -> bool:
    return activity.weather_dependent and is_bad_weather_for_outdoor(condition)


def affected_slots(
    slots: Sequence[SlotAssignment],
    activities: List[Activity],
    weather: DayWeather
) -> List[SlotAssignment]:
    """Slots on the weather's date whose activity cannot run in it."""
    activity_map = {a.id: a for a in activities}
    affected = []
    for slot in slots:
        if slot.date != weather.date or not slot.activity_id:
            continue
        activity = activity_map.get(slot.activity_id)
        if activity and is_activity_affected_by_weather(activity, weather.condition):
            affected.append(slot)
    return affected


def find_substitute_activity(original_activity_id: str, constraints: List[Constraint]) -> Optional[str]:
    """Explicit original -> substitute mapping from active weather_substitute rules."""
    for constraint in constraints:
        if not constraint.is_active or constraint.kind != ConstraintType.WEATHER_SUBSTITUTE:
            continue
        cond = constraint.condition
        if cond is not None and cond.original_activity_id == original_activity_id:
            return cond.substitute_activity_id
    return None


def suggested_substitutions(
    slots: Sequence[SlotAssignment],
    activities: List[Activity],
    constraints: List[Constraint]
) -> List[WeatherSubstitution]:
    """
    One proposal per affected slot.
    An explicit mapping wins unless its substitute is inactive or itself weather-dependent;
    otherwise the first active, weather-proof activity is used.
    """
    activity_map = {a.id: a for a in activities}
    substitutions = []

    for slot in slots:
        if not slot.activity_id:
            continue
        original = activity_map.get(slot.activity_id)
        if original is None:
            continue

        substitute = None
        reason = "Weather substitution"

        mapped_id = find_substitute_activity(slot.activity_id, constraints)
        if mapped_id:
            mapped = activity_map.get(mapped_id)
            if mapped is not None and mapped.is_active and not mapped.weather_dependent:
                substitute = mapped
            else:
                logger.warning(f"Ignoring weather substitute {mapped_id} for {original.id}: unknown, inactive or weather-dependent")

        if substitute is None:
            substitute = next(
                (a for a in activities if a.is_active and not a.weather_dependent and a.id != original.id),
                None
            )
            reason = "Indoor alternative activity"

        if substitute is None:
            continue

        substitutions.append(WeatherSubstitution(
            slot_id=slot.key,
            original_activity_id=original.id,
            original_activity_name=original.name or original.id,
            substitute_activity_id=substitute.id,
            substitute_activity_name=substitute.name or substitute.id,
            reason=reason
        ))

    return substitutions


def check_weather_impact(
    slots: Sequence[SlotAssignment],
    activities: List[Activity],
    constraints: List[Constraint],
    weather_days: List[DayWeather]
) -> WeatherCheckResult:
    """Full weather pass over a schedule."""
    result = WeatherCheckResult()

    for weather in weather_days:
        if not is_bad_weather_for_outdoor(weather.condition):
            continue

        day_affected = affected_slots(slots, activities, weather)
        if not day_affected:
            continue

        result.affected_slots.extend(day_affected)
        result.warnings.append(
            f"{weather.date.isoformat()}: {WEATHER_LABELS[weather.condition]} - "
            f"{len(day_affected)} activities affected"
        )
        result.substitutions.extend(suggested_substitutions(day_affected, activities, constraints))

    return result


def apply_substitutions(substitutions: List[WeatherSubstitution]) -> List[SlotUpdate]:
    """Update records for the collaborator; applying them twice changes nothing."""
    return [
        SlotUpdate(
            slot_id=sub.slot_id,
            activity_id=sub.substitute_activity_id,
            reason=f"Substitution: {sub.original_activity_name} -> {sub.substitute_activity_name}"
        )
        for sub in substitutions
    ]


def weather_summary(weather_days: List[DayWeather]) -> WeatherSummary:
    by_condition = {c: 0 for c in WeatherCondition}
    by_condition.update(Counter(w.condition for w in weather_days))
    bad = sum(1 for w in weather_days if is_bad_weather_for_outdoor(w.condition))
    return WeatherSummary(good_days=len(weather_days) - bad, bad_days=bad, by_condition=by_condition)
