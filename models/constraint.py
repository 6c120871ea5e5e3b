"""
Constraint data models for the Timetable Engine.

A constraint is a rule row (hard or soft, with a priority) plus a typed
'condition' payload. Each constraint kind has its own payload model, and the
payloads form a discriminated union on the `kind` field.
"""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, Field, model_validator, ConfigDict
from datetime import time


class ConstraintType(str, Enum):
    """The ten rule kinds understood by the constraint engine."""
    TIME_RESTRICTION = "time_restriction"
    SEQUENCE = "sequence"
    DAILY_LIMIT = "daily_limit"
    DAILY_MINIMUM = "daily_minimum"
    CONSECUTIVE_LIMIT = "consecutive_limit"
    STAFF_LIMIT = "staff_limit"
    WEATHER_SUBSTITUTE = "weather_substitute"
    FACILITY_EXCLUSIVE = "facility_exclusive"
    GAP_REQUIRED = "gap_required"
    GROUP_SEPARATION = "group_separation"


KNOWN_CONSTRAINT_TYPES = {t.value for t in ConstraintType}


# --- Condition payloads (one per ConstraintType) ---

class TimeRestrictionCondition(BaseModel):
    kind: Literal["time_restriction"] = "time_restriction"
    activity_id: Optional[str] = None
    allowed_times: List[time] = Field(default_factory=list, description="Start times the activity may use")
    blocked_times: List[time] = Field(default_factory=list, description="Start times the activity may not use")


class SequenceCondition(BaseModel):
    kind: Literal["sequence"] = "sequence"
    before_activity_id: Optional[str] = None
    after_activity_id: Optional[str] = None
    must_follow: bool = Field(
        default=False,
        description="True: 'before' forces 'after' next. False: 'after' may not follow 'before'."
    )


class DailyLimitCondition(BaseModel):
    kind: Literal["daily_limit"] = "daily_limit"
    activity_id: Optional[str] = None
    max_count: Optional[int] = Field(default=None, ge=1)


class DailyMinimumCondition(BaseModel):
    kind: Literal["daily_minimum"] = "daily_minimum"
    activity_id: Optional[str] = None
    min_count: Optional[int] = Field(default=None, ge=0)


class ConsecutiveLimitCondition(BaseModel):
    kind: Literal["consecutive_limit"] = "consecutive_limit"
    activity_id: Optional[str] = Field(default=None, description="If None, applies to whatever the candidate is")
    max_consecutive: Optional[int] = Field(default=None, ge=1)


class StaffLimitCondition(BaseModel):
    kind: Literal["staff_limit"] = "staff_limit"
    staff_id: Optional[str] = None
    max_slots_per_day: Optional[int] = Field(default=None, ge=0)


class WeatherSubstituteCondition(BaseModel):
    kind: Literal["weather_substitute"] = "weather_substitute"
    original_activity_id: Optional[str] = None
    substitute_activity_id: Optional[str] = None


class FacilityExclusiveCondition(BaseModel):
    kind: Literal["facility_exclusive"] = "facility_exclusive"
    facility_id: Optional[str] = Field(default=None, description="If None, every facility is exclusive")


class GapRequiredCondition(BaseModel):
    kind: Literal["gap_required"] = "gap_required"
    activity_id: Optional[str] = None
    min_gap_minutes: Optional[int] = Field(default=None, ge=0)


class GroupSeparationCondition(BaseModel):
    kind: Literal["group_separation"] = "group_separation"
    group_ids: List[str] = Field(default_factory=list)
    facility_based: bool = Field(
        default=False,
        description="True: separate by shared facility. False: separate by shared activity."
    )


ConstraintCondition = Annotated[
    Union[
        TimeRestrictionCondition,
        SequenceCondition,
        DailyLimitCondition,
        DailyMinimumCondition,
        ConsecutiveLimitCondition,
        StaffLimitCondition,
        WeatherSubstituteCondition,
        FacilityExclusiveCondition,
        GapRequiredCondition,
        GroupSeparationCondition,
    ],
    Field(discriminator="kind"),
]


class ConstraintScope(BaseModel):
    """Optional narrowing of a rule. Empty lists mean 'applies to all'."""
    activity_ids: List[str] = Field(default_factory=list)
    facility_ids: List[str] = Field(default_factory=list)
    group_ids: List[str] = Field(default_factory=list)


class Constraint(BaseModel):
    """
    A scheduling rule.
    Hard rules disqualify a candidate outright; soft rules only weigh the score.
    """

    id: str = Field(description="Unique identifier")
    name: str = Field(default="", description="Human-readable name")
    constraint_type: str = Field(description="One of ConstraintType; unknown kinds are tolerated")
    is_hard: bool = Field(default=True)
    priority: int = Field(default=5, ge=1, le=10, description="Weight of the rule (10 = strongest)")
    is_active: bool = True

    scope: ConstraintScope = Field(default_factory=ConstraintScope)
    condition: Optional[ConstraintCondition] = Field(default=None)
    error_message: Optional[str] = Field(default=None, description="Message shown when violated")

    @model_validator(mode='before')
    @classmethod
    def tag_condition(cls, data):
        """Stamp raw condition dicts with the constraint's kind."""
        if not isinstance(data, dict):
            return data
        ctype = data.get("constraint_type")
        if isinstance(ctype, ConstraintType):
            ctype = ctype.value
        data = {**data, "constraint_type": ctype}
        condition = data.get("condition")

        if ctype not in KNOWN_CONSTRAINT_TYPES:
            # No payload model exists for unknown kinds
            data["condition"] = None
        elif isinstance(condition, dict) and "kind" not in condition:
            data["condition"] = {**condition, "kind": ctype}
        return data

    @model_validator(mode='after')
    def validate_condition_kind(self):
        if self.condition is not None and self.condition.kind != self.constraint_type:
            raise ValueError(
                f"Condition kind '{self.condition.kind}' does not match constraint type '{self.constraint_type}'"
            )
        return self

    @property
    def kind(self) -> Optional[ConstraintType]:
        """The typed kind, or None for rule kinds this engine does not know."""
        if self.constraint_type in KNOWN_CONSTRAINT_TYPES:
            return ConstraintType(self.constraint_type)
        return None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "c_swim_limit",
            "name": "Max two swims a day",
            "constraint_type": "daily_limit",
            "is_hard": True,
            "priority": 8,
            "condition": {"activity_id": "act_swim", "max_count": 2}
        }
    })
