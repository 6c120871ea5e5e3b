"""
Data models package for the Camp Timetable Engine.

This package exports the four pillars of the data architecture:
1. Camp (Session, Group, Activity, Facility, DayTemplate, Staff)
2. Rules (Constraint and its typed condition payloads)
3. Output (SlotAssignment, GeneratedSlot, StaffAssignment)
4. Context (DayWeather)
"""

from .camp import (
    Session,
    SessionStatus,
    Group,
    Activity,
    Facility,
    SlotType,
    TemplateSlot,
    DayTemplate,
    Staff
)

from .constraint import (
    Constraint,
    ConstraintType,
    ConstraintScope,
    ConstraintCondition,
    TimeRestrictionCondition,
    SequenceCondition,
    DailyLimitCondition,
    DailyMinimumCondition,
    ConsecutiveLimitCondition,
    StaffLimitCondition,
    WeatherSubstituteCondition,
    FacilityExclusiveCondition,
    GapRequiredCondition,
    GroupSeparationCondition
)

from .schedule import (
    SlotAssignment,
    GeneratedSlot,
    StaffAssignment,
    StaffRole,
    time_key
)

from .weather import (
    DayWeather,
    WeatherCondition
)

__all__ = [
    # --- Camp Models ---
    "Session",
    "SessionStatus",
    "Group",
    "Activity",
    "Facility",
    "SlotType",
    "TemplateSlot",
    "DayTemplate",
    "Staff",

    # --- Rule Models ---
    "Constraint",
    "ConstraintType",
    "ConstraintScope",
    "ConstraintCondition",
    "TimeRestrictionCondition",
    "SequenceCondition",
    "DailyLimitCondition",
    "DailyMinimumCondition",
    "ConsecutiveLimitCondition",
    "StaffLimitCondition",
    "WeatherSubstituteCondition",
    "FacilityExclusiveCondition",
    "GapRequiredCondition",
    "GroupSeparationCondition",

    # --- Output Models ---
    "SlotAssignment",
    "GeneratedSlot",
    "StaffAssignment",
    "StaffRole",
    "time_key",

    # --- Context Models ---
    "DayWeather",
    "WeatherCondition",
]
