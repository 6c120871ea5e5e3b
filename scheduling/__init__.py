"""
Scheduling package for the Camp Timetable Engine.

1. Pre-flight (check_feasibility)
2. Rules (ConstraintEngine and its module-level helpers)
3. Generation (ScheduleGenerator, generate_schedule)
4. Post-processing (conflicts, weather substitutions, staff assignment)
"""

from .config import Settings, get_settings

from .exceptions import (
    SchedulingError,
    InvalidGenerationWindowError
)

from .slot_index import SlotIndex

from .constraints import (
    ConstraintEngine,
    ConstraintContext,
    ConstraintEvaluation,
    ConstraintViolation,
    AggregateEvaluation,
    evaluate_constraint,
    evaluate_all_constraints,
    is_valid_assignment,
    valid_activities
)

from .feasibility import (
    FeasibilityIssue,
    FeasibilityStats,
    FeasibilityResult,
    check_feasibility,
    scheduling_requirements
)

from .state import GenerationState, GenerationStats
from .scoring import GenerationScore, SlotScorer

from .engine import (
    OptimizationLevel,
    GenerationOptions,
    GenerationProgress,
    GenerationResult,
    GeneratorInput,
    ScheduleGenerator,
    generate_schedule
)

from .conflicts import (
    Conflict,
    ConflictType,
    ConflictSummary,
    detect_conflicts,
    slot_conflicts,
    conflict_summary,
    is_schedule_valid
)

from .weather import (
    WeatherSubstitution,
    WeatherCheckResult,
    SlotUpdate,
    WeatherSummary,
    is_bad_weather_for_outdoor,
    is_activity_affected_by_weather,
    affected_slots,
    find_substitute_activity,
    suggested_substitutions,
    check_weather_impact,
    apply_substitutions,
    weather_summary
)

from .staff import (
    AutoAssignResult,
    StaffWorkload,
    auto_assign_staff,
    calculate_staff_workload,
    staff_suggestions,
    staff_availability_matrix
)

__all__ = [
    # --- Config & Errors ---
    "Settings",
    "get_settings",
    "SchedulingError",
    "InvalidGenerationWindowError",

    # --- Rules ---
    "SlotIndex",
    "ConstraintEngine",
    "ConstraintContext",
    "ConstraintEvaluation",
    "ConstraintViolation",
    "AggregateEvaluation",
    "evaluate_constraint",
    "evaluate_all_constraints",
    "is_valid_assignment",
    "valid_activities",

    # --- Pre-flight ---
    "FeasibilityIssue",
    "FeasibilityStats",
    "FeasibilityResult",
    "check_feasibility",
    "scheduling_requirements",

    # --- Generation ---
    "GenerationState",
    "GenerationStats",
    "GenerationScore",
    "SlotScorer",
    "OptimizationLevel",
    "GenerationOptions",
    "GenerationProgress",
    "GenerationResult",
    "GeneratorInput",
    "ScheduleGenerator",
    "generate_schedule",

    # --- Post-processing ---
    "Conflict",
    "ConflictType",
    "ConflictSummary",
    "detect_conflicts",
    "slot_conflicts",
    "conflict_summary",
    "is_schedule_valid",
    "WeatherSubstitution",
    "WeatherCheckResult",
    "SlotUpdate",
    "WeatherSummary",
    "is_bad_weather_for_outdoor",
    "is_activity_affected_by_weather",
    "affected_slots",
    "find_substitute_activity",
    "suggested_substitutions",
    "check_weather_impact",
    "apply_substitutions",
    "weather_summary",
    "AutoAssignResult",
    "StaffWorkload",
    "auto_assign_staff",
    "calculate_staff_workload",
    "staff_suggestions",
    "staff_availability_matrix",
]
