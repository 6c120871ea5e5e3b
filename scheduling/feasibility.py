"""
Pre-flight Feasibility Checks.

Validates the full input set before a generation run and reports what would
block it (errors) or degrade it (warnings). Nothing is generated here.
"""

import logging
from typing import List, Literal, Optional
from pydantic import BaseModel, Field

from models import Session, Group, Activity, Facility, DayTemplate, TemplateSlot, Constraint, ConstraintType
from .config import get_settings

logger = logging.getLogger(__name__)

IssueCategory = Literal["groups", "activities", "facilities", "constraints", "template", "dates"]


class FeasibilityIssue(BaseModel):
    type: Literal["error", "warning"]
    category: IssueCategory
    message: str
    details: Optional[str] = None


class FeasibilityStats(BaseModel):
    total_days: int = 0
    total_groups: int = 0
    total_activities: int = 0
    total_facilities: int = 0
    slots_per_day: int = 0
    total_slots: int = 0
    hard_constraints: int = 0
    soft_constraints: int = 0


class FeasibilityResult(BaseModel):
    can_generate: bool
    issues: List[FeasibilityIssue] = Field(default_factory=list)
    warnings: List[FeasibilityIssue] = Field(default_factory=list)
    stats: FeasibilityStats


def check_feasibility(
    session: Session,
    groups: List[Group],
    activities: List[Activity],
    facilities: List[Facility],
    template: Optional[DayTemplate],
    constraints: List[Constraint],
    template_slots: Optional[List[TemplateSlot]] = None
) -> FeasibilityResult:
    """
    Run every pre-flight check.
    `template_slots` overrides `template.slots` when the collaborator loads them separately.
    """
    settings = get_settings()
    issues: List[FeasibilityIssue] = []
    warnings: List[FeasibilityIssue] = []

    def error(category: IssueCategory, message: str, details: Optional[str] = None):
        issues.append(FeasibilityIssue(type="error", category=category, message=message, details=details))

    def warn(category: IssueCategory, message: str, details: Optional[str] = None):
        warnings.append(FeasibilityIssue(type="warning", category=category, message=message, details=details))

    # 1. Dates & Status
    total_days = (session.end_date - session.start_date).days + 1
    if total_days <= 0:
        error("dates", "Session dates are not valid", "The end date must not be before the start date")
        total_days = 0

    if not session.is_schedulable:
        error("dates", "Session is not open for planning", f"Current status: {session.status.value}")

    # 2. Groups
    active_groups = [g for g in groups if g.is_active]
    if not active_groups:
        error("groups", "There are no active groups", "At least one active group is needed to build a schedule")

    # 3. Activities
    active_activities = [a for a in activities if a.is_active]
    if not active_activities:
        error("activities", "There are no active activities", "At least one active activity is required")
    elif len(active_activities) < settings.min_recommended_activities:
        warn(
            "activities",
            "Few activities available",
            f"Only {len(active_activities)} activities. At least 5 are recommended for variety"
        )

    # 4. Facilities
    active_facilities = [f for f in facilities if f.is_active]
    if not active_facilities:
        warn("facilities", "There are no facilities", "The schedule will be generated without space assignment")

    # 5. Template
    slots = template_slots if template_slots is not None else (template.slots if template else [])
    schedulable = [s for s in slots if s.is_generation_target]
    if template is None:
        error("template", "There is no default day template", "Mark one day template as the default")
    elif not schedulable:
        error("template", "The template has no activity slots", "Add schedulable 'activity' slots to the template")

    # 6. Constraints
    active_constraints = [c for c in constraints if c.is_active]
    hard = [c for c in active_constraints if c.is_hard]
    soft = [c for c in active_constraints if not c.is_hard]

    if len(hard) > settings.max_hard_constraints_warning:
        warn(
            "constraints",
            "Many hard constraints",
            f"{len(hard)} hard constraints may make a valid schedule hard to find"
        )

    exclusive = [c for c in hard if c.kind == ConstraintType.FACILITY_EXCLUSIVE]
    if exclusive and len(active_facilities) < len(active_groups):
        warn(
            "constraints",
            "Possible facility exclusivity conflict",
            f"{len(active_groups)} groups but only {len(active_facilities)} facilities under exclusivity rules"
        )

    stats = FeasibilityStats(
        total_days=total_days,
        total_groups=len(active_groups),
        total_activities=len(active_activities),
        total_facilities=len(active_facilities),
        slots_per_day=len(schedulable),
        total_slots=total_days * len(active_groups) * len(schedulable),
        hard_constraints=len(hard),
        soft_constraints=len(soft)
    )

    if stats.total_slots > settings.large_schedule_threshold:
        warn("dates", "Large schedule", f"{stats.total_slots} slots to generate. This may take a few minutes")

    for issue in issues:
        logger.warning(f"Feasibility [{issue.category}]: {issue.message}")

    return FeasibilityResult(
        can_generate=not issues,
        issues=issues,
        warnings=warnings,
        stats=stats
    )


def scheduling_requirements(
    stats: FeasibilityStats,
    activities: List[Activity],
    constraints: List[Constraint]
) -> List[str]:
    """Human-readable summary of what a run will try to satisfy."""
    requirements = []

    active = [a for a in activities if a.is_active]
    if active:
        per_activity = stats.total_slots // len(active)
        requirements.append(f"Each activity will appear about {per_activity} times")

    for c in constraints:
        if c.is_active and c.kind == ConstraintType.DAILY_MINIMUM:
            requirements.append(f"{c.name}: {c.error_message or 'daily minimum'}")

    return requirements
