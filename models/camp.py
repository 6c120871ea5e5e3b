"""
Camp data models for the Timetable Engine.

This module defines the 'Supply' and 'Shape' of a camp session:
1. Session (the date range being planned)
2. Groups (cohorts of campers that need a programme)
3. Activities & Facilities (what can be done, and where)
4. Day Templates (the repeating skeleton of time-slots)
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator, ConfigDict
from datetime import date, datetime, time


class SessionStatus(str, Enum):
    """Lifecycle of a camp session."""
    DRAFT = "draft"
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SlotType(str, Enum):
    """Kinds of blocks that make up a day template."""
    ACTIVITY = "activity"
    MEAL = "meal"
    BREAK = "break"
    REST = "rest"
    FREE = "free"
    ASSEMBLY = "assembly"
    TRANSITION = "transition"


class Session(BaseModel):
    """
    A camp session (e.g. 'July Week 2').
    Dates are NOT cross-validated here: an inverted range is reported by the
    feasibility checker instead of being rejected at load time.
    """
    id: str = Field(description="Unique identifier")
    name: str = Field(default="", description="Human-readable name")
    start_date: date = Field(description="First day of the session (inclusive)")
    end_date: date = Field(description="Last day of the session (inclusive)")
    status: SessionStatus = Field(default=SessionStatus.PLANNING)

    @property
    def is_schedulable(self) -> bool:
        return self.status in (SessionStatus.PLANNING, SessionStatus.ACTIVE)


class Group(BaseModel):
    """One cohort of campers."""
    id: str = Field(description="Unique identifier")
    session_id: Optional[str] = Field(default=None, description="Owning session")
    name: str = Field(default="", description="e.g. 'Eagles'")
    age_min: Optional[int] = Field(default=None, ge=0)
    age_max: Optional[int] = Field(default=None, ge=0)
    capacity: Optional[int] = Field(default=None, ge=0, description="Maximum campers in the group")
    current_count: int = Field(default=0, ge=0, description="Current headcount")
    is_active: bool = True

    @model_validator(mode='after')
    def validate_ages(self):
        if self.age_min is not None and self.age_max is not None and self.age_max < self.age_min:
            raise ValueError("age_max cannot be lower than age_min")
        return self


class Activity(BaseModel):
    """
    Something a group can be scheduled to do.
    Duration only feeds the score; it never rejects a slot on its own.
    """

    # --- Core Identity ---
    id: str = Field(description="Unique identifier for the activity")
    name: str = Field(default="", description="Human-readable name")
    description: str = Field(default="")

    # --- Timing ---
    duration_minutes: int = Field(default=45, ge=5, le=480, description="Nominal duration")
    setup_minutes: int = Field(default=0, ge=0, description="Preparation before the activity")
    cleanup_minutes: int = Field(default=0, ge=0, description="Tidy-up after the activity")

    # --- Participation ---
    min_participants: Optional[int] = Field(default=None, ge=0)
    max_participants: Optional[int] = Field(default=None, ge=0)
    min_age: Optional[int] = Field(default=None, ge=0)
    max_age: Optional[int] = Field(default=None, ge=0)

    # --- Resources ---
    required_staff_count: int = Field(default=1, ge=1, description="Instructors needed per slot")
    weather_dependent: bool = Field(
        default=False,
        description="If True, the activity is dropped on adverse-weather days"
    )

    is_active: bool = True

    @model_validator(mode='after')
    def validate_ranges(self):
        if (self.min_participants is not None and self.max_participants is not None
                and self.max_participants < self.min_participants):
            raise ValueError("max_participants cannot be lower than min_participants")
        if self.min_age is not None and self.max_age is not None and self.max_age < self.min_age:
            raise ValueError("max_age cannot be lower than min_age")
        return self

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "act_kayak",
            "name": "Kayaking",
            "duration_minutes": 60,
            "setup_minutes": 10,
            "cleanup_minutes": 10,
            "min_age": 10,
            "required_staff_count": 2,
            "weather_dependent": True
        }
    })


class Facility(BaseModel):
    """A physical space. The engine tolerates a camp with none."""
    id: str = Field(description="Unique identifier")
    name: str = Field(default="", description="e.g. 'Lake Dock'")
    capacity: Optional[int] = Field(default=None, ge=0, description="Maximum people at once")
    indoor: bool = False
    is_active: bool = True


class TemplateSlot(BaseModel):
    """A named time window inside the repeating day skeleton."""
    id: str = Field(description="Unique identifier")
    name: str = Field(default="")
    start_time: time
    end_time: time
    slot_type: SlotType = Field(default=SlotType.ACTIVITY)
    is_schedulable: bool = True
    sort_order: int = 0

    @model_validator(mode='after')
    def validate_times(self):
        if self.start_time >= self.end_time:
            raise ValueError("End time must be strictly after start time")
        return self

    @property
    def duration_minutes(self) -> int:
        start = datetime.combine(date.min, self.start_time)
        end = datetime.combine(date.min, self.end_time)
        return int((end - start).total_seconds() // 60)

    @property
    def is_generation_target(self) -> bool:
        return self.slot_type == SlotType.ACTIVITY and self.is_schedulable


class DayTemplate(BaseModel):
    """The default day skeleton applied to every date of a session."""
    id: str = Field(description="Unique identifier")
    name: str = Field(default="")
    is_default: bool = True
    slots: List[TemplateSlot] = Field(default_factory=list)

    def schedulable_slots(self) -> List[TemplateSlot]:
        """Activity-type, schedulable slots in template order."""
        return sorted(
            (s for s in self.slots if s.is_generation_target),
            key=lambda s: (s.sort_order, s.start_time)
        )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": "tpl_default",
            "name": "Standard Day",
            "slots": [
                {"id": "ts_1", "name": "Morning 1", "start_time": "09:00:00", "end_time": "10:00:00",
                 "slot_type": "activity", "sort_order": 0},
                {"id": "ts_2", "name": "Lunch", "start_time": "12:00:00", "end_time": "13:00:00",
                 "slot_type": "meal", "is_schedulable": False, "sort_order": 1}
            ]
        }
    })


class Staff(BaseModel):
    """A member of camp personnel who can run activities."""
    id: str = Field(description="Unique identifier")
    first_name: str = Field(default="")
    last_name: str = Field(default="")
    role: Optional[str] = Field(default=None, description="instructor, supervisor, coordinator, support")
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.id
