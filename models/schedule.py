"""
Schedule data models for the Timetable Engine.

This module defines the atomic unit the engine reasons about (a slot
assignment) and the records it hands back to the collaborator layer.
"""

from typing import Optional
from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from datetime import date as date_type, time as time_type, datetime


class StaffRole(str, Enum):
    """Role a staff member plays on a slot."""
    LEAD = "lead"
    ASSISTANT = "assistant"
    SUPERVISOR = "supervisor"


def time_key(value: time_type) -> str:
    """'HH:MM' form used for (date, time) bucketing."""
    return value.strftime("%H:%M")


class SlotAssignment(BaseModel):
    """
    One (date, group, template-slot) cell, filled or not.
    Either generated by the engine or loaded from the collaborator.
    """

    id: Optional[str] = Field(default=None, description="Persistent id, if the slot is stored")
    date: date_type = Field(description="Calendar date")
    group_id: Optional[str] = Field(default=None, description="Group the slot belongs to")
    template_slot_id: Optional[str] = Field(default=None, description="Template slot it was cut from")
    start_time: time_type
    end_time: time_type

    activity_id: Optional[str] = Field(default=None, description="Assigned activity")
    facility_id: Optional[str] = Field(default=None, description="Assigned space")

    @property
    def key(self) -> str:
        """Stable reference: the stored id, else '<date>_<group>_<HH:MM>'."""
        if self.id:
            return self.id
        return f"{self.date.isoformat()}_{self.group_id or ''}_{time_key(self.start_time)}"

    @property
    def duration_minutes(self) -> int:
        start = datetime.combine(self.date, self.start_time)
        end = datetime.combine(self.date, self.end_time)
        return int((end - start).total_seconds() // 60)

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60


class GeneratedSlot(SlotAssignment):
    """A slot filled by a generation run."""

    activity_id: str = Field(description="Activity chosen by the generator")
    is_new: bool = Field(
        default=True,
        description="False when the run filled a pre-existing, empty slot row"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "date": "2025-07-14",
            "group_id": "grp_eagles",
            "template_slot_id": "ts_1",
            "start_time": "09:00:00",
            "end_time": "10:00:00",
            "activity_id": "act_archery",
            "facility_id": "fac_range",
            "is_new": True
        }
    })


class StaffAssignment(BaseModel):
    """A staff member committed to a slot."""
    id: Optional[str] = None
    slot_id: str = Field(description="SlotAssignment.key of the staffed slot")
    staff_id: str
    role: StaffRole = Field(default=StaffRole.LEAD)
