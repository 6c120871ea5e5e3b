"""
Weather data models for the Timetable Engine.
"""

from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, Field
from datetime import date as date_type


class WeatherCondition(str, Enum):
    """Daily weather classification."""
    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    VERY_HOT = "very_hot"
    VERY_COLD = "very_cold"


class DayWeather(BaseModel):
    """Observed or forecast weather for one camp day."""
    date: date_type
    condition: WeatherCondition
    temperature: Optional[float] = Field(default=None, description="Degrees Celsius")
    description: Optional[str] = None
    source: Literal["manual", "api"] = "manual"
