"""
LLM-powered seed data generator for the Camp Timetable Engine.
STRATEGY: one batched request per category to stay under RPM limits.
Strong schema prompts + robust parsing, invalid items are dropped rather than fixed.
"""

import json
import logging
import re
import google.generativeai as genai
from typing import List, Tuple, Any, Type, Optional
from pydantic import ValidationError, BaseModel

from models import Activity, Facility, Staff, TemplateSlot, DayTemplate
from scheduling.config import get_settings

logger = logging.getLogger(__name__)

# Keys an LLM likes to wrap its array in
WRAPPER_KEYS = ['activities', 'facilities', 'staff', 'slots', 'items', 'result']


class CampDataGenerator:
    def __init__(self, api_key: Optional[str] = None):
        settings = get_settings()
        self.api_key = api_key or settings.google_api_key
        if not self.api_key:
            raise ValueError("GOOGLE_API_KEY not found. Please set it in environment.")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(settings.gemini_model)
        self.total_cost = 0.0

    def _estimate_cost(self, prompt_tokens: int, response_tokens: int) -> float:
        return (prompt_tokens * 0.075 + response_tokens * 0.30) / 1_000_000

    def _robust_parse_json(self, raw_text: str) -> List[Any]:
        """
        Handles Markdown stripping and shape normalization.
        """
        if not raw_text:
            return []

        # 1. Clean Markdown Code Blocks
        clean_text = re.sub(r"```(?:json)?\s*|\s*```", "", raw_text).strip()

        try:
            data = json.loads(clean_text)
        except json.JSONDecodeError:
            # Fallback: pull out the outermost list
            match = re.search(r'(\[.*\])', clean_text, re.DOTALL)
            if not match:
                return []
            try:
                data = json.loads(match.group(1))
            except json.JSONDecodeError:
                return []

        # 2. Normalize Data Shape
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in WRAPPER_KEYS:
                if key in data and isinstance(data[key], list):
                    return data[key]
            return [data]
        return []

    def _fetch_big_batch(
        self,
        prompt: str,
        model_class: Type[BaseModel],
        id_prefix: Optional[str] = None
    ) -> Tuple[List[Any], float]:
        """
        Executes one generation request and validates every returned item.
        With `id_prefix`, ids are rewritten to '<prefix>_<nnn>' so they are unique and stable.
        """
        try:
            generation_config = genai.GenerationConfig(
                response_mime_type="application/json",
                max_output_tokens=16000,
                temperature=0.7
            )

            response = self.model.generate_content(prompt, generation_config=generation_config)

            cost = 0.0
            usage = getattr(response, 'usage_metadata', None)
            if usage is not None:
                cost = self._estimate_cost(usage.prompt_token_count, usage.candidates_token_count)
            self.total_cost += cost

            data_list = self._robust_parse_json(response.text)
        except Exception as e:
            logger.error(f"Batch Generation Failed: {e}")
            return [], 0.0

        valid_items = []
        for i, item in enumerate(data_list):
            if not isinstance(item, dict):
                logger.warning(f"Skipping non-object item {i} in batch")
                continue
            if id_prefix:
                item = {**item, "id": f"{id_prefix}_{i:03d}"}
            try:
                valid_items.append(model_class(**item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid item {i} in batch: {e.json()}")

        return valid_items, cost

    def generate_activities(self, count: int = 12) -> Tuple[List[Activity], float]:
        prompt = f"""
        Generate {count} summer camp activities for children aged 8-15.
        OUTPUT: A single valid JSON Array of {count} objects.

        FIELDS:
        - "name" (string), "description" (string)
        - "duration_minutes": INTEGER between 30 and 120
        - "setup_minutes", "cleanup_minutes": INTEGER between 0 and 20
        - "min_age", "max_age": INTEGER or null (max_age >= min_age)
        - "required_staff_count": INTEGER between 1 and 3
        - "weather_dependent": true for outdoor activities (kayaking, archery, hiking), false for indoor ones

        MIX: roughly half must be weather_dependent=false so rain days have alternatives.
        """
        logger.info(f"🚀 Requesting {count} activities...")
        activities, cost = self._fetch_big_batch(prompt, Activity, id_prefix="act")
        logger.info(f"✅ Generated {len(activities)} activities.")
        return activities, cost

    def generate_facilities(self, count: int = 6) -> Tuple[List[Facility], float]:
        prompt = f"""
        Generate {count} summer camp facilities (e.g. lake dock, archery range, arts cabin, gym).
        OUTPUT: JSON Array.
        FIELDS: name (string), capacity (INTEGER 10-60), indoor (bool).
        """
        facilities, cost = self._fetch_big_batch(prompt, Facility, id_prefix="fac")
        logger.info(f"✅ Generated {len(facilities)} facilities.")
        return facilities, cost

    def generate_staff(self, count: int = 8) -> Tuple[List[Staff], float]:
        prompt = f"""
        Generate {count} summer camp staff members.
        OUTPUT: JSON Array.
        VALID "role" VALUES: ["instructor", "supervisor", "coordinator", "support"]
        FIELDS: first_name, last_name, role.
        """
        staff, cost = self._fetch_big_batch(prompt, Staff, id_prefix="stf")
        logger.info(f"✅ Generated {len(staff)} staff members.")
        return staff, cost

    def generate_day_template(self) -> DayTemplate:
        """A default day skeleton; cost is added to `total_cost`."""
        prompt = """
        Generate the time-slots of one typical summer camp day, from 08:00 to 18:00.
        OUTPUT: JSON Array ordered by time.
        VALID "slot_type" VALUES: ["activity", "meal", "break", "rest", "free", "assembly", "transition"]
        FIELDS:
        - "name" (string)
        - "start_time", "end_time": "HH:MM:SS" strings, end_time strictly after start_time
        - "slot_type" (Enum above)
        - "is_schedulable": true only for "activity" slots
        RULES: include 4-6 "activity" slots of 45-90 minutes, plus breakfast, lunch and a rest period.
        """
        slots, _ = self._fetch_big_batch(prompt, TemplateSlot, id_prefix="ts")
        for order, slot in enumerate(slots):
            slot.sort_order = order
        return DayTemplate(id="tpl_default", name="Standard Day", is_default=True, slots=slots)
