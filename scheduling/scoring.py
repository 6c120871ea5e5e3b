"""
Heuristic Scoring Engine for the Camp Timetable.

Two jobs:
1. Rank candidate activities for a single cell (constraint health + variety - duration mismatch).
2. Grade a finished run (balance, facility utilization, ...).
"""

import random
from collections import Counter
from typing import List, Optional
from pydantic import BaseModel

from models import Activity, TemplateSlot, GeneratedSlot
from .config import Settings, get_settings


class GenerationScore(BaseModel):
    total: float
    constraint_score: float
    balance_score: float
    variety_score: float
    facility_utilization_score: float


class SlotScorer:
    """
    Evaluates candidate activities for a cell and the quality of the final schedule.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def candidate_score(
        self,
        constraint_score: float,
        activity: Activity,
        template_slot: TemplateSlot,
        usage_count: int,
        rng: random.Random,
        jitter: bool = False,
        balance: bool = True
    ) -> float:
        """
        Score a candidate that already passed every hard rule.
        Higher is better; there is no upper clamp.
        """
        score = constraint_score

        # 1. Variety: prefer activities this group has done less
        if balance:
            score += self._variety_bonus(usage_count)

        # 2. Fit: penalise activities that do not match the slot length
        score -= self._duration_penalty(activity, template_slot)

        # 3. Jitter
        if jitter:
            score += rng.random() * self.settings.jitter_scale

        return score

    def _variety_bonus(self, usage_count: int) -> float:
        return max(0.0, self.settings.variety_bonus_base - usage_count * self.settings.variety_bonus_step)

    def _duration_penalty(self, activity: Activity, template_slot: TemplateSlot) -> float:
        diff = abs(activity.duration_minutes - template_slot.duration_minutes)
        return diff * self.settings.duration_penalty_per_minute

    def schedule_score(self, slots: List[GeneratedSlot]) -> GenerationScore:
        """
        Grade the run's generated slots.
        Constraint and variety scores are fixed baselines for now.
        """
        constraint_score = 100.0
        variety_score = 100.0
        balance_score = self._balance_score(slots)
        facility_score = self._facility_utilization_score(slots)

        total = (constraint_score + balance_score + variety_score + facility_score) / 4
        return GenerationScore(
            total=total,
            constraint_score=constraint_score,
            balance_score=balance_score,
            variety_score=variety_score,
            facility_utilization_score=facility_score
        )

    def _balance_score(self, slots: List[GeneratedSlot]) -> float:
        """100 minus twice the variance of per-activity counts, floored at 0."""
        counts = list(Counter(s.activity_id for s in slots).values())
        if not counts:
            return 100.0
        mean = sum(counts) / len(counts)
        variance = sum((c - mean) ** 2 for c in counts) / len(counts)
        return max(0.0, 100 - variance * 2)

    def _facility_utilization_score(self, slots: List[GeneratedSlot]) -> float:
        if not slots:
            return 100.0
        with_facility = sum(1 for s in slots if s.facility_id)
        return with_facility / len(slots) * 100
