"""
Main Execution Script for the Camp Timetable Engine.
Demo collaborator: loads (or generates) camp data, runs the full pipeline and exports the result.
"""

import os
import sys
import json
import logging
import random
from datetime import date, timedelta

# Add current directory to path so imports work
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from generators.data_factory import CampDataGenerator
from models import (
    Session, SessionStatus, Group, Activity, Facility, Staff, DayTemplate,
    Constraint, ConstraintType, DayWeather, WeatherCondition
)
from scheduling import (
    GenerationOptions, GenerationProgress, generate_schedule, scheduling_requirements,
    detect_conflicts, conflict_summary, is_schedule_valid,
    check_weather_impact, apply_substitutions, weather_summary,
    auto_assign_staff, calculate_staff_workload, get_settings
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("Main")

# --- CONFIGURATION ---
CACHE_FILENAME = "camp_data.json"
EXPORT_FILENAME = "schedule_export.json"
USE_CACHE = True  # Set to False to force new AI generation
SESSION_DAYS = 5
RANDOM_SEED = 42
# ---------------------


def save_debug_data(data: dict, filename: str):
    """Helper to save generated data so we don't re-query the LLM every time."""
    serializable = {}
    for key, val in data.items():
        if isinstance(val, list):
            serializable[key] = [item.model_dump(mode='json') for item in val]
        elif val is not None:
            serializable[key] = val.model_dump(mode='json')

    with open(filename, 'w') as f:
        json.dump(serializable, f, indent=2)
    logger.info(f"💾 Saved camp data to {filename}")


def load_cached_data(filename: str):
    """
    Helper to load JSON data and reconstruct Pydantic objects.
    Returns None if the cache is missing or unusable.
    """
    try:
        with open(filename, 'r') as f:
            data = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"⚠️ Cache file {filename} not found or invalid. Falling back to Generator.")
        return None

    logger.info(f"📂 Loading cached data from {filename}...")
    template = data.get('template')
    camp = {
        "activities": [Activity(**item) for item in data.get('activities', [])],
        "facilities": [Facility(**item) for item in data.get('facilities', [])],
        "staff": [Staff(**item) for item in data.get('staff', [])],
        "template": DayTemplate(**template) if template else None,
    }
    logger.info(f"✅ Cache Loaded: {len(camp['activities'])} activities, {len(camp['facilities'])} facilities.")
    return camp


def generate_camp_data():
    generator = CampDataGenerator()
    logger.info("--- Phase 1: Generative AI Data Fetch ---")

    activities, cost_act = generator.generate_activities(count=12)
    facilities, cost_fac = generator.generate_facilities(count=6)
    staff, cost_staff = generator.generate_staff(count=8)
    template = generator.generate_day_template()

    logger.info(f"💸 Total Estimated LLM Cost: ${generator.total_cost:.4f}")
    camp = {"activities": activities, "facilities": facilities, "staff": staff, "template": template}
    save_debug_data(camp, CACHE_FILENAME)
    return camp


def demo_session(start: date):
    session = Session(
        id="sess_demo",
        name="Summer Week 1",
        start_date=start,
        end_date=start + timedelta(days=SESSION_DAYS - 1),
        status=SessionStatus.PLANNING
    )
    groups = [
        Group(id="grp_otters", session_id=session.id, name="Otters", age_min=8, age_max=10, current_count=14),
        Group(id="grp_hawks", session_id=session.id, name="Hawks", age_min=11, age_max=12, current_count=16),
        Group(id="grp_wolves", session_id=session.id, name="Wolves", age_min=13, age_max=15, current_count=18),
    ]
    return session, groups


def demo_constraints(activities):
    """A small rule set built around whatever activities the data has."""
    constraints = [
        Constraint(
            id="c_facility_exclusive",
            name="One group per facility",
            constraint_type=ConstraintType.FACILITY_EXCLUSIVE,
            priority=10,
            condition={}
        )
    ]
    for activity in activities[:3]:
        constraints.append(Constraint(
            id=f"c_limit_{activity.id}",
            name=f"{activity.name or activity.id} at most once a day",
            constraint_type=ConstraintType.DAILY_LIMIT,
            priority=8,
            condition={"activity_id": activity.id, "max_count": 1}
        ))

    outdoor = [a for a in activities if a.weather_dependent]
    indoor = [a for a in activities if not a.weather_dependent]
    if outdoor and indoor:
        constraints.append(Constraint(
            id="c_rain_plan",
            name=f"Rain plan for {outdoor[0].name or outdoor[0].id}",
            constraint_type=ConstraintType.WEATHER_SUBSTITUTE,
            is_hard=False,
            condition={"original_activity_id": outdoor[0].id, "substitute_activity_id": indoor[0].id}
        ))
    return constraints


def sample_forecast(session: Session, rng: random.Random):
    """Random forecast for the demo; a real collaborator would read a weather source."""
    forecast = []
    current = session.start_date
    while current <= session.end_date:
        forecast.append(DayWeather(date=current, condition=rng.choice(list(WeatherCondition))))
        current += timedelta(days=1)
    return forecast


def log_progress(progress: GenerationProgress):
    logger.info(f"[{progress.phase:>12}] {progress.percentage:3d}% {progress.message}")


def export_schedule(result, conflicts, substitutions, staff_result, filename=EXPORT_FILENAME):
    """
    Serializes the run into a JSON document for downstream tools.
    """
    logger.info(f"💾 Exporting schedule to {filename}...")

    data = {
        "status": result.status,
        "score": result.score.model_dump(mode='json'),
        "stats": result.stats.model_dump(mode='json'),
        "schedule": {},
        "conflicts": [c.model_dump(mode='json') for c in conflicts],
        "weather_updates": [u.model_dump(mode='json') for u in substitutions],
        "staff": [a.model_dump(mode='json') for a in staff_result.assignments],
    }

    # Schedule (Grouped by Date)
    for slot in sorted(result.slots, key=lambda s: (s.date, s.start_time, s.group_id)):
        data["schedule"].setdefault(slot.date.isoformat(), []).append(slot.model_dump(mode='json'))

    with open(filename, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info("✅ Schedule exported.")


def main():
    logger.info("🚀 Starting Camp Timetable Engine demo run...")

    # --- PHASE 1: DATA ACQUISITION (Cache vs. GenAI) ---
    camp = load_cached_data(CACHE_FILENAME) if USE_CACHE else None
    if camp is None:
        if not settings.google_api_key:
            logger.error("❌ GOOGLE_API_KEY not found. Please set it via 'export GOOGLE_API_KEY=...'")
            return
        camp = generate_camp_data()

    if not camp["activities"] or camp["template"] is None:
        logger.error("❌ No usable camp data. Exiting.")
        return

    rng = random.Random(RANDOM_SEED)
    session, groups = demo_session(date.today())
    constraints = demo_constraints(camp["activities"])

    # --- PHASE 2: GENERATION ---
    logger.info("\n--- Phase 2: Schedule Generation ---")
    result = generate_schedule(
        session=session,
        groups=groups,
        activities=camp["activities"],
        facilities=camp["facilities"],
        template=camp["template"],
        constraints=constraints,
        options=GenerationOptions(random_seed=RANDOM_SEED),
        on_progress=log_progress
    )

    if result.feasibility is not None:
        for issue in result.feasibility.issues + result.feasibility.warnings:
            logger.info(f"   [{issue.type}] {issue.category}: {issue.message}")
        for line in scheduling_requirements(result.feasibility.stats, camp["activities"], constraints):
            logger.info(f"   📋 {line}")

    if not result.success:
        logger.error(f"❌ Generation {result.status}. Nothing to export.")
        return

    # --- PHASE 3: AUDIT & POST-PROCESSING ---
    conflicts = detect_conflicts(result.slots, constraints, camp["facilities"], groups)
    summary = conflict_summary(conflicts)

    forecast = sample_forecast(session, rng)
    weather = check_weather_impact(result.slots, camp["activities"], constraints, forecast)
    updates = apply_substitutions(weather.substitutions)

    staff_result = auto_assign_staff(result.slots, camp["staff"], camp["activities"])

    # --- PHASE 4: REPORTING ---
    days = weather_summary(forecast)
    print("\n" + "=" * 50)
    print("📊 FINAL EXECUTION REPORT")
    print("=" * 50)
    print(f"Status:              {result.status} ({result.duration_ms:.0f} ms)")
    print(f"Slots Generated:     {result.stats.total_slots_generated}")
    print(f"Slots Skipped:       {result.stats.total_slots_skipped}")
    print(f"Score:               {result.score.total:.1f}")
    print(f"Conflicts:           {summary.critical} critical, {summary.warnings} warnings, {summary.info} info")
    print(f"Schedule Valid:      {is_schedule_valid(conflicts)}")
    print(f"Weather:             {days.good_days} good / {days.bad_days} bad days, {len(updates)} substitutions")
    print(f"Staff Assignments:   {len(staff_result.assignments)} ({len(staff_result.unassigned_slots)} unstaffed)")

    for warning in weather.warnings + staff_result.warnings[:10]:
        print(f"⚠️  {warning}")

    for member in camp["staff"]:
        load = calculate_staff_workload(member, staff_result.assignments, result.slots, camp["activities"])
        print(f"👤 {load.staff_name}: {load.total_slots} slots, {load.total_hours:.1f} h")

    # --- PHASE 5: EXPORT ---
    export_schedule(result, conflicts, updates, staff_result)

    print("\n✅ Demo Run Complete.")


if __name__ == "__main__":
    main()
