import json
from types import SimpleNamespace

import pytest

from generators import data_factory
from generators.data_factory import CampDataGenerator


class FakeModel:
    """Stands in for genai.GenerativeModel; replays canned responses."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []

    def generate_content(self, prompt, generation_config=None):
        self.prompts.append(prompt)
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(
            text=reply,
            usage_metadata=SimpleNamespace(prompt_token_count=1000, candidates_token_count=2000),
        )


@pytest.fixture()
def offline_genai(monkeypatch: pytest.MonkeyPatch):
    """Route the generator to a FakeModel without touching the network."""
    state = {"model": None, "configured": None}

    def install(*responses) -> FakeModel:
        state["model"] = FakeModel(responses)
        return state["model"]

    monkeypatch.setattr(data_factory.genai, "configure", lambda api_key: state.update(configured=api_key))
    monkeypatch.setattr(data_factory.genai, "GenerativeModel", lambda name: state["model"] or FakeModel([]))
    monkeypatch.setattr(data_factory.genai, "GenerationConfig", lambda **kwargs: kwargs)
    state["install"] = install
    return state


def test_missing_api_key_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    with pytest.raises(ValueError):
        CampDataGenerator()


def test_api_key_from_environment(monkeypatch: pytest.MonkeyPatch, offline_genai: dict) -> None:
    monkeypatch.setenv("GOOGLE_API_KEY", "env-key")

    generator = CampDataGenerator()

    assert generator.api_key == "env-key"
    assert offline_genai["configured"] == "env-key"


@pytest.mark.parametrize(
    "raw",
    [
        '[{"name": "a"}, {"name": "b"}]',
        '```json\n[{"name": "a"}, {"name": "b"}]\n```',
        '{"activities": [{"name": "a"}, {"name": "b"}]}',
        'Sure! Here you go: [{"name": "a"}, {"name": "b"}] Enjoy.',
    ],
)
def test_robust_parse_json_shapes(offline_genai: dict, raw: str) -> None:
    generator = CampDataGenerator(api_key="test-key")

    assert generator._robust_parse_json(raw) == [{"name": "a"}, {"name": "b"}]


def test_robust_parse_json_gives_up_quietly(offline_genai: dict) -> None:
    generator = CampDataGenerator(api_key="test-key")

    assert generator._robust_parse_json("") == []
    assert generator._robust_parse_json("no json here") == []
    assert generator._robust_parse_json('{"name": "solo"}') == [{"name": "solo"}]


def test_generate_activities_skips_invalid_items(offline_genai: dict) -> None:
    payload = [
        {"name": "Archery", "duration_minutes": 60, "weather_dependent": True},
        {"name": "Broken", "duration_minutes": 1},
        {"name": "Crafts", "duration_minutes": 45},
        "not an object",
    ]
    offline_genai["install"](json.dumps(payload))
    generator = CampDataGenerator(api_key="test-key")

    activities, cost = generator.generate_activities(count=4)

    assert [(a.id, a.name) for a in activities] == [("act_000", "Archery"), ("act_002", "Crafts")]
    assert activities[0].weather_dependent
    assert cost == pytest.approx((1000 * 0.075 + 2000 * 0.30) / 1_000_000)
    assert generator.total_cost == pytest.approx(cost)


def test_failed_request_returns_empty(offline_genai: dict) -> None:
    offline_genai["install"](RuntimeError("quota exceeded"))
    generator = CampDataGenerator(api_key="test-key")

    facilities, cost = generator.generate_facilities()

    assert facilities == []
    assert cost == 0.0


def test_generate_staff(offline_genai: dict) -> None:
    offline_genai["install"]('{"staff": [{"first_name": "Ana", "last_name": "Lopez", "role": "instructor"}]}')
    generator = CampDataGenerator(api_key="test-key")

    staff, _ = generator.generate_staff(count=1)

    assert [(s.id, s.full_name) for s in staff] == [("stf_000", "Ana Lopez")]


def test_generate_day_template(offline_genai: dict) -> None:
    slots = [
        {"name": "Breakfast", "start_time": "08:00:00", "end_time": "08:45:00",
         "slot_type": "meal", "is_schedulable": False},
        {"name": "Period 1", "start_time": "09:00:00", "end_time": "10:00:00", "slot_type": "activity"},
        {"name": "Backwards", "start_time": "11:00:00", "end_time": "10:00:00", "slot_type": "activity"},
        {"name": "Period 2", "start_time": "10:15:00", "end_time": "11:15:00", "slot_type": "activity"},
    ]
    offline_genai["install"](json.dumps(slots))
    generator = CampDataGenerator(api_key="test-key")

    template = generator.generate_day_template()

    assert template.is_default
    assert [s.name for s in template.slots] == ["Breakfast", "Period 1", "Period 2"]
    assert [s.sort_order for s in template.slots] == [0, 1, 2]
    assert [s.id for s in template.schedulable_slots()] == ["ts_001", "ts_003"]
