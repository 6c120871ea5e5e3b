import pytest

from scheduling import Settings, get_settings


def test_defaults() -> None:
    settings = Settings()

    assert settings.log_level == "INFO"
    assert settings.progress_interval == 10
    assert settings.top_k_candidates == 3
    assert settings.max_staff_hours_per_day == 8.0
    assert settings.large_schedule_threshold == 1000


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CAMP_TOP_K_CANDIDATES", "1")
    monkeypatch.setenv("CAMP_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("GOOGLE_API_KEY", "secret")

    settings = get_settings()

    assert settings.top_k_candidates == 1
    assert settings.log_level == "DEBUG"
    assert settings.google_api_key == "secret"


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()


def test_api_key_by_field_name() -> None:
    assert Settings(google_api_key="direct").google_api_key == "direct"
