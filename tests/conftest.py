from collections.abc import Iterator

import pytest

from scheduling.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Settings are cached per process; tests that touch the environment need a clean read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
