"""Shared pytest fixtures for the full Bookscene test suite."""

from __future__ import annotations

import pytest

from bookscene.config import BooksceneConfig
from bookscene.io.repository import InMemoryVolumeRepository
from tests.fixture_builders import RecordingSleeper


@pytest.fixture
def repository() -> InMemoryVolumeRepository:
    """Provide an empty in-memory repository."""

    return InMemoryVolumeRepository()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    """Provide a sleep double that records backoff delays."""

    return RecordingSleeper()


@pytest.fixture
def fast_config(tmp_path) -> BooksceneConfig:  # type: ignore[no-untyped-def]
    """Provide a config rooted in `tmp_path` with small retry budgets."""

    return BooksceneConfig(
        data_dir=tmp_path / "data",
        max_retries=3,
        retry_delay_seconds=1.0,
        rate_limit_cooldown_seconds=60.0,
    )
