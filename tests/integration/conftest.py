"""Integration-test fixtures for deterministic pipeline and provider behavior."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import pytest

from bookscene.config import BooksceneConfig
from bookscene.images import DummyImageService, ImageService
from bookscene.io.repository import InMemoryVolumeRepository
from bookscene.io.structure_extractor import StructureExtractor
from bookscene.io.storage import LocalStorage
from bookscene.llm import http_client
from bookscene.llm.service import LLMService
from bookscene.models.entities import Volume
from bookscene.pipeline import VolumeEnhancementPipeline, VolumeIntake
from tests.fixture_builders import FIXED_NOW, RecordingRunLogger, RecordingSleeper, ScriptedLLM


@pytest.fixture(autouse=True)
def _forbid_network(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fail loudly if any integration test reaches a real provider endpoint."""

    def _refuse(url: str, **kwargs: object) -> None:
        _ = kwargs
        raise AssertionError(f"unexpected network call to {url}")

    monkeypatch.setattr(http_client.requests, "post", _refuse)


@pytest.fixture
def run_logger() -> RecordingRunLogger:
    """Provide a run logger that records emitted events."""

    return RecordingRunLogger()


@pytest.fixture
def make_pipeline(
    repository: InMemoryVolumeRepository,
    fast_config: BooksceneConfig,
    sleeper: RecordingSleeper,
    run_logger: RecordingRunLogger,
) -> Callable[..., VolumeEnhancementPipeline]:
    """Build pipelines sharing the test repository, config, sleeper, and logger."""

    def _build(
        llm: LLMService | None = None,
        image_service: ImageService | None = None,
        extractor: StructureExtractor | None = None,
    ) -> VolumeEnhancementPipeline:
        return VolumeEnhancementPipeline(
            repository=repository,
            llm=llm or ScriptedLLM(),
            image_service=image_service or DummyImageService(),
            extractor=extractor,
            config=fast_config,
            run_logger=run_logger,
            sleeper=sleeper,
            clock=lambda: FIXED_NOW,
        )

    return _build


@pytest.fixture
def upload(
    repository: InMemoryVolumeRepository,
    tmp_path: Path,
) -> Callable[..., Volume]:
    """Create an `uploaded` volume from in-memory bytes."""

    storage = LocalStorage(tmp_path / "uploads")
    storage.init()
    intake = VolumeIntake(repository, storage)

    def _upload(file_name: str, content: bytes, book_title: str | None = None) -> Volume:
        return intake.create_volume(file_name, io.BytesIO(content), book_title)

    return _upload
