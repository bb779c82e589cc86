"""Shared test fixtures for lingopipe tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from lingopipe.core.context import RunContext
from lingopipe.core.pipeline import PipelineEngine
from lingopipe.core.request import TranslationRequest
from lingopipe.providers.dummy import DummyProvider
from lingopipe.storage.file import FileStorage
from lingopipe.storage.memory import MemoryStorage


def make_request(
    texts: dict[str, str] | None = None,
    source: str = "en",
    targets: str | tuple[str, ...] = ("ko",),
    **kwargs: Any,
) -> TranslationRequest:
    """Create a request with sensible defaults."""
    return TranslationRequest.create(
        texts if texts is not None else {"greet": "Hello"},
        source,
        targets,
        **kwargs,
    )


def make_context(texts: dict[str, str] | None = None, **kwargs: Any) -> RunContext:
    return RunContext(make_request(texts, **kwargs))


@pytest.fixture
def pipeline() -> PipelineEngine:
    return PipelineEngine()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def file_storage(tmp_path: Path) -> FileStorage:
    return FileStorage(tmp_path / "states")


@pytest.fixture
def tmp_sqlite(tmp_path: Path):
    from lingopipe.storage.sqlite import SQLiteStorage

    storage = SQLiteStorage(tmp_path / "states.db")
    yield storage
    storage.close()


@pytest.fixture
def dummy_provider() -> DummyProvider:
    return DummyProvider({("en", "ko"): {"Hello": "안녕", "World": "세계"}})
