"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from story_map.config import Settings, StorageSettings
from story_map.models import StoryKind, StoryRecord, StoryStatus
from story_map.service import StoryMapService
from story_map.storage.alembic_runner import LEGACY_REVISION, upgrade_to
from story_map.storage.base import StoryMapStore

_STORY_ENV = (
    "STORY_MAP_DB_PATH",
    "STORY_MAP_BACKEND",
    "STORY_MAP_MIGRATE",
    "STORY_MAP_BUSY_TIMEOUT_MS",
    "STORY_MAP_FALLBACK_PINS_PATH",
    "STORY_MAP_KEYWORD_TABLE",
    "STORY_MAP_GEOCODE_TABLE",
    "STORY_MAP_ADMIN_ID",
    "STORY_MAP_EXCERPT_CHARS",
)


@pytest.fixture(autouse=True)
def _clean_story_map_env(monkeypatch):
    for name in _STORY_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def full_settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "full.db")


@pytest.fixture()
def legacy_settings(tmp_path: Path) -> Settings:
    db_path = tmp_path / "legacy.db"
    upgrade_to(db_path, LEGACY_REVISION)
    return Settings(db_path=db_path, storage=StorageSettings(migrate=False))


@pytest.fixture()
def full_service(full_settings: Settings) -> Iterator[StoryMapService]:
    service = StoryMapService.from_settings(full_settings)
    try:
        yield service
    finally:
        service.close()


@pytest.fixture()
def legacy_service(legacy_settings: Settings) -> Iterator[StoryMapService]:
    service = StoryMapService.from_settings(legacy_settings)
    try:
        yield service
    finally:
        service.close()


def _seed_story(
    store: StoryMapStore,
    story_id: str,
    *,
    title: str = "Healthcare Access in Lagos",
    country: str = "Nigeria",
    status: StoryStatus = StoryStatus.PENDING,
    **fields,
) -> StoryRecord:
    """Insert a story row directly, bypassing submission validation."""

    submitted_at = fields.pop("submitted_at", datetime(2025, 9, 1, 12, 0, tzinfo=UTC))
    story = StoryRecord(
        story_id=story_id,
        title=title,
        kind=fields.pop("kind", StoryKind.PERSONAL),
        story=fields.pop("story", "Clinics closed after the floods."),
        country=country,
        status=status,
        submitted_at=submitted_at,
        updated_at=submitted_at,
        **fields,
    )
    with store.unit_of_work() as writer:
        writer.add_story(story)
    return story


@pytest.fixture()
def seed_story():
    """Helper inserting story rows directly into a store."""
    return _seed_story
