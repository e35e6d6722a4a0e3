"""Store contracts shared by every schema shape."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from story_map.models import MapPin, SchemaShape, StoryRecord, StoryStatus
from story_map.storage.adapters import SchemaReport


class StoreWriter(Protocol):
    """Write operations bound to one unit of work."""

    def get_story(self, story_id: str) -> StoryRecord | None:
        """Read a story inside the unit of work."""
        raise NotImplementedError

    def get_pin(self, pin_id: str) -> MapPin | None:
        """Read a pin inside the unit of work."""
        raise NotImplementedError

    def add_story(self, story: StoryRecord) -> None:
        """Insert a new story row."""
        raise NotImplementedError

    def upsert_pin(self, pin: MapPin) -> None:
        """Insert or replace a pin; the later write wins on id collision."""
        raise NotImplementedError

    def delete_pin(self, pin_id: str) -> bool:
        """Delete a pin, returning whether a row existed."""
        raise NotImplementedError

    def update_story_status(
        self,
        story_id: str,
        *,
        status_from: StoryStatus,
        status_to: StoryStatus,
        updated_at: datetime,
    ) -> bool:
        """Compare-and-set story status; False when the previous status no longer matches."""
        raise NotImplementedError

    def delete_story(self, story_id: str) -> bool:
        """Delete a story, returning whether a row existed."""
        raise NotImplementedError


class StoryMapStore(Protocol):
    """Read access plus transactional writes for one schema shape."""

    shape: SchemaShape

    def list_stories(self) -> list[StoryRecord]:
        """Stories ordered most-recent-submission-first, unreadable rows skipped."""
        raise NotImplementedError

    def list_pins(self) -> list[MapPin]:
        """Pins ordered most-recent-creation-first, unreadable rows skipped."""
        raise NotImplementedError

    def get_story(self, story_id: str) -> StoryRecord | None:
        raise NotImplementedError

    def get_pin(self, pin_id: str) -> MapPin | None:
        raise NotImplementedError

    def id_exists(self, record_id: str) -> bool:
        """Whether the id is taken in either the story or the pin id space."""
        raise NotImplementedError

    def unit_of_work(self) -> AbstractContextManager[StoreWriter]:
        """Open one atomic unit: committed on exit, rolled back on error."""
        raise NotImplementedError

    def describe(self) -> SchemaReport:
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError
