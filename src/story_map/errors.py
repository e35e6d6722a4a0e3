"""Domain errors surfaced by lifecycle, reconciliation, and storage."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StoryMapError(Exception):
    """Base story-map error."""

    message: str
    code: str = "story_map_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class NotFoundError(StoryMapError):
    """Unknown story or pin identifier."""

    record_id: str | None = None
    code: str = "not_found"


@dataclass(slots=True)
class InvalidTransitionError(StoryMapError):
    """Lifecycle guard rejected the requested status change."""

    story_id: str | None = None
    action: str | None = None
    status_from: str | None = None
    code: str = "invalid_transition"


@dataclass(slots=True)
class NotApprovedError(InvalidTransitionError):
    """Publish attempted on a story that was never approved."""

    code: str = "not_approved"


@dataclass(slots=True)
class ValidationError(StoryMapError):
    """Missing required field or out-of-range value."""

    field: str | None = None
    code: str = "validation_error"


@dataclass(slots=True)
class SchemaUnavailableError(StoryMapError):
    """Backing store lacks the expected tables; recovered by the schema adapter."""

    missing: tuple[str, ...] = ()
    code: str = "schema_unavailable"


@dataclass(slots=True)
class StorageFailureError(StoryMapError):
    """Backing store unreachable or write rejected."""

    operation: str | None = None
    code: str = "storage_failure"
