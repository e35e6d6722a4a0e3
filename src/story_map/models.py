"""Domain models for stories, map pins, and admin operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from story_map.errors import StoryMapError

MANUAL_ID_PREFIX = "manual_"
ORGANIZATION_ID_PREFIX = "organization_"
STORY_ID_PREFIX = "story_"


class PinCategory(str, Enum):
    """Closed set of map pin categories."""

    STORY = "story"
    ORGANIZATION = "organization"
    PROTECTION = "protection"
    RESOURCE = "resource"
    VIOLATION = "violation"

    @classmethod
    def parse(cls, value: object) -> PinCategory | None:
        """Return the category for a raw value, or None when unrecognized."""

        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for category in cls:
            if category.value == normalized:
                return category
        return None


class StoryKind(str, Enum):
    """Submission kinds."""

    PERSONAL = "personal"
    ORGANIZATION = "organization"


class StoryStatus(str, Enum):
    """Lifecycle states for submitted stories."""

    PENDING = "pending"
    APPROVED = "approved"
    ON_MAP = "on-map"
    REJECTED = "rejected"


class PinOrigin(str, Enum):
    """Provenance of a map pin."""

    STORY = "story"
    MANUAL = "manual"


class SchemaShape(str, Enum):
    """Storage shapes the schema adapter knows how to read."""

    FULL = "full"
    LEGACY = "legacy"
    FALLBACK = "fallback"


@dataclass(slots=True)
class StoryRecord:
    """Canonical story record, identical whichever backend produced it."""

    story_id: str
    title: str
    kind: StoryKind = StoryKind.PERSONAL
    story: str = ""
    organization_name: str | None = None
    organization_description: str | None = None
    website: str | None = None
    focus_areas: list[str] = field(default_factory=list)
    country: str = ""
    city: str = ""
    email: str = ""
    anonymous: bool = False
    status: StoryStatus = StoryStatus.PENDING
    submitted_at: datetime | None = None
    updated_at: datetime | None = None
    skip_reason: str | None = None

    @property
    def is_organization(self) -> bool:
        return self.kind == StoryKind.ORGANIZATION

    @property
    def public_email(self) -> str | None:
        """Email safe to show outside the admin view."""

        if self.anonymous or not self.email:
            return None
        return self.email

    @property
    def map_narrative(self) -> str:
        """Text shown on the pin derived from this story."""

        if self.is_organization:
            return self.organization_description or self.story
        return self.story


@dataclass(slots=True)
class MapPin:
    """Canonical map pin record."""

    pin_id: str
    title: str
    lat: float = 0.0
    lng: float = 0.0
    type: PinCategory = PinCategory.STORY
    category: str | None = None
    story: str = ""
    country: str = ""
    city: str = ""
    created_at: datetime | None = None
    origin: PinOrigin = PinOrigin.STORY
    skip_reason: str | None = None

    @property
    def is_manual(self) -> bool:
        return self.origin == PinOrigin.MANUAL


@dataclass(slots=True)
class Coordinates:
    """Latitude/longitude pair."""

    lat: float
    lng: float


@dataclass(slots=True)
class StorySubmission:
    """Input payload for a new story or organization submission."""

    title: str
    country: str
    kind: StoryKind = StoryKind.PERSONAL
    story: str | None = ""
    city: str | None = ""
    email: str | None = ""
    anonymous: bool = False
    organization_name: str | None = None
    organization_description: str | None = None
    website: str | None = None
    focus_areas: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PinFields:
    """Admin-authored standalone pin fields."""

    title: str | None = None
    country: str | None = None
    type: str | None = None
    story: str | None = ""
    city: str | None = ""
    category: str | None = None
    lat: float | None = None
    lng: float | None = None


@dataclass(slots=True)
class OperationResult:
    """Outcome of one admin operation as seen by the calling layer."""

    success: bool
    message: str
    story_id: str | None = None
    status: StoryStatus | None = None
    pin: MapPin | None = None
    paired_story_id: str | None = None
    error: StoryMapError | None = None


@dataclass(slots=True)
class PublicStoryView:
    """Story as rendered on the public story page and map popup."""

    story_id: str
    title: str
    author: str
    country: str
    story: str
    excerpt: str


@dataclass(slots=True)
class ReconciliationReport:
    """Pairing audit between stories and pins."""

    stories_checked: int = 0
    pins_checked: int = 0
    on_map_without_pin: list[str] = field(default_factory=list)
    dangling_story_pins: list[str] = field(default_factory=list)
    pins_for_unpublished_stories: list[str] = field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.on_map_without_pin and not self.pins_for_unpublished_stories
