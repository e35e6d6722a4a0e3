"""Pin creation, removal, and the story/pin pairing invariant."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import uuid4

from story_map.classifier import DEFAULT_KEYWORD_RULES, KeywordRule, classify, classify_story
from story_map.errors import NotFoundError, StorageFailureError, ValidationError
from story_map.geocoding import Geocoder
from story_map.models import (
    MANUAL_ID_PREFIX,
    Coordinates,
    MapPin,
    PinCategory,
    PinFields,
    PinOrigin,
    ReconciliationReport,
    StoryRecord,
    StoryStatus,
)
from story_map.storage.base import StoreWriter, StoryMapStore
from story_map.storage.common import utc_now

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 5


class PinReconciler:
    """Owns map pin creation/destruction; never touches story status."""

    def __init__(
        self,
        *,
        store: StoryMapStore,
        geocoder: Geocoder,
        rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.geocoder = geocoder
        self.rules = rules
        self.clock = clock

    def build_story_pin(self, story: StoryRecord) -> MapPin:
        """Derive the pin for a story without persisting it."""

        coordinates = self._locate(country=story.country, city=story.city)
        classification = classify_story(story, rules=self.rules)
        return MapPin(
            pin_id=story.story_id,
            title=story.title,
            lat=coordinates.lat,
            lng=coordinates.lng,
            type=classification.category,
            category=PinCategory.ORGANIZATION.value
            if story.is_organization
            else PinCategory.STORY.value,
            story=story.map_narrative,
            country=story.country,
            city=story.city,
            created_at=self.clock(),
            origin=PinOrigin.STORY,
        )

    def publish_to_map(self, story: StoryRecord, writer: StoreWriter) -> MapPin:
        """Persist the story's pin inside the caller's unit of work."""

        pin = self.build_story_pin(story)
        writer.upsert_pin(pin)
        logger.info(
            "Pin published for story (pin_id=%s type=%s country=%s).",
            pin.pin_id,
            pin.type.value,
            pin.country,
        )
        return pin

    def remove_from_map(self, pin_id: str, writer: StoreWriter) -> bool:
        """Delete the pin; story status reversion belongs to the lifecycle manager."""

        removed = writer.delete_pin(pin_id)
        if removed:
            logger.info("Pin removed from map (pin_id=%s).", pin_id)
        return removed

    def create_standalone_pin(self, fields: PinFields) -> MapPin:
        """Admin-authored pin with no backing story."""

        title = (fields.title or "").strip()
        if not title:
            raise ValidationError(message="Title is required.", field="title")
        country = (fields.country or "").strip()
        if not country:
            raise ValidationError(message="Country is required.", field="country")

        raw_type = (fields.type or "").strip() or PinCategory.STORY.value
        declared = PinCategory.parse(raw_type)
        if declared is None:
            raise ValidationError(
                message=f"Unknown pin type: {raw_type!r}.",
                field="type",
            )
        category = (fields.category or "").strip() or declared.value
        city = (fields.city or "").strip()

        if fields.lat is not None or fields.lng is not None:
            coordinates = validate_coordinates(lat=fields.lat, lng=fields.lng)
        else:
            coordinates = self._locate(country=country, city=city)

        pin_id = self._new_pin_id()
        classification = classify(
            record_id=pin_id,
            title=title,
            pin_type=declared.value,
            category=category,
            rules=self.rules,
        )
        pin = MapPin(
            pin_id=pin_id,
            title=title,
            lat=coordinates.lat,
            lng=coordinates.lng,
            type=classification.category,
            category=category,
            story=(fields.story or "").strip(),
            country=country,
            city=city,
            created_at=self.clock(),
            origin=PinOrigin.MANUAL,
        )
        with self.store.unit_of_work() as writer:
            writer.upsert_pin(pin)
        logger.info(
            "Standalone pin created (pin_id=%s type=%s matched_rule=%s).",
            pin.pin_id,
            pin.type.value,
            classification.matched_rule,
        )
        return pin

    def remove_pin(self, pin_id: str) -> MapPin:
        """Delete any pin by id, returning what was removed."""

        with self.store.unit_of_work() as writer:
            pin = writer.get_pin(pin_id)
            if pin is None:
                raise NotFoundError(message=f"Pin not found: {pin_id}", record_id=pin_id)
            writer.delete_pin(pin_id)
        logger.info("Pin removed (pin_id=%s origin=%s).", pin_id, pin.origin.value)
        return pin

    def audit(self) -> ReconciliationReport:
        """Compare stories and pins against the pairing invariant."""

        stories = {story.story_id: story for story in self.store.list_stories()}
        pins = {pin.pin_id: pin for pin in self.store.list_pins()}
        report = ReconciliationReport(stories_checked=len(stories), pins_checked=len(pins))

        for story_id, story in stories.items():
            if story.status == StoryStatus.ON_MAP and story_id not in pins:
                report.on_map_without_pin.append(story_id)

        for pin_id, pin in pins.items():
            if pin.is_manual:
                continue
            story = stories.get(pin_id)
            if story is None:
                report.dangling_story_pins.append(pin_id)
            elif story.status != StoryStatus.ON_MAP:
                report.pins_for_unpublished_stories.append(pin_id)

        if not report.is_consistent:
            logger.warning(
                "Story/pin pairing violated (on_map_without_pin=%s pins_for_unpublished=%s).",
                ",".join(report.on_map_without_pin) or "-",
                ",".join(report.pins_for_unpublished_stories) or "-",
            )
        return report

    def _locate(self, *, country: str, city: str) -> Coordinates:
        found = self.geocoder.locate(country, city)
        if found is None:
            place = f"{city}, {country}" if city else country
            raise ValidationError(
                message=f"No coordinates known for location: {place}.",
                field="coordinates",
            )
        return validate_coordinates(lat=found.lat, lng=found.lng)

    def _new_pin_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            millis = int(self.clock().timestamp() * 1000)
            candidate = f"{MANUAL_ID_PREFIX}{millis}_{uuid4().hex[:9]}"
            if not self.store.id_exists(candidate):
                return candidate
        raise StorageFailureError(
            message="Could not allocate a unique pin id.",
            operation="create_standalone_pin",
        )


def validate_coordinates(*, lat: float | None, lng: float | None) -> Coordinates:
    """Range-check a coordinate pair."""

    if lat is None:
        raise ValidationError(message="Latitude is required with longitude.", field="lat")
    if lng is None:
        raise ValidationError(message="Longitude is required with latitude.", field="lng")
    if not -90.0 <= lat <= 90.0:  # noqa: PLR2004
        raise ValidationError(message=f"Latitude out of range: {lat}.", field="lat")
    if not -180.0 <= lng <= 180.0:  # noqa: PLR2004
        raise ValidationError(message=f"Longitude out of range: {lng}.", field="lng")
    return Coordinates(lat=lat, lng=lng)
