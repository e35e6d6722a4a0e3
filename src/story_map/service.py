"""Request/response facade over lifecycle, reconciliation, and the active store."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar
from uuid import uuid4

from story_map.classifier import DEFAULT_KEYWORD_RULES, KeywordRule, load_keyword_rules
from story_map.config import Settings
from story_map.errors import StorageFailureError, StoryMapError, ValidationError
from story_map.geocoding import Geocoder, StaticGeocoder
from story_map.lifecycle import PublishOutcome, StoryLifecycleManager
from story_map.models import (
    STORY_ID_PREFIX,
    MapPin,
    OperationResult,
    PinFields,
    PublicStoryView,
    ReconciliationReport,
    StoryKind,
    StoryRecord,
    StoryStatus,
    StorySubmission,
)
from story_map.reconciliation import PinReconciler
from story_map.storage import StoryMapStore, open_store
from story_map.storage.adapters import SchemaReport
from story_map.storage.common import utc_now

logger = logging.getLogger(__name__)

ANONYMOUS_AUTHOR = "Anonymous"
EMPTY_STORY_TEXT = "No story content available"
MAX_ID_ATTEMPTS = 5

ReadT = TypeVar("ReadT")


class StoryMapService:
    """Entry point for every caller; returns canonical records whatever the backend."""

    def __init__(
        self,
        *,
        store: StoryMapStore,
        geocoder: Geocoder,
        rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
        excerpt_chars: int = 150,
    ) -> None:
        self.store = store
        self.excerpt_chars = excerpt_chars
        self.reconciler = PinReconciler(store=store, geocoder=geocoder, rules=rules)
        self.lifecycle = StoryLifecycleManager(store=store, reconciler=self.reconciler)

    @classmethod
    def from_settings(cls, settings: Settings) -> StoryMapService:
        settings.validate()
        rules = DEFAULT_KEYWORD_RULES
        if settings.classifier.keyword_table_path is not None:
            rules = load_keyword_rules(settings.classifier.keyword_table_path)
        return cls(
            store=open_store(settings, rules=rules),
            geocoder=StaticGeocoder.from_path(settings.geocoding.table_path),
            rules=rules,
            excerpt_chars=settings.presentation.excerpt_chars,
        )

    def close(self) -> None:
        self.store.close()

    def list_stories(self) -> list[StoryRecord]:
        return self._read_with_retry("list_stories", self.store.list_stories)

    def list_pins(self) -> list[MapPin]:
        return self._read_with_retry("list_pins", self.store.list_pins)

    def get_story(self, story_id: str) -> StoryRecord | None:
        return self.store.get_story(story_id)

    def get_public_story(self, story_id: str) -> PublicStoryView | None:
        """Public rendering: the map pin wins over the story row."""

        pin = self.store.get_pin(story_id)
        if pin is not None:
            text = pin.story or EMPTY_STORY_TEXT
            return PublicStoryView(
                story_id=pin.pin_id,
                title=pin.title,
                author=ANONYMOUS_AUTHOR,
                country=pin.country,
                story=text,
                excerpt=self._excerpt(pin.story),
            )

        story = self.store.get_story(story_id)
        if story is None:
            return None
        text = story.story or story.organization_description or ""
        return PublicStoryView(
            story_id=story.story_id,
            title=story.title,
            author=story.public_email or ANONYMOUS_AUTHOR,
            country=story.country,
            story=text,
            excerpt=self._excerpt(text),
        )

    def submit_story(self, submission: StorySubmission) -> StoryRecord:
        """Validate and store a new pending story."""

        story = _story_from_submission(submission)
        story.story_id = self._new_story_id()
        with self.store.unit_of_work() as writer:
            writer.add_story(story)
        logger.info(
            "Story submitted (story_id=%s kind=%s country=%s).",
            story.story_id,
            story.kind.value,
            story.country,
        )
        return story

    def approve_story(self, story_id: str, *, actor: str) -> OperationResult:
        return self._run(
            story_id,
            lambda: self.lifecycle.approve(story_id, actor=actor),
            success_message="Story approved.",
        )

    def reject_story(self, story_id: str, *, actor: str) -> OperationResult:
        return self._run(
            story_id,
            lambda: self.lifecycle.reject(story_id, actor=actor),
            success_message="Story rejected.",
        )

    def publish_story(self, story_id: str, *, actor: str) -> OperationResult:
        return self._run(
            story_id,
            lambda: self.lifecycle.publish(story_id, actor=actor),
            success_message="Story published to the map.",
        )

    def approve_and_publish(self, story_id: str, *, actor: str) -> OperationResult:
        return self._run(
            story_id,
            lambda: self.lifecycle.approve_and_publish(story_id, actor=actor),
            success_message="Story approved and published to the map.",
        )

    def unpublish_story(self, story_id: str, *, actor: str) -> OperationResult:
        return self._run(
            story_id,
            lambda: self.lifecycle.unpublish(story_id, actor=actor),
            success_message="Story removed from the map.",
        )

    def delete_story(self, story_id: str, *, actor: str) -> OperationResult:
        try:
            self.lifecycle.delete(story_id, actor=actor)
        except StoryMapError as error:
            return _failure(story_id, error)
        return OperationResult(success=True, message="Story deleted.", story_id=story_id)

    def create_pin(self, fields: PinFields) -> OperationResult:
        try:
            pin = self.reconciler.create_standalone_pin(fields)
        except StoryMapError as error:
            return _failure(None, error)
        return OperationResult(success=True, message="Pin created.", pin=pin)

    def remove_pin(self, pin_id: str) -> OperationResult:
        """Delete a pin; story-derived pins report the story to unpublish next."""

        try:
            pin = self.reconciler.remove_pin(pin_id)
        except StoryMapError as error:
            return _failure(None, error)
        if pin.is_manual:
            return OperationResult(success=True, message="Pin removed.", pin=pin)
        return OperationResult(
            success=True,
            message="Pin removed; its story is still marked on-map until unpublished.",
            pin=pin,
            paired_story_id=pin.pin_id,
        )

    def check_reconciliation(self) -> ReconciliationReport:
        return self.reconciler.audit()

    def describe_schema(self) -> SchemaReport:
        return self.store.describe()

    def _run(
        self,
        story_id: str,
        action: Callable[[], StoryRecord | PublishOutcome],
        *,
        success_message: str,
    ) -> OperationResult:
        try:
            outcome = action()
        except StoryMapError as error:
            return _failure(story_id, error)
        if isinstance(outcome, PublishOutcome):
            return OperationResult(
                success=True,
                message=success_message,
                story_id=story_id,
                status=outcome.story.status,
                pin=outcome.pin,
            )
        return OperationResult(
            success=True,
            message=success_message,
            story_id=story_id,
            status=outcome.status,
        )

    def _read_with_retry(self, operation: str, read: Callable[[], list[ReadT]]) -> list[ReadT]:
        try:
            return read()
        except StorageFailureError as error:
            logger.warning("Read failed, retrying once (operation=%s error=%s).", operation, error)
            return read()

    def _excerpt(self, text: str) -> str:
        if len(text) > self.excerpt_chars:
            return text[: self.excerpt_chars] + "..."
        return text

    def _new_story_id(self) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = f"{STORY_ID_PREFIX}{uuid4().hex[:12]}"
            if not self.store.id_exists(candidate):
                return candidate
        raise StorageFailureError(
            message="Could not allocate a unique story id.",
            operation="submit_story",
        )


def _story_from_submission(submission: StorySubmission) -> StoryRecord:
    title = (submission.title or "").strip()
    if not title:
        raise ValidationError(message="Title is required.", field="title")
    country = (submission.country or "").strip()
    if not country:
        raise ValidationError(message="Country is required.", field="country")

    now = utc_now()
    story = StoryRecord(
        story_id="",
        title=title,
        kind=submission.kind,
        story=(submission.story or "").strip(),
        country=country,
        city=(submission.city or "").strip(),
        email=(submission.email or "").strip(),
        anonymous=submission.anonymous,
        status=StoryStatus.PENDING,
        submitted_at=now,
        updated_at=now,
    )

    if submission.kind == StoryKind.ORGANIZATION:
        description = (submission.organization_description or "").strip()
        if not description:
            raise ValidationError(
                message="Organization description is required.",
                field="organization_description",
            )
        story.organization_name = (submission.organization_name or "").strip() or title
        story.organization_description = description
        story.website = (submission.website or "").strip() or None
        focus_areas = submission.focus_areas or []
        story.focus_areas = [item.strip() for item in focus_areas if item.strip()]
    elif not story.story:
        raise ValidationError(message="Story text is required.", field="story")
    return story


def _failure(story_id: str | None, error: StoryMapError) -> OperationResult:
    logger.info("Operation failed (story_id=%s code=%s): %s", story_id, error.code, error)
    return OperationResult(success=False, message=str(error), story_id=story_id, error=error)
