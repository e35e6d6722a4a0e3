"""Story status state machine; the only writer of story status."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from story_map.errors import InvalidTransitionError, NotApprovedError, NotFoundError
from story_map.models import MapPin, StoryRecord, StoryStatus
from story_map.reconciliation import PinReconciler
from story_map.storage.base import StoreWriter, StoryMapStore
from story_map.storage.common import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Transition:
    """Allowed source statuses for one admin action."""

    action: str
    sources: frozenset[StoryStatus]
    target: StoryStatus


APPROVE = Transition(
    action="approve",
    sources=frozenset({StoryStatus.PENDING, StoryStatus.REJECTED}),
    target=StoryStatus.APPROVED,
)
REJECT = Transition(
    action="reject",
    sources=frozenset({StoryStatus.PENDING}),
    target=StoryStatus.REJECTED,
)
PUBLISH = Transition(
    action="publish",
    sources=frozenset({StoryStatus.APPROVED}),
    target=StoryStatus.ON_MAP,
)
UNPUBLISH = Transition(
    action="unpublish",
    sources=frozenset({StoryStatus.ON_MAP}),
    target=StoryStatus.APPROVED,
)


@dataclass(slots=True)
class PublishOutcome:
    """Story and pin after a successful publish."""

    story: StoryRecord
    pin: MapPin


class StoryLifecycleManager:
    """Enforces allowed status transitions and pin-before-status ordering."""

    def __init__(
        self,
        *,
        store: StoryMapStore,
        reconciler: PinReconciler,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.reconciler = reconciler
        self.clock = clock

    def approve(self, story_id: str, *, actor: str) -> StoryRecord:
        with self.store.unit_of_work() as writer:
            story = _require_story(writer, story_id)
            return self._transition(writer, story, APPROVE, actor=actor)

    def reject(self, story_id: str, *, actor: str) -> StoryRecord:
        with self.store.unit_of_work() as writer:
            story = _require_story(writer, story_id)
            return self._transition(writer, story, REJECT, actor=actor)

    def publish(self, story_id: str, *, actor: str) -> PublishOutcome:
        """Create the pin, then flip the story to on-map in the same unit of work."""

        with self.store.unit_of_work() as writer:
            story = _require_story(writer, story_id)
            if story.status not in PUBLISH.sources:
                if story.status == StoryStatus.ON_MAP:
                    raise InvalidTransitionError(
                        message=f"Story {story_id} is already on the map.",
                        story_id=story_id,
                        action=PUBLISH.action,
                        status_from=story.status.value,
                    )
                raise NotApprovedError(
                    message=f"Story {story_id} must be approved before publishing.",
                    story_id=story_id,
                    action=PUBLISH.action,
                    status_from=story.status.value,
                )
            pin = self.reconciler.publish_to_map(story, writer)
            published = self._transition(writer, story, PUBLISH, actor=actor)
        return PublishOutcome(story=published, pin=pin)

    def approve_and_publish(self, story_id: str, *, actor: str) -> PublishOutcome:
        """Approve when needed, then publish as a second step.

        A publish failure leaves the story approved.
        """

        story = self.store.get_story(story_id)
        if story is None:
            raise NotFoundError(message=f"Story not found: {story_id}", record_id=story_id)
        if story.status != StoryStatus.APPROVED:
            self.approve(story_id, actor=actor)
        return self.publish(story_id, actor=actor)

    def unpublish(self, story_id: str, *, actor: str) -> StoryRecord:
        """Remove the pin first, then revert the story to approved."""

        with self.store.unit_of_work() as writer:
            story = _require_story(writer, story_id)
            if story.status not in UNPUBLISH.sources:
                raise InvalidTransitionError(
                    message=f"Story {story_id} is not on the map.",
                    story_id=story_id,
                    action=UNPUBLISH.action,
                    status_from=story.status.value,
                )
            if not self.reconciler.remove_from_map(story_id, writer):
                logger.warning("Unpublish found no pin for on-map story (story_id=%s).", story_id)
            return self._transition(writer, story, UNPUBLISH, actor=actor)

    def delete(self, story_id: str, *, actor: str) -> StoryRecord:
        """Delete a story from any status, pin first."""

        with self.store.unit_of_work() as writer:
            story = _require_story(writer, story_id)
            pin_removed = self.reconciler.remove_from_map(story_id, writer)
            writer.delete_story(story_id)
        logger.info(
            "Story deleted (actor=%s story_id=%s status_from=%s pin_removed=%s).",
            actor,
            story_id,
            story.status.value,
            "yes" if pin_removed else "no",
        )
        return story

    def _transition(
        self,
        writer: StoreWriter,
        story: StoryRecord,
        transition: Transition,
        *,
        actor: str,
    ) -> StoryRecord:
        if story.status not in transition.sources:
            raise InvalidTransitionError(
                message=(
                    f"Cannot {transition.action} story {story.story_id} "
                    f"from status {story.status.value}."
                ),
                story_id=story.story_id,
                action=transition.action,
                status_from=story.status.value,
            )
        updated_at = self.clock()
        changed = writer.update_story_status(
            story.story_id,
            status_from=story.status,
            status_to=transition.target,
            updated_at=updated_at,
        )
        if not changed:
            raise InvalidTransitionError(
                message=f"Story {story.story_id} changed concurrently; retry {transition.action}.",
                story_id=story.story_id,
                action=transition.action,
                status_from=story.status.value,
            )
        logger.info(
            "Story status changed (actor=%s story_id=%s action=%s status_from=%s status_to=%s).",
            actor,
            story.story_id,
            transition.action,
            story.status.value,
            transition.target.value,
        )
        story.status = transition.target
        story.updated_at = updated_at
        return story


def _require_story(writer: StoreWriter, story_id: str) -> StoryRecord:
    story = writer.get_story(story_id)
    if story is None:
        raise NotFoundError(message=f"Story not found: {story_id}", record_id=story_id)
    return story
