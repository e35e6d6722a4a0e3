"""Controllers for story-map CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from story_map.config import Settings
from story_map.models import (
    MapPin,
    OperationResult,
    PinCategory,
    PinFields,
    SchemaShape,
    StoryKind,
    StoryRecord,
    StoryStatus,
    StorySubmission,
)
from story_map.service import StoryMapService


@dataclass(slots=True)
class StoriesListCommand:
    """CLI inputs for story listing."""

    db_path: Path | None
    status: str | None = None


@dataclass(slots=True)
class StoryShowCommand:
    """CLI inputs for single story inspection."""

    db_path: Path | None
    story_id: str
    public: bool = False


@dataclass(slots=True)
class StorySubmitCommand:
    """CLI inputs for a new submission."""

    db_path: Path | None
    title: str
    country: str
    kind: str = StoryKind.PERSONAL.value
    story: str = ""
    city: str = ""
    email: str = ""
    anonymous: bool = False
    organization_name: str | None = None
    organization_description: str | None = None
    website: str | None = None
    focus_areas: tuple[str, ...] = ()


@dataclass(slots=True)
class StoryActionCommand:
    """CLI inputs for approve/reject/publish/unpublish/delete."""

    db_path: Path | None
    story_id: str
    actor: str | None = None


@dataclass(slots=True)
class PinsListCommand:
    """CLI inputs for pin listing."""

    db_path: Path | None
    pin_type: str | None = None


@dataclass(slots=True)
class PinCreateCommand:
    """CLI inputs for a standalone pin."""

    db_path: Path | None
    title: str
    country: str
    pin_type: str | None = None
    story: str = ""
    city: str = ""
    category: str | None = None
    lat: float | None = None
    lng: float | None = None


@dataclass(slots=True)
class PinRemoveCommand:
    """CLI inputs for pin removal."""

    db_path: Path | None
    pin_id: str
    unpublish: bool = True
    actor: str | None = None


@dataclass(slots=True)
class StoreCommand:
    """CLI inputs for commands that only need the store."""

    db_path: Path | None


@dataclass(slots=True)
class CliResult:
    """Rendered lines plus overall outcome."""

    lines: list[str] = field(default_factory=list)
    success: bool = True


class StoryMapCliController:
    """Coordinates story moderation and map CLI operations."""

    def list_stories(self, command: StoriesListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status_filter = _parse_status(command.status)
        with _service(settings) as service:
            stories = service.list_stories()
        if status_filter is not None:
            stories = [story for story in stories if story.status == status_filter]

        lines = [f"Stories: {len(stories)}"]
        for story in stories:
            lines.append(f"  {_story_line(story)}")
        return lines

    def show_story(self, command: StoryShowCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            if command.public:
                view = service.get_public_story(command.story_id)
                if view is None:
                    return CliResult(lines=[f"Story not found: {command.story_id}"], success=False)
                return CliResult(
                    lines=[
                        f"Story: {view.story_id}",
                        f"Title: {view.title}",
                        f"Author: {view.author}",
                        f"Country: {view.country or '-'}",
                        f"Excerpt: {view.excerpt or '-'}",
                    ],
                )
            story = service.get_story(command.story_id)

        if story is None:
            return CliResult(lines=[f"Story not found: {command.story_id}"], success=False)
        lines = [
            f"Story: {story.story_id}",
            f"Title: {story.title}",
            f"Kind: {story.kind.value}",
            f"Status: {story.status.value}",
            f"Location: {_location(story.country, story.city)}",
            f"Contact: {story.public_email or '-'}",
            f"Submitted: {story.submitted_at.isoformat() if story.submitted_at else '-'}",
            f"Updated: {story.updated_at.isoformat() if story.updated_at else '-'}",
        ]
        if story.is_organization:
            lines.extend(
                [
                    f"Organization: {story.organization_name or '-'}",
                    f"Website: {story.website or '-'}",
                    f"Focus areas: {', '.join(story.focus_areas) or '-'}",
                ],
            )
        lines.append(f"Narrative: {story.map_narrative or '-'}")
        return CliResult(lines=lines)

    def submit_story(self, command: StorySubmitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        submission = StorySubmission(
            title=command.title,
            country=command.country,
            kind=StoryKind(command.kind.strip().lower()),
            story=command.story,
            city=command.city,
            email=command.email,
            anonymous=command.anonymous,
            organization_name=command.organization_name,
            organization_description=command.organization_description,
            website=command.website,
            focus_areas=list(command.focus_areas),
        )
        with _service(settings) as service:
            story = service.submit_story(submission)
        return [
            f"Story submitted: {story.story_id}",
            f"Kind: {story.kind.value} status={story.status.value}",
        ]

    def approve(self, command: StoryActionCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.approve_story(command.story_id, actor=_actor(command, settings))
        return _render(result)

    def reject(self, command: StoryActionCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.reject_story(command.story_id, actor=_actor(command, settings))
        return _render(result)

    def publish(self, command: StoryActionCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.publish_story(command.story_id, actor=_actor(command, settings))
        return _render(result)

    def approve_and_publish(self, command: StoryActionCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.approve_and_publish(command.story_id, actor=_actor(command, settings))
        return _render(result)

    def unpublish(self, command: StoryActionCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.unpublish_story(command.story_id, actor=_actor(command, settings))
        return _render(result)

    def delete(self, command: StoryActionCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.delete_story(command.story_id, actor=_actor(command, settings))
        return _render(result)

    def list_pins(self, command: PinsListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        type_filter = PinCategory(command.pin_type.strip().lower()) if command.pin_type else None
        with _service(settings) as service:
            pins = service.list_pins()
            shape = service.store.shape
        if type_filter is not None:
            pins = [pin for pin in pins if pin.type == type_filter]

        lines = [f"Pins: {len(pins)} (backend={shape.value})"]
        for pin in pins:
            lines.append(f"  {_pin_line(pin)}")
        return lines

    def create_pin(self, command: PinCreateCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.create_pin(
                PinFields(
                    title=command.title,
                    country=command.country,
                    type=command.pin_type,
                    story=command.story,
                    city=command.city,
                    category=command.category,
                    lat=command.lat,
                    lng=command.lng,
                ),
            )
        return _render(result)

    def remove_pin(self, command: PinRemoveCommand) -> CliResult:
        """Remove a pin and, for story pins, revert the paired story."""

        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.remove_pin(command.pin_id)
            rendered = _render(result)
            if not result.success or result.paired_story_id is None:
                return rendered
            rendered.lines.append(f"Paired story: {result.paired_story_id}")
            if not command.unpublish:
                return rendered
            story = service.get_story(result.paired_story_id)
            if story is None or story.status != StoryStatus.ON_MAP:
                return rendered
            follow_up = _render(
                service.unpublish_story(
                    result.paired_story_id,
                    actor=command.actor or settings.admin_id,
                ),
            )
        rendered.lines.extend(follow_up.lines)
        rendered.success = follow_up.success
        return rendered

    def check(self, command: StoreCommand) -> CliResult:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            report = service.check_reconciliation()

        lines = [
            "Reconciliation: "
            f"stories={report.stories_checked} pins={report.pins_checked} "
            f"consistent={'yes' if report.is_consistent else 'no'}",
        ]
        for story_id in report.on_map_without_pin:
            lines.append(f"  on-map story without pin: {story_id}")
        for pin_id in report.pins_for_unpublished_stories:
            lines.append(f"  pin for story not on map: {pin_id}")
        for pin_id in report.dangling_story_pins:
            lines.append(f"  story pin without story (tolerated): {pin_id}")
        return CliResult(lines=lines, success=report.is_consistent)

    def describe_schema(self, command: StoreCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            report = service.describe_schema()

        lines = [f"Schema shape: {report.shape.value}", f"Database: {settings.db_path}"]
        for table, columns in report.tables.items():
            lines.append(
                f"  {table}: rows={report.row_counts.get(table, 0)} columns={','.join(columns)}",
            )
        if report.shape == SchemaShape.FALLBACK:
            lines.append(f"  map_pins (static): rows={report.row_counts.get('map_pins', 0)}")
        for table, missing in report.missing_columns.items():
            if missing:
                lines.append(f"  {table} missing optional columns: {','.join(missing)}")
        return lines


@contextmanager
def _service(settings: Settings) -> Iterator[StoryMapService]:
    service = StoryMapService.from_settings(settings)
    try:
        yield service
    finally:
        service.close()


def _actor(command: StoryActionCommand, settings: Settings) -> str:
    return command.actor or settings.admin_id


def _parse_status(value: str | None) -> StoryStatus | None:
    if value is None:
        return None
    return StoryStatus(value.strip().lower())


def _render(result: OperationResult) -> CliResult:
    if not result.success:
        code = result.error.code if result.error is not None else "error"
        return CliResult(lines=[f"Failed ({code}): {result.message}"], success=False)

    lines = [result.message]
    if result.story_id is not None:
        status = result.status.value if result.status is not None else "-"
        lines.append(f"  story_id={result.story_id} status={status}")
    if result.pin is not None:
        lines.append(f"  pin {_pin_line(result.pin)}")
    return CliResult(lines=lines)


def _story_line(story: StoryRecord) -> str:
    submitted = story.submitted_at.isoformat() if story.submitted_at else "-"
    return (
        f"{story.story_id} status={story.status.value} kind={story.kind.value} "
        f"location={_location(story.country, story.city)} submitted_at={submitted} "
        f"title={story.title}"
    )


def _pin_line(pin: MapPin) -> str:
    return (
        f"{pin.pin_id} type={pin.type.value} origin={pin.origin.value} "
        f"lat={pin.lat:.4f} lng={pin.lng:.4f} "
        f"location={_location(pin.country, pin.city)} title={pin.title}"
    )


def _location(country: str, city: str) -> str:
    if city:
        return f"{city}, {country}"
    return country or "-"
