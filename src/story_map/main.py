"""CLI entrypoint for story-map."""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from story_map import __version__
from story_map.controllers import (
    CliResult,
    PinCreateCommand,
    PinRemoveCommand,
    PinsListCommand,
    StoreCommand,
    StoriesListCommand,
    StoryActionCommand,
    StoryMapCliController,
    StoryShowCommand,
    StorySubmitCommand,
)
from story_map.errors import StoryMapError
from story_map.models import PinCategory, StoryKind, StoryStatus

click.rich_click.USE_MARKDOWN = True
CONTROLLER = StoryMapCliController()

ResultT = TypeVar("ResultT")

_DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path (defaults to STORY_MAP_DB_PATH).",
)
_ACTOR_OPTION = click.option(
    "--actor",
    default=None,
    help="Admin identity recorded in logs (defaults to STORY_MAP_ADMIN_ID).",
)


@click.group()
@click.version_option(version=__version__, prog_name="story-map")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log INFO to stderr.")
def story_map(verbose: bool) -> None:
    """Story moderation and map pin CLI."""

    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@story_map.group()
def stories() -> None:
    """Story submission and moderation commands."""


@stories.command("list")
@_DB_PATH_OPTION
@click.option(
    "--status",
    type=click.Choice([status.value for status in StoryStatus], case_sensitive=False),
    default=None,
    help="Only show stories in this status.",
)
def stories_list(db_path: Path | None, status: str | None) -> None:
    """List stories, newest submission first."""

    _emit_lines(_invoke(lambda: CONTROLLER.list_stories(StoriesListCommand(db_path, status))))


@stories.command("show")
@_DB_PATH_OPTION
@click.argument("story_id")
@click.option(
    "--public/--admin",
    default=False,
    show_default=True,
    help="Render the public story view instead of the admin record.",
)
def stories_show(db_path: Path | None, story_id: str, public: bool) -> None:
    """Show one story."""

    _emit_result(
        _invoke(lambda: CONTROLLER.show_story(StoryShowCommand(db_path, story_id, public))),
        failure="Story lookup failed.",
    )


@stories.command("submit")
@_DB_PATH_OPTION
@click.option("--title", required=True, help="Story title.")
@click.option("--country", required=True, help="Country the story is about.")
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in StoryKind], case_sensitive=False),
    default=StoryKind.PERSONAL.value,
    show_default=True,
    help="Submission kind.",
)
@click.option("--story", "story_text", default="", help="Narrative text.")
@click.option("--city", default="", help="Optional city.")
@click.option("--email", default="", help="Optional contact email.")
@click.option("--anonymous", is_flag=True, default=False, help="Never show the email publicly.")
@click.option("--organization-name", default=None, help="Organization name.")
@click.option("--organization-description", default=None, help="Organization description.")
@click.option("--website", default=None, help="Organization website.")
@click.option(
    "--focus-area",
    "focus_areas",
    multiple=True,
    help="Organization focus area. Can be repeated.",
)
def stories_submit(  # noqa: PLR0913
    db_path: Path | None,
    title: str,
    country: str,
    kind: str,
    story_text: str,
    city: str,
    email: str,
    anonymous: bool,
    organization_name: str | None,
    organization_description: str | None,
    website: str | None,
    focus_areas: tuple[str, ...],
) -> None:
    """Submit a new story for moderation."""

    _emit_lines(
        _invoke(
            lambda: CONTROLLER.submit_story(
                StorySubmitCommand(
                    db_path=db_path,
                    title=title,
                    country=country,
                    kind=kind,
                    story=story_text,
                    city=city,
                    email=email,
                    anonymous=anonymous,
                    organization_name=organization_name,
                    organization_description=organization_description,
                    website=website,
                    focus_areas=focus_areas,
                ),
            ),
        ),
    )


@stories.command("approve")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("story_id")
def stories_approve(db_path: Path | None, actor: str | None, story_id: str) -> None:
    """Approve a pending or rejected story."""

    _emit_result(
        _invoke(lambda: CONTROLLER.approve(StoryActionCommand(db_path, story_id, actor))),
        failure="Approve failed.",
    )


@stories.command("reject")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("story_id")
def stories_reject(db_path: Path | None, actor: str | None, story_id: str) -> None:
    """Reject a pending story."""

    _emit_result(
        _invoke(lambda: CONTROLLER.reject(StoryActionCommand(db_path, story_id, actor))),
        failure="Reject failed.",
    )


@stories.command("publish")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("story_id")
def stories_publish(db_path: Path | None, actor: str | None, story_id: str) -> None:
    """Put an approved story on the map."""

    _emit_result(
        _invoke(lambda: CONTROLLER.publish(StoryActionCommand(db_path, story_id, actor))),
        failure="Publish failed.",
    )


@stories.command("approve-publish")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("story_id")
def stories_approve_publish(db_path: Path | None, actor: str | None, story_id: str) -> None:
    """Approve (when needed) and publish in one step."""

    _emit_result(
        _invoke(
            lambda: CONTROLLER.approve_and_publish(StoryActionCommand(db_path, story_id, actor)),
        ),
        failure="Approve-and-publish failed.",
    )


@stories.command("unpublish")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("story_id")
def stories_unpublish(db_path: Path | None, actor: str | None, story_id: str) -> None:
    """Take a story off the map and revert it to approved."""

    _emit_result(
        _invoke(lambda: CONTROLLER.unpublish(StoryActionCommand(db_path, story_id, actor))),
        failure="Unpublish failed.",
    )


@stories.command("delete")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("story_id")
def stories_delete(db_path: Path | None, actor: str | None, story_id: str) -> None:
    """Delete a story and its pin."""

    _emit_result(
        _invoke(lambda: CONTROLLER.delete(StoryActionCommand(db_path, story_id, actor))),
        failure="Delete failed.",
    )


@story_map.group()
def pins() -> None:
    """Map pin commands."""


@pins.command("list")
@_DB_PATH_OPTION
@click.option(
    "--type",
    "pin_type",
    type=click.Choice([category.value for category in PinCategory], case_sensitive=False),
    default=None,
    help="Only show pins of this category.",
)
def pins_list(db_path: Path | None, pin_type: str | None) -> None:
    """List map pins, newest first."""

    _emit_lines(_invoke(lambda: CONTROLLER.list_pins(PinsListCommand(db_path, pin_type))))


@pins.command("create")
@_DB_PATH_OPTION
@click.option("--title", required=True, help="Pin title.")
@click.option("--country", required=True, help="Country for the pin.")
@click.option("--type", "pin_type", default=None, help="Pin category (defaults to story).")
@click.option("--story", "story_text", default="", help="Pin narrative.")
@click.option("--city", default="", help="Optional city.")
@click.option("--category", default=None, help="Raw category tag (defaults to type).")
@click.option("--lat", type=float, default=None, help="Latitude; geocoded when omitted.")
@click.option("--lng", type=float, default=None, help="Longitude; geocoded when omitted.")
def pins_create(  # noqa: PLR0913
    db_path: Path | None,
    title: str,
    country: str,
    pin_type: str | None,
    story_text: str,
    city: str,
    category: str | None,
    lat: float | None,
    lng: float | None,
) -> None:
    """Create a standalone pin with no backing story."""

    _emit_result(
        _invoke(
            lambda: CONTROLLER.create_pin(
                PinCreateCommand(
                    db_path=db_path,
                    title=title,
                    country=country,
                    pin_type=pin_type,
                    story=story_text,
                    city=city,
                    category=category,
                    lat=lat,
                    lng=lng,
                ),
            ),
        ),
        failure="Pin creation failed.",
    )


@pins.command("remove")
@_DB_PATH_OPTION
@_ACTOR_OPTION
@click.argument("pin_id")
@click.option(
    "--unpublish/--keep-status",
    default=True,
    show_default=True,
    help="Revert the paired story to approved when the pin came from a story.",
)
def pins_remove(db_path: Path | None, actor: str | None, pin_id: str, unpublish: bool) -> None:
    """Remove a pin."""

    _emit_result(
        _invoke(
            lambda: CONTROLLER.remove_pin(
                PinRemoveCommand(db_path=db_path, pin_id=pin_id, unpublish=unpublish, actor=actor),
            ),
        ),
        failure="Pin removal failed.",
    )


@pins.command("check")
@_DB_PATH_OPTION
def pins_check(db_path: Path | None) -> None:
    """Audit the story/pin pairing."""

    _emit_result(
        _invoke(lambda: CONTROLLER.check(StoreCommand(db_path))),
        failure="Story/pin pairing is inconsistent.",
    )


@story_map.group()
def schema() -> None:
    """Storage diagnostics."""


@schema.command("describe")
@_DB_PATH_OPTION
def schema_describe(db_path: Path | None) -> None:
    """Show the active schema shape, tables, and row counts."""

    _emit_lines(_invoke(lambda: CONTROLLER.describe_schema(StoreCommand(db_path))))


def _invoke(call: Callable[[], ResultT]) -> ResultT:
    try:
        return call()
    except (StoryMapError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_result(result: CliResult, *, failure: str) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(failure)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    story_map()
