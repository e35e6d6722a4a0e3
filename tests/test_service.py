from __future__ import annotations

import allure
import pytest

from story_map.errors import StorageFailureError, ValidationError
from story_map.models import (
    STORY_ID_PREFIX,
    PinCategory,
    PinFields,
    PinOrigin,
    StoryKind,
    StoryStatus,
    StorySubmission,
)
from story_map.service import StoryMapService

pytestmark = [
    allure.epic("Moderation"),
    allure.feature("Service Facade"),
]


@pytest.fixture(params=["full", "legacy"])
def service(request: pytest.FixtureRequest) -> StoryMapService:
    return request.getfixturevalue(f"{request.param}_service")


def test_approve_and_publish_end_to_end(service: StoryMapService, seed_story) -> None:
    seed_story(
        service.store,
        "s1",
        title="Healthcare Access in Lagos",
        country="Nigeria",
        story="Clinics closed after the floods.",
    )

    result = service.approve_and_publish("s1", actor="admin")

    assert result.success is True
    assert result.status == StoryStatus.ON_MAP
    assert result.pin is not None
    pins = {pin.pin_id: pin for pin in service.list_pins()}
    assert pins["s1"].title == "Healthcare Access in Lagos"
    assert pins["s1"].type == PinCategory.STORY
    assert pins["s1"].country == "Nigeria"
    stories = {story.story_id: story for story in service.list_stories()}
    assert stories["s1"].status == StoryStatus.ON_MAP
    assert service.check_reconciliation().is_consistent


def test_publish_then_unpublish_removes_pin(service: StoryMapService, seed_story) -> None:
    seed_story(service.store, "s1", status=StoryStatus.APPROVED)
    service.publish_story("s1", actor="admin")

    result = service.unpublish_story("s1", actor="admin")

    assert result.success is True
    assert result.status == StoryStatus.APPROVED
    assert "s1" not in [pin.pin_id for pin in service.list_pins()]


def test_manual_pin_scenario(service: StoryMapService, seed_story) -> None:
    seed_story(service.store, "s1")

    created = service.create_pin(
        PinFields(title="Women's Legal Aid Hotline", country="Kenya", type="resource"),
    )

    assert created.success is True
    pin = created.pin
    assert pin is not None
    assert pin.pin_id != "s1"
    assert pin.pin_id.startswith("manual_")
    assert pin.type == PinCategory.RESOURCE
    assert pin.category == "resource"
    assert pin.is_manual

    listed = {item.pin_id: item for item in service.list_pins()}
    assert listed[pin.pin_id].origin == PinOrigin.MANUAL

    removed = service.remove_pin(pin.pin_id)

    assert removed.success is True
    assert removed.paired_story_id is None
    story = service.get_story("s1")
    assert story is not None
    assert story.status == StoryStatus.PENDING


def test_removing_story_pin_reports_paired_story(service: StoryMapService, seed_story) -> None:
    seed_story(service.store, "s1", status=StoryStatus.APPROVED)
    service.publish_story("s1", actor="admin")

    removed = service.remove_pin("s1")

    assert removed.paired_story_id == "s1"
    assert service.check_reconciliation().on_map_without_pin == ["s1"]
    assert service.unpublish_story("s1", actor="admin").success is True
    assert service.check_reconciliation().is_consistent


def test_failures_are_returned_not_raised(service: StoryMapService, seed_story) -> None:
    seed_story(service.store, "s1")

    publish = service.publish_story("s1", actor="admin")
    missing = service.delete_story("missing", actor="admin")
    bad_pin = service.create_pin(PinFields(title="Hotline"))

    assert publish.success is False
    assert publish.error is not None
    assert publish.error.code == "not_approved"
    assert "must be approved" in publish.message
    assert missing.error is not None
    assert missing.error.code == "not_found"
    assert isinstance(bad_pin.error, ValidationError)
    assert bad_pin.error.field == "country"


def test_submit_personal_story(service: StoryMapService) -> None:
    story = service.submit_story(
        StorySubmission(
            title=" Night shift ",
            country="Chile",
            story="Walking home after work.",
            email="me@example.com",
            anonymous=True,
        ),
    )

    assert story.story_id.startswith(STORY_ID_PREFIX)
    assert story.status == StoryStatus.PENDING
    stored = service.get_story(story.story_id)
    assert stored is not None
    assert stored.title == "Night shift"
    assert stored.kind == StoryKind.PERSONAL
    assert stored.public_email is None


@pytest.mark.parametrize(
    ("submission", "field_name"),
    [
        (StorySubmission(title="", country="Chile", story="x"), "title"),
        (StorySubmission(title="T", country="", story="x"), "country"),
        (StorySubmission(title="T", country="Chile"), "story"),
        (
            StorySubmission(title="T", country="Chile", kind=StoryKind.ORGANIZATION),
            "organization_description",
        ),
    ],
)
def test_submit_validation_names_the_field(
    full_service: StoryMapService,
    submission: StorySubmission,
    field_name: str,
) -> None:
    with pytest.raises(ValidationError) as error_info:
        full_service.submit_story(submission)

    assert error_info.value.field == field_name


def test_organization_round_trips_through_both_shapes(service: StoryMapService) -> None:
    submitted = service.submit_story(
        StorySubmission(
            title="Tenant Collective",
            country="Kenya",
            kind=StoryKind.ORGANIZATION,
            organization_description="Housing support for families.",
            website="https://tenants.example",
            focus_areas=["housing", "legal aid"],
        ),
    )

    story = service.get_story(submitted.story_id)

    assert story is not None
    assert story.kind == StoryKind.ORGANIZATION
    assert story.organization_description == "Housing support for families."
    assert story.website == "https://tenants.example"
    assert story.focus_areas == ["housing", "legal aid"]

    service.approve_and_publish(submitted.story_id, actor="admin")
    pin = service.store.get_pin(submitted.story_id)
    assert pin is not None
    assert pin.type == PinCategory.ORGANIZATION


def test_public_story_prefers_pin_and_hides_author(
    full_service: StoryMapService,
    seed_story,
) -> None:
    long_story = "x" * 200
    seed_story(
        full_service.store,
        "s1",
        status=StoryStatus.APPROVED,
        story=long_story,
        email="me@example.com",
    )

    before = full_service.get_public_story("s1")
    full_service.publish_story("s1", actor="admin")
    after = full_service.get_public_story("s1")

    assert before is not None
    assert before.author == "me@example.com"
    assert before.excerpt == "x" * 150 + "..."
    assert after is not None
    assert after.author == "Anonymous"
    assert after.story == long_story
    assert full_service.get_public_story("missing") is None


def test_public_story_from_legacy_pin_has_placeholder_text(
    legacy_service: StoryMapService,
    seed_story,
) -> None:
    seed_story(legacy_service.store, "s1", status=StoryStatus.APPROVED)
    legacy_service.publish_story("s1", actor="admin")

    view = legacy_service.get_public_story("s1")

    assert view is not None
    assert view.story == "No story content available"
    assert view.excerpt == ""


def test_list_reads_retry_once(
    full_service: StoryMapService,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    calls: list[int] = []
    original = full_service.store.list_pins

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise StorageFailureError(message="database is locked", operation="list_pins")
        return original()

    monkeypatch.setattr(full_service.store, "list_pins", flaky)

    with caplog.at_level("WARNING"):
        assert full_service.list_pins() == []

    assert len(calls) == 2
    assert "retrying once" in caplog.text


def test_describe_schema_reports_active_shape(service: StoryMapService) -> None:
    report = service.describe_schema()

    assert report.shape == service.store.shape
    assert set(report.tables) == {"stories", "map_pins"}


def test_story_with_manual_prefix_keeps_its_pairing(
    service: StoryMapService,
    seed_story,
) -> None:
    seed_story(service.store, "manual_story_1", status=StoryStatus.APPROVED)
    service.publish_story("manual_story_1", actor="admin")

    pin = service.store.get_pin("manual_story_1")
    listed = {item.pin_id: item for item in service.list_pins()}
    removed = service.remove_pin("manual_story_1")

    assert pin is not None
    assert pin.origin == PinOrigin.STORY
    assert listed["manual_story_1"].origin == PinOrigin.STORY
    assert removed.paired_story_id == "manual_story_1"
    assert service.check_reconciliation().on_map_without_pin == ["manual_story_1"]


def test_null_optional_fields_use_defaults(service: StoryMapService) -> None:
    created = service.create_pin(
        PinFields(title="Hotline", country="Kenya", type="resource", city=None, story=None),
    )
    submitted = service.submit_story(
        StorySubmission(
            title="Night shift",
            country="Chile",
            story="Walking home.",
            city=None,
            email=None,
        ),
    )

    assert created.success is True
    assert created.pin is not None
    assert created.pin.city == ""
    assert created.pin.story == ""
    assert submitted.city == ""
    assert submitted.email == ""
