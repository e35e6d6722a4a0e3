from __future__ import annotations

from datetime import UTC, datetime

import allure
import pytest

from story_map.errors import NotFoundError, ValidationError
from story_map.geocoding import StaticGeocoder
from story_map.models import (
    MANUAL_ID_PREFIX,
    Coordinates,
    MapPin,
    PinCategory,
    PinFields,
    PinOrigin,
    StoryKind,
    StoryStatus,
)
from story_map.reconciliation import PinReconciler, validate_coordinates
from story_map.service import StoryMapService

pytestmark = [
    allure.epic("Map Pins"),
    allure.feature("Pin Reconciliation"),
]


def _reconciler(service: StoryMapService) -> PinReconciler:
    return PinReconciler(
        store=service.store,
        geocoder=StaticGeocoder({"Kenya": Coordinates(lat=-0.02, lng=37.9)}),
        clock=lambda: datetime(2025, 9, 1, 12, 0, tzinfo=UTC),
    )


def test_standalone_pin_gets_a_manual_id_and_defaults(full_service: StoryMapService) -> None:
    pin = _reconciler(full_service).create_standalone_pin(
        PinFields(title="  Women's Legal Aid Hotline ", country="Kenya"),
    )

    assert pin.pin_id.startswith(f"{MANUAL_ID_PREFIX}1756728000000_")
    assert pin.title == "Women's Legal Aid Hotline"
    assert pin.type == PinCategory.STORY
    assert pin.category == "story"
    assert pin.city == ""
    assert pin.story == ""
    assert pin.origin == PinOrigin.MANUAL
    assert (pin.lat, pin.lng) == (-0.02, 37.9)
    assert full_service.store.get_pin(pin.pin_id) is not None


def test_explicit_coordinates_skip_geocoding(full_service: StoryMapService) -> None:
    pin = _reconciler(full_service).create_standalone_pin(
        PinFields(title="Clinic", country="Nowhere", type="resource", lat=10.5, lng=-20.25),
    )

    assert (pin.lat, pin.lng) == (10.5, -20.25)
    assert pin.type == PinCategory.RESOURCE


@pytest.mark.parametrize(
    ("fields", "field_name"),
    [
        (PinFields(country="Kenya"), "title"),
        (PinFields(title="Hotline", country=" "), "country"),
        (PinFields(title="Hotline", country="Kenya", type="weather"), "type"),
        (PinFields(title="Hotline", country="Kenya", lat=91.0, lng=0.0), "lat"),
        (PinFields(title="Hotline", country="Kenya", lat=0.0, lng=-180.5), "lng"),
        (PinFields(title="Hotline", country="Kenya", lat=1.0), "lng"),
        (PinFields(title="Hotline", country="Atlantis"), "coordinates"),
    ],
)
def test_invalid_pin_fields_name_the_field(
    full_service: StoryMapService,
    fields: PinFields,
    field_name: str,
) -> None:
    with pytest.raises(ValidationError) as error_info:
        _reconciler(full_service).create_standalone_pin(fields)

    assert error_info.value.field == field_name
    assert full_service.list_pins() == []


def test_generated_id_avoids_existing_story_ids(
    full_service: StoryMapService,
    seed_story,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    reconciler = _reconciler(full_service)
    taken = f"{MANUAL_ID_PREFIX}1756728000000_aaaaaaaaa"
    seed_story(full_service.store, taken)
    hexes = iter(["a" * 32, "b" * 32])
    monkeypatch.setattr(
        "story_map.reconciliation.uuid4",
        lambda: type("FakeUuid", (), {"hex": next(hexes)})(),
    )

    pin = reconciler.create_standalone_pin(PinFields(title="Hotline", country="Kenya"))

    assert pin.pin_id == f"{MANUAL_ID_PREFIX}1756728000000_bbbbbbbbb"


def test_story_pin_uses_organization_description(
    full_service: StoryMapService,
    seed_story,
) -> None:
    story = seed_story(
        full_service.store,
        "story_org1",
        title="Tenant Collective",
        country="Kenya",
        kind=StoryKind.ORGANIZATION,
        story="",
        organization_description="Housing support for families.",
        focus_areas=["housing"],
    )

    pin = _reconciler(full_service).build_story_pin(story)

    assert pin.pin_id == "story_org1"
    assert pin.type == PinCategory.ORGANIZATION
    assert pin.category == "organization"
    assert pin.story == "Housing support for families."
    assert pin.origin == PinOrigin.STORY


def test_remove_unknown_pin_is_not_found(full_service: StoryMapService) -> None:
    with pytest.raises(NotFoundError):
        _reconciler(full_service).remove_pin("nope")


def test_audit_reports_pairing_violations(full_service: StoryMapService, seed_story) -> None:
    store = full_service.store
    seed_story(store, "on_map_no_pin", status=StoryStatus.ON_MAP)
    seed_story(store, "approved_with_pin", status=StoryStatus.APPROVED)
    with store.unit_of_work() as writer:
        for pin_id, origin in (
            ("approved_with_pin", PinOrigin.STORY),
            ("orphan_story_pin", PinOrigin.STORY),
            ("manual_1_abc", PinOrigin.MANUAL),
        ):
            writer.upsert_pin(
                MapPin(
                    pin_id=pin_id,
                    title=pin_id,
                    created_at=datetime(2025, 9, 1, tzinfo=UTC),
                    origin=origin,
                ),
            )

    report = _reconciler(full_service).audit()

    assert report.stories_checked == 2
    assert report.pins_checked == 3
    assert report.on_map_without_pin == ["on_map_no_pin"]
    assert report.pins_for_unpublished_stories == ["approved_with_pin"]
    assert report.dangling_story_pins == ["orphan_story_pin"]
    assert report.is_consistent is False


def test_validate_coordinates_accepts_boundaries() -> None:
    assert validate_coordinates(lat=-90.0, lng=180.0) == Coordinates(lat=-90.0, lng=180.0)


def test_static_geocoder_prefers_city_entries() -> None:
    geocoder = StaticGeocoder.from_path()

    lagos = geocoder.locate("Nigeria", "Lagos")
    nigeria = geocoder.locate("  nigeria ")

    assert lagos is not None
    assert nigeria is not None
    assert lagos != nigeria
    assert geocoder.locate("Nigeria", "Unknown Town") == nigeria
    assert geocoder.locate("Atlantis") is None
