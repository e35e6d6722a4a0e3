from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from story_map.classifier import (
    DEFAULT_KEYWORD_RULES,
    KeywordRule,
    classify,
    classify_pin,
    classify_record,
    load_keyword_rules,
)
from story_map.models import MapPin, PinCategory, StoryKind, StoryRecord

pytestmark = [
    allure.epic("Map Pins"),
    allure.feature("Category Classification"),
]


def test_organization_fields_win_over_title_keywords() -> None:
    result = classify(
        record_id="s42",
        title="Rights Shelter for Survivors of Abuse",
        organization_name="Safe Harbor",
    )

    assert result.category == PinCategory.ORGANIZATION
    assert result.matched_rule == "organization_signal"


@pytest.mark.parametrize(
    "fields",
    [
        {"record_id": "organization_1700000000000", "title": "Hotline"},
        {"record_id": "x1", "title": "Hotline", "kind": "Organization"},
        {"record_id": "x1", "title": "Hotline", "pin_type": "organization"},
        {"record_id": "x1", "title": "Hotline", "website": "https://x.org"},
        {"record_id": "x1", "title": "Hotline", "focus_areas": ["housing"]},
        {"record_id": "x1", "title": "Hotline", "organization_description": "Legal aid."},
    ],
)
def test_each_organization_signal_is_sufficient(fields: dict[str, object]) -> None:
    assert classify(**fields).category == PinCategory.ORGANIZATION


def test_blank_organization_fields_are_not_a_signal() -> None:
    result = classify(
        record_id="x1",
        title="Community clinic",
        organization_name="  ",
        website="",
        focus_areas=["", "  "],
    )

    assert result.category == PinCategory.RESOURCE


def test_keyword_priority_prefers_protection_over_resource() -> None:
    result = classify(record_id="s7", title="Rights Shelter for Survivors")

    assert result.category == PinCategory.PROTECTION
    assert result.matched_rule == "keyword:protection"
    assert result.matched_pattern == "rights"


def test_keywords_also_match_the_identifier() -> None:
    result = classify(record_id="hotline_2024", title="Call us")

    assert result.category == PinCategory.RESOURCE


def test_explicit_category_hint_beats_type_and_keywords() -> None:
    result = classify(
        record_id="p1",
        title="Harassment hotline",
        pin_type="story",
        category="Violation",
    )

    assert result.category == PinCategory.VIOLATION
    assert result.matched_rule == "explicit_category"


def test_story_category_tag_does_not_override_explicit_type() -> None:
    result = classify(record_id="p1", title="Anything", pin_type="resource", category="story")

    assert result.category == PinCategory.RESOURCE
    assert result.matched_rule == "explicit_type"


def test_unknown_type_and_category_fall_through_to_keywords() -> None:
    result = classify(
        record_id="p1",
        title="Workplace discrimination report",
        pin_type="healthcare",
        category="workplace",
    )

    assert result.category == PinCategory.VIOLATION


def test_nothing_matches_defaults_to_story() -> None:
    result = classify(record_id="s1", title="Healthcare Access in Lagos")

    assert result.category == PinCategory.STORY
    assert result.matched_rule == "default"
    assert result.to_details()["classifier_version"] == 1


@pytest.mark.parametrize(
    "fields",
    [
        {"record_id": None, "title": None},
        {"record_id": 42, "title": ["not", "text"]},  # type: ignore[dict-item]
        {"record_id": "", "title": "", "focus_areas": "legal aid"},
        {"record_id": "x", "title": "y", "pin_type": 7, "category": {"a": 1}},
        {"record_id": "x", "title": "y", "focus_areas": 3},
    ],
)
def test_classify_is_total(fields: dict[str, object]) -> None:
    result = classify(**fields)  # type: ignore[arg-type]

    assert isinstance(result.category, PinCategory)


@pytest.mark.parametrize(
    ("title", "pin_type", "category"),
    [
        ("Rights Shelter for Survivors", None, None),
        ("Community Foundation", "story", None),
        ("Anything", "resource", "workplace"),
        ("Harassment hotline", None, "violation"),
        ("Plain story", None, None),
    ],
)
def test_reclassifying_a_classified_pin_is_a_fixed_point(
    title: str,
    pin_type: str | None,
    category: str | None,
) -> None:
    first = classify(record_id="p1", title=title, pin_type=pin_type, category=category)
    pin = MapPin(pin_id="p1", title=title, type=first.category, category=category)

    assert classify_pin(pin).category == first.category
    assert classify_record(pin) == first.category


def test_classify_record_for_organization_story() -> None:
    story = StoryRecord(
        story_id="story_abc",
        title="Survivor support network",
        kind=StoryKind.ORGANIZATION,
    )

    assert classify_record(story) == PinCategory.ORGANIZATION


def test_keyword_table_is_overridable(tmp_path: Path) -> None:
    table = tmp_path / "keywords.json"
    table.write_text(
        json.dumps(
            [
                {"category": "resource", "keywords": ["Shelter"]},
                {"category": "protection", "keywords": ["rights"]},
            ],
        ),
        encoding="utf-8",
    )

    rules = load_keyword_rules(table)
    result = classify(record_id="s7", title="Rights Shelter for Survivors", rules=rules)

    assert rules[0] == KeywordRule(category=PinCategory.RESOURCE, keywords=("shelter",))
    assert result.category == PinCategory.RESOURCE


def test_keyword_table_rejects_unknown_category(tmp_path: Path) -> None:
    table = tmp_path / "keywords.json"
    table.write_text(json.dumps([{"category": "weather", "keywords": ["rain"]}]), encoding="utf-8")

    with pytest.raises(ValueError, match="unknown category"):
        load_keyword_rules(table)


def test_default_keyword_table_order() -> None:
    assert [rule.category for rule in DEFAULT_KEYWORD_RULES] == [
        PinCategory.ORGANIZATION,
        PinCategory.PROTECTION,
        PinCategory.RESOURCE,
        PinCategory.VIOLATION,
    ]
