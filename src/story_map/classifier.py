"""Deterministic pin category classification from heterogeneous record fields."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from story_map.models import ORGANIZATION_ID_PREFIX, MapPin, PinCategory, StoryKind, StoryRecord

CLASSIFIER_VERSION = 1


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """One row of the ordered keyword table."""

    category: PinCategory
    keywords: tuple[str, ...]


DEFAULT_KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        category=PinCategory.ORGANIZATION,
        keywords=("organization", "foundation", "center", "institute"),
    ),
    KeywordRule(
        category=PinCategory.PROTECTION,
        keywords=("protection", "rights", "advocacy", "activism", "campaign", "movement"),
    ),
    KeywordRule(
        category=PinCategory.RESOURCE,
        keywords=("resource", "hotline", "shelter", "clinic", "guide", "support"),
    ),
    KeywordRule(
        category=PinCategory.VIOLATION,
        keywords=("violation", "abuse", "discrimination", "assault", "harassment"),
    ),
)

# Category tags that override the raw type column; "story" is the column default.
_CATEGORY_HINTS = frozenset(category for category in PinCategory if category != PinCategory.STORY)


@dataclass(slots=True)
class PinClassification:
    """Classifier outcome with the rule that decided it."""

    category: PinCategory
    matched_rule: str
    matched_pattern: str | None = None

    def to_details(self) -> dict[str, object]:
        """Serialize classifier diagnostics for logs."""

        return {
            "classifier_version": CLASSIFIER_VERSION,
            "category": self.category.value,
            "matched_rule": self.matched_rule,
            "matched_pattern": self.matched_pattern,
        }


def classify(  # noqa: PLR0913
    *,
    record_id: str | None,
    title: str | None,
    kind: str | None = None,
    pin_type: str | None = None,
    category: str | None = None,
    organization_name: str | None = None,
    organization_description: str | None = None,
    website: str | None = None,
    focus_areas: Sequence[str] | None = None,
    rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES,
) -> PinClassification:
    """Classify raw record fields into one pin category; never raises."""

    identifier = record_id if isinstance(record_id, str) else ""

    if _has_organization_signal(
        identifier=identifier,
        kind=kind,
        pin_type=pin_type,
        organization_name=organization_name,
        organization_description=organization_description,
        website=website,
        focus_areas=focus_areas,
    ):
        return PinClassification(
            category=PinCategory.ORGANIZATION,
            matched_rule="organization_signal",
        )

    hinted = PinCategory.parse(category)
    if hinted in _CATEGORY_HINTS:
        return PinClassification(category=hinted, matched_rule="explicit_category")

    explicit = PinCategory.parse(pin_type)
    if explicit is not None:
        return PinClassification(category=explicit, matched_rule="explicit_type")

    haystack = _normalize_text(title=title, record_id=identifier)
    for rule in rules:
        pattern = _first_match(haystack, rule.keywords)
        if pattern is not None:
            return PinClassification(
                category=rule.category,
                matched_rule=f"keyword:{rule.category.value}",
                matched_pattern=pattern,
            )

    return PinClassification(category=PinCategory.STORY, matched_rule="default")


def classify_story(
    story: StoryRecord,
    *,
    rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES,
) -> PinClassification:
    return classify(
        record_id=story.story_id,
        title=story.title,
        kind=story.kind.value,
        organization_name=story.organization_name,
        organization_description=story.organization_description,
        website=story.website,
        focus_areas=story.focus_areas,
        rules=rules,
    )


def classify_pin(
    pin: MapPin,
    *,
    rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES,
) -> PinClassification:
    return classify(
        record_id=pin.pin_id,
        title=pin.title,
        pin_type=pin.type.value,
        category=pin.category,
        rules=rules,
    )


def classify_record(
    record: StoryRecord | MapPin,
    *,
    rules: Sequence[KeywordRule] = DEFAULT_KEYWORD_RULES,
) -> PinCategory:
    """Category for a canonical story or pin."""

    if isinstance(record, StoryRecord):
        return classify_story(record, rules=rules).category
    return classify_pin(record, rules=rules).category


def load_keyword_rules(path: Path) -> tuple[KeywordRule, ...]:
    """Load an ordered keyword table override.

    The file holds a JSON list of ``{"category": ..., "keywords": [...]}``
    objects; list order is match priority.
    """

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Keyword table must be a JSON list: {str(path)!r}")

    rules: list[KeywordRule] = []
    for index, entry in enumerate(payload):
        if not isinstance(entry, dict):
            raise ValueError(f"Keyword table entry #{index} must be an object.")
        category = PinCategory.parse(entry.get("category"))
        if category is None:
            raise ValueError(
                f"Keyword table entry #{index} has unknown category: {entry.get('category')!r}",
            )
        keywords = entry.get("keywords")
        if not isinstance(keywords, list) or not all(isinstance(item, str) for item in keywords):
            raise ValueError(f"Keyword table entry #{index} keywords must be a list of strings.")
        normalized = tuple(item.strip().lower() for item in keywords if item.strip())
        rules.append(KeywordRule(category=category, keywords=normalized))
    return tuple(rules)


def _has_organization_signal(  # noqa: PLR0913
    *,
    identifier: str,
    kind: str | None,
    pin_type: str | None,
    organization_name: str | None,
    organization_description: str | None,
    website: str | None,
    focus_areas: Sequence[str] | None,
) -> bool:
    if identifier.startswith(ORGANIZATION_ID_PREFIX):
        return True
    if _lowered(kind) == StoryKind.ORGANIZATION.value:
        return True
    if _lowered(pin_type) == PinCategory.ORGANIZATION.value:
        return True
    for value in (organization_name, organization_description, website):
        if isinstance(value, str) and value.strip():
            return True
    if isinstance(focus_areas, str):
        return bool(focus_areas.strip())
    if not isinstance(focus_areas, (list, tuple)):
        return False
    return any(isinstance(item, str) and item.strip() for item in focus_areas)


def _lowered(value: object) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def _normalize_text(*, title: str | None, record_id: str) -> str:
    title_text = title if isinstance(title, str) else ""
    return f"{title_text}\n{record_id}".lower()


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
