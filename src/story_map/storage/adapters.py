"""Schema adapter: normalize rows from every storage shape into canonical records."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.exc import SQLAlchemyError

from story_map.classifier import DEFAULT_KEYWORD_RULES, KeywordRule, classify
from story_map.errors import SchemaUnavailableError, StorageFailureError
from story_map.models import (
    MANUAL_ID_PREFIX,
    ORGANIZATION_ID_PREFIX,
    MapPin,
    PinOrigin,
    SchemaShape,
    StoryKind,
    StoryRecord,
    StoryStatus,
)
from story_map.storage.common import from_iso, to_utc_aware_datetime
from story_map.storage.sqlmodel_models import PIN_OPTIONAL_COLUMNS, STORY_OPTIONAL_COLUMNS

logger = logging.getLogger(__name__)

WEBSITE_MARKER = "\nWebsite:"
FOCUS_AREAS_MARKER = "\nFocus Areas:"
TYPE_MARKER = "TYPE:"

SKIP_MISSING_ID = "missing_id"
SKIP_MISSING_TITLE = "missing_title"


@dataclass(slots=True)
class NarrativeParts:
    """Organization fields embedded in free-text narrative."""

    description: str
    website: str | None = None
    focus_areas: list[str] = field(default_factory=list)
    has_markers: bool = False


@dataclass(slots=True)
class SchemaReport:
    """Diagnostic snapshot of the backing store."""

    shape: SchemaShape
    tables: dict[str, list[str]] = field(default_factory=dict)
    row_counts: dict[str, int] = field(default_factory=dict)
    missing_columns: dict[str, list[str]] = field(default_factory=dict)


def split_narrative(value: str | None) -> NarrativeParts:
    """Split ``\\nWebsite:`` and ``\\nFocus Areas:`` lines out of a narrative."""

    narrative = value or ""
    positions = [
        index
        for index in (narrative.find(WEBSITE_MARKER), narrative.find(FOCUS_AREAS_MARKER))
        if index >= 0
    ]
    if not positions:
        return NarrativeParts(description=narrative)

    website = _marker_line(narrative, WEBSITE_MARKER)
    focus_line = _marker_line(narrative, FOCUS_AREAS_MARKER)
    return NarrativeParts(
        description=narrative[: min(positions)].strip(),
        website=website or None,
        focus_areas=_split_focus_areas(focus_line),
        has_markers=True,
    )


def compose_narrative(
    *,
    description: str,
    website: str | None,
    focus_areas: list[str],
) -> str:
    """Inverse of :func:`split_narrative` for stores without organization columns."""

    lines = [description.strip()]
    if website:
        lines.append(f"Website: {website.strip()}")
    lines.append(f"Focus Areas: {', '.join(item.strip() for item in focus_areas)}")
    return "\n".join(lines)


def normalize_story_row(row: Mapping[str, object], shape: SchemaShape) -> StoryRecord:
    """Build a canonical story record; never raises on missing optional fields."""

    story_id = _text(row.get("id"))
    title = _text(row.get("title"))
    skip_reason = _skip_reason(story_id=story_id, title=title)
    if skip_reason is not None:
        return StoryRecord(story_id=story_id, title=title, skip_reason=skip_reason)

    narrative = _text(row.get("story"))
    has_columns = shape == SchemaShape.FULL
    organization_name = _optional_text(row.get("organization_name")) if has_columns else None
    organization_description = (
        _optional_text(row.get("organization_description")) if has_columns else None
    )
    website = _optional_text(row.get("website")) if has_columns else None
    focus_areas = _focus_areas(row.get("focus_areas")) if has_columns else []
    parts = split_narrative(narrative)

    is_organization = (
        story_id.startswith(ORGANIZATION_ID_PREFIX)
        or _text(row.get("type")).lower() == StoryKind.ORGANIZATION.value
        or bool(organization_name or organization_description or website or focus_areas)
        or (not has_columns and parts.has_markers)
    )

    if is_organization:
        organization_name = organization_name or title
        organization_description = organization_description or parts.description
        website = website or parts.website
        focus_areas = focus_areas or parts.focus_areas

    return StoryRecord(
        story_id=story_id,
        title=title,
        kind=StoryKind.ORGANIZATION if is_organization else StoryKind.PERSONAL,
        story=narrative,
        organization_name=organization_name if is_organization else None,
        organization_description=organization_description if is_organization else None,
        website=website if is_organization else None,
        focus_areas=focus_areas if is_organization else [],
        country=_text(row.get("country")),
        city=_text(row.get("city")),
        email=_text(row.get("email")),
        anonymous=_flag(row.get("anonymous")),
        status=_status(row.get("status")),
        submitted_at=_datetime(row.get("submitted_at")),
        updated_at=_datetime(row.get("updated_at")),
    )


def normalize_pin_row(
    row: Mapping[str, object],
    shape: SchemaShape,
    *,
    rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
) -> MapPin:
    """Build a canonical, classified map pin; never raises on missing optional fields."""

    pin_id = _text(row.get("id"))
    title = _text(row.get("title"))
    skip_reason = _skip_reason(story_id=pin_id, title=title)
    if skip_reason is not None:
        return MapPin(pin_id=pin_id, title=title, skip_reason=skip_reason)

    narrative = _text(row.get("story")) if shape != SchemaShape.LEGACY else ""
    raw_type = _optional_text(row.get("type"))
    marker_type, narrative = _lift_type_marker(narrative)
    if marker_type is not None:
        raw_type = marker_type
    category = _optional_text(row.get("category"))

    classification = classify(
        record_id=pin_id,
        title=title,
        pin_type=raw_type,
        category=category,
        rules=rules,
    )
    return MapPin(
        pin_id=pin_id,
        title=title,
        lat=_coordinate(row.get("lat")),
        lng=_coordinate(row.get("lng")),
        type=classification.category,
        category=category,
        story=narrative,
        country=_text(row.get("country")),
        city=_text(row.get("city")),
        created_at=_datetime(row.get("created_at")),
        origin=_origin(row.get("origin"), pin_id=pin_id, shape=shape),
    )


def probe_schema_shape(engine: Engine) -> SchemaShape:
    """Detect which storage shape the database provides."""

    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        missing_tables = tuple(name for name in ("stories", "map_pins") if name not in tables)
        if missing_tables:
            raise SchemaUnavailableError(
                message=f"Missing tables: {', '.join(missing_tables)}",
                missing=missing_tables,
            )
        missing = _missing_optional_columns(inspector)
    except SQLAlchemyError as error:
        raise SchemaUnavailableError(message=f"Schema probe failed: {error}") from error

    if any(missing.values()):
        logger.warning(
            "Optional columns missing, using legacy schema shape (stories=%s map_pins=%s).",
            ",".join(missing["stories"]) or "-",
            ",".join(missing["map_pins"]) or "-",
        )
        return SchemaShape.LEGACY
    return SchemaShape.FULL


def describe_schema(engine: Engine | None, shape: SchemaShape) -> SchemaReport:
    """Tables, columns, and row counts of the active store."""

    report = SchemaReport(shape=shape)
    if engine is None:
        return report
    try:
        inspector = inspect(engine)
        with engine.connect() as connection:
            for table in ("stories", "map_pins"):
                if table not in inspector.get_table_names():
                    continue
                report.tables[table] = [column["name"] for column in inspector.get_columns(table)]
                count = connection.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar_one()
                report.row_counts[table] = int(count)
        if len(report.tables) == 2:
            report.missing_columns = _missing_optional_columns(inspector)
    except SQLAlchemyError as error:
        raise StorageFailureError(
            message=f"Schema inspection failed: {error}",
            operation="describe_schema",
        ) from error
    return report


def _missing_optional_columns(inspector: Inspector) -> dict[str, list[str]]:
    story_columns = {column["name"] for column in inspector.get_columns("stories")}
    pin_columns = {column["name"] for column in inspector.get_columns("map_pins")}
    return {
        "stories": [name for name in STORY_OPTIONAL_COLUMNS if name not in story_columns],
        "map_pins": [name for name in PIN_OPTIONAL_COLUMNS if name not in pin_columns],
    }


def _skip_reason(*, story_id: str, title: str) -> str | None:
    if not story_id:
        return SKIP_MISSING_ID
    if not title:
        return SKIP_MISSING_TITLE
    return None


def _lift_type_marker(narrative: str) -> tuple[str | None, str]:
    if not narrative.startswith(TYPE_MARKER):
        return None, narrative
    first_line, _, rest = narrative.partition("\n")
    return first_line[len(TYPE_MARKER) :].strip() or None, rest


def _marker_line(narrative: str, marker: str) -> str:
    index = narrative.find(marker)
    if index < 0:
        return ""
    tail = narrative[index + len(marker) :]
    return tail.split("\n", 1)[0].strip()


def _split_focus_areas(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _focus_areas(value: object) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    if not isinstance(value, str) or not value.strip():
        return []
    stripped = value.strip()
    if stripped.startswith("["):
        try:
            decoded = json.loads(stripped)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return [str(item).strip() for item in decoded if str(item).strip()]
    return _split_focus_areas(stripped)


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def _optional_text(value: object) -> str | None:
    normalized = _text(value)
    return normalized or None


def _flag(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on", "t"}
    return bool(value)


def _status(value: object) -> StoryStatus:
    normalized = _text(value).lower()
    for status in StoryStatus:
        if status.value == normalized:
            return status
    return StoryStatus.PENDING


def _origin(value: object, *, pin_id: str, shape: SchemaShape) -> PinOrigin:
    if shape == SchemaShape.FALLBACK:
        return PinOrigin.MANUAL
    normalized = _text(value).lower()
    if normalized == PinOrigin.MANUAL.value:
        return PinOrigin.MANUAL
    if normalized == PinOrigin.STORY.value:
        return PinOrigin.STORY
    return PinOrigin.MANUAL if pin_id.startswith(MANUAL_ID_PREFIX) else PinOrigin.STORY


def _coordinate(value: object) -> float:
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _datetime(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return to_utc_aware_datetime(value)
    if isinstance(value, str) and value.strip():
        try:
            return from_iso(value.strip())
        except ValueError:
            return None
    return None
