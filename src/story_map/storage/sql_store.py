"""Relational stores for the full and legacy schema shapes."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from story_map.classifier import DEFAULT_KEYWORD_RULES, KeywordRule
from story_map.errors import StorageFailureError
from story_map.models import MapPin, SchemaShape, StoryRecord, StoryStatus
from story_map.storage.adapters import (
    SchemaReport,
    compose_narrative,
    describe_schema,
    normalize_pin_row,
    normalize_story_row,
)
from story_map.storage.common import to_db_datetime, utc_now
from story_map.storage.sqlmodel_models import (
    PIN_LEGACY_COLUMNS,
    STORY_LEGACY_COLUMNS,
    MapPinRow,
    StoryRow,
)

logger = logging.getLogger(__name__)

_DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

RecordT = TypeVar("RecordT", StoryRecord, MapPin)

# Legacy pins carry no origin column; a pin sharing its id with a story is that story's pin.
_LEGACY_PIN_SELECT = (
    f"SELECT {', '.join(PIN_LEGACY_COLUMNS)}, "
    "CASE WHEN EXISTS (SELECT 1 FROM stories WHERE stories.id = map_pins.id) "
    "THEN 'story' END AS origin "
    "FROM map_pins"
)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Report SQLAlchemy failures upward as :class:`StorageFailureError`."""

    try:
        yield
    except SQLAlchemyError as error:
        raise StorageFailureError(
            message=f"Storage operation {operation} failed: {error}",
            operation=operation,
        ) from error


class FullSchemaStore:
    """Store backed by the SQLModel tables at migration head."""

    shape = SchemaShape.FULL

    def __init__(
        self,
        engine: Engine,
        *,
        rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
    ) -> None:
        self.engine = engine
        self.rules = rules

    def close(self) -> None:
        self.engine.dispose()

    def list_stories(self) -> list[StoryRecord]:
        with storage_errors("list_stories"), Session(self.engine) as session:
            rows = session.exec(
                select(StoryRow).order_by(col(StoryRow.submitted_at).desc()),
            ).all()
            records = [normalize_story_row(row.model_dump(), self.shape) for row in rows]
        return _readable(records, table="stories")

    def list_pins(self) -> list[MapPin]:
        with storage_errors("list_pins"), Session(self.engine) as session:
            rows = session.exec(
                select(MapPinRow).order_by(col(MapPinRow.created_at).desc()),
            ).all()
            records = [
                normalize_pin_row(row.model_dump(), self.shape, rules=self.rules) for row in rows
            ]
        return _readable(records, table="map_pins")

    def get_story(self, story_id: str) -> StoryRecord | None:
        with storage_errors("get_story"), Session(self.engine) as session:
            return _FullWriter(session, rules=self.rules).get_story(story_id)

    def get_pin(self, pin_id: str) -> MapPin | None:
        with storage_errors("get_pin"), Session(self.engine) as session:
            return _FullWriter(session, rules=self.rules).get_pin(pin_id)

    def id_exists(self, record_id: str) -> bool:
        with storage_errors("id_exists"), Session(self.engine) as session:
            return (
                session.get(StoryRow, record_id) is not None
                or session.get(MapPinRow, record_id) is not None
            )

    @contextmanager
    def unit_of_work(self) -> Iterator[_FullWriter]:
        with storage_errors("unit_of_work"), Session(self.engine) as session:
            try:
                yield _FullWriter(session, rules=self.rules)
                session.commit()
            except Exception:
                session.rollback()
                raise

    def describe(self) -> SchemaReport:
        return describe_schema(self.engine, self.shape)


class _FullWriter:
    def __init__(self, session: Session, *, rules: tuple[KeywordRule, ...]) -> None:
        self.session = session
        self.rules = rules

    def get_story(self, story_id: str) -> StoryRecord | None:
        row = self.session.get(StoryRow, story_id)
        if row is None:
            return None
        return normalize_story_row(row.model_dump(), SchemaShape.FULL)

    def get_pin(self, pin_id: str) -> MapPin | None:
        row = self.session.get(MapPinRow, pin_id)
        if row is None:
            return None
        return normalize_pin_row(row.model_dump(), SchemaShape.FULL, rules=self.rules)

    def add_story(self, story: StoryRecord) -> None:
        submitted_at = story.submitted_at or utc_now()
        self.session.add(
            StoryRow(
                id=story.story_id,
                type=story.kind.value,
                title=story.title,
                story=story.story,
                organization_name=story.organization_name,
                organization_description=story.organization_description,
                website=story.website,
                focus_areas=json.dumps(story.focus_areas, ensure_ascii=False)
                if story.focus_areas
                else None,
                country=story.country,
                city=story.city or None,
                email=story.email or None,
                anonymous=story.anonymous,
                status=story.status.value,
                submitted_at=to_db_datetime(submitted_at),
                updated_at=to_db_datetime(story.updated_at or submitted_at),
            ),
        )
        self.session.flush()

    def upsert_pin(self, pin: MapPin) -> None:
        row = self.session.get(MapPinRow, pin.pin_id)
        if row is None:
            row = MapPinRow(
                id=pin.pin_id,
                title=pin.title,
                lat=pin.lat,
                lng=pin.lng,
                created_at=to_db_datetime(pin.created_at or utc_now()),
            )
        else:
            logger.warning("Pin id collision, later write wins (pin_id=%s).", pin.pin_id)
            row.title = pin.title
            row.lat = pin.lat
            row.lng = pin.lng
            row.created_at = to_db_datetime(pin.created_at or utc_now())
        row.story = pin.story
        row.type = pin.type.value
        row.category = pin.category
        row.country = pin.country
        row.city = pin.city
        row.origin = pin.origin.value
        self.session.add(row)
        self.session.flush()

    def delete_pin(self, pin_id: str) -> bool:
        row = self.session.get(MapPinRow, pin_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True

    def update_story_status(
        self,
        story_id: str,
        *,
        status_from: StoryStatus,
        status_to: StoryStatus,
        updated_at: datetime,
    ) -> bool:
        result = self.session.exec(  # type: ignore[call-overload]
            sa_update(StoryRow)
            .where(
                col(StoryRow.id) == story_id,
                col(StoryRow.status) == status_from.value,
            )
            .values(status=status_to.value, updated_at=to_db_datetime(updated_at)),
        )
        return result.rowcount == 1

    def delete_story(self, story_id: str) -> bool:
        row = self.session.get(StoryRow, story_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.flush()
        return True


class LegacySchemaStore:
    """Store for databases still on the initial schema revision.

    Organization columns and the pin narrative column are absent; organization
    fields travel inside the story narrative as marker lines.
    """

    shape = SchemaShape.LEGACY

    def __init__(
        self,
        engine: Engine,
        *,
        rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
    ) -> None:
        self.engine = engine
        self.rules = rules

    def close(self) -> None:
        self.engine.dispose()

    def list_stories(self) -> list[StoryRecord]:
        with storage_errors("list_stories"), self.engine.connect() as connection:
            rows = connection.execute(
                text(
                    f"SELECT {', '.join(STORY_LEGACY_COLUMNS)} "
                    "FROM stories ORDER BY submitted_at DESC",
                ),
            ).mappings()
            records = [normalize_story_row(row, self.shape) for row in rows]
        return _readable(records, table="stories")

    def list_pins(self) -> list[MapPin]:
        with storage_errors("list_pins"), self.engine.connect() as connection:
            rows = connection.execute(
                text(f"{_LEGACY_PIN_SELECT} ORDER BY created_at DESC"),
            ).mappings()
            records = [normalize_pin_row(row, self.shape, rules=self.rules) for row in rows]
        return _readable(records, table="map_pins")

    def get_story(self, story_id: str) -> StoryRecord | None:
        with storage_errors("get_story"), self.engine.connect() as connection:
            return _LegacyWriter(connection, rules=self.rules).get_story(story_id)

    def get_pin(self, pin_id: str) -> MapPin | None:
        with storage_errors("get_pin"), self.engine.connect() as connection:
            return _LegacyWriter(connection, rules=self.rules).get_pin(pin_id)

    def id_exists(self, record_id: str) -> bool:
        with storage_errors("id_exists"), self.engine.connect() as connection:
            row = connection.execute(
                text(
                    "SELECT 1 FROM stories WHERE id = :record_id "
                    "UNION ALL SELECT 1 FROM map_pins WHERE id = :record_id LIMIT 1",
                ),
                {"record_id": record_id},
            ).first()
            return row is not None

    @contextmanager
    def unit_of_work(self) -> Iterator[_LegacyWriter]:
        with storage_errors("unit_of_work"), self.engine.begin() as connection:
            yield _LegacyWriter(connection, rules=self.rules)

    def describe(self) -> SchemaReport:
        return describe_schema(self.engine, self.shape)


class _LegacyWriter:
    def __init__(self, connection: Connection, *, rules: tuple[KeywordRule, ...]) -> None:
        self.connection = connection
        self.rules = rules

    def get_story(self, story_id: str) -> StoryRecord | None:
        row = (
            self.connection.execute(
                text(f"SELECT {', '.join(STORY_LEGACY_COLUMNS)} FROM stories WHERE id = :id"),
                {"id": story_id},
            )
            .mappings()
            .first()
        )
        if row is None:
            return None
        return normalize_story_row(row, SchemaShape.LEGACY)

    def get_pin(self, pin_id: str) -> MapPin | None:
        row = (
            self.connection.execute(
                text(f"{_LEGACY_PIN_SELECT} WHERE id = :id"),
                {"id": pin_id},
            )
            .mappings()
            .first()
        )
        if row is None:
            return None
        return normalize_pin_row(row, SchemaShape.LEGACY, rules=self.rules)

    def add_story(self, story: StoryRecord) -> None:
        narrative = story.story
        if story.is_organization:
            narrative = compose_narrative(
                description=story.organization_description or story.story,
                website=story.website,
                focus_areas=story.focus_areas,
            )
        submitted_at = story.submitted_at or utc_now()
        self.connection.execute(
            text(
                "INSERT INTO stories "
                "(id, title, story, country, city, email, anonymous, status, "
                "submitted_at, updated_at) "
                "VALUES (:id, :title, :story, :country, :city, :email, :anonymous, :status, "
                ":submitted_at, :updated_at)",
            ),
            {
                "id": story.story_id,
                "title": story.title,
                "story": narrative,
                "country": story.country,
                "city": story.city or None,
                "email": story.email or None,
                "anonymous": story.anonymous,
                "status": story.status.value,
                "submitted_at": _db_timestamp(submitted_at),
                "updated_at": _db_timestamp(story.updated_at or submitted_at),
            },
        )

    def upsert_pin(self, pin: MapPin) -> None:
        self.connection.execute(
            text(
                "INSERT INTO map_pins "
                "(id, title, lat, lng, type, category, country, city, created_at) "
                "VALUES (:id, :title, :lat, :lng, :type, :category, :country, :city, "
                ":created_at) "
                "ON CONFLICT (id) DO UPDATE SET "
                "title = excluded.title, lat = excluded.lat, lng = excluded.lng, "
                "type = excluded.type, category = excluded.category, "
                "country = excluded.country, city = excluded.city, "
                "created_at = excluded.created_at",
            ),
            {
                "id": pin.pin_id,
                "title": pin.title,
                "lat": pin.lat,
                "lng": pin.lng,
                "type": pin.type.value,
                "category": pin.category,
                "country": pin.country,
                "city": pin.city,
                "created_at": _db_timestamp(pin.created_at or utc_now()),
            },
        )

    def delete_pin(self, pin_id: str) -> bool:
        result = self.connection.execute(
            text("DELETE FROM map_pins WHERE id = :id"),
            {"id": pin_id},
        )
        return result.rowcount == 1

    def update_story_status(
        self,
        story_id: str,
        *,
        status_from: StoryStatus,
        status_to: StoryStatus,
        updated_at: datetime,
    ) -> bool:
        result = self.connection.execute(
            text(
                "UPDATE stories SET status = :status_to, updated_at = :updated_at "
                "WHERE id = :id AND status = :status_from",
            ),
            {
                "id": story_id,
                "status_from": status_from.value,
                "status_to": status_to.value,
                "updated_at": _db_timestamp(updated_at),
            },
        )
        return result.rowcount == 1

    def delete_story(self, story_id: str) -> bool:
        result = self.connection.execute(
            text("DELETE FROM stories WHERE id = :id"),
            {"id": story_id},
        )
        return result.rowcount == 1


def _db_timestamp(value: datetime) -> str:
    return to_db_datetime(value).strftime(_DB_TIMESTAMP_FORMAT)


def _readable(records: list[RecordT], *, table: str) -> list[RecordT]:
    readable: list[RecordT] = []
    for record in records:
        if record.skip_reason is not None:
            logger.warning(
                "Skipping unreadable %s row (reason=%s id=%r).",
                table,
                record.skip_reason,
                getattr(record, "story_id", None) or getattr(record, "pin_id", None),
            )
            continue
        readable.append(record)
    return readable
