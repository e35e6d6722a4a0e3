"""Capability probe that picks one store implementation at startup."""

from __future__ import annotations

import logging

from alembic.util.exc import CommandError
from sqlalchemy.exc import SQLAlchemyError

from story_map.classifier import DEFAULT_KEYWORD_RULES, KeywordRule
from story_map.config import Settings
from story_map.errors import SchemaUnavailableError
from story_map.models import SchemaShape
from story_map.storage.adapters import probe_schema_shape
from story_map.storage.alembic_runner import upgrade_to
from story_map.storage.base import StoryMapStore
from story_map.storage.common import build_sqlite_engine
from story_map.storage.fallback_store import FallbackStore, load_seed_pins
from story_map.storage.sql_store import FullSchemaStore, LegacySchemaStore

logger = logging.getLogger(__name__)


def open_store(
    settings: Settings,
    *,
    rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
) -> StoryMapStore:
    """Open the store matching what the configured database can provide."""

    backend = settings.storage.backend
    if backend == SchemaShape.FALLBACK.value:
        return _fallback(settings, rules=rules)

    engine = build_sqlite_engine(
        db_path=settings.db_path,
        busy_timeout_ms=settings.storage.busy_timeout_ms,
    )
    try:
        if settings.storage.migrate and backend != SchemaShape.LEGACY.value:
            _migrate(settings)
        shape = probe_schema_shape(engine)
    except SchemaUnavailableError as error:
        engine.dispose()
        logger.warning(
            "Database schema unavailable, serving static fallback pins (db_path=%s reason=%s).",
            settings.db_path,
            error,
        )
        return _fallback(settings, rules=rules)

    if backend == SchemaShape.LEGACY.value or shape == SchemaShape.LEGACY:
        if backend == SchemaShape.FULL.value:
            logger.warning(
                "Full schema requested but database lacks optional columns; using legacy shape.",
            )
        return LegacySchemaStore(engine, rules=rules)
    return FullSchemaStore(engine, rules=rules)


def _migrate(settings: Settings) -> None:
    try:
        upgrade_to(settings.db_path)
    except (CommandError, SQLAlchemyError) as error:
        raise SchemaUnavailableError(message=f"Migration failed: {error}") from error


def _fallback(settings: Settings, *, rules: tuple[KeywordRule, ...]) -> FallbackStore:
    return FallbackStore(load_seed_pins(settings.storage.fallback_pins_path), rules=rules)
