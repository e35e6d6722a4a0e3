"""Read-only store serving the static seed pin list."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from importlib.resources import files
from pathlib import Path

from story_map.classifier import DEFAULT_KEYWORD_RULES, KeywordRule
from story_map.errors import StorageFailureError
from story_map.models import MapPin, SchemaShape, StoryRecord
from story_map.storage.adapters import SchemaReport, normalize_pin_row
from story_map.storage.base import StoreWriter

logger = logging.getLogger(__name__)


def load_seed_pins(path: Path | None = None) -> list[dict[str, object]]:
    """Raw seed pin rows from ``path`` or the packaged list."""

    if path is None:
        raw = files("story_map").joinpath("data", "fallback_pins.json").read_text(encoding="utf-8")
    else:
        raw = path.read_text(encoding="utf-8")
    payload = json.loads(raw)
    if not isinstance(payload, list):
        raise ValueError("Fallback pins file must hold a JSON list.")
    return [row for row in payload if isinstance(row, dict)]


class FallbackStore:
    """Minimal static store used when no database schema is reachable."""

    shape = SchemaShape.FALLBACK

    def __init__(
        self,
        rows: list[dict[str, object]],
        *,
        rules: tuple[KeywordRule, ...] = DEFAULT_KEYWORD_RULES,
    ) -> None:
        pins: list[MapPin] = []
        for row in rows:
            pin = normalize_pin_row(row, self.shape, rules=rules)
            if pin.skip_reason is not None:
                logger.warning(
                    "Skipping unreadable fallback pin (reason=%s id=%r).",
                    pin.skip_reason,
                    pin.pin_id,
                )
                continue
            pins.append(pin)
        # Seed rows usually carry no timestamp; keep file order for those.
        self._pins = sorted(
            pins,
            key=lambda pin: pin.created_at.timestamp() if pin.created_at is not None else 0.0,
            reverse=True,
        )

    def close(self) -> None:
        return None

    def list_stories(self) -> list[StoryRecord]:
        return []

    def list_pins(self) -> list[MapPin]:
        return list(self._pins)

    def get_story(self, story_id: str) -> StoryRecord | None:
        return None

    def get_pin(self, pin_id: str) -> MapPin | None:
        for pin in self._pins:
            if pin.pin_id == pin_id:
                return pin
        return None

    def id_exists(self, record_id: str) -> bool:
        return self.get_pin(record_id) is not None

    @contextmanager
    def unit_of_work(self) -> Iterator[StoreWriter]:
        raise StorageFailureError(
            message="Fallback store is read-only; no database schema is available.",
            operation="unit_of_work",
        )
        yield  # pragma: no cover

    def describe(self) -> SchemaReport:
        return SchemaReport(shape=self.shape, row_counts={"map_pins": len(self._pins)})
