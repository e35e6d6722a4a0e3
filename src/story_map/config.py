"""Runtime configuration for the story map engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

BACKEND_CHOICES: tuple[str, ...] = ("auto", "full", "legacy", "fallback")


@dataclass(slots=True)
class StorageSettings:
    """Backing store selection and SQLite policy."""

    backend: str = "auto"
    migrate: bool = True
    busy_timeout_ms: int = 5_000
    fallback_pins_path: Path | None = None


@dataclass(slots=True)
class ClassifierSettings:
    """Pin classification overrides."""

    keyword_table_path: Path | None = None


@dataclass(slots=True)
class GeocodingSettings:
    """Static location table used to place pins."""

    table_path: Path | None = None


@dataclass(slots=True)
class PresentationSettings:
    """Public rendering knobs."""

    excerpt_chars: int = 150


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".story_map.db")
    admin_id: str = "admin"
    storage: StorageSettings = field(default_factory=StorageSettings)
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    geocoding: GeocodingSettings = field(default_factory=GeocodingSettings)
    presentation: PresentationSettings = field(default_factory=PresentationSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("STORY_MAP_DB_PATH", ".story_map.db")),
            admin_id=os.getenv("STORY_MAP_ADMIN_ID", "admin").strip() or "admin",
            storage=StorageSettings(
                backend=os.getenv("STORY_MAP_BACKEND", "auto").strip().lower(),
                migrate=_env_bool("STORY_MAP_MIGRATE", default=True),
                busy_timeout_ms=int(os.getenv("STORY_MAP_BUSY_TIMEOUT_MS", "5000")),
                fallback_pins_path=_env_path("STORY_MAP_FALLBACK_PINS_PATH"),
            ),
            classifier=ClassifierSettings(
                keyword_table_path=_env_path("STORY_MAP_KEYWORD_TABLE"),
            ),
            geocoding=GeocodingSettings(
                table_path=_env_path("STORY_MAP_GEOCODE_TABLE"),
            ),
            presentation=PresentationSettings(
                excerpt_chars=int(os.getenv("STORY_MAP_EXCERPT_CHARS", "150")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for unsupported values."""

        if self.storage.backend not in BACKEND_CHOICES:
            raise ValueError(
                f"Invalid STORY_MAP_BACKEND: {self.storage.backend!r}. "
                f"Expected one of: {', '.join(BACKEND_CHOICES)}.",
            )
        if self.storage.busy_timeout_ms <= 0:
            raise ValueError("STORY_MAP_BUSY_TIMEOUT_MS must be > 0.")
        if self.presentation.excerpt_chars <= 0:
            raise ValueError("STORY_MAP_EXCERPT_CHARS must be > 0.")
        for name, path in (
            ("STORY_MAP_FALLBACK_PINS_PATH", self.storage.fallback_pins_path),
            ("STORY_MAP_KEYWORD_TABLE", self.classifier.keyword_table_path),
            ("STORY_MAP_GEOCODE_TABLE", self.geocoding.table_path),
        ):
            if path is not None and not path.is_file():
                raise ValueError(f"{name} points to a missing file: {str(path)!r}")


def _env_path(name: str) -> Path | None:
    value = os.getenv(name, "").strip()
    if not value:
        return None
    return Path(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
