"""SQLModel ORM tables for the full story map schema."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Text
from sqlmodel import Field, SQLModel

STORY_OPTIONAL_COLUMNS: tuple[str, ...] = (
    "type",
    "organization_name",
    "organization_description",
    "website",
    "focus_areas",
)
PIN_OPTIONAL_COLUMNS: tuple[str, ...] = ("story", "origin")

STORY_LEGACY_COLUMNS: tuple[str, ...] = (
    "id",
    "title",
    "story",
    "country",
    "city",
    "email",
    "anonymous",
    "status",
    "submitted_at",
    "updated_at",
)
PIN_LEGACY_COLUMNS: tuple[str, ...] = (
    "id",
    "title",
    "lat",
    "lng",
    "type",
    "category",
    "country",
    "city",
    "created_at",
)


class StoryRow(SQLModel, table=True):
    __tablename__ = "stories"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_stories_submitted_at", "submitted_at"),)

    id: str = Field(primary_key=True)
    type: str | None = Field(default=None, index=True)
    title: str
    story: str | None = Field(default=None, sa_column=Column(Text))
    organization_name: str | None = None
    organization_description: str | None = Field(default=None, sa_column=Column(Text))
    website: str | None = None
    focus_areas: str | None = Field(default=None, sa_column=Column(Text))
    country: str
    city: str | None = None
    email: str | None = None
    anonymous: bool = False
    status: str = Field(default="pending", index=True)
    submitted_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class MapPinRow(SQLModel, table=True):
    __tablename__ = "map_pins"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_map_pins_created_at", "created_at"),)

    id: str = Field(primary_key=True)
    title: str
    story: str | None = Field(default=None, sa_column=Column(Text))
    lat: float
    lng: float
    type: str = Field(default="story")
    category: str | None = None
    country: str | None = None
    city: str | None = None
    origin: str = Field(default="story")
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
