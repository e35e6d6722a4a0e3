"""Coordinate lookup collaborator used when placing pins."""

from __future__ import annotations

import json
from importlib.resources import files
from pathlib import Path
from typing import Protocol

from story_map.models import Coordinates


class Geocoder(Protocol):
    """Resolve a country/city pair into coordinates."""

    def locate(self, country: str, city: str = "") -> Coordinates | None:
        """Return coordinates or None when the location is unknown."""
        raise NotImplementedError


class StaticGeocoder:
    """Table lookup keyed by ``"City, Country"`` and ``"Country"``.

    City entries win over the country centroid. Free-text geocoding is an
    external service concern; this only answers from a known table.
    """

    def __init__(self, table: dict[str, Coordinates]) -> None:
        self._table = {_key(name): coordinates for name, coordinates in table.items()}

    @classmethod
    def from_path(cls, path: Path | None = None) -> StaticGeocoder:
        """Packaged table, extended (and overridden) by an optional JSON file."""

        raw = files("story_map").joinpath("data", "locations.json").read_text(encoding="utf-8")
        table = _parse_table(json.loads(raw))
        if path is not None:
            table.update(_parse_table(json.loads(path.read_text(encoding="utf-8"))))
        return cls(table)

    def locate(self, country: str, city: str = "") -> Coordinates | None:
        if city.strip():
            found = self._table.get(_key(f"{city}, {country}"))
            if found is not None:
                return found
        return self._table.get(_key(country))


def _parse_table(payload: object) -> dict[str, Coordinates]:
    if not isinstance(payload, dict):
        raise ValueError("Location table must be a JSON object of name -> [lat, lng].")
    table: dict[str, Coordinates] = {}
    for name, value in payload.items():
        if not isinstance(value, list) or len(value) != 2:  # noqa: PLR2004
            raise ValueError(f"Location {name!r} must map to [lat, lng].")
        table[str(name)] = Coordinates(lat=float(value[0]), lng=float(value[1]))
    return table


def _key(value: str) -> str:
    return " ".join(value.lower().split())
