"""
Typed records built from the cells of a single measurement table row.

The page shows one row per station, holding both the station metadata and
its latest reading. `Station.from_cells` and `Measurement.from_cells` read
the same cell list using the positions from `ColumnLayout`.

Cell conventions on the source page:
    - numbers use a comma as decimal separator ("12,34");
    - a missing reading is rendered as "-";
    - dates are always DD.MM.YYYY.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence

from .errors import RecordParseError
from .selectors import ColumnLayout

NULL_TOKEN = "-"
DATE_FORMAT = "%d.%m.%Y"
_DATE_RE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")

DEFAULT_LAYOUT = ColumnLayout()


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


def cell_text(cells: Sequence[str], index: int, label: str) -> str:
    """Return the trimmed text at `index`, failing when the row is too short."""
    if index >= len(cells):
        raise RecordParseError(f"{label}: row has {len(cells)} cells, no cell at position {index}")
    value = cells[index]
    return "" if value is None else value.strip()


def optional_text(value: str) -> Optional[str]:
    return value or None


def parse_date(value: str) -> date:
    """Parse a DD.MM.YYYY date; any other format is rejected."""
    if not _DATE_RE.match(value):
        raise RecordParseError(f"date {value!r} does not match DD.MM.YYYY")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise RecordParseError(f"date {value!r} is not a valid calendar date") from exc


def parse_level(value: str) -> Optional[Decimal]:
    """
    Convert a comma-decimal water level into a Decimal.

    The placeholder "-" means the station has not reported a value yet and
    maps to None.
    """
    raw = value.strip()
    if raw == NULL_TOKEN:
        return None
    try:
        number = Decimal(raw.replace(",", "."))
    except InvalidOperation as exc:
        raise RecordParseError(f"water level {value!r} is not a number") from exc
    if not number.is_finite():
        raise RecordParseError(f"water level {value!r} is not a finite number")
    return number


def parse_coordinate(value: str, label: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise RecordParseError(f"{label} {value!r} is not a number") from exc
    if not math.isfinite(number):
        raise RecordParseError(f"{label} {value!r} is not a finite number")
    return number


def _website_id(cells: Sequence[str], layout: ColumnLayout) -> str:
    website_id = cell_text(cells, layout.website_id, "website id")
    if not website_id:
        raise RecordParseError("website id cell is empty")
    return website_id


@dataclass
class Station:
    website_id: str
    public_id: str
    name: Optional[str]
    operator: Optional[str]
    location: GeoPoint

    @classmethod
    def from_cells(cls, cells: Sequence[str], layout: ColumnLayout = DEFAULT_LAYOUT) -> "Station":
        """Build a station from a row's cell texts or raise `RecordParseError`."""
        website_id = _website_id(cells, layout)
        latitude = parse_coordinate(cell_text(cells, layout.latitude, "latitude"), "latitude")
        longitude = parse_coordinate(cell_text(cells, layout.longitude, "longitude"), "longitude")
        return cls(
            website_id=website_id,
            public_id=cell_text(cells, layout.public_id, "public id"),
            name=optional_text(cell_text(cells, layout.station_name, "station name")),
            operator=optional_text(cell_text(cells, layout.operator, "operator")),
            location=GeoPoint(latitude=latitude, longitude=longitude),
        )

    def as_params(self) -> dict:
        return {
            "website_id": self.website_id,
            "public_id": self.public_id,
            "name": self.name,
            "operator": self.operator,
            "location": self.location,
        }


@dataclass
class Measurement:
    station: str
    date: date
    classification: Optional[str]
    water_level_nhn: Optional[Decimal]
    water_level_gok: Optional[Decimal]

    @classmethod
    def from_cells(cls, cells: Sequence[str], layout: ColumnLayout = DEFAULT_LAYOUT) -> "Measurement":
        """Build a measurement from a row's cell texts or raise `RecordParseError`."""
        station = _website_id(cells, layout)
        measured_on = parse_date(cell_text(cells, layout.date, "date"))
        nhn = parse_level(cell_text(cells, layout.water_level_nhn, "water level NHN"))
        gok = parse_level(cell_text(cells, layout.water_level_gok, "water level GOK"))
        return cls(
            station=station,
            date=measured_on,
            classification=optional_text(cell_text(cells, layout.classification, "classification")),
            water_level_nhn=nhn,
            water_level_gok=gok,
        )

    def as_params(self) -> dict:
        return {
            "station": self.station,
            "date": self.date,
            "classification": self.classification,
            "water_level_nhn": self.water_level_nhn,
            "water_level_gok": self.water_level_gok,
        }
