"""
Selectors configuration for the NLWKN groundwater level page.

Pydantic models are used so that any missing or malformed selector simply
raises a validation error, making it easier to spot typos early. The
defaults below match the live "Messwerte" page; only adjust them if the
site layout changes.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field, validator

DEFAULT_URL = "https://www.grundwasserstandonline.nlwkn.niedersachsen.de/Messwerte"
DEFAULT_ROW_ID_PREFIX = "ctl00_MainContent_rgMesswerte_ctl00__"


class ColumnLayout(BaseModel):
    """
    Zero-based cell positions inside a single table row.

    The page renders one row per station, so the same cell sequence feeds
    both the station and the measurement record. Position 3 holds a
    county name that is not stored.
    """

    station_name: int = Field(0, description="Display name of the station.")
    website_id: int = Field(1, description="Internal station id used by the website.")
    public_id: int = Field(2, description="Published station number.")
    operator: int = Field(4, description="Operator of the monitoring well.")
    date: int = Field(5, description="Measurement date formatted as DD.MM.YYYY.")
    water_level_nhn: int = Field(6, description="Water level referenced to sea level (m NHN).")
    water_level_gok: int = Field(7, description="Water level below terrain (m u. GOK).")
    classification: int = Field(8, description="Groundwater level classification text.")
    latitude: int = Field(9, description="Latitude in decimal degrees.")
    longitude: int = Field(10, description="Longitude in decimal degrees.")

    @validator("*")
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("cell positions must be zero or positive")
        return value


class PageSelectors(BaseModel):
    """
    Top-level selectors for a single page harvest.

    Attributes
    ----------
    url:
        Page URL to fetch. Must be reachable without authentication.
    row_id_prefix:
        Rows of interest are `<tr>` elements whose `id` attribute starts
        with this prefix. Header and pager rows do not carry it.
    layout:
        `ColumnLayout` instance describing the cell positions.
    """

    url: str = Field(DEFAULT_URL, description="Target page URL.")
    row_id_prefix: str = Field(
        DEFAULT_ROW_ID_PREFIX,
        description="Leading substring of the id attribute of data rows.",
    )
    layout: ColumnLayout = Field(default_factory=ColumnLayout)

    @validator("url", "row_id_prefix", pre=True, always=True)
    def _strip_strings(cls, value: str) -> str:
        """Normalize accidental whitespace in selector definitions."""
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("selector values must not be empty")
        return value


def get_default_page() -> PageSelectors:
    """Selector set for the live groundwater measurement page."""
    return PageSelectors()


def page_from_settings(settings: Dict[str, Any]) -> PageSelectors:
    """
    Build the page selectors from the `default` settings mapping.

    `source_url`, `row_id_prefix` and `layout` override the defaults when
    present; everything else falls back to `get_default_page`.
    """
    overrides: Dict[str, Any] = {}
    if settings.get("source_url"):
        overrides["url"] = settings["source_url"]
    if settings.get("row_id_prefix"):
        overrides["row_id_prefix"] = settings["row_id_prefix"]
    if settings.get("layout"):
        overrides["layout"] = ColumnLayout(**settings["layout"])
    if not overrides:
        return get_default_page()
    return PageSelectors(**overrides)
