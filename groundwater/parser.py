"""
Utilities for parsing the groundwater measurement table into records.

The functions here focus on:
    - Locating data rows by the id prefix the page gives them.
    - Reading the plain text of every cell in a row.
    - Turning each row into one `Station` and one `Measurement`.

Extraction is all-or-nothing: a layout change on the source page shifts the
columns of every row at once, so a single broken row means nothing from the
page can be trusted.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, Union

from bs4 import BeautifulSoup
from bs4.element import Tag

from .errors import ParseError, RecordParseError
from .records import Measurement, Station
from .selectors import PageSelectors, get_default_page

logger = logging.getLogger(__name__)

Document = Union[str, bytes, BeautifulSoup]


def load_document(document: Document) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document, "html.parser")


def find_rows(soup: BeautifulSoup, row_id_prefix: str) -> List[Tag]:
    """Return the `<tr>` elements whose id starts with `row_id_prefix`."""
    return [
        row
        for row in soup.find_all("tr", id=True)
        if row["id"].startswith(row_id_prefix)
    ]


def row_cells(row: Tag) -> List[str]:
    """Plain text of the row's own cells, nested tables are not descended into."""
    return [cell.get_text(" ", strip=True) for cell in row.find_all("td", recursive=False)]


def extract(
    document: Document,
    selectors: Optional[PageSelectors] = None,
) -> Tuple[List[Station], List[Measurement]]:
    """
    Convert the page into stations and measurements.

    Raises `ParseError` listing every row that failed. No partial result is
    ever returned.
    """
    selectors = selectors or get_default_page()
    soup = load_document(document)
    rows = find_rows(soup, selectors.row_id_prefix)
    logger.debug("Found %s rows with id prefix %s", len(rows), selectors.row_id_prefix)

    stations: List[Station] = []
    measurements: List[Measurement] = []
    errors: List[str] = []

    for index, row in enumerate(rows):
        cells = row_cells(row)
        try:
            station = Station.from_cells(cells, selectors.layout)
            measurement = Measurement.from_cells(cells, selectors.layout)
        except RecordParseError as exc:
            errors.append(f"row {index} ({row.get('id')}): {exc}")
            continue
        stations.append(station)
        measurements.append(measurement)

    if errors:
        raise ParseError(f"{len(errors)} of {len(rows)} rows could not be parsed", errors)

    return stations, measurements
