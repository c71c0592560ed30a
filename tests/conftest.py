from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from groundwater.queries import NamedQueries
from groundwater.selectors import DEFAULT_ROW_ID_PREFIX
from groundwater.storage import get_engine, get_session_factory
from groundwater.writer import ReconcilingWriter

PROJECT_ROOT = Path(__file__).resolve().parent.parent
QUERIES_PATH = PROJECT_ROOT / "config" / "queries.sql"


def build_cells(
    website_id: str = "100000123",
    date: str = "01.03.2024",
    nhn: str = "22,17",
    gok: str = "1,86",
    name: str = "Bad Bentheim I",
    public_id: str = "40500061",
    operator: str = "NLWKN",
    classification: str = "normal",
    latitude: str = "52.3012",
    longitude: str = "7.1587",
) -> List[str]:
    return [
        name,
        website_id,
        public_id,
        "Grafschaft Bentheim",
        operator,
        date,
        nhn,
        gok,
        classification,
        latitude,
        longitude,
    ]


def build_page(rows: Sequence[Sequence[str]], prefix: str = DEFAULT_ROW_ID_PREFIX, extra: Optional[str] = None) -> str:
    """Render a page shaped like the live table: header, data rows, pager."""
    body = []
    for index, cells in enumerate(rows):
        tds = "".join(f"<td>{cell}</td>" for cell in cells)
        body.append(f'<tr class="rgRow" id="{prefix}{index}">{tds}</tr>')
    return (
        "<html><body><form>"
        '<table id="ctl00_MainContent_rgMesswerte_ctl00">'
        "<thead><tr><th>Messstelle</th><th>ID</th><th>Nr.</th><th>Landkreis</th><th>Betreiber</th>"
        "<th>Datum</th><th>NHN</th><th>GOK</th><th>Einstufung</th><th>Breite</th><th>Länge</th></tr></thead>"
        "<tbody>" + "".join(body) + "</tbody>"
        '<tfoot><tr class="rgPager"><td colspan="11">Seite 1 von 1</td></tr></tfoot>'
        "</table>" + (extra or "") + "</form></body></html>"
    )


@pytest.fixture
def cells():
    return build_cells()


@pytest.fixture
def engine(tmp_path):
    engine = get_engine(str(tmp_path / "groundwater.db"))
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest.fixture
def queries():
    return NamedQueries.from_file(QUERIES_PATH)


@pytest.fixture
def writer(session_factory, queries):
    return ReconcilingWriter(session_factory, queries)
