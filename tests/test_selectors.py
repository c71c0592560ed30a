import pytest
from pydantic import ValidationError

from groundwater.selectors import DEFAULT_ROW_ID_PREFIX, DEFAULT_URL, ColumnLayout, PageSelectors, page_from_settings


def test_default_layout_matches_page_columns():
    layout = ColumnLayout()

    assert layout.website_id == 1
    assert layout.date == 5
    assert layout.longitude == 10


def test_negative_position_is_rejected():
    with pytest.raises(ValidationError):
        ColumnLayout(latitude=-1)


def test_blank_prefix_is_rejected():
    with pytest.raises(ValidationError):
        PageSelectors(row_id_prefix="   ")


def test_page_from_settings_defaults():
    page = page_from_settings({})

    assert page.url == DEFAULT_URL
    assert page.row_id_prefix == DEFAULT_ROW_ID_PREFIX


def test_page_from_settings_overrides():
    page = page_from_settings({
        "source_url": " https://example.org/Messwerte ",
        "row_id_prefix": "row_",
        "layout": {"classification": 3},
    })

    assert page.url == "https://example.org/Messwerte"
    assert page.row_id_prefix == "row_"
    assert page.layout.classification == 3
    assert page.layout.website_id == 1
