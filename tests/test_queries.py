import pytest

from groundwater.errors import QueryNotFoundError
from groundwater.queries import REQUIRED_QUERIES, NamedQueries, parse_queries

SOURCE = """
-- preamble comment, not part of any query

-- name: first
SELECT 1;

--name:second
SELECT *
FROM stations
WHERE website_id = :website_id;
-- name: empty
"""


def test_parse_queries_splits_by_name():
    queries = parse_queries(SOURCE)

    assert set(queries) == {"first", "second"}
    assert queries["first"] == "SELECT 1"
    assert queries["second"].startswith("SELECT *")
    assert queries["second"].endswith(":website_id")


def test_unknown_query_raises():
    queries = NamedQueries(parse_queries(SOURCE))

    with pytest.raises(QueryNotFoundError):
        queries.get("insert-station")
    with pytest.raises(KeyError):
        queries.raw("insert-station")


def test_missing_reports_required_names():
    queries = NamedQueries(parse_queries(SOURCE))

    assert queries.missing() == list(REQUIRED_QUERIES)


def test_shipped_query_file_is_complete(queries):
    assert queries.missing() == []
    for name in REQUIRED_QUERIES:
        assert queries.get(name).text.strip()


def test_typed_parameters_are_bound(queries):
    clause = queries.get("insert-measurement")
    compiled = clause.compile()

    assert set(compiled.params) == {"station", "date", "classification", "water_level_nhn", "water_level_gok"}
