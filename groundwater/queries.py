"""
Loader for named SQL queries.

Queries live in a plain SQL file where every statement is introduced by a
`-- name: <query-name>` comment line:

    -- name: insert-station
    INSERT INTO stations (...) VALUES (...);

Bind parameters use the `:name` style understood by `sqlalchemy.text`.
Parameters listed in `storage.PARAM_TYPES` are bound with their column type
so dates, decimals and points convert the same way the mapped tables do.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import TypeEngine

from .errors import QueryNotFoundError
from .storage import PARAM_TYPES

_NAME_RE = re.compile(r"^--\s*name:\s*(\S+)\s*$")
_PARAM_RE = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")

REQUIRED_QUERIES = (
    "insert-station",
    "insert-measurement",
    "null-measurement-exists",
    "update-measurement",
)


def parse_queries(source: str) -> Dict[str, str]:
    """Split the file content into `{name: sql}`; text before the first name is ignored."""
    queries: Dict[str, str] = {}
    current: Optional[str] = None
    lines = []
    for line in source.splitlines():
        match = _NAME_RE.match(line.strip())
        if match:
            if current is not None:
                queries[current] = "\n".join(lines).strip()
            current = match.group(1)
            lines = []
            continue
        if current is not None:
            lines.append(line)
    if current is not None:
        queries[current] = "\n".join(lines).strip()

    return {name: sql.rstrip(";").strip() for name, sql in queries.items() if sql}


class NamedQueries:
    def __init__(self, queries: Mapping[str, str], param_types: Optional[Mapping[str, TypeEngine]] = None):
        self._queries = dict(queries)
        self._param_types = dict(PARAM_TYPES if param_types is None else param_types)

    @classmethod
    def from_file(cls, path: Path, param_types: Optional[Mapping[str, TypeEngine]] = None) -> "NamedQueries":
        with Path(path).open("r", encoding="utf-8") as handle:
            return cls(parse_queries(handle.read()), param_types)

    def raw(self, name: str) -> str:
        try:
            return self._queries[name]
        except KeyError:
            raise QueryNotFoundError(f"query {name!r} is not defined") from None

    def get(self, name: str) -> TextClause:
        """Return the query as a `TextClause` with typed bind parameters."""
        sql = self.raw(name)
        params = set(_PARAM_RE.findall(sql))
        typed = [bindparam(param, type_=self._param_types[param]) for param in sorted(params) if param in self._param_types]
        clause = text(sql)
        if typed:
            clause = clause.bindparams(*typed)
        return clause

    def missing(self, required: Iterable[str] = REQUIRED_QUERIES) -> list:
        return [name for name in required if name not in self._queries]
