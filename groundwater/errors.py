"""Exception types shared by the crawler modules."""

from __future__ import annotations

from typing import List, Sequence


class CrawlerError(RuntimeError):
    """Base class for every failure the crawler reports itself."""


class RecordParseError(CrawlerError):
    """Raised when a row's cells cannot be turned into a record."""


class ParseError(CrawlerError):
    """
    Raised when a page cannot be converted into records.

    `errors` keeps every row failure so a single log line shows how many rows
    broke, which usually points at a layout change on the source page.
    """

    def __init__(self, message: str, errors: Sequence[str] = ()):
        self.errors: List[str] = list(errors)
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class QueryNotFoundError(CrawlerError, KeyError):
    """Raised when a named SQL query is not part of the loaded query file."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
