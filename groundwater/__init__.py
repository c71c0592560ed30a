"""
Groundwater level crawler package.

The modules expose:
    - selectors: Page URL, row id prefix and column layout.
    - records: Station and measurement records built from table cells.
    - fetcher: Playwright request helpers including the expired-certificate fallback.
    - parser: All-or-nothing extraction of records from the page.
    - storage: SQLAlchemy tables and engine helpers.
    - queries: Named SQL query loader.
    - writer: Reconciling writer for stations and measurements.
    - health: Health-check endpoint.
    - job: Crawl scheduler and single-run workflow orchestrating the above pieces.
"""

__all__ = ["selectors", "records", "fetcher", "parser", "storage", "queries", "writer", "health", "job"]
