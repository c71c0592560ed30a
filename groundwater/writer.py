"""
Reconciling writer for stations and measurements.

Stations are upserted by website id. Measurements are inserted once per
station and day; a stored measurement that still lacks a water level is
completed from the page, one NULL column at a time; a stored value is
never replaced.

Every statement runs in its own short session. A failing record is logged
and skipped, the rest of the batch continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .errors import QueryNotFoundError
from .queries import NamedQueries
from .records import Measurement, Station

logger = logging.getLogger(__name__)


@dataclass
class WriteStats:
    seen: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0


class ReconcilingWriter:
    def __init__(self, session_factory: sessionmaker, queries: NamedQueries):
        self._session_factory = session_factory
        self._queries = queries

    def _execute(self, statement, params: dict) -> int:
        with self._session_factory.begin() as session:
            return session.execute(statement, params).rowcount

    def _scalar(self, statement, params: dict):
        with self._session_factory.begin() as session:
            return session.execute(statement, params).scalar()

    def persist_stations(self, stations: Iterable[Station]) -> WriteStats:
        """Upsert every station; failures are logged per station."""
        stats = WriteStats()
        try:
            query = self._queries.get("insert-station")
        except QueryNotFoundError as exc:
            logger.error("unable to prepare sql query for station insertion: %s", exc)
            return stats

        for station in stations:
            stats.seen += 1
            logger.debug("writing station %s (%s)", station.website_id, station.name)
            try:
                self._execute(query, station.as_params())
            except SQLAlchemyError as exc:
                stats.failed += 1
                logger.error("unable to insert/update station %s: %s", station.website_id, exc)
                continue
            stats.updated += 1

        logger.info("wrote %s stations (%s failed)", stats.updated, stats.failed)
        return stats

    def persist_measurements(self, measurements: Iterable[Measurement]) -> WriteStats:
        """
        Insert new measurements and backfill incomplete stored ones.

        For each record the `null-measurement-exists` query decides: when the
        stored row for (station, date) has a NULL water level only its NULL
        columns are filled from the crawled values, otherwise the record is
        inserted. The insert ignores conflicts, so an already complete row stays untouched.
        """
        stats = WriteStats()
        try:
            insert_query = self._queries.get("insert-measurement")
            null_check_query = self._queries.get("null-measurement-exists")
            update_query = self._queries.get("update-measurement")
        except QueryNotFoundError as exc:
            logger.error("unable to prepare sql queries for measurement writing: %s", exc)
            return stats

        for measurement in measurements:
            stats.seen += 1
            params = measurement.as_params()
            logger.debug("checking for incomplete data of station %s on %s", measurement.station, measurement.date)
            try:
                incomplete = bool(
                    self._scalar(null_check_query, {"station": measurement.station, "date": measurement.date})
                )
            except SQLAlchemyError as exc:
                # The record is dropped for this crawl; the next crawl sees the
                # same page row again unless the source has moved on.
                stats.failed += 1
                logger.error("unable to check station %s for incomplete data: %s", measurement.station, exc)
                continue

            if incomplete:
                logger.warning(
                    "found incomplete measurement data for station %s on %s. updating data with crawled data",
                    measurement.station,
                    measurement.date,
                )
                try:
                    self._execute(update_query, params)
                except SQLAlchemyError as exc:
                    stats.failed += 1
                    logger.error("unable to update incomplete data of station %s: %s", measurement.station, exc)
                    continue
                stats.updated += 1
                continue

            try:
                inserted = self._execute(insert_query, params)
            except SQLAlchemyError as exc:
                stats.failed += 1
                logger.error("unable to insert measurement of station %s: %s", measurement.station, exc)
                continue
            if inserted == 0:
                stats.unchanged += 1
            else:
                stats.inserted += 1

        logger.info(
            "wrote measurement data into database: inserted=%s updated=%s unchanged=%s failed=%s",
            stats.inserted,
            stats.updated,
            stats.unchanged,
            stats.failed,
        )
        return stats
