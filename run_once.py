"""Entry point for performing a single crawl run."""

import logging
from pathlib import Path

from sqlalchemy import func, select

from groundwater.errors import CrawlerError
from groundwater.job import DEFAULT_SETTINGS_PATH, run_once
from groundwater.storage import Measurement, Station, get_engine


def _count_rows(database_url: str) -> dict:
    engine = get_engine(database_url)
    try:
        with engine.connect() as conn:
            return {
                "stations": conn.execute(select(func.count()).select_from(Station)).scalar_one(),
                "measurements": conn.execute(select(func.count()).select_from(Measurement)).scalar_one(),
            }
    finally:
        engine.dispose()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    try:
        stats = run_once(Path(DEFAULT_SETTINGS_PATH))
    except CrawlerError as exc:
        logging.error("crawl failed: %s", exc)
        return

    logging.info(
        "Crawl finished: stations=%s measurements inserted=%s updated=%s unchanged=%s failed=%s",
        stats.stations.seen,
        stats.measurements.inserted,
        stats.measurements.updated,
        stats.measurements.unchanged,
        stats.measurements.failed,
    )

    counts = _count_rows(stats.database_url)
    print(f"Database: {stats.database_url}")
    print(
        "Table counts -> stations: {stations}, measurements: {measurements}".format(
            stations=counts.get("stations", 0),
            measurements=counts.get("measurements", 0),
        )
    )


if __name__ == "__main__":
    main()
