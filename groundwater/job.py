"""
High-level orchestration of the groundwater crawler.

`CrawlScheduler` runs the polling loop: on every tick it decides whether the
minimum interval since the last successful crawl has passed, then fetches
the page, parses it and hands the records to the writer on a single
background worker. `run_once` performs one synchronous crawl for manual
runs.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from .errors import ParseError
from .fetcher import FetchError, RequestConfig, fetch_page
from .health import HealthState
from .parser import Document, extract
from .queries import NamedQueries
from .records import Measurement, Station
from .selectors import PageSelectors, page_from_settings
from .storage import get_engine, get_session_factory
from .writer import ReconcilingWriter, WriteStats

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_SETTINGS_PATH = PROJECT_ROOT / "config" / "settings.yaml"


@dataclass(frozen=True)
class SchedulerConfig:
    min_crawl_interval: timedelta = timedelta(hours=6)
    tick_interval: timedelta = timedelta(minutes=10)

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "SchedulerConfig":
        return cls(
            min_crawl_interval=timedelta(seconds=float(settings.get("min_crawl_interval_seconds", 6 * 3600))),
            tick_interval=timedelta(seconds=float(settings.get("tick_interval_seconds", 600))),
        )


@dataclass
class JobStats:
    stations: WriteStats = field(default_factory=WriteStats)
    measurements: WriteStats = field(default_factory=WriteStats)
    database_url: str = ""


def load_settings(settings_path: Path) -> Dict[str, Any]:
    with Path(settings_path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)["default"]


def resolve_path(value: str, project_root: Path = PROJECT_ROOT) -> Path:
    path = Path(value)
    return path if path.is_absolute() else project_root / path


def resolve_database(value: str, project_root: Path = PROJECT_ROOT) -> str:
    """Relative SQLite paths are anchored at the project root; URLs pass through."""
    if "://" in value:
        return value
    return str(resolve_path(value, project_root))


def request_config_from_settings(settings: Dict[str, Any]) -> RequestConfig:
    request_cfg = settings.get("request") or {}
    defaults = RequestConfig()
    return RequestConfig(
        timeout_ms=int(request_cfg.get("timeout_ms", defaults.timeout_ms)),
        user_agent=str(request_cfg.get("user_agent", defaults.user_agent)),
    )


def build_writer(settings: Dict[str, Any], project_root: Path = PROJECT_ROOT) -> Tuple[ReconcilingWriter, Any]:
    """Create the engine, provision the schema and load the named queries."""
    engine = get_engine(resolve_database(settings.get("database_url", "data/groundwater.db"), project_root))
    session_factory = get_session_factory(engine)
    queries = NamedQueries.from_file(resolve_path(settings.get("queries_path", "config/queries.sql"), project_root))
    missing = queries.missing()
    if missing:
        logger.warning("query file lacks named queries: %s", ", ".join(missing))
    return ReconcilingWriter(session_factory, queries), engine


def save_snapshot(document: Document, snapshot_dir: Path, page: PageSelectors, taken_at: datetime) -> Path:
    """
    Persist the fetched HTML to the snapshot directory for auditing.
    """
    snapshot_dir.mkdir(parents=True, exist_ok=True)

    timestamp = taken_at.strftime("%Y%m%dT%H%M%S")
    url_fragment = (
        page.url.replace("https://", "")
        .replace("http://", "")
        .replace("/", "_")
        .replace("?", "_")
        .replace("=", "_")
    )
    snapshot_path = snapshot_dir / f"{timestamp}_{url_fragment}.html"
    if isinstance(document, bytes):
        snapshot_path.write_bytes(document)
    else:
        snapshot_path.write_text(str(document), encoding="utf-8")
    return snapshot_path


def persist(writer: ReconcilingWriter, stations: List[Station], measurements: List[Measurement]) -> JobStats:
    """Write stations first so measurements can reference them."""
    stats = JobStats()
    stats.stations = writer.persist_stations(stations)
    stats.measurements = writer.persist_measurements(measurements)
    return stats


def _log_write_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("writing crawled data failed", exc_info=exc)


class CrawlScheduler:
    """
    Rate limited crawl loop.

    The scheduler is either idle (never crawled) or remembers the start time
    of the last successful crawl. A tick crawls when idle or when at least
    `min_crawl_interval` has passed since that time, otherwise it is skipped.
    Persistence runs on a single worker thread so the writes of two crawls
    never overlap and the loop keeps ticking while they run.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        page: PageSelectors,
        writer: ReconcilingWriter,
        fetch: Optional[Callable[[str], Document]] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
        health: Optional[HealthState] = None,
        snapshot_dir: Optional[Path] = None,
    ):
        self.config = config
        self.page = page
        self.writer = writer
        self.health = health or HealthState()
        self.snapshot_dir = snapshot_dir
        self.last_success: Optional[float] = None
        self.pending: Optional[Future] = None
        self._fetch = fetch or fetch_page
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="writer")
        self._clock = clock

    def is_due(self, now: float) -> bool:
        if self.last_success is None:
            return True
        return now - self.last_success >= self.config.min_crawl_interval.total_seconds()

    def tick(self) -> bool:
        """Crawl if the interval allows it. Returns True when a crawl was attempted."""
        if not self.is_due(self._clock()):
            logger.warning(
                "already crawled within the last %s, skipping run",
                self.config.min_crawl_interval,
            )
            return False
        self.crawl()
        return True

    def crawl(self) -> Optional[Future]:
        """
        Fetch and parse the page, then queue the records for writing.

        Returns the future of the queued write, or None when the crawl failed.
        """
        started = self._clock()
        logger.info("checking for new data on %s", self.page.url)
        try:
            document = self._fetch(self.page.url)
        except FetchError as exc:
            self.health.record_fetch(False)
            logger.error("unable to fetch measurement page: %s", exc)
            return None
        self.health.record_fetch(True)

        try:
            stations, measurements = extract(document, self.page)
        except ParseError as exc:
            logger.error("unable to parse measurement page: %s", exc)
            self._snapshot(document)
            return None

        self.last_success = started
        logger.info("crawling finished with %s rows. writing entries asynchronously", len(stations))
        self.pending = self._executor.submit(persist, self.writer, stations, measurements)
        self.pending.add_done_callback(_log_write_failure)
        return self.pending

    def _snapshot(self, document: Document) -> None:
        if self.snapshot_dir is None:
            return
        try:
            path = save_snapshot(document, self.snapshot_dir, self.page, datetime.now())
        except OSError as exc:
            logger.warning("unable to save page snapshot: %s", exc)
            return
        logger.info("saved page snapshot to %s", path)

    def _guarded_tick(self) -> None:
        try:
            self.tick()
        except Exception:
            logger.exception("crawl failed unexpectedly, waiting for the next tick")

    def run(self, stop_event: threading.Event) -> None:
        """
        Tick immediately, then every `tick_interval` until `stop_event` is set.

        An unexpected error in one tick is logged and the loop goes on. Queued
        writes are cancelled on shutdown; a write already running is not
        waited for here.
        """
        logger.info(
            "entering crawl loop (tick=%s, minimum interval=%s)",
            self.config.tick_interval,
            self.config.min_crawl_interval,
        )
        if not stop_event.is_set():
            self._guarded_tick()
        while not stop_event.wait(self.config.tick_interval.total_seconds()):
            self._guarded_tick()
        logger.info("shutting down gracefully")
        self._executor.shutdown(wait=False, cancel_futures=True)


def build_scheduler(
    settings: Dict[str, Any],
    project_root: Path = PROJECT_ROOT,
    health: Optional[HealthState] = None,
) -> Tuple[CrawlScheduler, Any]:
    """Wire the scheduler from settings. Returns the scheduler and its engine."""
    writer, engine = build_writer(settings, project_root)
    snapshot_dir = settings.get("snapshot_dir")
    scheduler = CrawlScheduler(
        config=SchedulerConfig.from_settings(settings),
        page=page_from_settings(settings),
        writer=writer,
        fetch=partial(fetch_page, config=request_config_from_settings(settings)),
        health=health,
        snapshot_dir=resolve_path(snapshot_dir, project_root) if snapshot_dir else None,
    )
    return scheduler, engine


def run_once(settings_path: Path = DEFAULT_SETTINGS_PATH) -> JobStats:
    """
    Execute a single crawl and write the results before returning.

    Fetch and parse failures propagate as `CrawlerError` subclasses.
    """
    settings = load_settings(settings_path)
    project_root = Path(settings_path).resolve().parent.parent
    writer, engine = build_writer(settings, project_root)
    page = page_from_settings(settings)

    try:
        document = fetch_page(page.url, request_config_from_settings(settings))
        stations, measurements = extract(document, page)
        logger.info("parsed %s rows from %s", len(stations), page.url)
        stats = persist(writer, stations, measurements)
    finally:
        engine.dispose()
    stats.database_url = engine.url.render_as_string(hide_password=False)
    return stats
