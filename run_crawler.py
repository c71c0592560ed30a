"""Entry point for the long running crawler with its health endpoint."""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from groundwater.health import HealthServer, HealthState, create_app
from groundwater.job import DEFAULT_SETTINGS_PATH, build_scheduler, load_settings

logger = logging.getLogger("groundwater")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Crawl the NLWKN groundwater level page periodically.")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_SETTINGS_PATH,
        help="Path to the settings YAML file (default: %(default)s).",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings(args.config)
    logging.basicConfig(
        level=str(settings.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("starting groundwater crawler")

    health = HealthState()
    scheduler, engine = build_scheduler(settings, args.config.resolve().parent.parent, health=health)

    server = None
    health_cfg = settings.get("health") or {}
    if health_cfg.get("enabled", True):
        server = HealthServer(
            create_app(health, engine),
            host=str(health_cfg.get("host", "0.0.0.0")),
            port=int(health_cfg.get("port", 8000)),
        )
        try:
            server.start()
        except RuntimeError as exc:
            logger.critical("unable to start healthcheck server: %s", exc)
            return 1

    stop_event = threading.Event()

    def _handle_shutdown(signum, frame):
        logger.info("Received signal %s; stopping crawler.", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)

    scheduler.run(stop_event)
    if server is not None:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
