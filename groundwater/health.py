"""
Health-check endpoint for the crawler process.

`GET /healthz` reports whether the last page fetch succeeded and whether the
database answers a trivial query. The app is served by uvicorn on a daemon
thread next to the crawl loop.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .storage import ping

logger = logging.getLogger(__name__)


class HealthState:
    """Outcome of the most recent fetch; None until the first crawl."""

    def __init__(self) -> None:
        self.last_fetch_ok: Optional[bool] = None
        self.last_fetch_at: Optional[datetime] = None

    def record_fetch(self, ok: bool) -> None:
        self.last_fetch_ok = ok
        self.last_fetch_at = datetime.now(timezone.utc)


def create_app(state: HealthState, engine: Engine) -> FastAPI:
    app = FastAPI(title="Groundwater Crawler Health")

    @app.get("/healthz")
    def healthz() -> JSONResponse:
        database_ok = True
        database_error = None
        try:
            ping(engine)
        except SQLAlchemyError as exc:
            database_ok = False
            database_error = str(exc)

        fetch_ok = state.last_fetch_ok is not False
        healthy = fetch_ok and database_ok
        body = {
            "status": "ok" if healthy else "unhealthy",
            "fetch": {
                "ok": state.last_fetch_ok,
                "checked_at": state.last_fetch_at.isoformat() if state.last_fetch_at else None,
            },
            "database": {"ok": database_ok, "error": database_error},
        }
        return JSONResponse(body, status_code=200 if healthy else 503)

    return app


class HealthServer:
    """Runs the health app with uvicorn on a background thread."""

    def __init__(self, app: FastAPI, host: str = "0.0.0.0", port: int = 8000):
        config = uvicorn.Config(app, host=host, port=port, log_level="warning")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._server.run, name="health", daemon=True)
        self.host = host
        self.port = port

    def start(self, timeout: float = 10.0) -> None:
        """Start serving; raises RuntimeError when the listener does not come up."""
        self._thread.start()
        deadline = time.monotonic() + timeout
        while not self._server.started:
            if not self._thread.is_alive():
                raise RuntimeError(f"health server could not listen on {self.host}:{self.port}")
            if time.monotonic() > deadline:
                raise RuntimeError(f"health server did not start within {timeout}s")
            time.sleep(0.05)
        logger.info("health endpoint listening on %s:%s", self.host, self.port)

    def stop(self, timeout: float = 5.0) -> None:
        self._server.should_exit = True
        self._thread.join(timeout)
