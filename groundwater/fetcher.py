"""
Playwright utilities used to download the measurement page.

The page is server rendered, so a plain HTTP GET through Playwright's
request API is enough; no browser has to be launched. The functions here
wrap the request context lifecycle and the expired-certificate fallback.
"""

from __future__ import annotations

import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from playwright.sync_api import APIRequestContext, Error as PlaywrightError, Playwright, sync_playwright

from .errors import CrawlerError

logger = logging.getLogger(__name__)

# Node's TLS error text for an expired peer certificate (code CERT_HAS_EXPIRED).
# Revoked, not yet valid, self signed and hostname errors all use other texts.
_EXPIRED_MARKERS = ("certificate has expired", "cert_has_expired")


class FetchFailure(enum.Enum):
    EXPIRED_CERTIFICATE = "expired-certificate"
    FATAL = "fatal"


class FetchError(CrawlerError):
    """Raised when the page cannot be downloaded."""

    def __init__(self, message: str, failure: FetchFailure = FetchFailure.FATAL):
        super().__init__(message)
        self.failure = failure


@dataclass
class RequestConfig:
    timeout_ms: int = 30_000
    user_agent: str = "groundwater-crawler/1.0"


@contextmanager
def request_context(config: RequestConfig, ignore_https_errors: bool = False) -> Iterator[APIRequestContext]:
    """
    Context manager yielding a single Playwright request context.

    Closes all resources automatically, even if an exception bubbles up.
    """
    playwright: Optional[Playwright] = sync_playwright().start()
    context: Optional[APIRequestContext] = None
    try:
        context = playwright.request.new_context(
            user_agent=config.user_agent,
            ignore_https_errors=ignore_https_errors,
            timeout=config.timeout_ms,
        )
        yield context
    finally:
        if context is not None:
            context.dispose()
        playwright.stop()


def classify_fetch_error(exc: BaseException) -> FetchFailure:
    """
    Map a request failure onto the retry decision.

    Only an expired server certificate may be retried, everything else is
    fatal for the current crawl. Chained causes are inspected as well.
    """
    current: Optional[BaseException] = exc
    while current is not None:
        message = str(current).lower()
        if any(marker in message for marker in _EXPIRED_MARKERS):
            return FetchFailure.EXPIRED_CERTIFICATE
        current = current.__cause__
    return FetchFailure.FATAL


def _get(url: str, config: RequestConfig, ignore_https_errors: bool) -> bytes:
    with request_context(config, ignore_https_errors=ignore_https_errors) as context:
        response = context.get(url)
        if not response.ok:
            raise FetchError(f"{url} answered with HTTP {response.status} {response.status_text}")
        return response.body()


def fetch_page(url: str, config: Optional[RequestConfig] = None) -> bytes:
    """
    Download `url` and return the raw response body.

    The body is not decoded here; the parser detects the page encoding.

    If the server certificate has expired the request is repeated exactly
    once without certificate verification. Any other failure raises
    `FetchError`.
    """
    config = config or RequestConfig()
    try:
        return _get(url, config, ignore_https_errors=False)
    except PlaywrightError as exc:
        failure = classify_fetch_error(exc)
        if failure is not FetchFailure.EXPIRED_CERTIFICATE:
            raise FetchError(f"unable to fetch {url}: {exc}", failure) from exc

    logger.warning("server certificate expired. retrying %s without certificate verification", url)
    try:
        return _get(url, config, ignore_https_errors=True)
    except PlaywrightError as exc:
        raise FetchError(f"unable to fetch {url} without certificate verification: {exc}") from exc
