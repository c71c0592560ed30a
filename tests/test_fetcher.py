from contextlib import contextmanager

import pytest
from playwright.sync_api import Error as PlaywrightError

from groundwater import fetcher
from groundwater.fetcher import FetchError, FetchFailure, RequestConfig, classify_fetch_error, fetch_page

URL = "https://www.grundwasserstandonline.nlwkn.niedersachsen.de/Messwerte"

EXPIRED = "apiRequestContext.get: certificate has expired"
REVOKED = "apiRequestContext.get: certificate revoked"
HOSTNAME = "apiRequestContext.get: Hostname/IP does not match certificate's altnames"
UNKNOWN_AUTHORITY = "apiRequestContext.get: unable to get local issuer certificate"


class FakeResponse:
    def __init__(self, body="<html></html>", status=200):
        self.status = status
        self.status_text = "OK" if status < 400 else "Service Unavailable"
        self.ok = 200 <= status < 300
        self._body = body

    def body(self):
        return self._body.encode("utf-8") if isinstance(self._body, str) else self._body


class FakeTransport:
    """Stands in for `request_context`; answers depend on certificate checking."""

    def __init__(self, strict, insecure=None):
        self.strict = strict
        self.insecure = insecure
        self.calls = []

    @contextmanager
    def __call__(self, config, ignore_https_errors=False):
        outcome = self.insecure if ignore_https_errors else self.strict
        transport = self

        class Context:
            def get(self, url):
                transport.calls.append((url, ignore_https_errors))
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome

        yield Context()


@pytest.fixture
def transport(monkeypatch):
    def install(strict, insecure=None):
        fake = FakeTransport(strict, insecure)
        monkeypatch.setattr(fetcher, "request_context", fake)
        return fake

    return install


@pytest.mark.parametrize(
    "message, expected",
    [
        (EXPIRED, FetchFailure.EXPIRED_CERTIFICATE),
        ("net error CERT_HAS_EXPIRED", FetchFailure.EXPIRED_CERTIFICATE),
        (REVOKED, FetchFailure.FATAL),
        (HOSTNAME, FetchFailure.FATAL),
        (UNKNOWN_AUTHORITY, FetchFailure.FATAL),
        ("apiRequestContext.get: certificate is not yet valid", FetchFailure.FATAL),
        ("apiRequestContext.get: connect ECONNREFUSED 127.0.0.1:443", FetchFailure.FATAL),
    ],
)
def test_classify_fetch_error(message, expected):
    assert classify_fetch_error(PlaywrightError(message)) is expected


def test_classify_follows_cause_chain():
    try:
        try:
            raise PlaywrightError(EXPIRED)
        except PlaywrightError as inner:
            raise RuntimeError("request failed") from inner
    except RuntimeError as outer:
        assert classify_fetch_error(outer) is FetchFailure.EXPIRED_CERTIFICATE


def test_successful_fetch_uses_verified_request(transport):
    fake = transport(FakeResponse("<html>ok</html>"))

    assert fetch_page(URL, RequestConfig()) == b"<html>ok</html>"
    assert fake.calls == [(URL, False)]


def test_expired_certificate_retries_once_without_verification(transport, caplog):
    fake = transport(PlaywrightError(EXPIRED), FakeResponse("<html>insecure</html>"))

    assert fetch_page(URL) == b"<html>insecure</html>"
    assert fake.calls == [(URL, False), (URL, True)]
    assert "certificate expired" in caplog.text


def test_revoked_certificate_is_not_retried(transport):
    fake = transport(PlaywrightError(REVOKED), FakeResponse())

    with pytest.raises(FetchError) as excinfo:
        fetch_page(URL)

    assert excinfo.value.failure is FetchFailure.FATAL
    assert fake.calls == [(URL, False)]


def test_non_2xx_is_a_fetch_error(transport):
    fake = transport(FakeResponse(status=503))

    with pytest.raises(FetchError, match="HTTP 503"):
        fetch_page(URL)
    assert fake.calls == [(URL, False)]


def test_failed_insecure_retry_is_a_fetch_error(transport):
    fake = transport(PlaywrightError(EXPIRED), PlaywrightError("apiRequestContext.get: socket hang up"))

    with pytest.raises(FetchError, match="without certificate verification"):
        fetch_page(URL)
    assert len(fake.calls) == 2


def test_insecure_retry_still_checks_status(transport):
    transport(PlaywrightError(EXPIRED), FakeResponse(status=500))

    with pytest.raises(FetchError, match="HTTP 500"):
        fetch_page(URL)


def test_body_is_returned_undecoded(transport):
    latin1 = "<html><body>Lünne</body></html>".encode("latin-1")
    transport(FakeResponse(latin1))

    assert fetch_page(URL) == latin1
