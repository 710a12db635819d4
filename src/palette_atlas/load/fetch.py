"""HTTP and local-file fetching of the static pipeline assets."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from urllib.parse import urlparse

import requests
from requests import Session
from tenacity import (  # type: ignore[import-untyped]
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import FetchError

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30.0
_USER_AGENT = "palette-atlas/0.1 (+https://pypi.org/project/palette-atlas/)"

_session_lock = Lock()
_session: Session | None = None


class RetryableHTTPStatusError(Exception):
    """Raised for HTTP status codes that should trigger a retry."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Server returned status {status_code}")
        self.status_code = status_code


def _get_session() -> Session:
    """Return a shared requests session configured with default headers."""
    global _session
    if _session is None:
        with _session_lock:
            if _session is None:
                session = requests.Session()
                session.headers.update(
                    {
                        "User-Agent": _USER_AGENT,
                        "Accept": "application/json,application/gzip,application/x-tar,*/*;q=0.8",
                    }
                )
                _session = session
    return _session


_retryer = Retrying(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type(
        (requests.Timeout, requests.ConnectionError, RetryableHTTPStatusError)
    ),
    before_sleep=before_sleep_log(logger, logging.DEBUG),
    reraise=True,
)


def is_remote(source: str) -> bool:
    """Return True when *source* names an HTTP(S) resource."""
    return urlparse(source).scheme in {"http", "https"}


def _download_once(url: str, timeout: float) -> bytes:
    """Issue a single HTTP GET request and return the response body."""
    session = _get_session()
    response = session.get(url, timeout=timeout, allow_redirects=True)
    if 500 <= response.status_code < 600:
        raise RetryableHTTPStatusError(response.status_code)
    if not response.ok:
        raise FetchError(url, f"{response.status_code} {response.reason}")
    return response.content


def fetch_bytes(source: str, timeout: float = _DEFAULT_TIMEOUT) -> bytes:
    """Return the raw bytes of *source*, a local path or an HTTP(S) URL.

    Transient network failures are retried; anything left over is raised as
    :class:`FetchError` so callers can abort initialization.
    """
    if not is_remote(source):
        path = Path(source).expanduser()
        try:
            return path.read_bytes()
        except OSError as exc:
            raise FetchError(source, str(exc)) from exc

    try:
        payload = _retryer(lambda: _download_once(source, timeout))
    except RetryableHTTPStatusError as exc:
        raise FetchError(source, str(exc)) from exc
    except requests.RequestException as exc:
        raise FetchError(source, str(exc)) from exc
    logger.debug("Fetched %d bytes from %s", len(payload), source)
    return payload
