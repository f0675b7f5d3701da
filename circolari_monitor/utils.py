"""Helper utilities.

This module centralises common helper functions such as creating a
configured HTTP session and applying retry policies to network calls.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
from requests import Response
from tenacity import (RetryCallState, Retrying, after_log, retry,
                      retry_if_exception_type, stop_after_attempt, stop_never,
                      wait_exponential, wait_fixed)

from . import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"CircolariMonitor/{__version__}"


def get_http_session(user_agent: str = USER_AGENT) -> requests.Session:
    """Return a new HTTP session with sensible defaults.

    Intermediate caches are bypassed so payload digests always reflect the
    origin.  Caller is responsible for closing the session.
    """
    session = requests.Session()
    session.headers.update(
        {
            "User-Agent": user_agent,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        }
    )
    return session


class HTTPError(Exception):
    """Raised when an HTTP request fails after retries."""


def _raise_for_status(resp: Response) -> None:
    try:
        resp.raise_for_status()
    except requests.RequestException as e:
        raise HTTPError(str(e)) from e


class _ServerError(HTTPError):
    pass


def retryable_request(method: Callable[..., Response]) -> Callable[..., Response]:
    """Decorator applying the listing retry policy to an HTTP call.

    The decorated function must accept a `requests.Session` as its first
    argument, followed by URL and optional kwargs, and return a
    `requests.Response`.  Network errors and 5xx answers are retried up to
    3 attempts with exponential back-off; 4xx answers fail immediately.
    """

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout, _ServerError)),
        after=after_log(logger, logging.WARNING),
    )
    def wrapper(session: requests.Session, url: str, **kwargs: Any) -> Response:
        response = method(session, url, **kwargs)
        if response.status_code >= 500:
            raise _ServerError(f"Server returned status {response.status_code} for {url}")
        _raise_for_status(response)
        return response

    return wrapper


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry strategy.

    ``max_attempts=None`` retries forever, which is what production uses for
    the notification sink.  Tests pass a bounded policy and a fake ``sleep``.
    """

    delay_seconds: float
    max_attempts: Optional[int] = None
    sleep: Callable[[float], None] = time.sleep

    def retrying(
        self,
        before_sleep: Optional[Callable[[RetryCallState], None]] = None,
    ) -> Retrying:
        stop = stop_never if self.max_attempts is None else stop_after_attempt(self.max_attempts)
        return Retrying(
            stop=stop,
            wait=wait_fixed(self.delay_seconds),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep,
            sleep=self.sleep,
            reraise=True,
        )


__all__ = [
    "USER_AGENT",
    "get_http_session",
    "retryable_request",
    "HTTPError",
    "RetryPolicy",
]
