"""Helper utilities.

This module centralises the HTTP session used for both the storefront and
the Discord webhook, and the retry policies applied to network calls.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Type, Tuple

import requests
from requests import Response
from tenacity import (Retrying, before_sleep_log, retry_if_exception_type,
                      stop_after_attempt, wait_exponential, wait_fixed)

from .errors import FetchError


logger = logging.getLogger(__name__)

CHROME_VERSION = "131"

# Fixed browser-like header set sent with every storefront request.
BROWSER_HEADERS: Dict[str, str] = {
    "sec-ch-ua": (
        f'"Google Chrome";v="{CHROME_VERSION}", '
        f'"Chromium";v="{CHROME_VERSION}", "Not_A Brand";v="24"'
    ),
    "rtt": "50",
    "sec-ch-ua-mobile": "?0",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        f"(KHTML, like Gecko) Chrome/{CHROME_VERSION}.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,*/*",
    "x-requested-with": "XMLHttpRequest",
    "downlink": "3.9",
    "ect": "4g",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-site": "same-origin",
    "sec-fetch-mode": "cors",
    "sec-fetch-dest": "empty",
    "Accept-Language": "en,en_US;q=0.9",
}


def get_http_session() -> requests.Session:
    """Return a new HTTP session carrying the browser header set.

    Caller is responsible for closing the session.
    """
    session = requests.Session()
    session.headers.update(BROWSER_HEADERS)
    # Respect environment proxies if configured (requests does this by default)
    return session


def check_status(resp: Response, expected: int = 200) -> Response:
    """Raise FetchError unless the response carries the expected status."""
    if resp.status_code != expected:
        raise FetchError(
            f"unexpected status code {resp.status_code} from {resp.url}",
            status_code=resp.status_code,
        )
    return resp


def http_get(session: requests.Session, url: str, *, timeout: float, **kwargs) -> Response:
    """GET that folds transport errors and bad statuses into FetchError."""
    try:
        resp = session.get(url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        raise FetchError(f"request to {url} failed: {e}") from e
    return check_status(resp)


def exponential_retry(
    max_attempts: int,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (FetchError,),
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Backoff doubling from ``base_delay`` (1s, 2s, 4s, ...) up to ``max_attempts``.

    The final error is re-raised once attempts are exhausted.
    """
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
    )


def fixed_retry(
    max_attempts: int,
    delay: float,
    *,
    retry_on: Tuple[Type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
    log: Optional[logging.Logger] = None,
) -> Retrying:
    """Retry with a constant delay between attempts."""
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(delay),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(log or logger, logging.WARNING),
        sleep=sleep,
    )


__all__ = [
    "BROWSER_HEADERS",
    "get_http_session",
    "check_status",
    "http_get",
    "exponential_retry",
    "fixed_retry",
]
