"""
HTTP transport for WMTS requests.

One pooled `requests.Session` (keep-alive) serves both the capabilities
request and every GetTile request of a crawl. Failures follow a
`FailurePolicy`: the default retries nothing, so the first failed tile
ends the run. Raising `max_retries` retries with linear backoff before
giving up.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from wmts.errors import TileFetchError


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailurePolicy:
    max_retries: int = 0
    backoff_s: float = 1.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_s < 0:
            raise ValueError("backoff_s must be >= 0")

    @property
    def attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return self.backoff_s * attempt


class HttpFetcher:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout_s: float = 30.0,
        policy: Optional[FailurePolicy] = None,
        pool_maxsize: int = 50,
        sleep=time.sleep,
    ):
        """
        Params:
            session: optional requests.Session (a pooled one is created otherwise)
            timeout_s: per-request timeout handed to requests
            policy: retry behaviour; fail-fast when omitted
            pool_maxsize: keep-alive pool size for the default session
            sleep: injectable for tests
        """
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=1, pool_maxsize=pool_maxsize)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        self.session = session
        self.timeout_s = timeout_s
        self.policy = policy or FailurePolicy()
        self._sleep = sleep
        self.requests_made = 0

    def get_bytes(self, url: str) -> bytes:
        """GET `url` and return the body. Raises TileFetchError once the policy is exhausted."""
        last_error: Optional[TileFetchError] = None
        for attempt in range(1, self.policy.attempts + 1):
            try:
                return self._get_once(url)
            except TileFetchError as e:
                last_error = e
                if attempt < self.policy.attempts:
                    delay = self.policy.delay(attempt)
                    log.warning(
                        "Request failed, retrying",
                        extra={"extra": {"url": url, "attempt": attempt, "code": e.code, "delay_s": delay}},
                    )
                    self._sleep(delay)
        assert last_error is not None
        raise last_error

    def close(self) -> None:
        self.session.close()

    def _get_once(self, url: str) -> bytes:
        self.requests_made += 1
        try:
            r = self.session.get(url, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise TileFetchError("transport_error", str(e), url=url) from e
        if r is None:
            raise TileFetchError("no_response", url=url)
        if r.status_code != 200:
            raise TileFetchError(
                "bad_status", f"Response {r.status_code}", url=url, status_code=r.status_code
            )
        return r.content
