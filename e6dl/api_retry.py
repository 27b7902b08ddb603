from __future__ import annotations

import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable

import requests

# 421 and 429 are throttling; 52x come from the CDN in front of the board.
RETRYABLE_STATUSES = frozenset({421, 429, 500, 502, 503, 504, 520, 521, 522, 524})


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a Retry-After header (delta-seconds or HTTP date)."""
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


@dataclass(frozen=True)
class RetryVerdict:
    retry: bool
    reason: str | None = None
    status_code: int | None = None
    retry_after_seconds: float | None = None


@dataclass(frozen=True)
class RetryPolicy:
    """
    How board requests are retried.

    `max_attempts` includes the first request. The wait after the n-th
    failure is `base_delay_seconds * 2**(n-1)`, capped at
    `max_delay_seconds` and spread by `jitter_ratio`. A Retry-After hint
    (capped at `retry_after_cap_seconds`, 0 = uncapped) replaces a shorter
    computed wait.
    """

    max_attempts: int = 4
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    jitter_ratio: float = 0.2
    retry_after_cap_seconds: float = 120.0
    retry_statuses: frozenset[int] = RETRYABLE_STATUSES

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0:
            raise ValueError("base_delay_seconds must be >= 0")
        if self.max_delay_seconds < 0:
            raise ValueError("max_delay_seconds must be >= 0")
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        if not 0.0 <= self.jitter_ratio <= 1.0:
            raise ValueError("jitter_ratio must be between 0 and 1")
        if self.retry_after_cap_seconds < 0:
            raise ValueError("retry_after_cap_seconds must be >= 0")

    def classify(self, exc: BaseException) -> RetryVerdict:
        if isinstance(exc, requests.HTTPError):
            response = exc.response
            if response is None:
                return RetryVerdict(False, "http_status")
            code = response.status_code
            if code not in self.retry_statuses:
                return RetryVerdict(False, f"http_{code}", code)
            hint = parse_retry_after(response.headers.get("Retry-After"))
            return RetryVerdict(True, f"http_{code}", code, hint)

        if isinstance(exc, requests.Timeout):
            return RetryVerdict(True, "timeout")
        if isinstance(exc, requests.ConnectionError):
            return RetryVerdict(True, "connection_error")
        return RetryVerdict(False)

    def wait_seconds(self, failures: int, retry_after: float | None = None) -> float:
        """Un-jittered wait after `failures` consecutive failed attempts."""
        wait = min(self.max_delay_seconds, self.base_delay_seconds * 2 ** max(0, failures - 1))
        if retry_after is not None:
            hint = retry_after
            if self.retry_after_cap_seconds > 0:
                hint = min(hint, self.retry_after_cap_seconds)
            wait = max(wait, hint)
        return wait

    def jittered(self, seconds: float) -> float:
        if seconds <= 0 or self.jitter_ratio == 0:
            return max(0.0, seconds)
        spread = random.uniform(-self.jitter_ratio, self.jitter_ratio)
        return max(0.0, seconds * (1.0 + spread))


@dataclass(frozen=True)
class RetryEvent:
    operation: str
    url: str
    attempt: int
    max_attempts: int
    delay_seconds: float
    reason: str | None
    status_code: int | None
    error: str


OnRetryFn = Callable[[RetryEvent], None]
SleepFn = Callable[[float], None]


def send_with_retries(
    send: Callable[[], requests.Response],
    *,
    policy: RetryPolicy,
    operation: str,
    url: str,
    on_retry: OnRetryFn | None = None,
    sleep_fn: SleepFn | None = None,
) -> requests.Response:
    """
    Issue a request until it returns a non-error status.

    `send` performs one request. Error statuses are raised with
    `raise_for_status()`; the last exception propagates unchanged once the
    policy refuses another attempt.
    """
    sleep = sleep_fn or time.sleep
    attempt = 1
    while True:
        try:
            response = send()
            response.raise_for_status()
            return response
        except requests.RequestException as exc:
            verdict = policy.classify(exc)
            if not verdict.retry or attempt >= policy.max_attempts:
                raise

            if exc.response is not None:
                exc.response.close()

            delay = policy.jittered(policy.wait_seconds(attempt, verdict.retry_after_seconds))
            if on_retry is not None:
                on_retry(
                    RetryEvent(
                        operation=operation,
                        url=url,
                        attempt=attempt,
                        max_attempts=policy.max_attempts,
                        delay_seconds=delay,
                        reason=verdict.reason,
                        status_code=verdict.status_code,
                        error=str(exc).strip(),
                    )
                )
            if delay > 0:
                sleep(delay)
            attempt += 1
