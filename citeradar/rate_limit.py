from __future__ import annotations

import threading
import time
from typing import Callable, Optional, TypeVar

from .config import (
    HTTP_AUTH_STATUS_CODES,
    HTTP_BACKOFF_INITIAL,
    HTTP_BACKOFF_MAX,
    HTTP_MAX_RETRIES,
    HTTP_RATE_LIMIT_STATUS,
    HTTP_SERVER_ERROR_MIN,
    RATE_LIMITS,
)
from .exceptions import (
    AuthSourceError,
    RequestFailedError,
    SourceError,
    TIMEOUT_ERRORS,
    TransientSourceError,
)
from .http_utils import parse_retry_after
from .log_utils import logger, LogCategory

T = TypeVar('T')

__all__ = ["TokenBucket", "RateLimitedRequestExecutor", "response_status"]


class TokenBucket:
    """
    Thread-safe token bucket that refills at a fixed rate.

    A caller that finds the bucket empty takes the token anyway and goes into
    debt; it then sleeps, outside the lock, for as long as the debt needs to
    be repaid. Concurrent callers therefore queue up in arrival order without
    holding the lock while they wait.
    """

    def __init__(
            self,
            rate: float,
            capacity: Optional[float] = None,
            clock: Callable[[], float] = time.monotonic,
            sleep: Callable[[float], None] = time.sleep,
    ):
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = float(rate)
        self.capacity = float(capacity) if capacity is not None else max(1.0, self.rate)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = self.capacity
        self._updated = clock()

    def _refill(self, now: float):
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    @property
    def tokens(self) -> float:
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def reserve(self) -> float:
        """
        Take one token and return how many seconds the caller must wait
        before using it (0.0 when a token was available).
        """
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1.0
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def acquire(self) -> float:
        """
        Block until one token is available. Returns the time spent waiting.
        """
        wait = self.reserve()
        if wait > 0:
            self._sleep(wait)
        return wait


def response_status(exc: BaseException) -> Optional[int]:
    """
    Pull the HTTP status code out of a requests-style exception, if it has one.
    """
    resp = getattr(exc, "response", None)
    if resp is None:
        return None
    status = getattr(resp, "status_code", None)
    return status if isinstance(status, int) else None


def _retry_after(exc: BaseException) -> float:
    resp = getattr(exc, "response", None)
    headers = getattr(resp, "headers", None) or {}
    return parse_retry_after(headers.get("Retry-After"))


class RateLimitedRequestExecutor:
    """
    Run outbound request functions under a per-source token bucket with a
    bounded retry policy.

    - 429: back off, double the delay, retry.
    - 5xx and timeouts: same backoff and retry budget as 429.
    - 401/403: AuthSourceError, no retry.
    - anything else: RequestFailedError right away.
    - retries exhausted: TransientSourceError.

    Backoff state lives inside each execute() call, so one throttled lookup
    does not slow down the next one.
    """

    def __init__(
            self,
            name: str,
            requests_per_second: Optional[float] = None,
            *,
            max_retries: int = HTTP_MAX_RETRIES,
            backoff_initial: float = HTTP_BACKOFF_INITIAL,
            backoff_max: float = HTTP_BACKOFF_MAX,
            bucket: Optional[TokenBucket] = None,
            sleep: Callable[[float], None] = time.sleep,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.max_retries = max(0, int(max_retries))
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max
        self._sleep = sleep
        rate = requests_per_second if requests_per_second is not None else RATE_LIMITS.get(name, 1.0)
        self.bucket = bucket or TokenBucket(rate, clock=clock, sleep=sleep)

    def _is_transient(self, exc: BaseException, status: Optional[int]) -> bool:
        if status is not None:
            return status == HTTP_RATE_LIMIT_STATUS or status >= HTTP_SERVER_ERROR_MIN
        return isinstance(exc, TIMEOUT_ERRORS)

    def execute(self, request_fn: Callable[[], T]) -> T:
        """
        Call request_fn until it succeeds or the retry policy gives up.
        """
        delay = self.backoff_initial
        max_attempts = self.max_retries + 1
        attempt = 0

        while True:
            attempt += 1
            logger.debug(f"Attempt {attempt}/{max_attempts}", source=self.name, category=LogCategory.REQUEST)
            waited = self.bucket.acquire()
            if waited > 0:
                logger.debug(f"Rate limiter held request for {waited:.2f}s", source=self.name,
                             category=LogCategory.REQUEST)

            try:
                response = request_fn()
            except SourceError:
                raise
            except Exception as exc:
                status = response_status(exc)

                if status in HTTP_AUTH_STATUS_CODES:
                    logger.error(f"Authentication rejected ({status}); not retrying", source=self.name,
                                 category=LogCategory.ERROR)
                    raise AuthSourceError(self.name, f"authentication failed - {exc}", status) from exc

                if not self._is_transient(exc, status):
                    logger.warn(f"Request failed: {exc}", source=self.name, category=LogCategory.ERROR)
                    raise RequestFailedError(self.name, f"request failed - {exc}", status) from exc

                if attempt >= max_attempts:
                    logger.error(f"Giving up after {attempt} attempt(s): {exc}", source=self.name,
                                 category=LogCategory.ERROR)
                    raise TransientSourceError(
                        self.name, f"retries exhausted after {attempt} attempt(s) - {exc}", status
                    ) from exc

                wait = delay
                if status == HTTP_RATE_LIMIT_STATUS:
                    wait = max(wait, _retry_after(exc))
                wait = min(wait, self.backoff_max)
                reason = f"status {status}" if status is not None else "timeout"
                logger.warn(f"Transient failure ({reason}); retry {attempt}/{self.max_retries} in {wait:.1f}s",
                            source=self.name, category=LogCategory.RETRY)
                self._sleep(wait)
                delay = min(delay * 2, self.backoff_max)
                continue

            logger.debug(f"Request succeeded on attempt {attempt}", source=self.name,
                         category=LogCategory.REQUEST)
            return response
