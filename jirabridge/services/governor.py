"""Outbound call throttling and retry"""

import logging
import time
from typing import Any, Callable, Optional

from jirabridge.services.errors import (
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceeded,
    TransientError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


def response_code(exc: BaseException) -> Optional[int]:
    """HTTP status carried by a GitHub or Jira client exception."""
    # github.GithubException exposes `.status`, jira.exceptions.JIRAError `.status_code`.
    for attr in ("status_code", "status", "response_code"):
        rc = getattr(exc, attr, None)
        if isinstance(rc, int):
            return rc
    return None


def is_rate_limited(exc: BaseException) -> bool:
    if response_code(exc) == 429:
        return True
    # GitHub signals secondary rate limits with a 403 + message.
    text = str(exc).lower()
    return "rate limit" in text or "too many requests" in text


class RequestGovernor:
    """Single choke point for every call to either tracker.

    Mutating calls wait a fixed delay first (a plain global throttle).
    Rate-limit and 5xx responses are retried with exponential backoff;
    after `max_attempts` consecutive failures the call is abandoned.
    """

    def __init__(
        self,
        *,
        request_delay_s: float = 1.0,
        max_attempts: int = 3,
        base_delay_s: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.request_delay_s = request_delay_s
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay_s = base_delay_s
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings) -> "RequestGovernor":
        return cls(
            request_delay_s=settings.request_delay_seconds,
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_seconds,
        )

    def throttle(self):
        if self.request_delay_s > 0:
            self._sleep(self.request_delay_s)

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay_s * (2 ** (attempt - 1))

    def call(self, fn: Callable[[], Any], *, what: str = "request", mutating: bool = False) -> Any:
        """Run `fn`, translating tracker exceptions into the sync error taxonomy."""
        if mutating:
            self.throttle()

        last_exc: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except Exception as e:
                rc = response_code(e)
                if is_rate_limited(e) or rc in RETRYABLE_STATUS:
                    last_exc = e
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        f"{what}: transient failure (HTTP {rc}), backing off {delay:.1f}s "
                        f"(attempt {attempt}/{self.max_attempts})"
                    )
                    self._sleep(delay)
                    continue
                if rc == 404:
                    raise NotFoundError(f"{what}: not found", status_code=rc) from e
                if rc in (401, 403):
                    raise PermissionDeniedError(f"{what}: permission denied (HTTP {rc})", status_code=rc) from e
                raise

        rc = response_code(last_exc) if last_exc is not None else None
        if last_exc is not None and is_rate_limited(last_exc):
            raise RateLimitExceeded(
                f"{what}: rate limited {self.max_attempts} times, giving up", status_code=rc
            ) from last_exc
        raise TransientError(
            f"{what}: failed {self.max_attempts} times (HTTP {rc})", status_code=rc
        ) from last_exc
