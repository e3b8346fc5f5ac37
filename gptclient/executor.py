"""Status-code driven HTTP execution with exponential backoff."""
from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Type

from .errors import (
    ApiClientError,
    ExecutionTimeoutError,
    RequestCanceledError,
)
from .logger import HumanEntry, Logger
from .transport import HttpRequest, RawResponse, Transport


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay = random.uniform(delay / 2, delay)
        return delay


@dataclass(frozen=True)
class StatusCodeEntry:
    error_cls: Type[ApiClientError]
    message: str
    retryable: bool


class StatusCodeTable:
    """Maps HTTP status codes to the error raised for them and whether they are retried."""

    def __init__(self) -> None:
        self._entries: Dict[int, StatusCodeEntry] = {}

    def register(self, status_code: int, error_cls: Type[ApiClientError], message: str, retryable: bool) -> None:
        self._entries[status_code] = StatusCodeEntry(error_cls, message, retryable)

    def lookup(self, status_code: int) -> Optional[StatusCodeEntry]:
        return self._entries.get(status_code)

    @property
    def retryable_codes(self) -> FrozenSet[int]:
        return frozenset(code for code, entry in self._entries.items() if entry.retryable)

    def error_for(self, response: RawResponse) -> ApiClientError:
        entry = self._entries.get(response.status_code)
        if entry is None:
            return ApiClientError("Unexpected HTTP status", status_code=response.status_code, body=response.body())
        return entry.error_cls(entry.message, status_code=response.status_code, body=response.body())


class RunGuard:
    """Cancellation signal plus wall-clock budget, checked before every HTTP attempt."""

    def __init__(
        self,
        is_canceled: Optional[Callable[[], bool]] = None,
        max_execution_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.is_canceled = is_canceled
        self.max_execution_seconds = max_execution_seconds
        self.clock = clock
        self.deadline = clock() + max_execution_seconds if max_execution_seconds else None

    def check(self) -> None:
        if self.is_canceled is not None and self.is_canceled():
            raise RequestCanceledError("Run was canceled by the caller")
        if self.deadline is not None and self.clock() >= self.deadline:
            raise ExecutionTimeoutError(self.max_execution_seconds)


class RetryingExecutor:
    def __init__(
        self,
        transport: Transport,
        status_codes: StatusCodeTable,
        policy: Optional[RetryPolicy] = None,
        logger: Optional[Logger] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.transport = transport
        self.status_codes = status_codes
        self.policy = policy or RetryPolicy()
        self.logger = logger or Logger()
        self.sleep = sleep

    def execute(self, request: HttpRequest, guard: Optional[RunGuard] = None) -> RawResponse:
        """Perform exactly one attempt; any non-2xx status raises."""
        response = self._attempt(request, guard, attempt=1)
        if response.ok:
            return response
        raise self._fail(request, response, attempt=1)

    def execute_with_backoff(self, request: HttpRequest, guard: Optional[RunGuard] = None) -> RawResponse:
        """Retry retryable statuses with exponential backoff up to ``policy.max_attempts`` attempts."""
        attempts = self.policy.max_attempts
        for attempt in range(1, attempts + 1):
            response = self._attempt(request, guard, attempt)
            if response.ok:
                if attempt > 1:
                    self.logger.json({"type": "http_retry_success", "url": request.url, "attempt": attempt})
                return response
            entry = self.status_codes.lookup(response.status_code)
            if entry is None or not entry.retryable or attempt == attempts:
                raise self._fail(request, response, attempt)
            delay = self.policy.delay_for(attempt)
            self.logger.human(
                HumanEntry(
                    title="http",
                    body=f"attempt {attempt} got HTTP {response.status_code}, retrying in {delay:.2f}s",
                    variant="warn",
                )
            )
            self.logger.json(
                {
                    "type": "http_retry",
                    "url": request.url,
                    "status": response.status_code,
                    "attempt": attempt,
                    "delay": delay,
                }
            )
            self.sleep(delay)
        raise AssertionError("unreachable")

    def _attempt(self, request: HttpRequest, guard: Optional[RunGuard], attempt: int) -> RawResponse:
        if guard is not None:
            guard.check()
        self.logger.json({"type": "http_attempt", "method": request.method, "url": request.url, "attempt": attempt})
        return self.transport.send_once(request)

    def _fail(self, request: HttpRequest, response: RawResponse, attempt: int) -> ApiClientError:
        error = self.status_codes.error_for(response)
        self.logger.human(HumanEntry(title="http", body=f"attempt {attempt} failed: {error}", variant="error"))
        self.logger.json(
            {
                "type": "http_error",
                "url": request.url,
                "status": response.status_code,
                "attempt": attempt,
                "error": type(error).__name__,
            }
        )
        return error
