import logging
import random
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from tfaws.utils import metrics

T = TypeVar("T")

# backoff bounds, in seconds
INITIAL_WAIT = 0.1
MAX_WAIT = 10.0
MAX_POLL_INTERVAL = 180.0
DEFAULT_MIN_TIMEOUT = 0.5


class RetryTimeoutError(Exception):
    """Raised when a retry loop is still failing after its deadline."""

    def __init__(self, timeout: float, last_error: Exception | None = None) -> None:
        msg = f"timeout while waiting for state to become 'success' (timeout: {timeout}s)"
        if last_error is not None:
            msg += f", last error: {last_error}"
        super().__init__(msg)
        self.timeout = timeout
        self.last_error = last_error


class RetryCancelledError(Exception):
    """Raised when the caller cancels a retry loop."""


class NotFoundError(Exception):
    def __init__(
        self,
        message: str = "couldn't find resource",
        last_error: Exception | None = None,
        last_request: Any = None,
    ) -> None:
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message)
        self.last_error = last_error
        self.last_request = last_request


def timed_out(err: BaseException | None) -> bool:
    return isinstance(err, RetryTimeoutError)


def not_found(err: BaseException | None) -> bool:
    return isinstance(err, NotFoundError)


class RetryPolicy(BaseModel, frozen=True):
    """
    Timing of a retry loop, all values in seconds.

    delay + a random value in [0, delay_rand] is waited before the first
    attempt. Between attempts the wait starts at 200ms and doubles up to
    10s, never going below min_timeout. A poll_interval replaces that
    computed wait. timeout bounds the whole loop.
    """

    delay: float = Field(default=0.0, ge=0)
    delay_rand: float = Field(default=0.0, ge=0)
    min_timeout: float = Field(default=DEFAULT_MIN_TIMEOUT, ge=0)
    poll_interval: float = Field(default=0.0, ge=0)
    timeout: float = Field(..., ge=0)

    def initial_delay(self) -> float:
        if self.delay_rand > 0:
            return self.delay + random.uniform(0, self.delay_rand)
        return self.delay

    def backoff(self) -> Iterator[float]:
        wait = INITIAL_WAIT
        while True:
            wait *= 2
            if 0 < self.poll_interval < MAX_POLL_INTERVAL:
                wait = self.poll_interval
            elif wait < self.min_timeout:
                wait = self.min_timeout
            elif wait > MAX_WAIT:
                wait = MAX_WAIT
            yield wait


class OutcomeKind(StrEnum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    kind: OutcomeKind
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "RetryOutcome[T]":
        return cls(kind=OutcomeKind.SUCCESS, value=value)

    @classmethod
    def retryable(cls, error: Exception) -> "RetryOutcome[T]":
        return cls(kind=OutcomeKind.RETRYABLE, error=error)

    @classmethod
    def non_retryable(cls, error: Exception) -> "RetryOutcome[T]":
        return cls(kind=OutcomeKind.NON_RETRYABLE, error=error)

    @property
    def is_retryable(self) -> bool:
        return self.kind == OutcomeKind.RETRYABLE

    def unwrap(self) -> T:
        if self.kind == OutcomeKind.SUCCESS:
            return self.value  # type: ignore[return-value]
        if self.error is None:
            raise ValueError(f"{self.kind} outcome carries no error")
        raise self.error


def _wait(cancel: threading.Event, seconds: float) -> None:
    if cancel.wait(max(seconds, 0.0)):
        raise RetryCancelledError("retry cancelled")


def retry(
    policy: RetryPolicy,
    operation: Callable[[], RetryOutcome[T]],
    cancel: threading.Event | None = None,
) -> T:
    """Call operation until it succeeds, fails for good or the policy
    timeout expires.

    After the timeout one last attempt is made regardless of the time
    left. If that attempt is still retryable a RetryTimeoutError is raised
    with the last error attached. A non-retryable error is raised as is.
    Setting cancel interrupts any wait and raises RetryCancelledError.
    """
    if cancel is None:
        cancel = threading.Event()

    deadline = time.monotonic() + policy.timeout

    def remaining() -> float:
        return deadline - time.monotonic()

    _wait(cancel, min(policy.initial_delay(), remaining()))

    backoff = policy.backoff()
    attempt = 0
    while remaining() > 0:
        attempt += 1
        outcome = operation()
        metrics.retry_attempts.labels(outcome=outcome.kind.value).inc()
        if not outcome.is_retryable:
            return outcome.unwrap()
        logging.debug(f"attempt {attempt} failed with a retryable error: {outcome.error}")
        _wait(cancel, min(next(backoff), remaining()))

    logging.debug(f"retry deadline of {policy.timeout}s reached, making a final attempt")
    _wait(cancel, 0)
    outcome = operation()
    metrics.retry_attempts.labels(outcome=outcome.kind.value).inc()
    if outcome.is_retryable:
        raise RetryTimeoutError(policy.timeout, outcome.error) from outcome.error
    return outcome.unwrap()


def retry_when(
    policy: RetryPolicy,
    f: Callable[[], T],
    is_retryable: Callable[[Exception], bool],
    cancel: threading.Event | None = None,
) -> T:
    """retry() for a plain callable: exceptions matching is_retryable are
    retried, any other exception stops the loop."""

    def operation() -> RetryOutcome[T]:
        try:
            return RetryOutcome.success(f())
        except Exception as e:
            if is_retryable(e):
                return RetryOutcome.retryable(e)
            return RetryOutcome.non_retryable(e)

    return retry(policy, operation, cancel=cancel)
