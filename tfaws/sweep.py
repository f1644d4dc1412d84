import logging
import threading
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

from sretoolbox.utils import threaded

from tfaws.utils import metrics
from tfaws.utils.aws_errors import (
    Disposition,
    ErrorClassifier,
    default_sweep_classifier,
)
from tfaws.utils.multierror import MultiError
from tfaws.utils.retry import RetryOutcome, RetryPolicy, retry

SWEEP_THROTTLING_RETRY_TIMEOUT = 10 * 60

SWEEP_RETRY_POLICY = RetryPolicy(min_timeout=0, timeout=SWEEP_THROTTLING_RETRY_TIMEOUT)


class SweepStatus(StrEnum):
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


class SweepResource:
    """A leftover resource and the function deleting it."""

    def __init__(self, identifier: str, delete: Callable[[], Any]) -> None:
        self.identifier = identifier
        self.delete = delete

    def __repr__(self) -> str:
        return f"SweepResource({self.identifier!r})"


class SweepResourceError(Exception):
    def __init__(self, identifier: str, error: Exception) -> None:
        super().__init__(f"sweeping resource ({identifier}): {error}")
        self.identifier = identifier
        self.error = error


def _sweep(
    sweep_resource: SweepResource,
    policy: RetryPolicy,
    classifier: ErrorClassifier,
    cancel: threading.Event | None,
) -> SweepStatus:
    def attempt() -> RetryOutcome[SweepStatus]:
        try:
            sweep_resource.delete()
        except Exception as e:
            classification = classifier(e)
            match classification.disposition:
                case Disposition.RETRYABLE:
                    logging.info(
                        f"While sweeping resource ({sweep_resource.identifier}), "
                        f"encountered {classification.reason} error ({e}). Retrying..."
                    )
                    return RetryOutcome.retryable(e)
                case Disposition.SKIPPABLE:
                    logging.warning(
                        f"Skipping resource ({sweep_resource.identifier}), "
                        f"{classification.reason}: {e}"
                    )
                    return RetryOutcome.success(SweepStatus.SKIPPED)
                case _:
                    return RetryOutcome.non_retryable(e)
        return RetryOutcome.success(SweepStatus.DELETED)

    try:
        status = retry(policy, attempt, cancel=cancel)
    except Exception as e:
        metrics.sweep_resources.labels(status=SweepStatus.FAILED.value).inc()
        raise SweepResourceError(sweep_resource.identifier, e) from e
    metrics.sweep_resources.labels(status=status.value).inc()
    return status


def sweep_orchestrator(
    sweep_resources: Iterable[SweepResource],
    policy: RetryPolicy = SWEEP_RETRY_POLICY,
    classifier: ErrorClassifier = default_sweep_classifier,
    thread_pool_size: int | None = None,
    cancel: threading.Event | None = None,
) -> MultiError:
    """Delete all resources concurrently, each one retried on its own.

    Errors are collected and returned rather than raised, so a failing
    resource never stops the others. Check the result with error_or_none().
    By default every resource gets its own thread.
    """
    sweep_resources = list(sweep_resources)
    errors = MultiError()
    if not sweep_resources:
        return errors

    results = threaded.run(
        _sweep,
        sweep_resources,
        thread_pool_size or len(sweep_resources),
        return_exceptions=True,
        policy=policy,
        classifier=classifier,
        cancel=cancel,
    )
    for result in results:
        if isinstance(result, BaseException):
            errors.append(result)
    return errors
