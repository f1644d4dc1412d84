import threading
from collections.abc import Callable
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from tfaws.sweep import (
    SWEEP_RETRY_POLICY,
    SWEEP_THROTTLING_RETRY_TIMEOUT,
    SweepResource,
    SweepResourceError,
    sweep_orchestrator,
)
from tfaws.utils.aws_errors import skip_resource_classifier
from tfaws.utils.retry import RetryCancelledError, RetryPolicy, RetryTimeoutError

ClientErrorBuilder = Callable[..., ClientError]


def test_sweep_retry_policy_defaults() -> None:
    assert SWEEP_RETRY_POLICY.timeout == SWEEP_THROTTLING_RETRY_TIMEOUT == 600
    assert SWEEP_RETRY_POLICY.delay == 0
    assert SWEEP_RETRY_POLICY.min_timeout == 0


def test_sweep_orchestrator_empty() -> None:
    errors = sweep_orchestrator([])
    assert not errors
    assert errors.error_or_none() is None


def test_sweep_orchestrator_all_succeed(fast_policy: RetryPolicy) -> None:
    deletes = [Mock(), Mock(), Mock()]
    resources = [SweepResource(f"r-{i}", d) for i, d in enumerate(deletes)]

    errors = sweep_orchestrator(resources, policy=fast_policy)

    assert errors.error_or_none() is None
    for d in deletes:
        d.assert_called_once_with()


def test_sweep_orchestrator_isolates_failures(fast_policy: RetryPolicy) -> None:
    a = Mock(side_effect=ValueError("a failed"))
    b = Mock()
    c = Mock(side_effect=KeyError("c failed"))

    errors = sweep_orchestrator(
        [SweepResource("a", a), SweepResource("b", b), SweepResource("c", c)],
        policy=fast_policy,
    )

    assert len(errors) == 2
    assert all(isinstance(e, SweepResourceError) for e in errors)
    assert sorted(e.identifier for e in errors) == ["a", "c"]  # type: ignore[attr-defined]
    assert sorted(type(e.error).__name__ for e in errors) == [  # type: ignore[attr-defined]
        "KeyError",
        "ValueError",
    ]
    a.assert_called_once()
    b.assert_called_once()
    c.assert_called_once()


def test_sweep_orchestrator_failure_does_not_block_siblings(
    fast_policy: RetryPolicy,
) -> None:
    # every resource has to be running at the same time to pass the barrier
    barrier = threading.Barrier(3, timeout=5)

    def fail() -> None:
        barrier.wait()
        raise ValueError("boom")

    ok = Mock(side_effect=lambda: barrier.wait())
    errors = sweep_orchestrator(
        [SweepResource("a", fail), SweepResource("b", ok), SweepResource("c", fail)],
        policy=fast_policy,
    )

    assert sorted(e.identifier for e in errors) == ["a", "c"]  # type: ignore[attr-defined]
    ok.assert_called_once()


def test_sweep_orchestrator_retries_throttling(
    fast_policy: RetryPolicy, client_error: ClientErrorBuilder
) -> None:
    delete = Mock(side_effect=[client_error("Throttling", "Rate exceeded"), None])

    errors = sweep_orchestrator([SweepResource("r-1", delete)], policy=fast_policy)

    assert not errors
    assert delete.call_count == 2


def test_sweep_orchestrator_does_not_retry_other_errors(
    fast_policy: RetryPolicy, client_error: ClientErrorBuilder
) -> None:
    delete = Mock(side_effect=client_error("AccessDenied", "nope"))

    errors = sweep_orchestrator([SweepResource("r-1", delete)], policy=fast_policy)

    assert len(errors) == 1
    delete.assert_called_once()


def test_sweep_orchestrator_skippable_errors(
    fast_policy: RetryPolicy, client_error: ClientErrorBuilder
) -> None:
    delete = Mock(side_effect=client_error("AccessDenied", "managed by central IT"))

    errors = sweep_orchestrator(
        [SweepResource("r-1", delete)],
        policy=fast_policy,
        classifier=skip_resource_classifier,
    )

    assert not errors
    delete.assert_called_once()


def test_sweep_orchestrator_timeout_single_final_attempt(
    client_error: ClientErrorBuilder,
) -> None:
    delete = Mock(side_effect=client_error("Throttling", "Rate exceeded"))

    errors = sweep_orchestrator(
        [SweepResource("r-1", delete)], policy=RetryPolicy(timeout=0)
    )

    assert len(errors) == 1
    (err,) = errors
    assert isinstance(err.error, RetryTimeoutError)  # type: ignore[attr-defined]
    assert "sweeping resource (r-1)" in str(err)
    # the final attempt is made by the retry loop only
    delete.assert_called_once()


def test_sweep_orchestrator_cancel(fast_policy: RetryPolicy) -> None:
    cancel = threading.Event()
    cancel.set()
    delete = Mock()

    errors = sweep_orchestrator(
        [SweepResource("r-1", delete)], policy=fast_policy, cancel=cancel
    )

    assert isinstance(errors.errors[0].error, RetryCancelledError)  # type: ignore[attr-defined]
    delete.assert_not_called()


def test_sweep_orchestrator_thread_pool_size(fast_policy: RetryPolicy) -> None:
    deletes = [Mock() for _ in range(5)]
    errors = sweep_orchestrator(
        [SweepResource(str(i), d) for i, d in enumerate(deletes)],
        policy=fast_policy,
        thread_pool_size=2,
    )
    assert not errors
    assert all(d.call_count == 1 for d in deletes)


def test_sweep_resource_repr() -> None:
    assert repr(SweepResource("rule-1", Mock())) == "SweepResource('rule-1')"


@pytest.mark.parametrize("timeout", [0.0, 1.5])
def test_sweep_orchestrator_accepts_policy(timeout: float) -> None:
    errors = sweep_orchestrator(
        [SweepResource("r-1", Mock())], policy=RetryPolicy(timeout=timeout)
    )
    assert not errors
