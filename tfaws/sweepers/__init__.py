import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from tfaws.client import AWSClient, RegionalClientCache
from tfaws.sweep import SWEEP_RETRY_POLICY, SweepResource, sweep_orchestrator
from tfaws.utils import metrics
from tfaws.utils.aws_errors import ErrorClassifier, default_sweep_classifier
from tfaws.utils.change_token import CHANGE_TOKEN_RETRY_POLICY
from tfaws.utils.multierror import MultiError
from tfaws.utils.mutexkv import MutexKV
from tfaws.utils.retry import RetryPolicy


class SweeperError(Exception):
    def __init__(self, sweeper: str, region: str, error: BaseException) -> None:
        super().__init__(f"sweeper {sweeper} failed in region {region}: {error}")
        self.sweeper = sweeper
        self.region = region
        self.error = error


class SweeperRegistryError(Exception):
    pass


class SweeperRuntime:
    """Everything a sweeper needs, shared by all sweepers of a run.

    policy drives the per resource retries of sweep(), token_policy the
    change token loops inside a single deletion. Setting cancel stops both.
    """

    def __init__(
        self,
        clients: RegionalClientCache[AWSClient],
        mutex_kv: MutexKV | None = None,
        policy: RetryPolicy = SWEEP_RETRY_POLICY,
        thread_pool_size: int | None = None,
        cancel: threading.Event | None = None,
        dry_run: bool = False,
        token_policy: RetryPolicy = CHANGE_TOKEN_RETRY_POLICY,
    ) -> None:
        self.clients = clients
        self.mutex_kv = mutex_kv or MutexKV()
        self.policy = policy
        self.thread_pool_size = thread_pool_size
        self.cancel = cancel
        self.dry_run = dry_run
        self.token_policy = token_policy

    def sweep(
        self,
        sweep_resources: Iterable[SweepResource],
        classifier: ErrorClassifier = default_sweep_classifier,
    ) -> MultiError:
        if self.dry_run:
            for sweep_resource in sweep_resources:
                logging.info(["delete", sweep_resource.identifier])
            return MultiError()
        return sweep_orchestrator(
            sweep_resources,
            policy=self.policy,
            classifier=classifier,
            thread_pool_size=self.thread_pool_size,
            cancel=self.cancel,
        )


SweeperFunc = Callable[[str, SweeperRuntime], None]


@dataclass(frozen=True)
class Sweeper:
    name: str
    func: SweeperFunc
    dependencies: tuple[str, ...] = field(default_factory=tuple)


class SweeperRegistry:
    def __init__(self) -> None:
        self._sweepers: dict[str, Sweeper] = {}

    def add(
        self, name: str, func: SweeperFunc, dependencies: Iterable[str] = ()
    ) -> Sweeper:
        if name in self._sweepers:
            raise SweeperRegistryError(f"sweeper {name} is already registered")
        sweeper = Sweeper(name=name, func=func, dependencies=tuple(dependencies))
        self._sweepers[name] = sweeper
        return sweeper

    def register(
        self, name: str, dependencies: Iterable[str] = ()
    ) -> Callable[[SweeperFunc], SweeperFunc]:
        def decorator(func: SweeperFunc) -> SweeperFunc:
            self.add(name, func, dependencies)
            return func

        return decorator

    def names(self) -> list[str]:
        return sorted(self._sweepers)

    def resolve(self, filters: Iterable[str] | None = None) -> list[Sweeper]:
        """Return the sweepers whose name contains one of the filters, with
        their dependencies, ordered so dependencies run first."""
        filters = [f for f in filters or [] if f]
        selected = [
            name
            for name in self.names()
            if not filters or any(f in name for f in filters)
        ]

        ordered: list[Sweeper] = []
        done: set[str] = set()
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                raise SweeperRegistryError(f"dependency cycle at sweeper {name}")
            sweeper = self._sweepers.get(name)
            if sweeper is None:
                raise SweeperRegistryError(f"unknown sweeper {name}")
            visiting.add(name)
            for dependency in sweeper.dependencies:
                visit(dependency)
            visiting.remove(name)
            done.add(name)
            ordered.append(sweeper)

        for name in selected:
            visit(name)
        return ordered

    def run(
        self,
        regions: Iterable[str],
        runtime: SweeperRuntime,
        filters: Iterable[str] | None = None,
        allow_failures: bool = False,
    ) -> MultiError:
        """Run the selected sweepers in every region.

        Without allow_failures the first failing sweeper stops the run and
        its SweeperError is raised. With it, failures are collected and
        returned.
        """
        sweepers = self.resolve(filters)
        errors = MultiError()
        for region in regions:
            for sweeper in sweepers:
                logging.info(f"running sweeper {sweeper.name} in region {region}")
                try:
                    sweeper.func(region, runtime)
                except Exception as e:
                    metrics.sweeper_runs.labels(
                        sweeper=sweeper.name, region=region, status="failed"
                    ).inc()
                    error = SweeperError(sweeper.name, region, e)
                    if not allow_failures:
                        raise error from e
                    logging.error(str(error))
                    errors.append(error)
                    continue
                metrics.sweeper_runs.labels(
                    sweeper=sweeper.name, region=region, status="success"
                ).inc()
        return errors


registry = SweeperRegistry()
